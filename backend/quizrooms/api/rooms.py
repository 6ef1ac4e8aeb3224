from flask import Blueprint, jsonify

from quizrooms import get_room_manager
from quizrooms.errors import CapabilityUnavailable, RoomError
from quizrooms.main import _timestamp, _uptime

rooms = Blueprint('rooms', __name__)


@rooms.route('/status', methods=['GET'])
def status():
    manager = get_room_manager()
    enabled = manager.enabled
    room_count = None
    if enabled:
        try:
            room_count = manager.store.count()
        except CapabilityUnavailable:
            enabled = False
    return jsonify({
        'status': 'OK',
        'timestamp': _timestamp(),
        'uptime': _uptime(),
        'multiplayer': enabled,
        'rooms': room_count,
    })


@rooms.route('/rooms/<string:code>', methods=['GET'])
def get_room(code):
    try:
        room = get_room_manager().get_room(code)
    except RoomError as exc:
        return jsonify({'error': exc.message, 'type': exc.kind}), exc.status
    return jsonify(room.to_dict())
