from datetime import datetime, timezone
from flask import Blueprint, jsonify
import time

from quizrooms import get_room_manager

main = Blueprint('main', __name__)

_started_at = time.time()


def _uptime():
    return round(time.time() - _started_at, 3)


def _timestamp():
    return datetime.now(timezone.utc).isoformat()


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the math quiz room server!'})


@main.route('/health')
def health():
    return jsonify({
        'status': 'OK',
        'timestamp': _timestamp(),
        'uptime': _uptime(),
        'multiplayer': get_room_manager().enabled,
    })
