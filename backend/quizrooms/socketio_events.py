from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from typing import Any, Callable, Dict, Optional
import functools

from quizrooms.errors import RoomError, ValidationError
from quizrooms.models import Room
from quizrooms.services.rooms import RoomManager, leaderboard, normalize_code


class RoomGateway:
    """Routes room commands from socket connections to the RoomManager.

    Each room's connections share a broadcast group named by the room
    code. Errors go back to the requesting connection only.
    """

    def __init__(self, socketio, manager: RoomManager, namespace: str = '/ws'):
        self.socketio = socketio
        self.manager = manager
        self.namespace = namespace
        # connection id -> room code, so a dropped connection can still leave
        self._sid_to_room: Dict[str, str] = {}

    def register(self) -> None:
        ns = self.namespace
        self.socketio.on_event('connect', self.handle_connect, namespace=ns)
        self.socketio.on_event('disconnect', self.handle_disconnect, namespace=ns)
        commands = {
            'create-room': self.handle_create_room,
            'join-room': self.handle_join_room,
            'player-ready': self.handle_player_ready,
            'start-game': self.handle_start_game,
            'submit-score': self.handle_submit_score,
            'leave-room': self.handle_leave_room,
        }
        for event, handler in commands.items():
            self.socketio.on_event(event, self._command(event, handler), namespace=ns)

    def room_of(self, sid: str) -> Optional[str]:
        return self._sid_to_room.get(sid)

    # ---- plumbing ----

    def _command(self, event: str, handler: Callable[[str, Dict[str, Any]], None]):
        @functools.wraps(handler)
        def wrapper(data=None):
            sid = request.sid
            payload = data if isinstance(data, dict) else {}
            try:
                handler(sid, payload)
            except RoomError as exc:
                current_app.logger.info(f"[{event}-rejected] sid={sid} type={exc.kind} message={exc.message}")
                emit('error', dict(exc.to_dict(), command=event))
            except Exception:
                current_app.logger.exception(f"[{event}-failed] sid={sid}")
                emit('error', {'type': 'InternalError', 'message': 'Something went wrong, please try again', 'command': event})
        return wrapper

    def _broadcast(self, event: str, payload: Dict[str, Any], code: str, **kwargs) -> None:
        self.socketio.emit(event, payload, to=code, namespace=self.namespace, **kwargs)

    def _resolve_code(self, sid: str, data: Dict[str, Any]) -> str:
        code = normalize_code(data.get('roomCode')) or self._sid_to_room.get(sid)
        if not code:
            raise ValidationError('Room code is required')
        return code

    def _subscribe(self, sid: str, room: Room) -> None:
        previous = self._sid_to_room.get(sid)
        if previous and previous != room.code:
            try:
                self._leave(sid, previous)
            except RoomError as exc:
                current_app.logger.info(f"[switch-room] sid={sid} old={previous} cleanup skipped type={exc.kind}")
        join_room(room.code)
        self._sid_to_room[sid] = room.code

    def _leave(self, sid: str, code: str) -> Optional[Room]:
        if self._sid_to_room.get(sid) == code:
            self._sid_to_room.pop(sid, None)
        try:
            room = self.manager.remove_player(code, sid)
        except RoomError:
            leave_room(code, sid=sid, namespace=self.namespace)
            raise
        if room is None:
            # Still subscribed here, so the leaver gets the notice too
            self._broadcast('room-deleted', {'code': code}, code)
            leave_room(code, sid=sid, namespace=self.namespace)
            current_app.logger.info(f"[room-deleted] code={code} last={sid}")
            return None
        leave_room(code, sid=sid, namespace=self.namespace)
        self._broadcast('player-left', {'playerId': sid, 'room': room.to_dict()}, code)
        current_app.logger.info(f"[player-left] code={code} sid={sid} host={room.host_id} players={len(room.players)}")
        return room

    # ---- connection lifecycle ----

    def handle_connect(self, auth=None):
        emit('connected', {'id': request.sid, 'multiplayer': self.manager.enabled})

    def handle_disconnect(self, reason=None):
        # A dropped connection counts as leaving its room
        sid = request.sid
        code = self._sid_to_room.get(sid)
        if not code:
            return
        current_app.logger.info(f"[disconnect] sid={sid} code={code} reason={reason}")
        try:
            self._leave(sid, code)
        except RoomError as exc:
            current_app.logger.info(f"[disconnect-cleanup-skipped] sid={sid} code={code} type={exc.kind}")

    # ---- commands ----

    def handle_create_room(self, sid, data):
        room = self.manager.create_room(sid, data.get('playerName'))
        self._subscribe(sid, room)
        current_app.logger.info(f"[room-created] code={room.code} host={sid}")
        emit('room-created', {'code': room.code, 'room': room.to_dict()})

    def handle_join_room(self, sid, data):
        room, player = self.manager.add_player(data.get('roomCode'), sid, data.get('playerName'))
        self._subscribe(sid, room)
        current_app.logger.info(f"[player-joined] code={room.code} sid={sid} players={len(room.players)}")
        self._broadcast('player-joined', {'player': player.to_dict(), 'room': room.to_dict()}, room.code, skip_sid=sid)
        emit('room-joined', {'code': room.code, 'room': room.to_dict()})

    def handle_player_ready(self, sid, data):
        code = self._resolve_code(sid, data)
        ready = data.get('ready')
        room, all_ready = self.manager.set_ready(code, sid, ready)
        self._broadcast('player-ready-update', {'playerId': sid, 'ready': ready, 'room': room.to_dict()}, code)
        if all_ready:
            current_app.logger.info(f"[all-players-ready] code={code} players={len(room.players)}")
            self._broadcast('all-players-ready', {'room': room.to_dict()}, code)

    def handle_start_game(self, sid, data):
        code = self._resolve_code(sid, data)
        room = self.manager.start_game(code, sid, data.get('gameType'), data.get('timeLimit'))
        current_app.logger.info(f"[game-started] code={code} type={room.game_type} limit={room.time_limit}s")
        self._broadcast(
            'game-started',
            {'gameType': room.game_type, 'timeLimit': room.time_limit, 'room': room.to_dict()},
            code,
        )

    def handle_submit_score(self, sid, data):
        code = self._resolve_code(sid, data)
        room = self.manager.submit_score(
            code, sid, data.get('score'), data.get('totalQuestions'), data.get('correctAnswers')
        )
        self._broadcast(
            'score-update',
            {'playerId': sid, 'room': room.to_dict(), 'leaderboard': leaderboard(room)},
            code,
        )

    def handle_leave_room(self, sid, data):
        self._leave(sid, self._resolve_code(sid, data))
