"""Client-side session controller for the room gateway.

Holds one Socket.IO connection, turns ``create-room``/``join-room`` into
blocking calls that resolve on the matching success or ``error`` event,
and keeps the last room snapshot seen in any broadcast. Observers
subscribe to connection and room events independently.
"""

from typing import Any, Callable, Dict, List, Optional
import logging
import threading

import socketio

logger = logging.getLogger(__name__)

ROOM_EVENTS = (
    'room-created',
    'room-joined',
    'player-joined',
    'player-left',
    'player-ready-update',
    'all-players-ready',
    'game-started',
    'score-update',
    'room-deleted',
)

Listener = Callable[[str, Optional[Dict[str, Any]]], None]


class SessionError(Exception):
    pass


class NotConnected(SessionError):
    def __init__(self, message: str = 'Not connected to server'):
        super().__init__(message)


class RoomTimeout(SessionError):
    pass


class RoomRequestError(SessionError):
    """The gateway answered a request with an ``error`` event."""

    def __init__(self, payload: Optional[Dict[str, Any]]):
        payload = payload or {}
        self.kind = payload.get('type', 'Error')
        self.message = payload.get('message', 'Unknown error')
        super().__init__(self.message)


class _Waiter:
    def __init__(self, command: str, success_event: str):
        self.command = command
        self.success_event = success_event
        self.done = threading.Event()
        self.result: Optional[Dict[str, Any]] = None
        self.error: Optional[Dict[str, Any]] = None


class SessionController:
    def __init__(self, url: str, namespace: str = '/ws', client=None, timeout: float = 10.0):
        self.url = url
        self.namespace = namespace
        self.timeout = timeout
        self.sio = client if client is not None else socketio.Client()
        self.current_room: Optional[Dict[str, Any]] = None
        self.connection_id: Optional[str] = None
        self.multiplayer: Optional[bool] = None
        self._connected = False
        self._connection_listeners: List[Listener] = []
        self._room_listeners: List[Listener] = []
        self._waiters: List[_Waiter] = []
        self._lock = threading.Lock()
        self._bind()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def room_code(self) -> Optional[str]:
        return self.current_room.get('code') if self.current_room else None

    # ---- wiring ----

    def _bind(self) -> None:
        ns = self.namespace
        self.sio.on('connect', self._on_connect, namespace=ns)
        self.sio.on('disconnect', self._on_disconnect, namespace=ns)
        self.sio.on('connected', self._on_hello, namespace=ns)
        self.sio.on('error', self._on_error, namespace=ns)
        for event in ROOM_EVENTS:
            self.sio.on(event, self._room_handler(event), namespace=ns)

    def _room_handler(self, event: str):
        def handler(data=None):
            data = data or {}
            if event == 'room-deleted':
                self.current_room = None
            elif data.get('room') is not None:
                self.current_room = data['room']
            self._resolve(event, data)
            self._notify(self._room_listeners, event, data)
        return handler

    def _on_connect(self):
        logger.info("Connected to %s%s", self.url, self.namespace)
        self._connected = True
        self._notify(self._connection_listeners, 'connected', None)

    def _on_disconnect(self, reason=None):
        logger.info("Disconnected from %s (%s)", self.url, reason)
        self._connected = False
        self._notify(self._connection_listeners, 'disconnected', None)

    def _on_hello(self, data=None):
        data = data or {}
        self.connection_id = data.get('id')
        self.multiplayer = data.get('multiplayer')

    def _on_error(self, data=None):
        """Reject the oldest request waiting on the command that failed.

        The gateway tags errors with ``command``; an error for a
        fire-and-forget command therefore leaves pending requests alone.
        Untagged errors fall back to the oldest waiter.
        """
        logger.warning("Room error: %s", data)
        data = data or {}
        command = data.get('command')
        with self._lock:
            waiter = next(
                (w for w in self._waiters if command is None or w.command == command),
                None,
            )
            if waiter is not None:
                self._waiters.remove(waiter)
        if waiter is not None:
            waiter.error = data
            waiter.done.set()
        self._notify(self._connection_listeners, 'error', data)

    def _resolve(self, event: str, data: Dict[str, Any]) -> None:
        with self._lock:
            matched = [w for w in self._waiters if w.success_event == event]
            self._waiters = [w for w in self._waiters if w.success_event != event]
        for waiter in matched:
            waiter.result = data
            waiter.done.set()

    @staticmethod
    def _notify(listeners: List[Listener], event: str, data) -> None:
        for callback in list(listeners):
            try:
                callback(event, data)
            except Exception:
                logger.exception("Listener failed on %s", event)

    # ---- subscriptions ----

    def on_connection(self, callback: Listener) -> Callable[[], None]:
        self._connection_listeners.append(callback)
        return lambda: self._unsubscribe(self._connection_listeners, callback)

    def on_room(self, callback: Listener) -> Callable[[], None]:
        self._room_listeners.append(callback)
        return lambda: self._unsubscribe(self._room_listeners, callback)

    @staticmethod
    def _unsubscribe(listeners: List[Listener], callback: Listener) -> None:
        if callback in listeners:
            listeners.remove(callback)

    # ---- connection ----

    def connect(self) -> None:
        if self._connected:
            return
        try:
            self.sio.connect(self.url, namespaces=[self.namespace], wait_timeout=self.timeout)
        except socketio.exceptions.ConnectionError as exc:
            self._notify(self._connection_listeners, 'error', {'message': str(exc)})
            raise NotConnected(f'Could not connect to {self.url}: {exc}') from exc

    def disconnect(self) -> None:
        self.sio.disconnect()

    # ---- commands ----

    def _require_connection(self) -> None:
        if not self._connected:
            raise NotConnected()

    def _emit(self, command: str, payload: Dict[str, Any]) -> None:
        self._require_connection()
        self.sio.emit(command, payload, namespace=self.namespace)

    def _request(self, command: str, payload: Dict[str, Any], success_event: str, label: str) -> Dict[str, Any]:
        self._require_connection()
        waiter = _Waiter(command, success_event)
        with self._lock:
            self._waiters.append(waiter)
        self.sio.emit(command, payload, namespace=self.namespace)
        if not waiter.done.wait(self.timeout):
            with self._lock:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)
            # The server may still finish the command; only the wait is abandoned
            raise RoomTimeout(f'Room {label} timeout')
        if waiter.error is not None:
            raise RoomRequestError(waiter.error)
        return waiter.result

    def create_room(self, player_name: str) -> Dict[str, Any]:
        return self._request('create-room', {'playerName': player_name}, 'room-created', 'creation')

    def join_room(self, room_code: str, player_name: str) -> Dict[str, Any]:
        payload = {'roomCode': room_code.strip().upper(), 'playerName': player_name}
        return self._request('join-room', payload, 'room-joined', 'join')

    def set_ready(self, ready: bool = True, room_code: Optional[str] = None) -> None:
        self._emit('player-ready', {'roomCode': room_code or self.room_code, 'ready': ready})

    def start_game(self, game_type: str, time_limit: int, room_code: Optional[str] = None) -> None:
        self._emit('start-game', {
            'roomCode': room_code or self.room_code,
            'gameType': game_type,
            'timeLimit': time_limit,
        })

    def submit_score(self, score: int, total_questions: int, correct_answers: int,
                     room_code: Optional[str] = None) -> None:
        self._emit('submit-score', {
            'roomCode': room_code or self.room_code,
            'score': score,
            'totalQuestions': total_questions,
            'correctAnswers': correct_answers,
        })

    def leave_room(self, room_code: Optional[str] = None) -> None:
        self._emit('leave-room', {'roomCode': room_code or self.room_code})
        self.current_room = None
