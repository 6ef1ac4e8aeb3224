import pytest

from quizrooms.client import (
    NotConnected,
    RoomRequestError,
    RoomTimeout,
    SessionController,
)

NS = '/ws'


class FakeSocket:
    """Stands in for socketio.Client; replies are scripted per command."""

    def __init__(self):
        self.handlers = {}
        self.sent = []
        self.replies = {}

    def on(self, event, handler=None, namespace=None):
        self.handlers[(namespace, event)] = handler

    def fire(self, event, *args):
        return self.handlers[(NS, event)](*args)

    def connect(self, url, namespaces=None, wait_timeout=None):
        self.fire('connect')
        self.fire('connected', {'id': 'sid-1', 'multiplayer': True})

    def disconnect(self):
        self.fire('disconnect', 'client disconnect')

    def emit(self, event, data=None, namespace=None):
        self.sent.append((event, data))
        reply = self.replies.get(event)
        for packet in (reply if isinstance(reply, list) else [reply] if reply else []):
            self.fire(*packet)


ROOM = {'code': 'ABC123', 'host': 'sid-1', 'players': [{'id': 'sid-1', 'name': 'Alice'}]}


@pytest.fixture()
def fake():
    return FakeSocket()


@pytest.fixture()
def session(fake):
    controller = SessionController('http://localhost:5000', namespace=NS, client=fake, timeout=0.2)
    controller.connect()
    return controller


def test_connect_tracks_status_for_every_subscriber(fake):
    controller = SessionController('http://localhost:5000', namespace=NS, client=fake)
    seen_a, seen_b = [], []
    controller.on_connection(lambda event, data: seen_a.append(event))
    controller.on_connection(lambda event, data: seen_b.append(event))

    controller.connect()
    assert controller.connected
    assert controller.connection_id == 'sid-1'
    assert controller.multiplayer is True

    controller.disconnect()
    assert not controller.connected
    assert seen_a == seen_b == ['connected', 'disconnected']


def test_unsubscribe_and_failing_listener(fake):
    controller = SessionController('http://localhost:5000', namespace=NS, client=fake)
    seen = []

    def broken(event, data):
        raise RuntimeError('boom')

    controller.on_connection(broken)
    unsubscribe = controller.on_connection(lambda event, data: seen.append(event))
    controller.connect()
    unsubscribe()
    controller.disconnect()
    assert seen == ['connected']


def test_create_room_resolves_on_room_created(session, fake):
    fake.replies['create-room'] = ('room-created', {'code': 'ABC123', 'room': ROOM})
    data = session.create_room('Alice')
    assert data['code'] == 'ABC123'
    assert session.current_room == ROOM
    assert fake.sent[-1] == ('create-room', {'playerName': 'Alice'})


def test_join_room_rejects_on_error(session, fake):
    fake.replies['join-room'] = ('error', {'type': 'Conflict', 'message': 'Room is full'})
    with pytest.raises(RoomRequestError) as excinfo:
        session.join_room(' abc123 ', 'Bob')
    assert excinfo.value.kind == 'Conflict'
    assert str(excinfo.value) == 'Room is full'
    assert fake.sent[-1] == ('join-room', {'roomCode': 'ABC123', 'playerName': 'Bob'})


def test_request_times_out_without_reply(session):
    with pytest.raises(RoomTimeout, match='Room creation timeout'):
        session.create_room('Alice')
    assert session._waiters == []


def test_commands_need_a_connection(fake):
    controller = SessionController('http://localhost:5000', namespace=NS, client=fake)
    with pytest.raises(NotConnected):
        controller.create_room('Alice')
    with pytest.raises(NotConnected):
        controller.set_ready(True, room_code='ABC123')


def test_broadcasts_update_snapshot_and_listeners(session, fake):
    events = []
    session.on_room(lambda event, data: events.append(event))

    fake.fire('room-joined', {'code': 'ABC123', 'room': ROOM})
    updated = dict(ROOM, players=ROOM['players'] + [{'id': 'sid-2', 'name': 'Bob'}])
    fake.fire('player-joined', {'player': {'id': 'sid-2', 'name': 'Bob'}, 'room': updated})
    assert session.current_room == updated
    assert session.room_code == 'ABC123'

    fake.fire('room-deleted', {'code': 'ABC123'})
    assert session.current_room is None
    assert events == ['room-joined', 'player-joined', 'room-deleted']


def test_fire_and_forget_commands_use_current_room(session, fake):
    fake.fire('room-joined', {'code': 'ABC123', 'room': ROOM})
    session.set_ready()
    session.start_game('addition', 60)
    session.submit_score(3, 4, 3)
    session.leave_room()
    assert fake.sent == [
        ('player-ready', {'roomCode': 'ABC123', 'ready': True}),
        ('start-game', {'roomCode': 'ABC123', 'gameType': 'addition', 'timeLimit': 60}),
        ('submit-score', {'roomCode': 'ABC123', 'score': 3, 'totalQuestions': 4, 'correctAnswers': 3}),
        ('leave-room', {'roomCode': 'ABC123'}),
    ]
    assert session.current_room is None


def test_error_for_another_command_leaves_request_pending(session, fake):
    errors = []
    session.on_connection(lambda event, data: errors.append(data) if event == 'error' else None)
    fake.replies['create-room'] = [
        ('error', {'type': 'NotFound', 'message': 'Room not found', 'command': 'player-ready'}),
        ('room-created', {'code': 'ABC123', 'room': ROOM}),
    ]
    data = session.create_room('Alice')
    assert data['code'] == 'ABC123'
    assert errors[0]['command'] == 'player-ready'


def test_error_tagged_with_command_rejects_that_request(session, fake):
    fake.replies['create-room'] = (
        'error', {'type': 'ValidationError', 'message': 'Player name is required', 'command': 'create-room'},
    )
    with pytest.raises(RoomRequestError) as excinfo:
        session.create_room(' ')
    assert excinfo.value.kind == 'ValidationError'
    assert session._waiters == []
