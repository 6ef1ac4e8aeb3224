import os
import sys

import fakeredis
import pytest

# Ensure the backend root (containing the `quizrooms` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from quizrooms import create_app, socketio
from quizrooms.services.rooms import RoomManager
from quizrooms.store import InMemoryRoomStore, RedisRoomStore

NAMESPACE = '/ws'


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    ROOM_STORE = 'memory'
    SOCKETIO_NAMESPACE = NAMESPACE
    LOG_LEVEL = 'DEBUG'


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def memory_store(clock):
    return InMemoryRoomStore(ttl=1800, clock=clock)


@pytest.fixture()
def redis_client():
    # one server per test
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture()
def redis_store(redis_client):
    return RedisRoomStore(redis_client, ttl=1800)


@pytest.fixture(params=['memory', 'redis'])
def store(request):
    """Every backend-agnostic store and manager test runs on both backends."""
    return request.getfixturevalue(f'{request.param}_store')


@pytest.fixture()
def manager(store):
    return RoomManager(store)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    """Connects any number of Socket.IO test clients, flushing the greeting."""
    created = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=NAMESPACE,
        )
        test_client.get_received(NAMESPACE)
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory()
