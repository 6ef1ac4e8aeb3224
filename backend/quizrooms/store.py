"""Room Store: keyed, expiring persistence of Room records.

One record per room under ``room:<CODE>``, JSON value, refreshed to the
full TTL on every write. ``update`` is the atomic read-transform-write
primitive the room manager builds every mutation on.
"""

from contextlib import contextmanager
from typing import Callable, Dict, Optional, Tuple
import json
import logging
import threading
import time

import redis

from .errors import CapabilityUnavailable, Conflict, NotFound
from .models import Room

logger = logging.getLogger(__name__)

ROOM_KEY = 'room:{code}'

# Pure Room -> Room transform; returning None deletes the room.
RoomTransform = Callable[[Room], Optional[Room]]


def _dump(room: Room) -> str:
    return json.dumps(room.to_dict())


def _load(raw: str) -> Room:
    return Room.from_dict(json.loads(raw))


class RoomStore:
    """Interface shared by the Redis and in-memory backends."""

    def __init__(self, ttl: int = 1800):
        self.ttl = ttl

    @property
    def available(self) -> bool:
        raise NotImplementedError

    def put(self, code: str, room: Room) -> None:
        raise NotImplementedError

    def get(self, code: str) -> Optional[Room]:
        raise NotImplementedError

    def exists(self, code: str) -> bool:
        raise NotImplementedError

    def delete(self, code: str) -> None:
        raise NotImplementedError

    def add(self, code: str, room: Room) -> bool:
        """Store ``room`` only if ``code`` is free. Returns False on collision."""
        raise NotImplementedError

    def update(self, code: str, transform: RoomTransform) -> Optional[Room]:
        """Atomically apply ``transform`` to the stored room.

        Raises NotFound when no live room has this code. Anything raised by
        ``transform`` aborts the write and propagates unchanged.
        """
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError


class RedisRoomStore(RoomStore):
    def __init__(self, client: Optional[redis.Redis], ttl: int = 1800, max_retries: int = 10):
        super().__init__(ttl)
        self._client = client
        self.max_retries = max_retries
        self._was_available = client is not None

    @classmethod
    def from_url(cls, url: Optional[str], ttl: int = 1800,
                 connect_timeout: float = 5.0, command_timeout: float = 3.0) -> 'RedisRoomStore':
        if not url:
            logger.warning("No REDIS_URL configured - multiplayer disabled")
            return cls(None, ttl=ttl)
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=connect_timeout,
            socket_timeout=command_timeout,
        )
        logger.info("Redis room store configured, ttl=%ss", ttl)
        return cls(client, ttl=ttl)

    @property
    def available(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.ping()
        except redis.exceptions.RedisError as exc:
            if self._was_available:
                logger.warning("Redis unreachable - multiplayer disabled: %s", exc)
            self._was_available = False
            return False
        if not self._was_available:
            logger.info("Redis reachable again - multiplayer enabled")
        self._was_available = True
        return True

    @contextmanager
    def _connection(self):
        if self._client is None:
            raise CapabilityUnavailable()
        try:
            yield self._client
        except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as exc:
            logger.warning("Redis command failed: %s", exc)
            self._was_available = False
            raise CapabilityUnavailable() from exc

    @staticmethod
    def _key(code: str) -> str:
        return ROOM_KEY.format(code=code)

    def put(self, code, room):
        with self._connection() as r:
            r.set(self._key(code), _dump(room), ex=self.ttl)

    def get(self, code):
        with self._connection() as r:
            raw = r.get(self._key(code))
        return _load(raw) if raw else None

    def exists(self, code):
        with self._connection() as r:
            return bool(r.exists(self._key(code)))

    def delete(self, code):
        with self._connection() as r:
            r.delete(self._key(code))

    def add(self, code, room):
        with self._connection() as r:
            return bool(r.set(self._key(code), _dump(room), ex=self.ttl, nx=True))

    def update(self, code, transform):
        key = self._key(code)
        with self._connection() as r:
            for attempt in range(self.max_retries):
                with r.pipeline() as pipe:
                    try:
                        pipe.watch(key)
                        raw = pipe.get(key)
                        if raw is None:
                            raise NotFound('Room not found')
                        result = transform(_load(raw))
                        pipe.multi()
                        if result is None:
                            pipe.delete(key)
                        else:
                            pipe.set(key, _dump(result), ex=self.ttl)
                        pipe.execute()
                        return result
                    except redis.WatchError:
                        logger.debug("Concurrent write on %s, retry %d", key, attempt + 1)
        raise Conflict(f'Room {code} is busy, please try again')

    def count(self):
        with self._connection() as r:
            return sum(1 for _ in r.scan_iter(match=ROOM_KEY.format(code='*')))


class InMemoryRoomStore(RoomStore):
    """Process-local store for development and tests.

    Values are kept serialized so callers never share Room objects with
    the store, matching Redis semantics.
    """

    def __init__(self, ttl: int = 1800, clock: Callable[[], float] = time.monotonic):
        super().__init__(ttl)
        self._clock = clock
        self._rooms: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.RLock()

    @property
    def available(self):
        return True

    def _live(self, code: str) -> Optional[str]:
        entry = self._rooms.get(code)
        if entry is None:
            return None
        expires_at, raw = entry
        if expires_at <= self._clock():
            del self._rooms[code]
            logger.debug("Room %s expired", code)
            return None
        return raw

    def _write(self, code: str, room: Room) -> None:
        self._rooms[code] = (self._clock() + self.ttl, _dump(room))

    def put(self, code, room):
        with self._lock:
            self._write(code, room)

    def get(self, code):
        with self._lock:
            raw = self._live(code)
        return _load(raw) if raw else None

    def exists(self, code):
        with self._lock:
            return self._live(code) is not None

    def delete(self, code):
        with self._lock:
            self._rooms.pop(code, None)

    def add(self, code, room):
        with self._lock:
            if self._live(code) is not None:
                return False
            self._write(code, room)
            return True

    def update(self, code, transform):
        with self._lock:
            raw = self._live(code)
            if raw is None:
                raise NotFound('Room not found')
            result = transform(_load(raw))
            if result is None:
                self._rooms.pop(code, None)
            else:
                self._write(code, result)
            return result

    def count(self):
        with self._lock:
            return sum(1 for code in list(self._rooms) if self._live(code) is not None)


def create_room_store(config) -> RoomStore:
    """Build the store selected by ``ROOM_STORE`` in the app config."""
    backend = config.get('ROOM_STORE', 'redis')
    ttl = int(config.get('ROOM_TTL_SEC', 1800))
    if backend == 'memory':
        logger.info("Using in-memory room store (single process only)")
        return InMemoryRoomStore(ttl=ttl)
    if backend != 'redis':
        raise ValueError(f"Unknown ROOM_STORE backend: {backend!r}")
    return RedisRoomStore.from_url(
        config.get('REDIS_URL'),
        ttl=ttl,
        connect_timeout=float(config.get('REDIS_CONNECT_TIMEOUT_SEC', 5)),
        command_timeout=float(config.get('REDIS_COMMAND_TIMEOUT_SEC', 3)),
    )
