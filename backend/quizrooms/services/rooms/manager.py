from dataclasses import replace
from typing import Optional, Sequence, Tuple
import logging

from quizrooms.errors import (
    CapabilityUnavailable,
    Conflict,
    Forbidden,
    NotFound,
    ValidationError,
)
from quizrooms.models import Player, Room, generate_room_code
from quizrooms.store import RoomStore
from .scoring import apply_score

logger = logging.getLogger(__name__)

DEFAULT_GAME_TYPES = ('addition', 'subtraction', 'multiplication', 'division', 'mix')


def normalize_code(code) -> str:
    return (code or '').strip().upper() if isinstance(code, str) else ''


class RoomManager:
    """Room lifecycle, membership and readiness rules.

    Every mutation is a pure ``Room -> Room`` transform handed to
    ``RoomStore.update`` so concurrent commands on one room cannot lose
    each other's writes.
    """

    def __init__(
        self,
        store: RoomStore,
        max_players: int = 6,
        min_players: int = 2,
        code_length: int = 6,
        code_attempts: int = 50,
        name_max_length: int = 24,
        game_types: Sequence[str] = DEFAULT_GAME_TYPES,
        default_time_limit: int = 60,
        max_time_limit: int = 600,
    ):
        self.store = store
        self.max_players = max_players
        self.min_players = min_players
        self.code_length = code_length
        self.code_attempts = code_attempts
        self.name_max_length = name_max_length
        self.game_types = tuple(game_types)
        self.default_time_limit = default_time_limit
        self.max_time_limit = max_time_limit

    @classmethod
    def from_config(cls, store: RoomStore, config) -> 'RoomManager':
        return cls(
            store,
            max_players=int(config.get('ROOM_MAX_PLAYERS', 6)),
            min_players=int(config.get('MIN_PLAYERS', 2)),
            code_length=int(config.get('ROOM_CODE_LENGTH', 6)),
            code_attempts=int(config.get('ROOM_CODE_MAX_ATTEMPTS', 50)),
            name_max_length=int(config.get('PLAYER_NAME_MAX_LENGTH', 24)),
            game_types=config.get('GAME_TYPES') or DEFAULT_GAME_TYPES,
            default_time_limit=int(config.get('DEFAULT_TIME_LIMIT_SEC', 60)),
            max_time_limit=int(config.get('MAX_TIME_LIMIT_SEC', 600)),
        )

    @property
    def enabled(self) -> bool:
        return self.store.available

    # ---- helpers ----

    def _require_store(self) -> None:
        if not self.store.available:
            raise CapabilityUnavailable()

    def _clean_name(self, name) -> str:
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            raise ValidationError('Player name is required')
        if len(name) > self.name_max_length:
            raise ValidationError(f'Player name must be at most {self.name_max_length} characters')
        return name

    @staticmethod
    def _clean_code(code) -> str:
        code = normalize_code(code)
        if not code:
            raise ValidationError('Room code is required')
        return code

    def generate_room_code(self) -> str:
        return generate_room_code(self.code_length)

    def all_players_ready(self, room: Room) -> bool:
        """A room is ready only with enough players and every one of them ready."""
        return len(room.players) >= max(2, self.min_players) and all(p.ready for p in room.players)

    # ---- operations ----

    def create_room(self, host_id: str, host_name: str) -> Room:
        self._require_store()
        name = self._clean_name(host_name)
        for _ in range(self.code_attempts):
            code = self.generate_room_code()
            if self.store.exists(code):
                continue
            room = Room(code=code, host_id=host_id, host_name=name, players=[Player(id=host_id, name=name)])
            # add() is create-if-absent, so a racing create on the same code loses cleanly
            if self.store.add(code, room):
                logger.info("Room %s created by %s", code, host_id)
                return room
        logger.error("No free room code after %d attempts", self.code_attempts)
        raise Conflict('Could not allocate a room code, please try again')

    def get_room(self, code) -> Room:
        self._require_store()
        code = self._clean_code(code)
        room = self.store.get(code)
        if room is None:
            raise NotFound('Room not found')
        return room

    def add_player(self, code, player_id: str, player_name) -> Tuple[Room, Player]:
        self._require_store()
        code = self._clean_code(code)
        name = self._clean_name(player_name)

        def transform(room: Room) -> Room:
            existing = room.find_player(player_id)
            if existing is not None:
                # Same connection joining again: reactivate, never duplicate
                players = [replace(p, connected=True) if p.id == player_id else p for p in room.players]
                return replace(room, players=players)
            if len(room.players) >= self.max_players:
                raise Conflict('Room is full')
            return replace(room, players=room.players + [Player(id=player_id, name=name)])

        room = self.store.update(code, transform)
        return room, room.find_player(player_id)

    def remove_player(self, code, player_id: str) -> Optional[Room]:
        """Remove a player; returns None when that emptied and deleted the room."""
        self._require_store()
        code = self._clean_code(code)

        def transform(room: Room) -> Optional[Room]:
            if room.find_player(player_id) is None:
                raise NotFound('Player not found')
            players = [p for p in room.players if p.id != player_id]
            if not players:
                return None
            if room.host_id == player_id:
                new_host = players[0]
                return replace(room, players=players, host_id=new_host.id, host_name=new_host.name)
            return replace(room, players=players)

        room = self.store.update(code, transform)
        if room is None:
            logger.info("Room %s deleted, last player %s left", code, player_id)
        else:
            logger.info("Player %s left room %s, host is %s", player_id, code, room.host_id)
        return room

    def set_ready(self, code, player_id: str, ready) -> Tuple[Room, bool]:
        self._require_store()
        code = self._clean_code(code)
        if not isinstance(ready, bool):
            raise ValidationError('ready must be true or false')

        def transform(room: Room) -> Room:
            if room.find_player(player_id) is None:
                raise NotFound('Player not found')
            players = [replace(p, ready=ready) if p.id == player_id else p for p in room.players]
            return replace(room, players=players)

        room = self.store.update(code, transform)
        return room, self.all_players_ready(room)

    def start_game(self, code, requester_id: str, game_type=None, time_limit=None) -> Room:
        self._require_store()
        code = self._clean_code(code)
        game_type = game_type or self.game_types[0]
        if game_type not in self.game_types:
            raise ValidationError(f'Unknown game type: {game_type}')
        if time_limit is None:
            time_limit = self.default_time_limit
        if isinstance(time_limit, bool) or not isinstance(time_limit, int) \
                or not 0 < time_limit <= self.max_time_limit:
            raise ValidationError(f'timeLimit must be between 1 and {self.max_time_limit} seconds')

        def transform(room: Room) -> Room:
            if room.host_id != requester_id:
                raise Forbidden('Only the host can start the game')
            if not self.all_players_ready(room):
                raise Forbidden('Players not ready')
            return replace(
                room,
                game_started=True,
                game_type=game_type,
                time_limit=time_limit,
                players=[p.reset_for_round() for p in room.players],
            )

        room = self.store.update(code, transform)
        logger.info("Room %s started %s for %ss with %d players", code, game_type, time_limit, len(room.players))
        return room

    def submit_score(self, code, player_id: str, score, total_questions, correct_answers) -> Room:
        self._require_store()
        code = self._clean_code(code)
        return self.store.update(
            code,
            lambda room: apply_score(room, player_id, score, total_questions, correct_answers),
        )
