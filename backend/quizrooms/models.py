from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import random
import string

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length=6):
    """Generate a short room code from [A-Z0-9]."""
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Player:
    id: str
    name: str
    ready: bool = False
    score: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    accuracy: int = 0
    connected: bool = True

    def reset_for_round(self) -> 'Player':
        return replace(
            self,
            ready=False,
            score=0,
            total_questions=0,
            correct_answers=0,
            accuracy=0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'ready': self.ready,
            'score': self.score,
            'totalQuestions': self.total_questions,
            'correctAnswers': self.correct_answers,
            'accuracy': self.accuracy,
            'connected': self.connected,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        return cls(
            id=data['id'],
            name=data['name'],
            ready=bool(data.get('ready', False)),
            score=int(data.get('score', 0)),
            total_questions=int(data.get('totalQuestions', 0)),
            correct_answers=int(data.get('correctAnswers', 0)),
            accuracy=int(data.get('accuracy', 0)),
            connected=bool(data.get('connected', True)),
        )


@dataclass
class Room:
    code: str
    host_id: str
    host_name: str
    players: List[Player] = field(default_factory=list)
    game_started: bool = False
    game_type: Optional[str] = None
    time_limit: Optional[int] = None
    created_at: str = field(default_factory=_utcnow_iso)

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'host': self.host_id,
            'hostName': self.host_name,
            'players': [p.to_dict() for p in self.players],
            'gameStarted': self.game_started,
            'gameType': self.game_type,
            'timeLimit': self.time_limit,
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Room':
        return cls(
            code=data['code'],
            host_id=data['host'],
            host_name=data.get('hostName', ''),
            players=[Player.from_dict(p) for p in data.get('players', [])],
            game_started=bool(data.get('gameStarted', False)),
            game_type=data.get('gameType'),
            time_limit=data.get('timeLimit'),
            created_at=data.get('createdAt') or _utcnow_iso(),
        )
