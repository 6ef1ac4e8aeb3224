from dataclasses import replace
from typing import Any, Dict, List

from quizrooms.errors import Conflict, NotFound, ValidationError
from quizrooms.models import Room


def _counter(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f'{field} must be a non-negative integer')
    return value


def accuracy_percent(correct_answers: int, total_questions: int) -> int:
    if total_questions <= 0:
        return 0
    return round(correct_answers / total_questions * 100)


def apply_score(room: Room, player_id: str, score, total_questions, correct_answers) -> Room:
    """Record a player's running totals for the current round.

    Clients report absolute counters, not deltas, so a re-sent update is
    harmless. Accuracy is always derived here rather than trusted.
    """
    score = _counter(score, 'score')
    total_questions = _counter(total_questions, 'totalQuestions')
    correct_answers = _counter(correct_answers, 'correctAnswers')
    if correct_answers > total_questions:
        raise ValidationError('correctAnswers cannot exceed totalQuestions')
    if room.find_player(player_id) is None:
        raise NotFound('Player not found')
    if not room.game_started:
        raise Conflict('Game not started')
    players = [
        replace(
            p,
            score=score,
            total_questions=total_questions,
            correct_answers=correct_answers,
            accuracy=accuracy_percent(correct_answers, total_questions),
        ) if p.id == player_id else p
        for p in room.players
    ]
    return replace(room, players=players)


def leaderboard(room: Room) -> List[Dict[str, Any]]:
    """Rank players by score, then accuracy; ties keep join order."""
    ranked = sorted(
        enumerate(room.players),
        key=lambda item: (-item[1].score, -item[1].accuracy, item[0]),
    )
    return [
        {
            'rank': rank,
            'playerId': p.id,
            'name': p.name,
            'score': p.score,
            'totalQuestions': p.total_questions,
            'correctAnswers': p.correct_answers,
            'accuracy': p.accuracy,
        }
        for rank, (_, p) in enumerate(ranked, start=1)
    ]
