"""Room domain services: lifecycle rules and score aggregation.

Imported by the socket gateway and HTTP routes, keeping transport
concerns separated from room mechanics.
"""

from .manager import RoomManager, normalize_code
from .scoring import leaderboard

__all__ = ['RoomManager', 'leaderboard', 'normalize_code']
