"""Error taxonomy for room commands.

Every failure a room command can hit is a ``RoomError``. The socket
gateway sends ``to_dict()`` back to the requesting connection only, and
the HTTP endpoints use ``status`` for their response code.
"""

from typing import Any, Dict


class RoomError(Exception):
    """Base class for all room command failures."""

    kind = 'RoomError'
    status = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind, 'message': self.message}


class CapabilityUnavailable(RoomError):
    """The room store is unreachable, so multiplayer is off."""

    kind = 'CapabilityUnavailable'
    status = 503

    def __init__(self, message: str = 'Multiplayer is currently unavailable'):
        super().__init__(message)


class NotFound(RoomError):
    kind = 'NotFound'
    status = 404


class Forbidden(RoomError):
    kind = 'Forbidden'
    status = 403


class Conflict(RoomError):
    kind = 'Conflict'
    status = 409


class ValidationError(RoomError):
    kind = 'ValidationError'
    status = 400
