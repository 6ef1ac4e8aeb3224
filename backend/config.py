import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Room store backend: 'redis' (default) or 'memory' (single process only)
    ROOM_STORE = os.environ.get('ROOM_STORE', 'redis')
    REDIS_URL = os.environ.get('REDIS_URL')
    REDIS_CONNECT_TIMEOUT_SEC = float(os.environ.get('REDIS_CONNECT_TIMEOUT_SEC', '5'))
    REDIS_COMMAND_TIMEOUT_SEC = float(os.environ.get('REDIS_COMMAND_TIMEOUT_SEC', '3'))
    # Rooms expire this long after their last write (seconds)
    ROOM_TTL_SEC = int(os.environ.get('ROOM_TTL_SEC', '1800'))
    ROOM_MAX_PLAYERS = int(os.environ.get('ROOM_MAX_PLAYERS', '6'))
    # A round needs at least this many ready players
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    ROOM_CODE_MAX_ATTEMPTS = int(os.environ.get('ROOM_CODE_MAX_ATTEMPTS', '50'))
    PLAYER_NAME_MAX_LENGTH = int(os.environ.get('PLAYER_NAME_MAX_LENGTH', '24'))
    GAME_TYPES = ('addition', 'subtraction', 'multiplication', 'division', 'mix')
    DEFAULT_TIME_LIMIT_SEC = int(os.environ.get('DEFAULT_TIME_LIMIT_SEC', '60'))
    MAX_TIME_LIMIT_SEC = int(os.environ.get('MAX_TIME_LIMIT_SEC', '600'))
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    CLIENT_URL = os.environ.get('CLIENT_URL', 'http://localhost:3001')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
