from flask import Flask, current_app
from flask_cors import CORS
from flask_socketio import SocketIO
import click
import json
from config import Config

default_origins = [
    "http://localhost:3001",
    "http://127.0.0.1:3001",
    "https://thehypotheticalgame.com",
    "https://www.thehypotheticalgame.com",
]
socketio = SocketIO(async_mode=None)


def get_room_manager():
    return current_app.extensions['room_manager']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = list(default_origins)
    client_url = flask_app.config.get('CLIENT_URL')
    if client_url and client_url not in allowed_origins:
        allowed_origins.insert(0, client_url)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Room store and manager are built once per app and shared by every handler
    from quizrooms.store import create_room_store
    from quizrooms.services.rooms import RoomManager
    store = create_room_store(flask_app.config)
    manager = RoomManager.from_config(store, flask_app.config)
    flask_app.extensions['room_manager'] = manager

    from quizrooms.main import main
    flask_app.register_blueprint(main)

    from quizrooms.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    # Handlers bind to the server created by init_app above
    from quizrooms.socketio_events import RoomGateway
    gateway = RoomGateway(socketio, manager, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'))
    gateway.register()
    flask_app.extensions['room_gateway'] = gateway

    @click.command('room-show')
    @click.argument('code')
    def room_show_command(code):
        """Prints the stored JSON for a room code."""
        from quizrooms.errors import RoomError
        with flask_app.app_context():
            try:
                room = manager.get_room(code)
            except RoomError as exc:
                raise click.ClickException(exc.message)
            click.echo(json.dumps(room.to_dict(), indent=2))

    @click.command('store-status')
    def store_status_command():
        """Reports whether the room store is reachable."""
        if manager.enabled:
            click.echo(f'Multiplayer enabled ({manager.store.count()} live rooms)')
        else:
            click.echo('Multiplayer disabled: room store unreachable')

    flask_app.cli.add_command(room_show_command)
    flask_app.cli.add_command(store_status_command)

    flask_app.logger.info(
        f"[startup] store={flask_app.config.get('ROOM_STORE')} multiplayer={manager.enabled} "
        f"namespace={gateway.namespace}"
    )
    return flask_app
