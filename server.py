import argparse
import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_socketio import SocketIO, emit

from config import DefaultConfig
from lobby import Lobby, LobbyError

logger = logging.getLogger(__name__)

LOBBY_EXTENSION = 'space_defenders.lobby'

# Gameplay messages the relay forwards untouched to the other player
RELAYED_EVENTS = (
    'playerInput',
    'shoot',
    'stateUpdate',
    'gemCollected',
    'asteroidCrash',
    'cheatModeToggle',
)

socketio = SocketIO()
bp = Blueprint('lobby', __name__)


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(DefaultConfig)
    app.config.from_prefixed_env('SPACE_DEFENDERS')
    if config:
        app.config.update(config)

    app.extensions[LOBBY_EXTENSION] = Lobby(match_duration=app.config['MATCH_DURATION'])
    app.register_blueprint(bp)

    socketio.init_app(
        app,
        async_mode=app.config['SOCKETIO_ASYNC_MODE'],
        logger=app.config['SOCKETIO_LOGGER'],
        engineio_logger=app.config['SOCKETIO_ENGINEIO_LOGGER'],
        ping_timeout=app.config['SOCKETIO_PING_TIMEOUT'],
        ping_interval=app.config['SOCKETIO_PING_INTERVAL'],
        cors_allowed_origins=app.config['SOCKETIO_CORS_ALLOWED_ORIGINS'],
    )
    return app


def get_lobby(app=None) -> Lobby:
    return (app or current_app).extensions[LOBBY_EXTENSION]


def broadcast_lobby():
    socketio.emit('lobbyUpdate', get_lobby().roster())


# HTTP routes
@bp.route('/lobby')
def lobby_status():
    lobby = get_lobby()
    return jsonify({
        'state': lobby.state.value,
        'gameStarted': lobby.game_started,
        'players': lobby.roster(),
    })


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'})


# Socket events
@socketio.on('connect')
def handle_connect():
    logger.info('[INFO] New connection: %s', request.sid)
    emit('connected', {'sid': request.sid})


@socketio.on('disconnect')
def handle_disconnect(reason=None):
    logger.info('[INFO] Disconnect: %s (%s)', request.sid, reason)
    departure = get_lobby().remove(request.sid)
    if departure is None:
        return

    if departure.forfeited:
        if departure.opponent is not None:
            emit('opponentDisconnected',
                 {'message': f'{departure.player.name} disconnected. You win!'},
                 to=departure.opponent.sid)
    else:
        broadcast_lobby()
        logger.info('[LOBBY] Updated after disconnect')


@socketio.on('register')
def handle_register(data=None):
    data = data if isinstance(data, dict) else {}
    try:
        player = get_lobby().register(request.sid, data.get('name'), data.get('character'))
    except LobbyError as e:
        logger.info('[REGISTER] Rejected %s: %s', request.sid, e.message)
        emit('registerError', {'message': e.message, 'code': e.code})
        return

    emit('registerSuccess', player.to_dict())
    broadcast_lobby()


@socketio.on('hostStartGame')
def handle_host_start_game(data=None):
    try:
        payload = get_lobby().start_game(request.sid)
    except LobbyError as e:
        emit('error', {'message': e.message, 'code': e.code})
        return

    socketio.emit('gameStart', payload)


@socketio.on('gameOver')
def handle_game_over(data=None):
    logger.info('[GAME] Game over: %s', data)
    socketio.emit('gameOver', data)
    get_lobby().reset()
    logger.info('[LOBBY] Lobby reset after game over')


@socketio.on('playAgain')
def handle_play_again(data=None):
    lobby = get_lobby()
    lobby.play_again(request.sid)
    if not lobby.game_started:
        broadcast_lobby()


def _make_relay(event):
    def relay(data=None):
        opponent = get_lobby().opponent_of(request.sid)
        if opponent is None:
            logger.debug('Dropping %s from %s: no opponent', event, request.sid)
            return
        emit(event, data, to=opponent.sid)

    relay.__name__ = f'relay_{event}'
    return relay


for _event in RELAYED_EVENTS:
    socketio.on_event(_event, _make_relay(_event))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Space Defenders relay server')
    parser.add_argument('--host', help='Interface to bind (default from config)')
    parser.add_argument('--port', type=int, help='Port to listen on (default from config)')
    parser.add_argument('--debug', action='store_true', help='Enable debug output')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    overrides = {}
    if args.debug:
        overrides['SOCKETIO_ENGINEIO_LOGGER'] = True
    app = create_app(overrides)
    host = args.host or app.config['HOST']
    port = args.port or app.config['PORT']
    logger.info('[SERVER] Space Defenders server running at http://%s:%s', host, port)
    socketio.run(app, host=host, port=port, debug=args.debug, use_reloader=False,
                 allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
