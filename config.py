"""
Game constants and server configuration.
"""

import os

# Playfield
FIELD_WIDTH = 800
FIELD_HEIGHT = 480

# Slots
HOST_SLOT = 'P1'
GUEST_SLOT = 'P2'
SLOTS = (HOST_SLOT, GUEST_SLOT)
LOBBY_CAPACITY = 2

# Lobby rules
CHARACTER_COUNT = 6
NAME_MAX_LENGTH = 32
MATCH_DURATION = 180  # seconds

# Players
PLAYER_SIZE = 40
PLAYER_SPEED = 200.0  # units per second
PLAYER_MAX_HEALTH = 100
ASTEROID_DAMAGE = 25
SPAWN_POSITIONS = {
    'P1': (200.0, 240.0),
    'P2': (650.0, 240.0),
}

# Control schemes (key codes as reported by the browser)
CONTROLS = {
    'P1': {'up': 'KeyW', 'down': 'KeyS', 'left': 'KeyA', 'right': 'KeyD', 'shoot': 'Space'},
    'P2': {'up': 'ArrowUp', 'down': 'ArrowDown', 'left': 'ArrowLeft', 'right': 'ArrowRight',
           'shoot': 'Enter'},
}

# Asteroids
ASTEROID_RADIUS = 20
ASTEROID_MAX = 6
ASTEROID_SPAWN_INTERVAL = 1.5
ASTEROID_SPAWN_Y = -30.0
ASTEROID_DRIFT = 50.0       # horizontal speed range, centred on 0
ASTEROID_MIN_FALL = 50.0
ASTEROID_FALL_RANGE = 30.0
ASTEROID_VARIANTS = 64      # 8x8 sprite sheet

# Gems
GEM_RADIUS = 15
GEM_MAX = 3
GEM_SPAWN_INTERVAL = 4.0
GEM_PADDING = 40
GEM_SPIN_RATE = 2.0         # radians per second

# Bullets
BULLET_RADIUS = 5
BULLET_SPEED = 400.0

# Scoring
GEM_SCORE = 10
ASTEROID_SCORE = 5

# Peer loop
FRAME_RATE = 60
START_DELAY = 3.0


class DefaultConfig:
    """Relay server defaults. Override with SPACE_DEFENDERS_* environment variables."""

    SECRET_KEY = os.environ.get('SECRET_KEY', 'space-defenders-secret-key')
    HOST = '0.0.0.0'
    PORT = 5000
    MATCH_DURATION = MATCH_DURATION
    SOCKETIO_ASYNC_MODE = 'threading'
    SOCKETIO_LOGGER = False
    SOCKETIO_ENGINEIO_LOGGER = False
    SOCKETIO_PING_TIMEOUT = 60
    SOCKETIO_PING_INTERVAL = 25
    SOCKETIO_CORS_ALLOWED_ORIGINS = '*'
