import random

import pytest

from server import create_app, socketio
from simulation import World

ROSTER = [
    {'slot': 'P1', 'name': 'Alice', 'character': 0},
    {'slot': 'P2', 'name': 'Bob', 'character': 3},
]


@pytest.fixture
def app():
    return create_app({'TESTING': True})


@pytest.fixture
def connect(app):
    """Open Socket.IO test clients; the greeting is consumed."""
    clients = []

    def _connect():
        client = socketio.test_client(app)
        client.get_received()
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        if client.is_connected():
            client.disconnect()


@pytest.fixture
def host_world():
    return World('P1', ROSTER, rng=random.Random(7))


@pytest.fixture
def guest_world():
    return World('P2', ROSTER, rng=random.Random(7))


def payloads(messages, name):
    return [m['args'][0] if m['args'] else None for m in messages if m['name'] == name]
