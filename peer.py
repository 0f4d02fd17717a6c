#!/usr/bin/env python3
"""
Space Defenders peer client.

Connects to the relay server, joins the lobby and, once the match starts,
drives a ``World`` from a frame-loop thread:

  * as host (P1) it simulates everything and streams ``stateUpdate`` snapshots;
  * as guest (P2) it moves its own ship and merges the host's snapshots.

Network handlers run on the Socket.IO client's thread and are applied as soon
as they arrive; a lock keeps them from interleaving with a frame step.

Usage:
    python peer.py --name Alice --character 0 --start --bot
    python peer.py --name Bob --character 3 --bot
"""

import argparse
import logging
import random
import sys
import threading
import time

import socketio

from config import CONTROLS, FRAME_RATE, HOST_SLOT, START_DELAY
from simulation import World
from sync import apply_player_input, apply_snapshot, player_input_payload, serialize_world

logger = logging.getLogger(__name__)

CHEAT_KEYS = ('ControlLeft', 'ControlRight', 'Control')


class PeerClient:
    def __init__(self, name, character, sio=None, frame_rate=FRAME_RATE,
                 start_delay=START_DELAY, rng=None, on_event=None):
        self.name = name
        self.character = character
        self.sio = sio if sio is not None else socketio.Client(reconnection=False)
        self.frame_rate = frame_rate
        self.start_delay = start_delay
        self.rng = rng
        # Called with (event, data) for cosmetic cues such as gemCollected
        self.on_event = on_event

        self.sid = None
        self.slot = None
        self.registered = False
        self.roster = []
        self.world = None
        self.pressed = set()
        self.summary = None
        self.last_error = None
        self.forfeit_message = None

        self.lobby_full = threading.Event()
        self.finished = threading.Event()
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._loop_thread = None
        self._game_over_sent = False

        self._register_handlers()

    def _register_handlers(self):
        handlers = {
            'connected': self._on_connected,
            'registerSuccess': self._on_register_success,
            'registerError': self._on_register_error,
            'error': self._on_error,
            'lobbyUpdate': self._on_lobby_update,
            'gameStart': self._on_game_start,
            'playerInput': self._on_player_input,
            'shoot': self._on_shoot,
            'stateUpdate': self._on_state_update,
            'cheatModeToggle': self._on_cheat_mode_toggle,
            'gemCollected': self._on_cosmetic('gemCollected'),
            'asteroidCrash': self._on_cosmetic('asteroidCrash'),
            'gameOver': self._on_game_over,
            'opponentDisconnected': self._on_opponent_disconnected,
        }
        for event, handler in handlers.items():
            self.sio.on(event, handler)

    # Lobby actions

    def connect(self, url):
        logger.info('Connecting to %s', url)
        self.sio.connect(url)

    def disconnect(self):
        self.stop()
        self.sio.disconnect()

    def register(self):
        self.sio.emit('register', {'name': self.name, 'character': self.character})

    def start_game(self):
        if self.slot != HOST_SLOT:
            self.last_error = 'Only Player 1 can start the game'
            logger.warning(self.last_error)
            return False
        self.sio.emit('hostStartGame')
        return True

    def play_again(self):
        self.stop()
        with self._lock:
            self.world = None
            self.slot = None
            self.registered = False
            self.summary = None
            self.forfeit_message = None
            self.pressed.clear()
            self._game_over_sent = False
        self.finished.clear()
        self.lobby_full.clear()
        self.sio.emit('playAgain')

    # Input

    def press(self, key):
        if key in CHEAT_KEYS:
            self.toggle_cheat_mode()
            return
        if self.slot and key == CONTROLS[self.slot]['shoot']:
            self.shoot()
            return
        with self._lock:
            self.pressed.add(key)

    def release(self, key):
        with self._lock:
            self.pressed.discard(key)

    def shoot(self):
        with self._lock:
            world = self.world
            if world is None or not world.running or not world.me.alive:
                return
            me = world.me
            x, y = me.x, me.y - me.height / 2
            if world.is_host:
                world.shoot(me.slot, x, y)
                return
        # Guest bullets are simulated by the host
        self.sio.emit('shoot', {'slot': self.slot, 'x': x, 'y': y})

    def toggle_cheat_mode(self):
        with self._lock:
            world = self.world
            if world is None:
                return
            enabled = not world.cheat_mode[world.my_slot]
            world.set_cheat_mode(world.my_slot, enabled)
        self.sio.emit('cheatModeToggle', {'slot': self.slot, 'enabled': enabled})

    # Frame loop

    def step(self, dt):
        """Run one frame and send what it produced."""
        outbound = []
        with self._lock:
            world = self.world
            if world is None or not world.running:
                return None
            before = (world.me.x, world.me.y)
            summary = world.step(dt, frozenset(self.pressed))

            if (world.me.x, world.me.y) != before:
                outbound.append(('playerInput', player_input_payload(world)))
            if world.is_host:
                outbound.extend(world.drain_events())
                outbound.append(('stateUpdate', serialize_world(world)))
            if summary is not None and not self._game_over_sent:
                self._game_over_sent = True
                outbound.append(('gameOver', summary.to_dict()))

        for event, data in outbound:
            self.sio.emit(event, data)
        return summary

    def _game_loop(self):
        if self.start_delay:
            self._stop.wait(self.start_delay)
        interval = 1.0 / self.frame_rate
        last = time.monotonic()
        while not self._stop.is_set():
            now = time.monotonic()
            self.step(now - last)
            last = now
            world = self.world
            if world is None or not world.running:
                break
            self._stop.wait(interval)
        logger.debug('Game loop stopped')

    def start_loop(self):
        self.stop()
        self._stop.clear()
        self._loop_thread = threading.Thread(target=self._game_loop, daemon=True)
        self._loop_thread.start()

    def stop(self):
        self._stop.set()
        thread = self._loop_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._loop_thread = None

    # Socket events

    def _on_connected(self, data):
        self.sid = data.get('sid')

    def _on_register_success(self, data):
        self.slot = data['slot']
        self.registered = True
        self.last_error = None
        logger.info('Registered as %s: %s', self.slot, data.get('name'))

    def _on_register_error(self, data):
        self.slot = None
        self.registered = False
        self._on_error(data)

    def _on_error(self, data):
        self.last_error = (data or {}).get('message')
        logger.warning('Server error: %s', self.last_error)

    def _on_lobby_update(self, players):
        self.roster = list(players)
        mine = next((p for p in self.roster
                     if p.get('name') == self.name and p.get('character') == self.character), None)
        if self.registered and mine is not None:
            self.slot = mine['slot']
        if len(self.roster) == 2:
            self.lobby_full.set()
        else:
            self.lobby_full.clear()

    def _on_game_start(self, data):
        if not self.registered or self.slot is None:
            # Someone else's match; this connection is not on the roster
            return
        logger.info('Game starting: %s', data)
        with self._lock:
            self.world = World(self.slot, data['players'], data['duration'], rng=self.rng)
            self.summary = None
            self._game_over_sent = False
        self.finished.clear()
        self.start_loop()

    def _on_player_input(self, data):
        with self._lock:
            if self.world is not None:
                apply_player_input(self.world, data)

    def _on_shoot(self, data):
        with self._lock:
            if self.world is not None and self.world.is_host:
                self.world.shoot(data.get('slot'), data.get('x'), data.get('y'))

    def _on_state_update(self, data):
        with self._lock:
            if self.world is not None:
                apply_snapshot(self.world, data)

    def _on_cheat_mode_toggle(self, data):
        with self._lock:
            if self.world is not None and data.get('slot') != self.world.my_slot:
                self.world.set_cheat_mode(data.get('slot'), data.get('enabled', False))

    def _on_cosmetic(self, event):
        def handler(data):
            if self.on_event is not None:
                self.on_event(event, data)
        return handler

    def _on_game_over(self, summary):
        logger.info('Game over: %s', summary)
        with self._lock:
            self.summary = summary
            if self.world is not None:
                self.world.running = False
        self._stop.set()
        self.finished.set()

    def _on_opponent_disconnected(self, data):
        self.forfeit_message = (data or {}).get('message')
        logger.info(self.forfeit_message)
        with self._lock:
            if self.world is not None:
                self.world.running = False
        self._stop.set()
        self.finished.set()


def run_bot(peer, rng, interval=0.5):
    """Wander randomly and shoot until the match is over."""
    directions = ('up', 'down', 'left', 'right')
    while not peer.finished.wait(interval):
        if peer.world is None or peer.slot is None:
            continue
        keys = CONTROLS[peer.slot]
        for direction in directions:
            peer.release(keys[direction])
        for direction in rng.sample(directions, rng.randint(0, 2)):
            peer.press(keys[direction])
        if rng.random() < 0.5:
            peer.shoot()


def main(argv=None):
    parser = argparse.ArgumentParser(description='Space Defenders peer')
    parser.add_argument('--url', default='http://localhost:5000', help='Relay server URL')
    parser.add_argument('--name', required=True, help='Player name')
    parser.add_argument('--character', type=int, default=0, help='Spaceship index (0-5)')
    parser.add_argument('--start', action='store_true',
                        help='Start the match as soon as the lobby is full (P1 only)')
    parser.add_argument('--bot', action='store_true', help='Play with a random autopilot')
    parser.add_argument('--frame-rate', type=int, default=FRAME_RATE, help='Frames per second')
    parser.add_argument('--debug', action='store_true', help='Enable debug output')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    peer = PeerClient(args.name, args.character, frame_rate=args.frame_rate)
    try:
        peer.connect(args.url)
        peer.register()
        if args.start:
            peer.lobby_full.wait()
            peer.start_game()
        if args.bot:
            threading.Thread(target=run_bot, args=(peer, random.Random()), daemon=True).start()
        peer.finished.wait()
    except KeyboardInterrupt:
        logger.info('Interrupted, leaving the game')
    except socketio.exceptions.ConnectionError as e:
        logger.error('Could not connect to %s: %s', args.url, e)
        sys.exit(1)
    finally:
        peer.disconnect()

    if peer.summary:
        logger.info('Winner: %s (%s)', peer.summary.get('winner'), peer.summary.get('reason'))
    elif peer.forfeit_message:
        logger.info(peer.forfeit_message)


if __name__ == '__main__':
    main()
