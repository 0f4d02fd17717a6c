"""
Per-peer game world.

Both peers hold a ``World``. The host (P1) is the single source of truth for
asteroids, gems, bullets, stats and the match clock: it spawns, moves and
collides everything. The guest only moves its own ship locally and takes the
rest from the host's snapshots (see ``sync.py``).

Collisions run once per frame in a fixed order, which matters when one
asteroid is hit by a bullet and touches a ship in the same frame:

    1. player <-> gem
    2. bullet <-> asteroid
    3. asteroid <-> player
"""

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from config import (
    ASTEROID_DAMAGE,
    ASTEROID_DRIFT,
    ASTEROID_FALL_RANGE,
    ASTEROID_MAX,
    ASTEROID_MIN_FALL,
    ASTEROID_SCORE,
    ASTEROID_SPAWN_INTERVAL,
    ASTEROID_SPAWN_Y,
    ASTEROID_VARIANTS,
    CONTROLS,
    FIELD_HEIGHT,
    FIELD_WIDTH,
    GEM_MAX,
    GEM_PADDING,
    GEM_SCORE,
    GEM_SPAWN_INTERVAL,
    HOST_SLOT,
    MATCH_DURATION,
    PLAYER_SPEED,
    SLOTS,
)
from models import Asteroid, Bullet, Gem, Player, other_slot

logger = logging.getLogger(__name__)

DRAW = 'DRAW'
REASON_ELIMINATION = 'elimination'
REASON_TIME = 'time'


class Role(Enum):
    HOST = 'host'
    GUEST = 'guest'


def circles_overlap(x1, y1, r1, x2, y2, r2) -> bool:
    return math.hypot(x1 - x2, y1 - y2) < r1 + r2


def format_time(seconds: float) -> str:
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f'{mins}:{secs:02d}'


@dataclass
class GameSummary:
    winner: str
    reason: str
    time_elapsed: float
    players: Dict[str, dict] = field(default_factory=dict)

    def to_dict(self):
        return {
            'winner': self.winner,
            'reason': self.reason,
            'timeElapsed': self.time_elapsed,
            'players': self.players,
        }


class World:
    def __init__(self, my_slot: str, roster: Iterable[dict], duration: float = MATCH_DURATION,
                 width: float = FIELD_WIDTH, height: float = FIELD_HEIGHT,
                 rng: Optional[random.Random] = None):
        self.my_slot = my_slot
        self.role = Role.HOST if my_slot == HOST_SLOT else Role.GUEST
        self.width = width
        self.height = height
        self.rng = rng or random.Random()

        by_slot = {entry['slot']: entry for entry in roster}
        self.players: Dict[str, Player] = {
            slot: Player.spawn(slot, by_slot.get(slot, {}).get('name', slot),
                               by_slot.get(slot, {}).get('character', 0))
            for slot in SLOTS
        }
        self.asteroids: List[Asteroid] = []
        self.gems: List[Gem] = []
        self.bullets: List[Bullet] = []

        self.duration = duration
        self.time_remaining = float(duration)
        self.asteroid_timer = 0.0
        self.gem_timer = 0.0
        self.cheat_mode = {slot: False for slot in SLOTS}

        self.running = True
        self.summary: Optional[GameSummary] = None
        # Cosmetic events (gemCollected, asteroidCrash) waiting to be sent
        self.events: List[tuple] = []

    @property
    def is_host(self) -> bool:
        return self.role is Role.HOST

    @property
    def me(self) -> Player:
        return self.players[self.my_slot]

    @property
    def opponent(self) -> Player:
        return self.players[other_slot(self.my_slot)]

    def step(self, dt: float, pressed=frozenset()) -> Optional[GameSummary]:
        """Advance one frame. Returns the summary on the frame the match ends."""
        if not self.running:
            return None

        if self.is_host:
            self.time_remaining = max(0.0, self.time_remaining - dt)
            if self.time_remaining <= 0 and all(p.alive for p in self.players.values()):
                return self.end_by_time()

        self.move_player(self.my_slot, dt, pressed)

        if not self.is_host:
            return None

        self.spawn(dt)
        self.advance(dt)
        self.resolve_collisions()
        return self.summary

    def move_player(self, slot: str, dt: float, pressed) -> bool:
        """Move ``slot`` by its own control scheme; returns True if it moved."""
        player = self.players[slot]
        if not player.alive:
            return False

        keys = CONTROLS[slot]
        vx = vy = 0.0
        if keys['up'] in pressed:
            vy = -PLAYER_SPEED
        if keys['down'] in pressed:
            vy = PLAYER_SPEED
        if keys['left'] in pressed:
            vx = -PLAYER_SPEED
        if keys['right'] in pressed:
            vx = PLAYER_SPEED

        before = (player.x, player.y)
        player.move(vx, vy, dt, self.width, self.height)
        return (player.x, player.y) != before

    def spawn(self, dt: float):
        self.asteroid_timer += dt
        if self.asteroid_timer >= ASTEROID_SPAWN_INTERVAL and len(self.asteroids) < ASTEROID_MAX:
            self.asteroid_timer = 0.0
            self.asteroids.append(self._new_asteroid())

        self.gem_timer += dt
        if self.gem_timer >= GEM_SPAWN_INTERVAL and len(self.gems) < GEM_MAX:
            self.gem_timer = 0.0
            self.gems.append(self._new_gem())

    def _new_asteroid(self) -> Asteroid:
        rng = self.rng
        return Asteroid(
            x=rng.random() * (self.width - 80) + 40,
            y=ASTEROID_SPAWN_Y,
            vx=(rng.random() - 0.5) * ASTEROID_DRIFT,
            vy=rng.random() * ASTEROID_FALL_RANGE + ASTEROID_MIN_FALL,
            variant=rng.randrange(ASTEROID_VARIANTS),
        )

    def _new_gem(self) -> Gem:
        rng = self.rng
        return Gem(
            x=GEM_PADDING + rng.random() * (self.width - GEM_PADDING * 2),
            y=GEM_PADDING + rng.random() * (self.height - GEM_PADDING * 2),
        )

    def advance(self, dt: float):
        for asteroid in self.asteroids:
            asteroid.update(dt, self.width)
        self.asteroids = [a for a in self.asteroids if not a.is_off_screen(self.height)]

        for gem in self.gems:
            gem.update(dt)

        for bullet in self.bullets:
            bullet.update(dt)
        self.bullets = [b for b in self.bullets if not b.is_off_screen(self.height)]

    def shoot(self, slot: str, x: Optional[float] = None, y: Optional[float] = None) -> Optional[Bullet]:
        """Spawn a bullet for ``slot``; coordinates default to the ship's nose."""
        if not self.running:
            return None
        player = self.players.get(slot)
        if player is None or not player.alive:
            return None
        if x is None or y is None:
            x, y = player.x, player.y - player.height / 2
        bullet = Bullet(x=x, y=y, owner=slot)
        self.bullets.append(bullet)
        return bullet

    def set_cheat_mode(self, slot: str, enabled: bool):
        if slot in self.cheat_mode:
            self.cheat_mode[slot] = bool(enabled)
            logger.debug('Cheat mode for %s: %s', slot, self.cheat_mode[slot])

    def _living_players(self) -> List[Player]:
        return [self.players[slot] for slot in SLOTS if self.players[slot].alive]

    def resolve_collisions(self):
        self._collect_gems()
        self._shoot_asteroids()
        self._crash_asteroids()

    # Each pass walks its list newest first and deletes by index.

    def _collect_gems(self):
        for i in range(len(self.gems) - 1, -1, -1):
            gem = self.gems[i]
            collector = next(
                (p for p in self._living_players() if p.contains_point(gem.x, gem.y)), None)
            if collector is None:
                continue
            del self.gems[i]
            collector.gems += 1
            collector.score += GEM_SCORE
            self.events.append(('gemCollected', {'slot': collector.slot, 'x': gem.x, 'y': gem.y}))

    def _shoot_asteroids(self):
        for i in range(len(self.bullets) - 1, -1, -1):
            bullet = self.bullets[i]
            for j in range(len(self.asteroids) - 1, -1, -1):
                asteroid = self.asteroids[j]
                if not circles_overlap(bullet.x, bullet.y, bullet.radius,
                                       asteroid.x, asteroid.y, asteroid.radius):
                    continue
                del self.asteroids[j]
                del self.bullets[i]
                shooter = self.players.get(bullet.owner)
                if shooter is not None:
                    shooter.score += ASTEROID_SCORE
                break

    def _crash_asteroids(self):
        for i in range(len(self.asteroids) - 1, -1, -1):
            asteroid = self.asteroids[i]
            victim = next(
                (p for p in self._living_players()
                 if circles_overlap(asteroid.x, asteroid.y, asteroid.radius, p.x, p.y, p.radius)),
                None)
            if victim is None:
                continue

            del self.asteroids[i]
            damaged = not self.cheat_mode[victim.slot]
            eliminated = victim.take_hit(ASTEROID_DAMAGE) if damaged else False
            self.events.append(('asteroidCrash', {
                'slot': victim.slot, 'x': asteroid.x, 'y': asteroid.y, 'damaged': damaged}))

            if eliminated:
                # Older asteroids are left unchecked this frame
                self.end_by_elimination(victim.slot)
                break

    def _player_summary(self, slot: str, status: str):
        player = self.players[slot]
        return {
            'name': player.name,
            'slot': slot,
            'score': player.score,
            'gems': player.gems,
            'health': player.health,
            'alive': player.alive,
            'status': status,
        }

    def end_by_elimination(self, eliminated_slot: str) -> GameSummary:
        self.running = False
        winner = other_slot(eliminated_slot)
        elapsed = self.duration - self.time_remaining
        players = {}
        for slot in SLOTS:
            if self.players[slot].alive:
                status = 'WINNER'
            else:
                status = f'Eliminated at {format_time(elapsed)}'
            players[slot] = self._player_summary(slot, status)
        self.summary = GameSummary(winner, REASON_ELIMINATION, elapsed, players)
        logger.info('[GAME] %s eliminated, %s wins', eliminated_slot, winner)
        return self.summary

    def end_by_time(self) -> GameSummary:
        self.running = False
        scores = {slot: self.players[slot].score for slot in SLOTS}
        p1, p2 = SLOTS
        if scores[p1] > scores[p2]:
            winner = p1
        elif scores[p2] > scores[p1]:
            winner = p2
        else:
            winner = DRAW
        players = {
            slot: self._player_summary(slot, 'WINNER' if slot == winner else 'Survived')
            for slot in SLOTS
        }
        self.summary = GameSummary(winner, REASON_TIME, self.duration, players)
        logger.info('[GAME] Time is up, winner: %s', winner)
        return self.summary

    def drain_events(self) -> List[tuple]:
        events, self.events = self.events, []
        return events
