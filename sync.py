"""
Host -> guest state synchronization.

Every field has exactly one writer. The host writes the match clock, stats,
asteroids, gems and bullets; each peer writes its own ship's position. Two
channels carry positions to the other side:

  * ``playerInput`` {slot, x, y}: sent by the owner on every local move;
  * ``stateUpdate``: the host's full snapshot, sent once per frame.

Snapshots are applied as a merge that never touches the fields in
``NEVER_ACCEPTED``, so a late snapshot cannot drag the guest's ship back.
"""

import logging

from config import SLOTS
from models import Asteroid, Bullet, Gem

logger = logging.getLogger(__name__)

STAT_FIELDS = ('health', 'gems', 'score', 'alive')
POSITION_FIELDS = ('x', 'y', 'vx', 'vy')

# Fields of the receiver's own player that only the receiver may write
NEVER_ACCEPTED = frozenset(POSITION_FIELDS) | {'cheatMode'}


def serialize_world(world):
    """Build the host's stateUpdate payload."""
    players = {}
    for slot in SLOTS:
        player = world.players[slot]
        entry = player.stats()
        if slot == world.my_slot:
            entry.update(x=player.x, y=player.y, vx=player.vx, vy=player.vy)
        players[slot] = entry

    return {
        'timeRemaining': world.time_remaining,
        'players': players,
        'asteroids': [a.to_dict() for a in world.asteroids],
        'gems': [g.to_dict() for g in world.gems],
        'bullets': [b.to_dict() for b in world.bullets],
        'cheatMode': dict(world.cheat_mode),
    }


def apply_snapshot(world, snapshot) -> bool:
    """Merge a host snapshot into a guest world. The host ignores snapshots."""
    if world.is_host:
        logger.debug('Ignoring stateUpdate on host')
        return False

    if 'timeRemaining' in snapshot:
        world.time_remaining = snapshot['timeRemaining']

    for slot, fields in (snapshot.get('players') or {}).items():
        player = world.players.get(slot)
        if player is None:
            continue
        for name in STAT_FIELDS + POSITION_FIELDS:
            if name not in fields:
                continue
            if slot == world.my_slot and name in NEVER_ACCEPTED:
                continue
            setattr(player, name, fields[name])

    if 'asteroids' in snapshot:
        world.asteroids = [Asteroid.from_dict(a) for a in snapshot['asteroids']]
    if 'gems' in snapshot:
        world.gems = [Gem.from_dict(g) for g in snapshot['gems']]
    if 'bullets' in snapshot:
        world.bullets = [Bullet.from_dict(b) for b in snapshot['bullets']]

    for slot, enabled in (snapshot.get('cheatMode') or {}).items():
        if slot != world.my_slot:
            world.set_cheat_mode(slot, enabled)
    return True


def player_input_payload(world):
    me = world.me
    return {'slot': me.slot, 'x': me.x, 'y': me.y}


def apply_player_input(world, data) -> bool:
    """Apply the other peer's position. Input for our own slot is ignored."""
    slot = data.get('slot')
    if slot == world.my_slot or slot not in world.players:
        return False
    player = world.players[slot]
    player.x = data.get('x', player.x)
    player.y = data.get('y', player.y)
    return True
