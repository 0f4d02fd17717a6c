from dataclasses import dataclass, asdict

from config import (
    ASTEROID_RADIUS,
    BULLET_RADIUS,
    BULLET_SPEED,
    FIELD_HEIGHT,
    FIELD_WIDTH,
    GEM_RADIUS,
    GEM_SPIN_RATE,
    GUEST_SLOT,
    HOST_SLOT,
    PLAYER_MAX_HEALTH,
    PLAYER_SIZE,
    SPAWN_POSITIONS,
)


def other_slot(slot: str) -> str:
    return GUEST_SLOT if slot == HOST_SLOT else HOST_SLOT


@dataclass
class LobbyPlayer:
    sid: str
    name: str
    slot: str
    character: int

    def to_dict(self):
        # The connection id stays on the server
        return {'slot': self.slot, 'name': self.name, 'character': self.character}


@dataclass
class Player:
    name: str
    slot: str
    character: int
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    width: float = PLAYER_SIZE
    height: float = PLAYER_SIZE
    health: int = PLAYER_MAX_HEALTH
    gems: int = 0
    score: int = 0
    alive: bool = True

    @classmethod
    def spawn(cls, slot: str, name: str, character: int = 0) -> 'Player':
        x, y = SPAWN_POSITIONS[slot]
        return cls(name=name, slot=slot, character=character, x=x, y=y)

    @property
    def radius(self) -> float:
        return max(self.width, self.height) / 2

    def contains_point(self, px: float, py: float) -> bool:
        return (self.x - self.width / 2 <= px <= self.x + self.width / 2
                and self.y - self.height / 2 <= py <= self.y + self.height / 2)

    def move(self, vx: float, vy: float, dt: float, width: float = FIELD_WIDTH,
             height: float = FIELD_HEIGHT):
        self.vx, self.vy = vx, vy
        self.x += vx * dt
        self.y += vy * dt
        half_w, half_h = self.width / 2, self.height / 2
        self.x = max(half_w, min(width - half_w, self.x))
        self.y = max(half_h, min(height - half_h, self.y))

    def take_hit(self, damage: int) -> bool:
        """Apply damage; returns True if this hit eliminated the player."""
        if not self.alive:
            return False
        self.health -= damage
        if self.health <= 0:
            self.health = 0
            self.alive = False
            return True
        return False

    def stats(self):
        return {'health': self.health, 'gems': self.gems, 'score': self.score, 'alive': self.alive}

    def to_dict(self):
        return asdict(self)


@dataclass
class Asteroid:
    x: float
    y: float
    vx: float
    vy: float
    radius: float = ASTEROID_RADIUS
    variant: int = 0

    def update(self, dt: float, width: float = FIELD_WIDTH):
        self.x += self.vx * dt
        self.y += self.vy * dt
        if self.x < -self.radius:
            self.x = width + self.radius
        elif self.x > width + self.radius:
            self.x = -self.radius

    def is_off_screen(self, height: float = FIELD_HEIGHT) -> bool:
        return self.y - self.radius > height

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(
            x=data['x'],
            y=data['y'],
            vx=data.get('vx', 0.0),
            vy=data.get('vy', 0.0),
            radius=data.get('radius', ASTEROID_RADIUS),
            variant=data.get('variant', 0),
        )


@dataclass
class Gem:
    x: float
    y: float
    radius: float = GEM_RADIUS
    angle: float = 0.0

    def update(self, dt: float):
        self.angle += dt * GEM_SPIN_RATE

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(
            x=data['x'],
            y=data['y'],
            radius=data.get('radius', GEM_RADIUS),
            angle=data.get('angle', 0.0),
        )


@dataclass
class Bullet:
    x: float
    y: float
    owner: str
    vy: float = -BULLET_SPEED
    radius: float = BULLET_RADIUS

    def update(self, dt: float):
        self.y += self.vy * dt

    def is_off_screen(self, height: float = FIELD_HEIGHT) -> bool:
        return self.y < 0 or self.y > height

    def to_dict(self):
        return {'x': self.x, 'y': self.y, 'vy': self.vy, 'ownerSlot': self.owner,
                'radius': self.radius}

    @classmethod
    def from_dict(cls, data):
        return cls(
            x=data['x'],
            y=data['y'],
            owner=data['ownerSlot'],
            vy=data.get('vy', -BULLET_SPEED),
            radius=data.get('radius', BULLET_RADIUS),
        )
