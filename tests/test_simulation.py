"""Tests for the authoritative simulation."""

import random

import pytest

from conftest import ROSTER
from models import Asteroid, Bullet, Gem
from simulation import DRAW, Role, World, circles_overlap, format_time


def park_players(world):
    """Move both ships into the bottom corners, away from test entities."""
    world.players['P1'].x, world.players['P1'].y = 20, 460
    world.players['P2'].x, world.players['P2'].y = 780, 460


class TestHelpers:
    def test_circles_overlap_is_strict(self):
        assert circles_overlap(0, 0, 5, 9, 0, 5)
        assert not circles_overlap(0, 0, 5, 10, 0, 5)

    @pytest.mark.parametrize('seconds, text', [(0, '0:00'), (59.9, '0:59'), (83, '1:23'),
                                               (180, '3:00')])
    def test_format_time(self, seconds, text):
        assert format_time(seconds) == text


class TestSetup:
    def test_roles(self, host_world, guest_world):
        assert host_world.role is Role.HOST
        assert guest_world.role is Role.GUEST
        assert guest_world.me.slot == 'P2'

    def test_spawn_positions_and_identity(self, host_world):
        p1, p2 = host_world.players['P1'], host_world.players['P2']
        assert (p1.x, p1.y, p1.name, p1.character) == (200, 240, 'Alice', 0)
        assert (p2.x, p2.y, p2.name, p2.character) == (650, 240, 'Bob', 3)
        assert p1.health == 100 and p1.alive
        assert host_world.time_remaining == 180


class TestMovement:
    def test_moves_at_fixed_speed(self, host_world):
        host_world.step(0.5, {'KeyD', 'KeyW'})
        me = host_world.me
        assert me.x == pytest.approx(300)
        assert me.y == pytest.approx(140)

    def test_only_own_scheme_applies(self, host_world):
        host_world.step(0.5, {'ArrowRight'})
        assert host_world.me.x == 200

    def test_guest_uses_arrow_keys(self, guest_world):
        guest_world.step(0.1, {'ArrowLeft', 'KeyD'})
        assert guest_world.me.x == pytest.approx(630)
        assert guest_world.opponent.x == 200

    def test_clamped_to_playfield(self, host_world):
        host_world.step(10, {'KeyA', 'KeyW'})
        assert (host_world.me.x, host_world.me.y) == (20, 20)
        host_world.step(10, {'KeyD', 'KeyS'})
        assert (host_world.me.x, host_world.me.y) == (780, 460)

    def test_dead_player_does_not_move(self, host_world):
        host_world.me.alive = False
        assert host_world.move_player('P1', 1, {'KeyD'}) is False
        assert host_world.me.x == 200


class TestSpawning:
    def test_asteroid_cadence(self, host_world):
        host_world.spawn(1.0)
        assert host_world.asteroids == []
        host_world.spawn(0.5)
        assert len(host_world.asteroids) == 1
        assert host_world.asteroid_timer == 0

    def test_asteroid_cap(self, host_world):
        for _ in range(20):
            host_world.spawn(1.5)
        assert len(host_world.asteroids) == 6

    def test_gem_cadence_and_cap(self, host_world):
        host_world.spawn(3.9)
        assert host_world.gems == []
        for _ in range(10):
            host_world.spawn(4.0)
        assert len(host_world.gems) == 3

    def test_spawned_entities_in_bounds(self, host_world):
        for _ in range(6):
            host_world.spawn(4.0)
        for asteroid in host_world.asteroids:
            assert 40 <= asteroid.x <= 760
            assert asteroid.y == -30
            assert -25 <= asteroid.vx < 25
            assert 50 <= asteroid.vy < 80
            assert 0 <= asteroid.variant < 64
        for gem in host_world.gems:
            assert 40 <= gem.x <= 760
            assert 40 <= gem.y <= 440

    def test_guest_never_spawns(self, guest_world):
        for _ in range(100):
            guest_world.step(0.1)
        assert guest_world.asteroids == []
        assert guest_world.gems == []
        assert guest_world.time_remaining == 180


class TestMotion:
    def test_asteroid_wraps_horizontally(self):
        asteroid = Asteroid(x=815, y=100, vx=10, vy=0)
        asteroid.update(1.0, 800)
        assert asteroid.x == -20

        asteroid = Asteroid(x=-15, y=100, vx=-10, vy=0)
        asteroid.update(1.0, 800)
        assert asteroid.x == 820

    def test_asteroid_removed_below_field(self, host_world):
        host_world.asteroids = [Asteroid(x=100, y=495, vx=0, vy=10), Asteroid(x=300, y=100, vx=0, vy=10)]
        host_world.advance(1.0)
        assert [a.x for a in host_world.asteroids] == [300]

    def test_gem_spins(self, host_world):
        host_world.gems = [Gem(x=100, y=100)]
        host_world.advance(0.5)
        assert host_world.gems[0].angle == pytest.approx(1.0)
        assert (host_world.gems[0].x, host_world.gems[0].y) == (100, 100)

    def test_bullets_leave_the_top(self, host_world):
        host_world.bullets = [Bullet(x=100, y=30, owner='P1'), Bullet(x=100, y=300, owner='P2')]
        host_world.advance(0.1)
        assert [b.y for b in host_world.bullets] == [pytest.approx(260)]


class TestShoot:
    def test_bullet_from_ship_nose(self, host_world):
        bullet = host_world.shoot('P1')
        assert (bullet.x, bullet.y, bullet.owner, bullet.vy) == (200, 220, 'P1', -400)

    def test_remote_coordinates(self, host_world):
        bullet = host_world.shoot('P2', 640, 210)
        assert (bullet.x, bullet.y, bullet.owner) == (640, 210, 'P2')

    def test_dead_player_cannot_shoot(self, host_world):
        host_world.players['P2'].alive = False
        assert host_world.shoot('P2') is None
        assert host_world.bullets == []


class TestCollisions:
    def test_gem_collected(self, host_world):
        host_world.gems = [Gem(x=205, y=250), Gem(x=400, y=400)]

        host_world.resolve_collisions()

        p1 = host_world.players['P1']
        assert (p1.gems, p1.score) == (1, 10)
        assert [(g.x, g.y) for g in host_world.gems] == [(400, 400)]
        assert host_world.drain_events() == [('gemCollected', {'slot': 'P1', 'x': 205, 'y': 250})]

    def test_gem_claimed_by_first_player_only(self, host_world):
        host_world.players['P2'].x, host_world.players['P2'].y = 210, 240
        host_world.gems = [Gem(x=205, y=240)]

        host_world.resolve_collisions()

        assert host_world.players['P1'].gems == 1
        assert host_world.players['P2'].gems == 0
        assert host_world.gems == []

    def test_bullet_destroys_asteroid(self, host_world):
        park_players(host_world)
        host_world.bullets = [Bullet(x=100, y=100, owner='P2')]
        host_world.asteroids = [Asteroid(x=103, y=100, vx=0, vy=0), Asteroid(x=500, y=100, vx=0, vy=0)]

        host_world.resolve_collisions()

        assert host_world.bullets == []
        assert [a.x for a in host_world.asteroids] == [500]
        assert host_world.players['P2'].score == 5
        assert host_world.players['P1'].score == 0

    def test_bullet_destroys_at_most_one_asteroid(self, host_world):
        park_players(host_world)
        host_world.bullets = [Bullet(x=100, y=100, owner='P1')]
        host_world.asteroids = [Asteroid(x=95, y=100, vx=0, vy=0), Asteroid(x=105, y=100, vx=0, vy=0)]

        host_world.resolve_collisions()

        # The newest asteroid is checked first
        assert [a.x for a in host_world.asteroids] == [95]
        assert host_world.players['P1'].score == 5

    def test_newest_bullet_gets_the_asteroid(self, host_world):
        park_players(host_world)
        host_world.bullets = [Bullet(x=100, y=100, owner='P1'), Bullet(x=102, y=100, owner='P2')]
        host_world.asteroids = [Asteroid(x=100, y=100, vx=0, vy=0)]

        host_world.resolve_collisions()

        assert host_world.players['P2'].score == 5
        assert host_world.players['P1'].score == 0
        assert [(b.x, b.owner) for b in host_world.bullets] == [(100, 'P1')]

    def test_elimination_leaves_older_asteroids(self, host_world):
        host_world.players['P2'].health = 25
        host_world.asteroids = [Asteroid(x=640, y=240, vx=0, vy=0),
                                Asteroid(x=650, y=215, vx=0, vy=0)]

        host_world.resolve_collisions()

        assert not host_world.running
        assert [(a.x, a.y) for a in host_world.asteroids] == [(640, 240)]
        assert len(host_world.drain_events()) == 1

    def test_asteroid_hits_player(self, host_world):
        host_world.asteroids = [Asteroid(x=200, y=210, vx=0, vy=0)]

        host_world.resolve_collisions()

        assert host_world.players['P1'].health == 75
        assert host_world.asteroids == []
        assert host_world.running
        assert host_world.drain_events() == [
            ('asteroidCrash', {'slot': 'P1', 'x': 200, 'y': 210, 'damaged': True})]

    def test_bullet_check_runs_before_crash_check(self, host_world):
        host_world.asteroids = [Asteroid(x=200, y=210, vx=0, vy=0)]
        host_world.bullets = [Bullet(x=200, y=200, owner='P1')]

        host_world.resolve_collisions()

        assert host_world.players['P1'].health == 100
        assert host_world.players['P1'].score == 5

    def test_cheat_mode_is_invulnerable(self, host_world):
        host_world.set_cheat_mode('P1', True)
        host_world.asteroids = [Asteroid(x=200, y=210, vx=0, vy=0)]

        host_world.resolve_collisions()

        assert host_world.players['P1'].health == 100
        assert host_world.asteroids == []

    def test_elimination(self, host_world):
        host_world.time_remaining = 97
        host_world.players['P2'].health = 25
        host_world.asteroids = [Asteroid(x=650, y=215, vx=0, vy=0)]

        host_world.resolve_collisions()

        p2 = host_world.players['P2']
        assert (p2.health, p2.alive) == (0, False)
        assert not host_world.running
        summary = host_world.summary.to_dict()
        assert summary['winner'] == 'P1'
        assert summary['reason'] == 'elimination'
        assert summary['timeElapsed'] == 83
        assert summary['players']['P1']['status'] == 'WINNER'
        assert summary['players']['P2']['status'] == 'Eliminated at 1:23'
        assert summary['players']['P2']['alive'] is False

    def test_elimination_ends_the_step(self, host_world):
        host_world.players['P2'].health = 25
        host_world.asteroids = [Asteroid(x=650, y=215, vx=0, vy=0)]

        summary = host_world.step(0.01)

        assert summary is not None
        assert host_world.step(0.01) is None


class TestTimeExpiry:
    def test_draw(self, host_world):
        host_world.time_remaining = 0
        summary = host_world.step(0.016)

        assert summary.winner == DRAW
        assert summary.reason == 'time'
        assert summary.time_elapsed == 180
        assert {p['status'] for p in summary.players.values()} == {'Survived'}

    def test_higher_score_wins(self, host_world):
        host_world.players['P2'].score = 15
        host_world.time_remaining = 0.01

        summary = host_world.step(0.02)

        assert summary.winner == 'P2'
        assert summary.players['P2']['status'] == 'WINNER'
        assert summary.players['P1']['status'] == 'Survived'
        assert host_world.time_remaining == 0

    def test_clock_counts_down(self, host_world):
        host_world.step(1.5)
        assert host_world.time_remaining == pytest.approx(178.5)
        assert host_world.summary is None


class TestDeterminism:
    def test_same_seed_same_world(self):
        worlds = [World('P1', ROSTER, rng=random.Random(42)) for _ in range(2)]
        for world in worlds:
            for _ in range(600):
                world.step(1 / 60)
        assert worlds[0].asteroids == worlds[1].asteroids
        assert worlds[0].gems == worlds[1].gems
