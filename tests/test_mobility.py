from __future__ import annotations

import random

import pytest

from clustergym.core.mobility import Bounds, ConstantPosition, GridPositionAllocator, RandomWalk2d


def test_random_walk_stays_inside_bounds():
    bounds = Bounds(10.0, 40.0, -100.0, 100.0)
    walk = RandomWalk2d((10.0, 60.0), bounds, random.Random(3))
    for step in range(1, 400):
        x, y = walk.position_at(step * 0.25)
        assert 10.0 <= x <= 40.0
        assert -100.0 <= y <= 100.0


def test_random_walk_is_deterministic_per_seed():
    bounds = Bounds(0.0, 30.0, -100.0, 100.0)
    a = RandomWalk2d((5.0, 5.0), bounds, random.Random(11))
    b = RandomWalk2d((5.0, 5.0), bounds, random.Random(11))
    for t in (0.5, 1.0, 7.25, 20.0):
        assert a.position_at(t) == b.position_at(t)


def test_random_walk_moves_at_configured_speed():
    bounds = Bounds(-1000.0, 1000.0, -1000.0, 1000.0)
    walk = RandomWalk2d((0.0, 0.0), bounds, random.Random(5), speed=(2.0, 4.0), distance=1.0)
    vx, vy = walk.velocity
    assert 2.0 <= (vx * vx + vy * vy) ** 0.5 <= 4.0
    x, y = walk.position_at(0.1)
    assert (x * x + y * y) ** 0.5 == pytest.approx(0.1 * (vx * vx + vy * vy) ** 0.5)


def test_random_walk_rejects_going_back_in_time():
    walk = RandomWalk2d((0.0, 0.0), Bounds(-10, 10, -10, 10), random.Random(1))
    walk.position_at(5.0)
    with pytest.raises(ValueError):
        walk.position_at(4.0)


def test_set_position_is_clamped():
    walk = RandomWalk2d((0.0, 0.0), Bounds(-10, 10, -10, 10), random.Random(1))
    walk.set_position(50.0, 0.0, 1.0)
    assert walk.position_at(1.0) == pytest.approx((10.0, 0.0))


def test_bounds_must_not_be_degenerate():
    with pytest.raises(ValueError):
        Bounds(5.0, 5.0, 0.0, 1.0)


def test_constant_position_and_grid():
    pos = ConstantPosition(1.0, 2.0)
    assert pos.position_at(100.0) == (1.0, 2.0)
    grid = GridPositionAllocator(min_x=10.0, min_y=60.0, delta_x=10.0, delta_y=30.0, grid_width=3)
    assert [grid.position(i) for i in range(4)] == [(10.0, 60.0), (20.0, 60.0), (30.0, 60.0), (10.0, 90.0)]
