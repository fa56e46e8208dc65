"""Node position models.

Positions are evaluated lazily when queried, so a mobility model costs
nothing on the clock between observations.
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple

from clustergym.core.types import Position

EPSILON = 1e-12


@dataclass(frozen=True)
class Bounds:
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self) -> None:
        if not (self.x_min < self.x_max and self.y_min < self.y_max):
            raise ValueError(f"degenerate bounds: {self}")

    def clamp(self, x: float, y: float) -> Position:
        return (
            min(max(x, self.x_min), self.x_max),
            min(max(y, self.y_min), self.y_max),
        )


class MobilityModel(ABC):
    @abstractmethod
    def position_at(self, t: float) -> Position:
        raise NotImplementedError

    @abstractmethod
    def set_position(self, x: float, y: float, t: float) -> None:
        raise NotImplementedError


class ConstantPosition(MobilityModel):
    def __init__(self, x: float, y: float) -> None:
        self._pos = (float(x), float(y))

    def position_at(self, t: float) -> Position:
        return self._pos

    def set_position(self, x: float, y: float, t: float) -> None:
        self._pos = (float(x), float(y))


class RandomWalk2d(MobilityModel):
    """Walk ``distance`` metres at a random speed and heading, then redraw.

    The walker reflects off the walls of ``bounds``. Queries must not go
    back in time.
    """

    def __init__(
        self,
        start: Position,
        bounds: Bounds,
        rng: random.Random,
        speed: Tuple[float, float] = (2.0, 4.0),
        distance: float = 1.0,
    ) -> None:
        if speed[0] <= 0 or speed[1] < speed[0]:
            raise ValueError(f"invalid speed range: {speed}")
        if distance <= 0:
            raise ValueError(f"distance must be > 0, got {distance}")
        self.bounds = bounds
        self._rng = rng
        self._speed = speed
        self._distance = float(distance)
        self._x, self._y = bounds.clamp(float(start[0]), float(start[1]))
        self._t = 0.0
        self._vx = 0.0
        self._vy = 0.0
        self._walk_end = 0.0
        self._new_walk(0.0)

    @property
    def velocity(self) -> Tuple[float, float]:
        return (self._vx, self._vy)

    def position_at(self, t: float) -> Position:
        if t < self._t - 1e-9:
            raise ValueError(f"position queried at t={t} before last update t={self._t}")
        t = max(t, self._t)
        while True:
            hit = self._t + self._time_to_wall()
            nxt = min(hit, self._walk_end)
            if nxt > t:
                break
            self._advance(nxt)
            if hit <= self._walk_end:
                self._reflect()
            if nxt >= self._walk_end:
                self._new_walk(nxt)
        self._advance(t)
        return (self._x, self._y)

    def set_position(self, x: float, y: float, t: float) -> None:
        self.position_at(t)
        self._x, self._y = self.bounds.clamp(float(x), float(y))

    def _new_walk(self, t: float) -> None:
        speed = self._rng.uniform(*self._speed)
        heading = self._rng.uniform(0.0, 2.0 * math.pi)
        self._vx = speed * math.cos(heading)
        self._vy = speed * math.sin(heading)
        self._walk_end = t + self._distance / speed

    def _advance(self, t: float) -> None:
        dt = t - self._t
        self._x, self._y = self.bounds.clamp(self._x + self._vx * dt, self._y + self._vy * dt)
        self._t = t

    def _time_to_wall(self) -> float:
        b = self.bounds
        dt = math.inf
        if self._vx > EPSILON:
            dt = min(dt, (b.x_max - self._x) / self._vx)
        elif self._vx < -EPSILON:
            dt = min(dt, (b.x_min - self._x) / self._vx)
        if self._vy > EPSILON:
            dt = min(dt, (b.y_max - self._y) / self._vy)
        elif self._vy < -EPSILON:
            dt = min(dt, (b.y_min - self._y) / self._vy)
        return max(0.0, dt)

    def _reflect(self) -> None:
        b = self.bounds
        tol = 1e-9
        if (self._x >= b.x_max - tol and self._vx > 0) or (self._x <= b.x_min + tol and self._vx < 0):
            self._vx = -self._vx
        if (self._y >= b.y_max - tol and self._vy > 0) or (self._y <= b.y_min + tol and self._vy < 0):
            self._vy = -self._vy


@dataclass(frozen=True)
class GridPositionAllocator:
    min_x: float
    min_y: float
    delta_x: float
    delta_y: float
    grid_width: int
    row_first: bool = True

    def position(self, index: int) -> Position:
        if self.row_first:
            col, row = index % self.grid_width, index // self.grid_width
        else:
            row, col = index % self.grid_width, index // self.grid_width
        return (self.min_x + self.delta_x * col, self.min_y + self.delta_y * row)
