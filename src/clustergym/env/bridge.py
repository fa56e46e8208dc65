"""Observation/action/reward/termination bridge stepped on a fixed cadence.

``OpenGymEnv`` is the capability interface a controller talks to.
``LatencyEnvironment`` observes node x-positions and rewards with the mean
latency recorded so far. ``StepDriver`` invokes the interface every
``env_step_time`` seconds of simulated time, independently of any other
periodic task on the clock.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from gymnasium import spaces

from clustergym.core.clock import PeriodicTask, SimClock
from clustergym.core.logging import JsonlLogger
from clustergym.core.network_model import NetworkModel
from clustergym.core.types import NodeId, StepRecord
from clustergym.tracking.event_log import EventLog

_log = logging.getLogger("clustergym.env")

Controller = Callable[[np.ndarray, float, bool, Dict[str, Any]], Optional[int]]


class OpenGymEnv(ABC):
    @abstractmethod
    def observation_space(self) -> spaces.Box:
        raise NotImplementedError

    @abstractmethod
    def action_space(self) -> spaces.Discrete:
        raise NotImplementedError

    @abstractmethod
    def observe(self) -> np.ndarray:
        raise NotImplementedError

    @abstractmethod
    def reward(self) -> float:
        raise NotImplementedError

    @abstractmethod
    def done(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def apply_action(self, action: int) -> bool:
        raise NotImplementedError

    def info(self) -> Dict[str, Any]:
        return {}


class ActionHandler(ABC):
    name = "base"

    @abstractmethod
    def apply(self, env: "LatencyEnvironment", action: int) -> bool:
        raise NotImplementedError


class NullActionHandler(ActionHandler):
    """Acknowledges the action without touching the simulation."""

    name = "none"

    def apply(self, env: "LatencyEnvironment", action: int) -> bool:
        _log.debug("t=%.3f action %d acknowledged (no effect)", env.clock.now, action)
        return True


class NudgeActionHandler(ActionHandler):
    """Moves monitored node ``action`` by ``distance`` metres along x."""

    name = "nudge"

    def __init__(self, distance: float = 1.5) -> None:
        self.distance = float(distance)

    def apply(self, env: "LatencyEnvironment", action: int) -> bool:
        node = env.monitored[action]
        mobility = env.network.node(node).mobility
        if mobility is None:
            return False
        now = env.clock.now
        x, y = mobility.position_at(now)
        mobility.set_position(x + self.distance, y, now)
        _log.debug("t=%.3f nudged node %d from x=%.3f", now, node, x)
        return True


ACTION_HANDLERS = {
    NullActionHandler.name: NullActionHandler,
    NudgeActionHandler.name: NudgeActionHandler,
}


def load_action_handler(name: str, **params: Any) -> ActionHandler:
    if name not in ACTION_HANDLERS:
        raise KeyError(f"Unknown action effect: {name}. Available: {sorted(ACTION_HANDLERS)}")
    return ACTION_HANDLERS[name](**params)


class LatencyEnvironment(OpenGymEnv):
    def __init__(
        self,
        network: NetworkModel,
        event_log: EventLog,
        clock: SimClock,
        monitored: Sequence[NodeId],
        low: float = 0.0,
        high: float = 100.0,
        horizon: float = 29.0,
        action_handler: Optional[ActionHandler] = None,
    ) -> None:
        if not monitored:
            raise ValueError("at least one monitored node is required")
        if low >= high:
            raise ValueError(f"observation bounds must satisfy low < high, got [{low}, {high}]")
        self.network = network
        self.event_log = event_log
        self.clock = clock
        self.monitored = list(monitored)
        self.horizon = float(horizon)
        self.action_handler = action_handler or NullActionHandler()
        self._obs_space = spaces.Box(
            low=float(low), high=float(high), shape=(len(self.monitored),), dtype=np.float32
        )
        self._act_space = spaces.Discrete(len(self.monitored))
        self._done = False
        self.actions_applied = 0

    def observation_space(self) -> spaces.Box:
        return self._obs_space

    def action_space(self) -> spaces.Discrete:
        return self._act_space

    def observe(self) -> np.ndarray:
        xs = [self.network.position(node)[0] for node in self.monitored]
        return np.asarray(xs, dtype=np.float32)

    def reward(self) -> float:
        return float(self.event_log.mean_latency())

    def done(self) -> bool:
        if not self._done and self.clock.now >= self.horizon:
            self._done = True
            _log.info("t=%.3f horizon %.3f reached", self.clock.now, self.horizon)
        return self._done

    def apply_action(self, action: int) -> bool:
        if not self._act_space.contains(action):
            raise ValueError(f"action {action!r} outside {self._act_space}")
        self.actions_applied += 1
        return self.action_handler.apply(self, int(action))

    def info(self) -> Dict[str, Any]:
        return {
            "time": self.clock.now,
            "samples": len(self.event_log.all_samples()),
            "actions_applied": self.actions_applied,
        }


def random_controller(action_space: spaces.Discrete, seed: Optional[int] = None) -> Controller:
    action_space.seed(seed)

    def _choose(obs: np.ndarray, reward: float, done: bool, info: Dict[str, Any]) -> Optional[int]:
        return int(action_space.sample())

    return _choose


class StepDriver:
    def __init__(
        self,
        clock: SimClock,
        env: OpenGymEnv,
        step_time: float,
        controller: Optional[Controller] = None,
        stop_on_done: bool = True,
        events: Optional[JsonlLogger] = None,
    ) -> None:
        if step_time <= 0:
            raise ValueError(f"env step time must be > 0, got {step_time}")
        self.clock = clock
        self.env = env
        self.step_time = float(step_time)
        self.controller = controller
        self.stop_on_done = stop_on_done
        self.events = events or JsonlLogger(path=None)
        self.records: List[StepRecord] = []
        self._task: Optional[PeriodicTask] = None

    def start(self, at: float = 0.0) -> None:
        if self._task is not None:
            raise RuntimeError("step driver already started")
        _log.info(
            "observation space %s, action space %s, step %.3fs",
            self.env.observation_space(),
            self.env.action_space(),
            self.step_time,
        )
        self._task = self.clock.every(self.step_time, self.notify_current_state, start=at, name="env-step")

    def notify_current_state(self) -> StepRecord:
        done = self.env.done()
        obs = self.env.observe()
        reward = self.env.reward()
        info = self.env.info()
        record = StepRecord(time=self.clock.now, observation=obs.tolist(), reward=reward, done=done)
        self.records.append(record)

        if done:
            self.events.log("env_done", time=record.time, reward=reward)
            if self.stop_on_done:
                self.clock.stop()
            return record

        if self.controller is not None:
            action = self.controller(obs, reward, done, info)
            if action is not None:
                self.env.apply_action(action)
                record.action = int(action)

        self.events.log(
            "env_step",
            time=record.time,
            observation=record.observation,
            reward=reward,
            action=record.action,
        )
        return record
