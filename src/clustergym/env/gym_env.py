"""gymnasium adapter around :class:`SimulationSession`.

Each ``step`` applies one action and advances simulated time by
``env.step_time``; the bridge's own step driver is not installed, so the
agent fully controls the cadence.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Dict, Optional, Tuple

import gymnasium as gym
import numpy as np

from clustergym.config import ExperimentConfig
from clustergym.core.session import SimulationSession
from clustergym.env.bridge import LatencyEnvironment


class ClusterGymEnv(gym.Env):
    metadata: Dict[str, Any] = {"render_modes": []}

    def __init__(self, config: Optional[ExperimentConfig] = None, render_mode: Optional[str] = None) -> None:
        super().__init__()
        self.config = config or ExperimentConfig()
        if not self.config.env.enabled:
            raise ValueError("ClusterGymEnv requires env.enabled")
        self.render_mode = render_mode
        self.session = self._new_session(self.config.seed)
        bridge = self._bridge()
        self.observation_space = bridge.observation_space()
        self.action_space = bridge.action_space()

    def _new_session(self, seed: int) -> SimulationSession:
        cfg = dataclasses.replace(self.config, seed=int(seed))
        return SimulationSession.from_config(cfg, drive_env=False)

    def _bridge(self) -> LatencyEnvironment:
        if self.session.env is None:
            raise RuntimeError("session has no environment bridge")
        return self.session.env

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        super().reset(seed=seed)
        self.session = self._new_session(self.config.seed if seed is None else seed)
        bridge = self._bridge()
        return bridge.observe(), bridge.info()

    def step(self, action: int) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        bridge = self._bridge()
        if bridge.done():
            raise RuntimeError("episode is done, call reset()")
        bridge.apply_action(action)
        clock = self.session.clock
        clock.run(min(clock.now + self.config.env.step_time, self.config.stop_time))
        terminated = bridge.done()
        truncated = not terminated and clock.now >= self.config.stop_time
        return bridge.observe(), bridge.reward(), terminated, truncated, bridge.info()
