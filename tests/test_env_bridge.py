from __future__ import annotations

import numpy as np
import pytest

from clustergym.core.clock import SimClock
from clustergym.core.network_model import NetworkModel
from clustergym.env.bridge import (
    LatencyEnvironment,
    NudgeActionHandler,
    StepDriver,
    load_action_handler,
)
from clustergym.topology.builder import HierarchyBuilder
from clustergym.tracking.event_log import EventLog


def make_env(horizon=29.0, handler=None):
    clock = SimClock()
    network = NetworkModel(clock)
    HierarchyBuilder(network, seed=1).build(3, 3)
    log = EventLog()
    env = LatencyEnvironment(network, log, clock, [0, 1, 2], horizon=horizon, action_handler=handler)
    return clock, log, env


def test_spaces_match_monitored_nodes():
    _, _, env = make_env()
    obs_space = env.observation_space()
    assert obs_space.shape == (3,)
    assert obs_space.dtype == np.float32
    assert env.action_space().n == 3


def test_observation_is_x_positions():
    _, _, env = make_env()
    obs = env.observe()
    assert obs.dtype == np.float32
    assert obs.tolist() == pytest.approx([10.0, 20.0, 30.0])
    assert env.observation_space().contains(obs)


def test_reward_is_zero_without_samples_then_mean():
    _, log, env = make_env()
    assert env.reward() == 0.0
    log.expect(0, 1.0)
    log.expect(0, 2.0)
    log.latency_for(0, 1.01)
    log.latency_for(0, 2.03)
    assert env.reward() == pytest.approx(0.02)


def test_done_latches_at_horizon():
    clock, _, env = make_env(horizon=2.0)
    assert env.done() is False
    clock.run(1.5)
    assert env.done() is False
    clock.run(2.5)
    assert env.done() is True
    assert env.done() is True


def test_invalid_action_rejected():
    _, _, env = make_env()
    with pytest.raises(ValueError):
        env.apply_action(3)
    with pytest.raises(ValueError):
        env.apply_action(-1)
    assert env.apply_action(2) is True
    assert env.actions_applied == 1


def test_nudge_moves_monitored_node_along_x():
    _, _, env = make_env(handler=NudgeActionHandler(distance=1.5))
    before = env.observe()
    env.apply_action(1)
    after = env.observe()
    assert after[1] == pytest.approx(before[1] + 1.5)
    assert after[0] == pytest.approx(before[0])


def test_action_handler_registry():
    assert load_action_handler("none").name == "none"
    assert load_action_handler("nudge", distance=2.0).distance == 2.0
    with pytest.raises(KeyError):
        load_action_handler("teleport")


def test_step_driver_cadence_and_stop_on_done():
    clock, _, env = make_env(horizon=2.0)
    actions = []

    def controller(obs, reward, done, info):
        actions.append(info["time"])
        return 1

    driver = StepDriver(clock, env, 0.5, controller=controller)
    monitor_times = []
    clock.every(1.0, lambda: monitor_times.append(clock.now))
    driver.start()
    clock.run(10.0)

    assert [r.time for r in driver.records] == [0.0, 0.5, 1.0, 1.5, 2.0]
    assert [r.done for r in driver.records] == [False, False, False, False, True]
    assert [r.action for r in driver.records] == [1, 1, 1, 1, None]
    assert actions == [0.0, 0.5, 1.0, 1.5]
    assert clock.stopped
    assert clock.now == 2.0
    assert monitor_times == [0.0, 1.0, 2.0]


def test_step_driver_keeps_running_when_told_to():
    clock, _, env = make_env(horizon=1.0)
    driver = StepDriver(clock, env, 0.5, stop_on_done=False)
    driver.start()
    clock.run(2.25)
    assert not clock.stopped
    assert len(driver.records) == 5
    assert driver.records[-1].done is True
