from __future__ import annotations

import pytest

from clustergym.core.clock import SimClock


def test_same_time_callbacks_fire_in_schedule_order():
    clock = SimClock()
    seen = []
    clock.schedule(1.0, seen.append, "a")
    clock.schedule(0.5, seen.append, "early")
    clock.schedule(1.0, seen.append, "b")
    clock.schedule(1.0, seen.append, "c")
    clock.run(2.0)
    assert seen == ["early", "a", "b", "c"]


def test_callbacks_at_until_stay_queued():
    clock = SimClock()
    seen = []
    clock.schedule(5.0, seen.append, 5)
    clock.run(5.0)
    assert seen == []
    clock.run(6.0)
    assert seen == [5]
    assert clock.now == 6.0


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        SimClock().schedule(-0.1, lambda: None)


def test_periodic_task_reschedules_itself():
    clock = SimClock()
    times = []
    task = clock.every(1.0, lambda: times.append(clock.now))
    clock.run(3.5)
    assert times == [0.0, 1.0, 2.0, 3.0]
    assert task.ticks == 4


def test_cancelled_task_stops_firing():
    clock = SimClock()
    times = []
    task = clock.every(1.0, lambda: times.append(clock.now), start=0.5)
    clock.schedule(2.0, task.cancel)
    clock.run(10.0)
    assert times == [0.5, 1.5]


def test_stop_ends_run_immediately():
    clock = SimClock()
    seen = []
    clock.schedule(1.0, clock.stop)
    clock.schedule(1.0, seen.append, "same-instant")
    clock.schedule(2.0, seen.append, "later")
    clock.run(10.0)
    assert clock.stopped
    assert clock.now == 1.0
    assert seen == []
    clock.run(20.0)
    assert clock.now == 1.0
