from __future__ import annotations

import pytest

from clustergym.core.errors import LatencyMatchError
from clustergym.tracking.event_log import EventLog


def test_fifo_matching_against_shared_schedule():
    log = EventLog(shared_schedule=[5.0, 6.0, 7.0])
    for t in (5.2, 6.5, 7.1):
        log.on_receive(0, t)
        log.latency_for(0)
    assert log.samples_for(0) == pytest.approx([0.2, 0.5, 0.1])
    assert log.cursor(0) == 3


def test_shared_schedule_cursors_are_per_node():
    log = EventLog(shared_schedule=[1.0, 2.0])
    log.on_receive(0, 1.5)
    assert log.latency_for(0) == pytest.approx(0.5)
    log.on_receive(1, 1.25)
    assert log.latency_for(1) == pytest.approx(0.25)
    assert log.cursor(0) == 1
    assert log.cursor(1) == 1


def test_send_path_queues_per_destination():
    log = EventLog()
    log.on_send(4, 5.0, destination=0)
    log.on_send(5, 5.0, destination=1)
    log.on_send(4, 6.0, destination=0)
    assert log.pending(0) == 2
    assert log.latency_for(0, 5.01) == pytest.approx(0.01)
    assert log.latency_for(1, 5.02) == pytest.approx(0.02)
    assert log.latency_for(0, 6.03) == pytest.approx(0.03)
    assert log.sends(4) == [5.0, 6.0]
    assert log.send_count() == 3


def test_overflow_raises_by_default():
    log = EventLog(shared_schedule=[1.0])
    log.on_receive(0, 1.1)
    log.latency_for(0)
    log.on_receive(0, 2.1)
    with pytest.raises(LatencyMatchError) as exc:
        log.latency_for(0)
    assert exc.value.node_id == 0
    assert exc.value.received == 2


def test_overflow_drop_skips_sample():
    log = EventLog(overflow="drop")
    log.on_receive(2, 3.0)
    assert log.latency_for(2) is None
    assert log.unmatched == 1
    assert log.all_samples() == []


def test_unknown_overflow_policy_rejected():
    with pytest.raises(ValueError):
        EventLog(overflow="ignore")


def test_latency_for_without_receive_fails():
    with pytest.raises(ValueError):
        EventLog().latency_for(0)


def test_mean_latency_is_zero_without_samples():
    log = EventLog()
    assert log.mean_latency() == 0.0
    log.expect(0, 1.0)
    log.expect(0, 2.0)
    log.latency_for(0, 1.2)
    log.latency_for(0, 2.4)
    assert log.mean_latency() == pytest.approx(0.3)


def test_expect_not_allowed_with_shared_schedule():
    with pytest.raises(ValueError):
        EventLog(shared_schedule=[1.0]).expect(0, 1.0)


def test_snapshot_groups_times_by_node():
    log = EventLog()
    log.on_send(4, 1.0, destination=0)
    log.on_receive(0, 1.5)
    log.latency_for(0)
    snap = log.snapshot()
    assert snap["sends"] == {4: [1.0]}
    assert snap["receives"] == {0: [1.5]}
    assert snap["latencies"] == pytest.approx([0.5])


def test_per_node_times_stay_separate():
    log = EventLog()
    log.on_send(4, 1.0, destination=0)
    log.on_send(5, 1.0, destination=1)
    log.on_send(4, 2.0, destination=0)
    log.on_receive(1, 1.2)
    log.on_receive(0, 1.3)
    log.on_receive(0, 2.3)
    assert log.sends(4) == [1.0, 2.0]
    assert log.sends(5) == [1.0]
    assert log.sends(0) == []
    assert log.receives(0) == [1.3, 2.3]
    assert log.receives(1) == [1.2]
    assert log.send_count() == 3
    assert log.receive_count() == 3
    assert log.latency_for(0, 1.3) == pytest.approx(0.3)
    assert log.latency_for(0) == pytest.approx(0.3)


def test_returned_times_are_copies():
    log = EventLog()
    log.on_send(4, 1.0)
    log.sends(4).append(9.0)
    log.snapshot()["sends"][4].append(9.0)
    assert log.sends(4) == [1.0]
