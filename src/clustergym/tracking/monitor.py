from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from clustergym.core.clock import PeriodicTask, SimClock
from clustergym.core.logging import JsonlLogger
from clustergym.tracking.event_log import EventLog
from clustergym.utils.io import append_csv_rows, write_csv_header

_log = logging.getLogger("clustergym.monitor")

CSV_HEADER = (
    "SimulationSecond",
    "ReceiveRate",
    "PacketsReceived",
    "NumberOfSinks",
    "RoutingProtocol",
    "TransmissionPower",
)


class MonitorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class TrafficCounters:
    """Aggregate receive counters; the interval fields reset every monitor tick."""

    interval_bytes: int = 0
    interval_packets: int = 0
    total_bytes: int = 0
    total_packets: int = 0

    def record(self, payload_size: int) -> None:
        self.interval_bytes += int(payload_size)
        self.interval_packets += 1
        self.total_bytes += int(payload_size)
        self.total_packets += 1

    def reset_interval(self) -> None:
        self.interval_bytes = 0
        self.interval_packets = 0


class PeriodicMonitor:
    def __init__(
        self,
        event_log: EventLog,
        counters: TrafficCounters,
        interval: float = 1.0,
        sinks: int = 0,
        routing: str = "static",
        tx_power: float = 7.5,
        csv_path: str | Path | None = None,
        events: Optional[JsonlLogger] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"monitor interval must be > 0, got {interval}")
        self.event_log = event_log
        self.counters = counters
        self.interval = float(interval)
        self.sinks = int(sinks)
        self.routing = routing
        self.tx_power = float(tx_power)
        self.csv_path = Path(csv_path) if csv_path else None
        self.events = events or JsonlLogger(path=None)
        self.state = MonitorState.IDLE
        self.rows: List[tuple] = []
        self._clock: Optional[SimClock] = None
        self._task: Optional[PeriodicTask] = None

    @property
    def ticks(self) -> int:
        return self._task.ticks if self._task else 0

    def start(self, clock: SimClock) -> None:
        if self.state is MonitorState.RUNNING:
            raise RuntimeError("monitor already running")
        if self.csv_path:
            write_csv_header(self.csv_path, CSV_HEADER)
        self._clock = clock
        self.state = MonitorState.RUNNING
        self._task = clock.every(self.interval, self.tick, name="monitor")

    def tick(self) -> None:
        if self._clock is None:
            raise RuntimeError("monitor not started")
        now = self._clock.now
        snapshot = self.event_log.snapshot()

        _log.info(
            "t=%.1f sends=%d receives=%d latencies=%d",
            now,
            self.event_log.send_count(),
            self.event_log.receive_count(),
            len(snapshot["latencies"]),
        )
        for node, times in snapshot["sends"].items():
            _log.debug("SendingTimes: %s %s", node, times)
        for node, times in snapshot["receives"].items():
            _log.debug("ReceivingTimes: %s %s", node, times)
        for value in snapshot["latencies"]:
            _log.debug("Latency Value: %s", value)

        kbps = self.counters.interval_bytes * 8.0 / 1000.0 / self.interval
        row = (
            round(now, 6),
            kbps,
            self.counters.interval_packets,
            self.sinks,
            self.routing,
            self.tx_power,
        )
        self.rows.append(row)
        if self.csv_path:
            append_csv_rows(self.csv_path, [row])
        self.events.log(
            "monitor_tick",
            time=now,
            receive_rate_kbps=kbps,
            packets_received=self.counters.interval_packets,
            **snapshot,
        )
        self.counters.reset_interval()
