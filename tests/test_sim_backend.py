from __future__ import annotations

import csv
import json
from pathlib import Path

from clustergym.backends.sim import SimBackend


def build_cfg(tmp_path):
    return {
        "name": "cluster_e2e",
        "seed": 7,
        "stop_time": 30.0,
        "output_dir": str(tmp_path),
        "topology": {"group_count": 3, "nodes_per_group": 3, "data_rate": "5Mbps", "delay": "2ms"},
        "flows": [{"src_group": 1, "dst_group": 0, "start": 5.0, "stop": 20.0, "max_packets": 15}],
        "env": {"step_time": 0.5, "horizon": 29.0, "controller": "random", "action_effect": "nudge"},
    }


def test_backend_writes_run_artifacts(tmp_path):
    result = SimBackend().run(build_cfg(tmp_path))
    run_dir = Path(tmp_path) / result["run_id"]

    for name in ("events.jsonl", "throughput.csv", "result.json", "config.effective.json"):
        assert (run_dir / name).exists()

    assert result["receive_counts"] == {"0": 15, "1": 15, "2": 15}
    assert len(result["latency_samples"]) == 45
    assert len(result["links"]) == 21
    assert result["done"] is True

    with (run_dir / "throughput.csv").open("r", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0][0] == "SimulationSecond"
    assert sum(int(r[2]) for r in rows[1:]) == 45

    with (run_dir / "result.json").open("r", encoding="utf-8") as f:
        saved = json.load(f)
    assert saved["run_id"] == result["run_id"]

    events = [json.loads(line) for line in (run_dir / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    kinds = {e["event"] for e in events}
    assert {"topology_built", "send", "receive", "monitor_tick", "env_step", "env_done"} <= kinds


def test_backend_is_deterministic(tmp_path):
    backend = SimBackend()
    cfg = build_cfg(tmp_path)

    run1 = backend.run(cfg)
    run2 = backend.run(cfg)

    assert run1["latency_samples"] == run2["latency_samples"]
    assert run1["steps"] == run2["steps"]
    assert run1["links"] == run2["links"]
