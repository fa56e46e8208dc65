from __future__ import annotations

from pathlib import Path

from clustergym.cli.run import load_effective_config
from clustergym.cli.validate import validate_config

ROOT = Path(__file__).resolve().parents[1]


def test_shipped_experiments_are_valid():
    for path in sorted((ROOT / "configs" / "experiments").glob("*.yaml")):
        cfg = load_effective_config(str(path))
        assert validate_config(cfg) == [], path.name


def test_defaults_are_merged_under_experiment():
    cfg = load_effective_config(str(ROOT / "configs" / "experiments" / "cluster3x3.yaml"))
    assert cfg["name"] == "cluster3x3"
    assert cfg["topology"]["data_rate"] == "5Mbps"
    assert cfg["env"]["step_time"] == 0.5
    assert len(cfg["flows"]) == 1


def test_bad_values_are_reported():
    errors = validate_config(
        {
            "topology": {"group_count": 0, "data_rate": "fast"},
            "flows": [{"src_group": 1, "dst_group": 9, "dst_role": "router"}, {"dst_group": 0}],
            "latency": {"overflow": "ignore"},
            "env": {"step_time": 0, "low": 5, "high": 1, "controller": "ppo"},
        }
    )
    joined = "\n".join(errors)
    assert "topology.group_count must be > 0" in joined
    assert "topology.data_rate" in joined
    assert "flows[0].dst_role" in joined
    assert "flows[1].src_group is required" in joined
    assert "latency.overflow" in joined
    assert "env.step_time must be > 0" in joined
    assert "env.low must be < env.high" in joined
    assert "env.controller" in joined

    errors = validate_config(
        {
            "flows": [{"src_group": 1, "dst_group": 0, "max_packets": "many", "packet_size": "big"}],
            "env": {"low": "left"},
        }
    )
    assert "flows[0].max_packets must be an integer" in errors
    assert "flows[0].packet_size must be an integer" in errors
    assert "env.low must be a number" in errors
    assert "env.low must be < env.high" not in errors


def test_flow_group_out_of_range():
    errors = validate_config({"topology": {"group_count": 2}, "flows": [{"src_group": 1, "dst_group": 2}]})
    assert errors == ["flows[0].dst_group=2 outside 0..1"]
