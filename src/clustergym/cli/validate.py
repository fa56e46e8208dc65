from __future__ import annotations

from typing import Any, Dict

from clustergym.tracking.event_log import OVERFLOW_POLICIES
from clustergym.utils.units import parse_data_rate, parse_time

ACTION_EFFECTS = ("none", "nudge")
CONTROLLERS = ("none", "random")


def validate_config(cfg: Dict[str, Any]) -> list[str]:
    errors: list[str] = []

    topo = cfg.get("topology", {})
    if not isinstance(topo, dict):
        errors.append("'topology' must be a dict")
        topo = {}
    group_count = _int(topo.get("group_count", 3), "topology.group_count", errors)
    per_group = _int(topo.get("nodes_per_group", 3), "topology.nodes_per_group", errors)
    if group_count is not None and group_count <= 0:
        errors.append("topology.group_count must be > 0")
    if per_group is not None and per_group <= 0:
        errors.append("topology.nodes_per_group must be > 0")
    _check_unit(parse_data_rate, topo.get("data_rate", "5Mbps"), "topology.data_rate", errors)
    _check_unit(parse_time, topo.get("delay", "2ms"), "topology.delay", errors)

    stop_time = _check_unit(parse_time, cfg.get("stop_time", 30.0), "stop_time", errors)
    if stop_time is not None and stop_time <= 0:
        errors.append("stop_time must be > 0")

    flows = cfg.get("flows", [])
    if not isinstance(flows, list):
        errors.append("'flows' must be a list")
        flows = []
    for i, flow in enumerate(flows):
        if not isinstance(flow, dict):
            errors.append(f"flows[{i}] must be a dict")
            continue
        for key in ("src_group", "dst_group"):
            if key not in flow:
                errors.append(f"flows[{i}].{key} is required")
                continue
            idx = _int(flow[key], f"flows[{i}].{key}", errors)
            if idx is not None and group_count is not None and not 0 <= idx < group_count:
                errors.append(f"flows[{i}].{key}={idx} outside 0..{group_count - 1}")
        if str(flow.get("dst_role", "member")).lower() not in ("member", "head"):
            errors.append(f"flows[{i}].dst_role must be 'member' or 'head'")
        interval = _check_unit(parse_time, flow.get("interval", 1.0), f"flows[{i}].interval", errors)
        if interval is not None and interval <= 0:
            errors.append(f"flows[{i}].interval must be > 0")
        max_packets = _int(flow.get("max_packets", 15), f"flows[{i}].max_packets", errors)
        if max_packets is not None and max_packets < 0:
            errors.append(f"flows[{i}].max_packets must be >= 0")
        packet_size = _int(flow.get("packet_size", 1024), f"flows[{i}].packet_size", errors)
        if packet_size is not None and packet_size <= 0:
            errors.append(f"flows[{i}].packet_size must be > 0")

    latency = cfg.get("latency", {})
    if isinstance(latency, dict):
        if str(latency.get("overflow", "raise")) not in OVERFLOW_POLICIES:
            errors.append(f"latency.overflow must be one of {list(OVERFLOW_POLICIES)}")
        sink = _int(latency.get("sink_group", 0), "latency.sink_group", errors)
        if sink is not None and group_count is not None and not 0 <= sink < group_count:
            errors.append(f"latency.sink_group={sink} outside 0..{group_count - 1}")
    else:
        errors.append("'latency' must be a dict")

    monitor = cfg.get("monitor", {})
    if isinstance(monitor, dict):
        interval = _check_unit(parse_time, monitor.get("interval", 1.0), "monitor.interval", errors)
        if interval is not None and interval <= 0:
            errors.append("monitor.interval must be > 0")
    else:
        errors.append("'monitor' must be a dict")

    env = cfg.get("env", {})
    if isinstance(env, dict):
        step = _check_unit(parse_time, env.get("step_time", 0.5), "env.step_time", errors)
        if step is not None and step <= 0:
            errors.append("env.step_time must be > 0")
        low = _float(env.get("low", 0.0), "env.low", errors)
        high = _float(env.get("high", 100.0), "env.high", errors)
        if low is not None and high is not None and low >= high:
            errors.append("env.low must be < env.high")
        if str(env.get("action_effect", "none")).lower() not in ACTION_EFFECTS:
            errors.append(f"env.action_effect must be one of {list(ACTION_EFFECTS)}")
        if str(env.get("controller", "none")).lower() not in CONTROLLERS:
            errors.append(f"env.controller must be one of {list(CONTROLLERS)}")
        monitored = env.get("monitored")
        if monitored is not None and (not isinstance(monitored, list) or not monitored):
            errors.append("env.monitored must be a non-empty list of node ids")
    else:
        errors.append("'env' must be a dict")

    return errors


def _int(value: Any, name: str, errors: list[str]) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.append(f"{name} must be an integer")
        return None


def _float(value: Any, name: str, errors: list[str]) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        errors.append(f"{name} must be a number")
        return None


def _check_unit(parser, value: Any, name: str, errors: list[str]) -> float | None:
    try:
        return parser(value)
    except (TypeError, ValueError) as exc:
        errors.append(f"{name}: {exc}")
        return None
