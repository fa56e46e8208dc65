from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Dict

from clustergym.backends.base import Backend
from clustergym.config import parse_experiment_config
from clustergym.core.logging import JsonlLogger
from clustergym.core.session import SimulationSession
from clustergym.utils.io import dump_json, ensure_dir, now_tag


class SimBackend(Backend):
    def run(self, config: Dict[str, Any]) -> Dict[str, Any]:
        exp = parse_experiment_config(config)

        output_dir = Path(exp.output_dir)
        ensure_dir(output_dir)
        run_id = f"{exp.name}_{now_tag()}"
        run_dir = ensure_dir(output_dir / run_id)
        logger = JsonlLogger(run_dir / "events.jsonl")

        try:
            session = SimulationSession.from_config(
                exp,
                events=logger,
                throughput_csv=run_dir / "throughput.csv",
            )
            result = session.run()
        finally:
            logger.close()

        topology = session.require_topology()

        samples = result.latency_samples
        result_payload = {
            "run_id": run_id,
            "name": exp.name,
            "seed": exp.seed,
            "stop_time": result.stop_time,
            "done": result.done,
            "latency_samples": samples,
            "mean_latency": sum(samples) / len(samples) if samples else 0.0,
            "send_counts": {str(n): len(ts) for n, ts in result.sends.items()},
            "receive_counts": {str(n): len(ts) for n, ts in result.receives.items()},
            "delivered_packets": result.delivered_packets,
            "dropped_packets": result.dropped_packets,
            "monitor_ticks": result.extra.get("monitor_ticks", 0),
            "unmatched_receives": result.extra.get("unmatched_receives", 0),
            "clients": result.extra.get("clients", []),
            "servers": result.extra.get("servers", []),
            "links": [link.as_dict() for link in topology.links],
            "topology_edges": [e.__dict__ for e in topology.graph.edge_list()],
            "events_logged": logger.rows_written,
            "steps": [dataclasses.asdict(step) for step in result.steps],
        }
        dump_json(run_dir / "result.json", result_payload)
        dump_json(run_dir / "config.effective.json", config)

        return result_payload
