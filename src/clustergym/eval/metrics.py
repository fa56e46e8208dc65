from __future__ import annotations

from typing import Dict

import numpy as np


def compute_metrics(run: Dict) -> Dict:
    samples = np.asarray(run.get("latency_samples", []), dtype=float)
    receive_counts = run.get("receive_counts", {})
    if samples.size:
        stats = {
            "latency_mean": float(samples.mean()),
            "latency_p50": float(np.percentile(samples, 50)),
            "latency_p95": float(np.percentile(samples, 95)),
            "latency_max": float(samples.max()),
        }
    else:
        stats = {"latency_mean": 0.0, "latency_p50": 0.0, "latency_p95": 0.0, "latency_max": 0.0}
    return {
        "run_id": run.get("run_id"),
        "name": run.get("name"),
        "seed": run.get("seed"),
        "samples": int(samples.size),
        "packets_received": int(sum(receive_counts.values())),
        "delivered_packets": run.get("delivered_packets", 0),
        "dropped_packets": run.get("dropped_packets", 0),
        **stats,
    }
