#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path

from clustergym.backends.sim import SimBackend
from clustergym.cli.run import load_effective_config
from clustergym.utils.io import load_yaml


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a seed x data-rate sweep")
    parser.add_argument("--config", required=True)
    parser.add_argument("--out", default="results/tables/sweep_summary.json")
    args = parser.parse_args()

    sweep_cfg = load_yaml(args.config)
    base_cfg = load_effective_config(args.config)

    seeds = sweep_cfg.get("seeds", [base_cfg.get("seed", 42)])
    rates = sweep_cfg.get("data_rates", [base_cfg.get("topology", {}).get("data_rate", "5Mbps")])

    backend = SimBackend()
    outputs = []

    for rate in rates:
        for seed in seeds:
            cfg = dict(base_cfg)
            cfg["name"] = f"{base_cfg.get('name', 'sweep')}_{rate}_s{seed}"
            cfg["seed"] = int(seed)
            topo = dict(cfg.get("topology", {}))
            topo["data_rate"] = rate
            cfg["topology"] = topo
            out = backend.run(cfg)
            outputs.append(
                {
                    "run_id": out["run_id"],
                    "data_rate": rate,
                    "seed": seed,
                    "samples": len(out["latency_samples"]),
                    "mean_latency": out["mean_latency"],
                }
            )

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(outputs, f, indent=2, ensure_ascii=False)


if __name__ == "__main__":
    main()
