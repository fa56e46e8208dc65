from __future__ import annotations

import argparse
import json
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


def plot_latency(result_json: str, out_png: str) -> Path:
    """Latency samples in arrival order plus the env reward trace, if any."""
    with Path(result_json).open("r", encoding="utf-8") as f:
        run = json.load(f)

    samples = run.get("latency_samples", [])
    steps = run.get("steps", [])

    fig, (ax_lat, ax_rew) = plt.subplots(2, 1, figsize=(8, 6))
    ax_lat.plot(range(len(samples)), [s * 1000.0 for s in samples], marker="o", markersize=3)
    ax_lat.set_xlabel("Sample")
    ax_lat.set_ylabel("Latency (ms)")
    ax_lat.set_title(str(run.get("run_id", "")))

    ax_rew.plot([s["time"] for s in steps], [s["reward"] * 1000.0 for s in steps])
    ax_rew.set_xlabel("Simulation time (s)")
    ax_rew.set_ylabel("Mean latency reward (ms)")

    fig.tight_layout()
    out = Path(out_png)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=150)
    plt.close(fig)
    return out


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Plot latency samples of one run")
    parser.add_argument("--in", dest="result_json", required=True)
    parser.add_argument("--out", dest="out_png", required=True)
    args = parser.parse_args()
    plot_latency(args.result_json, args.out_png)
