from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional

from clustergym.cli.run import load_effective_config, run_sim
from clustergym.cli.validate import validate_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clustergym", description="Cluster latency simulation CLI")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run a simulation experiment")
    p_run.add_argument("--config", required=True)
    p_run.add_argument("--output-dir", default="", help="Override output_dir from the config")

    p_validate = sub.add_parser("validate", help="Validate a config file")
    p_validate.add_argument("--config", required=True)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "run":
        result = run_sim(args.config, output_dir=args.output_dir or None)
        summary = {k: v for k, v in result.items() if k not in {"steps", "links", "latency_samples"}}
        print(json.dumps(summary, indent=2, ensure_ascii=False, sort_keys=True))
        return 0

    if args.cmd == "validate":
        cfg = load_effective_config(args.config)
        errors = validate_config(cfg)
        if errors:
            print(json.dumps({"ok": False, "errors": errors}, ensure_ascii=False, indent=2))
            return 1
        print(json.dumps({"ok": True}, ensure_ascii=False, indent=2))
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
