from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from clustergym.backends.sim import SimBackend
from clustergym.cli.validate import validate_config
from clustergym.utils.io import deep_merge, load_yaml


def load_effective_config(config_path: str) -> Dict[str, Any]:
    cfg_path = Path(config_path).resolve()
    parts = cfg_path.parts
    if "configs" in parts:
        cfg_idx = parts.index("configs")
        root = Path(*parts[:cfg_idx]) if cfg_idx > 0 else Path("/")
    else:
        root = cfg_path.parent
    defaults_path = root / "configs" / "defaults.yaml"

    cfg = {}
    if defaults_path.exists() and defaults_path != cfg_path:
        cfg = load_yaml(defaults_path)

    return deep_merge(cfg, load_yaml(config_path))


def run_sim(config_path: str, output_dir: Optional[str] = None) -> Dict[str, Any]:
    cfg = load_effective_config(config_path)
    if output_dir:
        cfg["output_dir"] = output_dir
    errors = validate_config(cfg)
    if errors:
        raise ValueError("Invalid config: " + "; ".join(errors))
    return SimBackend().run(cfg)
