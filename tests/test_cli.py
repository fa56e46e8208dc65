from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from clustergym.cli.main import main
from clustergym.cli.run import run_sim

ROOT = Path(__file__).resolve().parents[1]
EXPERIMENT = ROOT / "configs" / "experiments" / "cluster3x3.yaml"


def test_validate_command(capsys):
    assert main(["validate", "--config", str(EXPERIMENT)]) == 0
    assert json.loads(capsys.readouterr().out) == {"ok": True}


def test_run_command_writes_results(tmp_path, capsys):
    assert main(["--log-level", "WARNING", "run", "--config", str(EXPERIMENT), "--output-dir", str(tmp_path)]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["name"] == "cluster3x3"
    assert (tmp_path / summary["run_id"] / "result.json").exists()


def test_run_rejects_invalid_config(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text(yaml.safe_dump({"topology": {"group_count": -1}}), encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid config"):
        run_sim(str(bad), output_dir=str(tmp_path))
