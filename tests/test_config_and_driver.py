"""
YAML case loading and the case driver.

Tests:
1. A full YAML case maps onto the dataclasses (aliases, enums, relative output dir)
2. Unknown keys and blocks are rejected
3. Invalid values fail in the dataclass validation
4. run_case on a small closed column writes fields and a phase-state checkpoint
5. Logging level resolution from the environment
"""

from __future__ import annotations

import logging
import textwrap

import numpy as np
import pytest

from core.config_loader import load_case_config
from core.logging_utils import get_log_level_from_env
from core.types import Formulation, PhaseState
from driver.run_case import main, run_case

CASE_YAML = textwrap.dedent(
    """
    case:
      id: small
      title: small column
    model:
      formulation: pN-sW
      mobility_upwind_alpha: 0.5
      gravity: [0.0]
    material:
      law: brooks_corey
      lambda: 2.5
      entry_pressure: 500.0
    problem:
      initial_phase_state: both_phases
      initial_values: [1.0e5, 0.8]
      injection_rate: [0.0, 1.0e-5]
      injection_vertex: 0
    geometry:
      dim: 1
      lengths: [1.0]
      cells: [4]
    io:
      output_dir: out
      dt: 5.0
    """
)


def _write(tmp_path, text, name="case.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_load_case_config(tmp_path):
    cfg = load_case_config(_write(tmp_path, CASE_YAML))
    assert cfg.case.id == "small"
    assert cfg.model.formulation is Formulation.PN_SW
    assert cfg.model.mobility_upwind_alpha == 0.5
    assert cfg.material.lambda_ == 2.5
    assert cfg.problem.initial_phase_state is PhaseState.BOTH_PHASES
    assert cfg.io.output_dir == (tmp_path / "out").resolve()
    assert cfg.fluid.system == "constant"


def test_unknown_keys_rejected(tmp_path):
    text = CASE_YAML.replace("mobility_upwind_alpha: 0.5", "upwind_weight: 0.5")
    with pytest.raises(ValueError, match="Unsupported keys in 'model'"):
        load_case_config(_write(tmp_path, text))

    with pytest.raises(ValueError, match="Unsupported top-level blocks"):
        load_case_config(_write(tmp_path, CASE_YAML + "solver:\n  tol: 1\n"))


def test_invalid_values_rejected(tmp_path):
    with pytest.raises(ValueError, match="mobility_upwind_alpha"):
        load_case_config(_write(tmp_path, CASE_YAML.replace("0.5", "1.5")))
    with pytest.raises(ValueError, match="gravity"):
        load_case_config(_write(tmp_path, CASE_YAML.replace("gravity: [0.0]", "gravity: [0.0, -9.81]")))


def test_run_case_writes_outputs(tmp_path, monkeypatch):
    monkeypatch.delenv("TWOP2C_LOG_LEVEL", raising=False)
    path = _write(tmp_path, CASE_YAML)
    assert run_case(str(path)) == 0

    fields = np.load(tmp_path / "out" / "small_fields.npz")
    assert "phase state" in fields.files
    assert fields["SW"] == pytest.approx(np.full(5, 0.8))
    assert fields["Vx"].shape == (4,)

    payload = (tmp_path / "out" / "small_phase_state.rank0.txt").read_text(encoding="utf-8")
    assert payload == "2 " * 5


def test_main_reports_bad_config(tmp_path):
    path = _write(tmp_path, "case:\n  id: x\nbogus: {}\n")
    assert main([str(path), "--no-output"]) == 2


def test_log_level_from_env(monkeypatch):
    monkeypatch.delenv("TWOP2C_LOG_LEVEL", raising=False)
    monkeypatch.delenv("TWOP2C_DEBUG", raising=False)
    assert get_log_level_from_env("WARNING") == logging.WARNING
    monkeypatch.setenv("TWOP2C_DEBUG", "1")
    assert get_log_level_from_env() == logging.DEBUG
    monkeypatch.setenv("TWOP2C_LOG_LEVEL", "error")
    assert get_log_level_from_env() == logging.ERROR
