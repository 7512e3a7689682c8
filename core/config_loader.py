"""
YAML case file -> CaseConfig.

Every block maps onto the dataclass of the same name in core.types; unknown keys
are rejected so that typos never fall back to defaults silently. Relative
io.output_dir paths are resolved against the directory of the YAML file.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from core.types import (
    CaseConfig,
    CaseIO,
    CaseMeta,
    FluidConfig,
    GeometryConfig,
    MaterialConfig,
    ModelConfig,
    ProblemConfig,
    SoilConfig,
)

logger = logging.getLogger(__name__)

# YAML spelling -> dataclass field, where they differ
_KEY_ALIASES: Dict[str, Dict[str, str]] = {
    "material": {"lambda": "lambda_"},
}


def _read_yaml_text(cfg_file: Path) -> str:
    try:
        return cfg_file.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        return cfg_file.read_text()


def _build_block(cls, raw: Any, name: str):
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config block '{name}' must be a mapping, got {type(raw).__name__}")
    aliases = _KEY_ALIASES.get(name, {})
    kwargs = {aliases.get(k, k): v for k, v in raw.items()}
    allowed = {f.name for f in dataclasses.fields(cls)}
    unknown = set(kwargs) - allowed
    if unknown:
        raise ValueError(f"Unsupported keys in '{name}': {sorted(unknown)}")
    return cls(**kwargs)


def load_case_config(cfg_path: str | Path) -> CaseConfig:
    """Load a YAML case file into CaseConfig with nested dataclasses."""
    cfg_file = Path(cfg_path).expanduser().resolve()
    raw = yaml.safe_load(_read_yaml_text(cfg_file)) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{cfg_file}: top level must be a mapping")

    allowed_blocks = {"case", "model", "fluid", "material", "soil", "problem", "geometry", "io"}
    unknown_blocks = set(raw) - allowed_blocks
    if unknown_blocks:
        raise ValueError(f"Unsupported top-level blocks: {sorted(unknown_blocks)}")
    if "case" not in raw:
        raise ValueError(f"{cfg_file}: missing required 'case' block")

    io_cfg = _build_block(CaseIO, raw.get("io"), "io")
    out = Path(io_cfg.output_dir)
    io_cfg.output_dir = out if out.is_absolute() else (cfg_file.parent / out).resolve()

    cfg = CaseConfig(
        case=_build_block(CaseMeta, raw["case"], "case"),
        model=_build_block(ModelConfig, raw.get("model"), "model"),
        fluid=_build_block(FluidConfig, raw.get("fluid"), "fluid"),
        material=_build_block(MaterialConfig, raw.get("material"), "material"),
        soil=_build_block(SoilConfig, raw.get("soil"), "soil"),
        problem=_build_block(ProblemConfig, raw.get("problem"), "problem"),
        geometry=_build_block(GeometryConfig, raw.get("geometry"), "geometry"),
        io=io_cfg,
    )
    logger.debug("Loaded case '%s' from %s", cfg.case.id, cfg_file)
    return cfg
