"""
Run one two-phase, two-component case from a YAML file.

The driver sets up everything around the model and exercises one controller cycle:
initial solution and phase states, initial residual, one phase-state refresh,
mass diagnostics, field output and the phase-state checkpoint. Time integration
and the nonlinear solve belong to an outer controller.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from assembly.model import TwoPTwoCModel
from core.config_loader import load_case_config
from core.grid import BoxMesh, build_line_mesh, build_rectangle_mesh, partition_mesh
from core.logging_utils import get_log_level_from_env, is_root_rank, setup_logging
from core.types import CaseConfig
from output.fields import write_fields_npz
from parallel.reduction import Reduction, build_reduction
from physics.problem import ConfiguredProblem
from properties.equilibrium import build_equilibrium_model
from properties.fluid_system import build_fluid_system
from properties.material_law import build_material_law

logger = logging.getLogger(__name__)


def build_mesh(cfg: CaseConfig, reduction: Reduction) -> BoxMesh:
    """Structured mesh of the geometry block, split into contiguous element ranges per rank."""
    geo = cfg.geometry
    if geo.dim == 1:
        mesh = build_line_mesh(geo.lengths[0], geo.cells[0], cross_section=geo.cross_section)
    else:
        mesh = build_rectangle_mesh(geo.lengths, geo.cells, thickness=geo.cross_section)
    if reduction.size == 1:
        return mesh

    bounds = np.linspace(0, mesh.num_elements, reduction.size + 1).astype(int)
    start, stop = int(bounds[reduction.rank]), int(bounds[reduction.rank + 1])
    if start == stop:
        raise ValueError(f"rank {reduction.rank} received no elements ({mesh.num_elements} elements, {reduction.size} ranks)")
    lower = sorted({v for el in mesh.elements[:start] for v in el.vertices})
    return partition_mesh(mesh, start, stop, rank=reduction.rank, lower_vertices=lower)


def build_model(cfg: CaseConfig, mesh: BoxMesh, reduction: Reduction) -> TwoPTwoCModel:
    problem = ConfiguredProblem(cfg, mesh, reduction)
    return TwoPTwoCModel(
        cfg.model,
        mesh,
        problem,
        build_fluid_system(cfg.fluid),
        build_material_law(cfg.material),
        build_equilibrium_model(cfg.fluid),
        reduction,
    )


def run_case(cfg_path: str, *, log_level: int | str = logging.INFO, write_output: bool = True) -> int:
    """Run one case. Return 0 on success, 2 on configuration errors."""
    reduction = build_reduction()
    level = get_log_level_from_env(default=log_level)
    setup_logging(reduction.rank, level=level, size=reduction.size, quiet_nonroot=True)

    try:
        cfg = load_case_config(cfg_path)
    except (OSError, ValueError, TypeError) as exc:
        logger.error("Failed to load case %s: %s", cfg_path, exc)
        return 2
    if cfg.io.dt <= 0.0:
        logger.error("io.dt must be positive (got %s)", cfg.io.dt)
        return 2

    mesh = build_mesh(cfg, reduction)
    model = build_model(cfg, mesh, reduction)
    if is_root_rank(reduction):
        logger.info(
            "Case '%s': dim=%d vertices=%d elements(local)=%d formulation=%s",
            cfg.case.id, mesh.dim, mesh.num_vertices, mesh.num_elements, cfg.model.formulation.value,
        )

    u = model.initial_solution()
    model.init_static_data()

    res = model.global_residual(u, u, cfg.io.dt)
    res_inf = reduction.reduce_max(float(np.max(np.abs(res))) if res.size else 0.0)
    if is_root_rank(reduction):
        logger.info("initial residual ||F||_inf = %.6e", res_inf)

    switched = model.update_static_data(u)
    if is_root_rank(reduction):
        logger.info("primary variable switch after initial refresh: %s", switched)
    model.update_old_phase_state()

    mass = model.calculate_mass(u)
    if is_root_rank(reduction):
        logger.info(
            "mass nComp=%.6e (in nPhase %.6e), wComp=%.6e (in wPhase %.6e)",
            mass.total_n_comp, mass.n_comp_in_n_phase, mass.total_w_comp, mass.w_comp_in_w_phase,
        )

    if not write_output:
        return 0
    out_dir = Path(cfg.io.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    if cfg.io.write_fields:
        fields = model.vtk_fields(u)
        if reduction.size == 1:
            write_fields_npz(out_dir / f"{cfg.case.id}_fields.npz", fields, rank=reduction.rank)
        else:
            write_fields_npz(out_dir / f"{cfg.case.id}_fields.rank{reduction.rank}.npz", fields)
    if cfg.io.write_checkpoint:
        ckpt = out_dir / f"{cfg.case.id}_phase_state.rank{reduction.rank}.txt"
        with ckpt.open("w", encoding="utf-8") as stream:
            n = model.serialize(stream)
        logger.info("Checkpoint written: %s (%d vertices)", ckpt, n)
    return 0


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a two-phase, two-component box-model case.")
    parser.add_argument("case_yaml", help="Path to case YAML file.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    parser.add_argument("--no-output", action="store_true", help="Skip field and checkpoint output.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    return run_case(args.case_yaml, log_level=args.log_level, write_output=not args.no_output)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
