"""
Visualization fields of the box model.

Vertex fields (literal names kept for downstream tooling):
    pW, pN, pC, SW, SN, rhoW, rhoN, mobW, mobN, XaW, XaN, XwW, XwN, T, phase state
Element fields:
    Vx (and Vy for dim >= 2, Vz for dim == 3): face-averaged wetting-phase Darcy
    velocity -lambda_up K grad(potential) at the face integration points.

Vertices outside the local partition are NaN.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

import numpy as np

from core.grid import BoxMesh
from core.types import N_COMP, N_PHASE, W_COMP, W_PHASE, check_primary_shape
from physics.flux_vars import compute_flux_vars
from physics.secondary_vars import SecondaryVarsEvaluator, element_secondary_vars

logger = logging.getLogger(__name__)

VERTEX_FIELDS = (
    "pW", "pN", "pC", "SW", "SN", "rhoW", "rhoN", "mobW", "mobN",
    "XaW", "XaN", "XwW", "XwN", "T", "phase state",
)
VELOCITY_FIELDS = ("Vx", "Vy", "Vz")


def build_fields(
    mesh: BoxMesh,
    solution: np.ndarray,
    switch,
    evaluator: SecondaryVarsEvaluator,
    problem,
    *,
    tortuosity: str = "millington_quirk",
) -> Dict[str, np.ndarray]:
    """Evaluate all vertex and element fields for `solution`."""
    check_primary_shape(solution, mesh.num_vertices)
    nv = mesh.num_vertices
    fields: Dict[str, np.ndarray] = {name: np.full(nv, np.nan) for name in VERTEX_FIELDS}
    vel_names = VELOCITY_FIELDS[: mesh.dim]
    for name in vel_names:
        fields[name] = np.zeros(mesh.num_elements, dtype=np.float64)

    states = switch.phase_state_array(old=False)
    gravity = problem.gravity()
    for e, element in enumerate(mesh.elements):
        cache = element_secondary_vars(evaluator, problem, element, solution, states)
        for k, v in enumerate(element.vertices):
            vars_ = cache[k]
            fields["pW"][v] = vars_.pressure[W_PHASE]
            fields["pN"][v] = vars_.pressure[N_PHASE]
            fields["pC"][v] = vars_.capillary_pressure
            fields["SW"][v] = vars_.saturation[W_PHASE]
            fields["SN"][v] = vars_.saturation[N_PHASE]
            fields["rhoW"][v] = vars_.density[W_PHASE]
            fields["rhoN"][v] = vars_.density[N_PHASE]
            fields["mobW"][v] = vars_.mobility[W_PHASE]
            fields["mobN"][v] = vars_.mobility[N_PHASE]
            fields["XaW"][v] = vars_.mass_fraction[N_COMP, W_PHASE]
            fields["XaN"][v] = vars_.mass_fraction[N_COMP, N_PHASE]
            fields["XwW"][v] = vars_.mass_fraction[W_COMP, W_PHASE]
            fields["XwN"][v] = vars_.mass_fraction[W_COMP, N_PHASE]
            fields["T"][v] = vars_.temperature
            fields["phase state"][v] = float(int(states[v]))

        if not element.faces:
            continue
        permeability = [problem.permeability(x) for x in element.corners]
        velocity = np.zeros(mesh.dim, dtype=np.float64)
        for f in range(len(element.faces)):
            fv = compute_flux_vars(element, f, cache, permeability, gravity, tortuosity=tortuosity)
            lam = cache[fv.upstream_idx[W_PHASE]].mobility[W_PHASE]
            velocity += -lam * (fv.permeability @ fv.potential_grad[W_PHASE])
        velocity /= len(element.faces)
        for d, name in enumerate(vel_names):
            fields[name][e] = velocity[d]
    return fields


def write_fields_npz(path: Path, fields: Dict[str, np.ndarray], *, rank: int = 0) -> Path | None:
    """Write fields to one .npz file (rank 0 only); returns the path written."""
    if rank != 0:
        return None
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(path, **{name: np.asarray(arr, dtype=np.float64) for name, arr in fields.items()})
    logger.info("Fields written: %s", path)
    return path
