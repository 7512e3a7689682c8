"""
Global residual F(u) of one implicit-Euler step of the box model.

- Element caches are rebuilt on every call: the current cache from (u, current phase
  states), the previous cache from (u_old, old phase states).
- Element residuals are scattered by global vertex index; vertices not touched by the
  local elements stay zero.
- On owned boundary vertices with Dirichlet conditions the row is replaced by u - u_D.

The residual has shape (Nv, NUM_EQ); its flattened (C-order) form matches the row
ordering of the Jacobian in assembly.jacobian_fd.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from assembly.residual_local import LocalResidual
from core.grid import BoxMesh, ElementGeometry
from core.types import NUM_EQ, ModelConfig, check_primary_shape
from physics.phase_switch import PrimaryVarSwitch
from physics.secondary_vars import SecondaryVarsEvaluator, element_secondary_vars

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ResidualContext:
    """Everything the residual needs besides the solution vectors."""

    model: ModelConfig
    mesh: BoxMesh
    problem: object
    evaluator: SecondaryVarsEvaluator
    switch: PrimaryVarSwitch


def element_residual(
    ctx: ResidualContext,
    element: ElementGeometry,
    u: np.ndarray,
    u_old: np.ndarray,
    dt: float,
    *,
    local: LocalResidual | None = None,
    states=None,
) -> np.ndarray:
    """
    Residual rows of the local vertices of one element, shape (n_local, NUM_EQ).

    states: optional (current, old) phase-state arrays; read from the switch when omitted.
    """
    if states is None:
        states = (ctx.switch.phase_state_array(old=False), ctx.switch.phase_state_array(old=True))
    cur_states, old_states = states
    cur = element_secondary_vars(ctx.evaluator, ctx.problem, element, u, cur_states)
    prev = element_secondary_vars(ctx.evaluator, ctx.problem, element, u_old, old_states)
    if local is None:
        local = LocalResidual(ctx.model, ctx.problem)
    local.bind(element, cur, prev)
    return local.eval(dt)


def dirichlet_rows(ctx: ResidualContext) -> list[tuple[int, int, float]]:
    """(vertex, equation, value) of every owned Dirichlet constraint."""
    mesh = ctx.mesh
    rows: list[tuple[int, int, float]] = []
    for v in mesh.local_vertices:
        v = int(v)
        if not (mesh.boundary_vertices[v] and mesh.owned[v]):
            continue
        pos = mesh.vertex_positions[v]
        bc = ctx.problem.boundary_types(v, pos)
        if not bc.has_dirichlet():
            continue
        values = ctx.problem.dirichlet(v, pos)
        for eq in range(NUM_EQ):
            if bc.is_dirichlet(eq):
                rows.append((v, eq, float(values[eq])))
    return rows


def assemble_residual(
    ctx: ResidualContext,
    u: np.ndarray,
    u_old: np.ndarray,
    dt: float,
) -> np.ndarray:
    """Assemble F(u) over the local elements, shape (Nv, NUM_EQ)."""
    nv = ctx.mesh.num_vertices
    check_primary_shape(u, nv)
    check_primary_shape(u_old, nv)

    res = np.zeros((nv, NUM_EQ), dtype=np.float64)
    local = LocalResidual(ctx.model, ctx.problem)
    states = (ctx.switch.phase_state_array(old=False), ctx.switch.phase_state_array(old=True))
    for element in ctx.mesh.elements:
        r_el = element_residual(ctx, element, u, u_old, dt, local=local, states=states)
        for k, v in enumerate(element.vertices):
            res[v] += r_el[k]

    for v, eq, value in dirichlet_rows(ctx):
        res[v, eq] = u[v, eq] - value

    if not np.all(np.isfinite(res)):
        bad = np.argwhere(~np.isfinite(res))
        raise FloatingPointError(f"Non-finite residual at (vertex, eq) {bad[:5].tolist()}")
    logger.debug("residual assembled: ||F||_inf=%.6e", float(np.max(np.abs(res))) if res.size else 0.0)
    return res
