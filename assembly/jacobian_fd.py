"""
Element-local forward-difference Jacobian dF/du assembled into scipy.sparse CSR.

Row/column index of (vertex v, equation/primary variable k) is v * NUM_EQ + k,
matching F.ravel() of assembly.residual_global.assemble_residual.

Only element-local perturbations are needed: the residual rows of an element depend
only on the primary variables of that element's vertices. Phase states are frozen
while differencing. Dirichlet rows become identity rows.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

import numpy as np
import scipy.sparse as sp

from assembly.residual_global import ResidualContext, dirichlet_rows, element_residual
from assembly.residual_local import LocalResidual
from core.types import NUM_EQ, check_primary_shape

logger = logging.getLogger(__name__)


def build_fd_jacobian(
    ctx: ResidualContext,
    u: np.ndarray,
    u_old: np.ndarray,
    dt: float,
    *,
    eps: float = 1.0e-8,
    drop_tol: float = 0.0,
) -> Tuple[sp.csr_matrix, Dict[str, Any]]:
    """
    Build the sparse FD Jacobian at u.

    The perturbation of variable x is eps * max(1, |x|).
    """
    mesh = ctx.mesh
    nv = mesh.num_vertices
    check_primary_shape(u, nv)
    check_primary_shape(u_old, nv)
    n = nv * NUM_EQ

    local = LocalResidual(ctx.model, ctx.problem)
    states = (ctx.switch.phase_state_array(old=False), ctx.switch.phase_state_array(old=True))

    rows: list[np.ndarray] = []
    cols: list[np.ndarray] = []
    vals: list[np.ndarray] = []
    u_work = np.array(u, dtype=np.float64, copy=True)
    n_res_evals = 0

    for element in mesh.elements:
        verts = np.asarray(element.vertices, dtype=np.int64)
        r0 = element_residual(ctx, element, u_work, u_old, dt, local=local, states=states)
        n_res_evals += 1
        row_ids = (verts[:, None] * NUM_EQ + np.arange(NUM_EQ)[None, :]).ravel()
        for v in verts:
            for k in range(NUM_EQ):
                x0 = u_work[v, k]
                h = eps * max(1.0, abs(x0))
                u_work[v, k] = x0 + h
                r1 = element_residual(ctx, element, u_work, u_old, dt, local=local, states=states)
                u_work[v, k] = x0
                n_res_evals += 1
                col = (r1 - r0).ravel() / h
                if drop_tol > 0.0:
                    keep = np.abs(col) > drop_tol
                else:
                    keep = np.ones(col.shape, dtype=bool)
                rows.append(row_ids[keep])
                cols.append(np.full(int(keep.sum()), v * NUM_EQ + k, dtype=np.int64))
                vals.append(col[keep])

    if rows:
        J = sp.coo_matrix(
            (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
            shape=(n, n),
        ).tocsr()
    else:
        J = sp.csr_matrix((n, n), dtype=np.float64)

    constrained = [v * NUM_EQ + eq for v, eq, _ in dirichlet_rows(ctx)]
    if constrained:
        J = J.tolil()
        for r in constrained:
            J.rows[r] = [r]
            J.data[r] = [1.0]
        J = J.tocsr()

    diag: Dict[str, Any] = {
        "n_res_evals": n_res_evals,
        "nnz": int(J.nnz),
        "n_dirichlet_rows": len(constrained),
        "eps": float(eps),
    }
    logger.debug("FD Jacobian built: n=%d nnz=%d evals=%d", n, J.nnz, n_res_evals)
    return J, diag
