"""
Domain-integrated component masses and extremal values of the current solution.

Totals (vol * porosity * S * rho * X summed over sub-control volumes):
    [0] nonwetting component, [1] nonwetting component in the nonwetting phase,
    [2] wetting component, [3] wetting component in the wetting phase.

Totals are summed over all partitions. Extrema (nonwetting saturation, wetting
pressure, X[N_COMP, W_PHASE], temperature) are reduced with min/max over all
partitions as well, so every rank reports the global range. Only rank 0 logs.
"""

from __future__ import annotations

import logging

import numpy as np

from core.grid import BoxMesh
from core.logging_utils import is_root_rank
from core.types import N_COMP, N_PHASE, W_COMP, W_PHASE, MassBalance, check_primary_shape
from parallel.reduction import Reduction, SerialReduction
from physics.secondary_vars import SecondaryVarsEvaluator, element_secondary_vars

logger = logging.getLogger(__name__)


def calculate_mass(
    mesh: BoxMesh,
    solution: np.ndarray,
    phase_states,
    evaluator: SecondaryVarsEvaluator,
    problem,
    reduction: Reduction | None = None,
) -> MassBalance:
    """Integrate component masses of `solution` over the local elements and reduce."""
    reduction = reduction if reduction is not None else SerialReduction()
    check_primary_shape(solution, mesh.num_vertices)

    totals = np.zeros(4, dtype=np.float64)
    lo = np.full(4, np.inf)
    hi = np.full(4, -np.inf)

    for element in mesh.elements:
        cache = element_secondary_vars(evaluator, problem, element, solution, phase_states)
        for k, vars_ in enumerate(cache):
            vol = float(element.scv_volumes[k])
            poro = vars_.porosity
            sat_n, sat_w = vars_.saturation[N_PHASE], vars_.saturation[W_PHASE]
            rho_n, rho_w = vars_.density[N_PHASE], vars_.density[W_PHASE]
            X = vars_.mass_fraction

            totals[0] += vol * poro * (sat_n * rho_n * X[N_COMP, N_PHASE] + sat_w * rho_w * X[N_COMP, W_PHASE])
            totals[1] += vol * poro * sat_n * rho_n * X[N_COMP, N_PHASE]
            totals[2] += vol * poro * (sat_w * rho_w * X[W_COMP, W_PHASE] + sat_n * rho_n * X[W_COMP, N_PHASE])
            totals[3] += vol * poro * sat_w * rho_w * X[W_COMP, W_PHASE]

            sample = np.array([sat_n, vars_.pressure[W_PHASE], X[N_COMP, W_PHASE], vars_.temperature])
            lo = np.minimum(lo, sample)
            hi = np.maximum(hi, sample)

    totals = np.asarray(reduction.reduce_sum(totals), dtype=np.float64)
    lo = np.asarray(reduction.reduce_min(lo), dtype=np.float64)
    hi = np.asarray(reduction.reduce_max(hi), dtype=np.float64)

    if is_root_rank(reduction):
        logger.info("nonwetting phase saturation: min = %g, max = %g", lo[0], hi[0])
        logger.info("wetting phase pressure: min = %g, max = %g", lo[1], hi[1])
        logger.info("mass fraction nComp: min = %g, max = %g", lo[2], hi[2])
        logger.info("temperature: min = %g, max = %g", lo[3], hi[3])

    return MassBalance(
        total_n_comp=float(totals[0]),
        n_comp_in_n_phase=float(totals[1]),
        total_w_comp=float(totals[2]),
        w_comp_in_w_phase=float(totals[3]),
        min_sat_n=float(lo[0]),
        max_sat_n=float(hi[0]),
        min_pressure_w=float(lo[1]),
        max_pressure_w=float(hi[1]),
        min_x_aw=float(lo[2]),
        max_x_aw=float(hi[2]),
        min_temperature=float(lo[3]),
        max_temperature=float(hi[3]),
    )
