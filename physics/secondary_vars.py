"""
Secondary variables of one vertex from its primary variables and phase state.

Primary vector per vertex: [pressure, switch]
- formulation pW-sN: pressure = p_w; in BOTH_PHASES the switch slot is S_n
- formulation pN-sW: pressure = p_n; in BOTH_PHASES the switch slot is S_w
- WETTING_ONLY: switch slot is the mass fraction of the nonwetting component in the wetting phase
- NONWETTING_ONLY: switch slot is the mass fraction of the wetting component in the nonwetting phase

Mass fractions of a phase that is absent, and of both phases in BOTH_PHASES, are set to
their equilibrium bounds evaluated at the nonwetting-phase pressure.

evaluate() builds a fresh SecondaryVars on every call and keeps nothing between calls,
so "current" and "previous" caches can be filled with the same evaluator.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from core.types import (
    N_COMP,
    N_PHASE,
    PRESSURE_IDX,
    SWITCH_IDX,
    W_COMP,
    W_PHASE,
    Formulation,
    PhaseState,
    SecondaryVars,
)
from properties.equilibrium import EquilibriumModel
from properties.fluid_system import FluidSystem
from properties.material_law import MaterialLaw


def phase_saturations(primary, phase_state: PhaseState, formulation: Formulation) -> tuple[float, float]:
    """Return (S_w, S_n) for the given phase state."""
    if phase_state == PhaseState.WETTING_ONLY:
        return 1.0, 0.0
    if phase_state == PhaseState.NONWETTING_ONLY:
        return 0.0, 1.0
    if phase_state != PhaseState.BOTH_PHASES:
        raise ValueError(f"Invalid phase state {phase_state!r}")
    s = float(primary[SWITCH_IDX])
    if formulation == Formulation.PW_SN:
        return 1.0 - s, s
    return s, 1.0 - s


def phase_pressures(primary, capillary_pressure: float, formulation: Formulation) -> tuple[float, float]:
    """Return (p_w, p_n) with p_n - p_w = p_c."""
    p = float(primary[PRESSURE_IDX])
    if formulation == Formulation.PW_SN:
        return p, p + capillary_pressure
    return p - capillary_pressure, p


def phase_mass_fractions(
    primary,
    phase_state: PhaseState,
    pressure_n: float,
    temperature: float,
    equilibrium: EquilibriumModel,
) -> np.ndarray:
    """Mass fractions indexed [component, phase]."""
    X = np.empty((2, 2), dtype=np.float64)
    if phase_state == PhaseState.WETTING_ONLY:
        X[N_COMP, W_PHASE] = float(primary[SWITCH_IDX])
        X[W_COMP, N_PHASE] = equilibrium.x_wn(pressure_n, temperature)
    elif phase_state == PhaseState.NONWETTING_ONLY:
        X[W_COMP, N_PHASE] = float(primary[SWITCH_IDX])
        X[N_COMP, W_PHASE] = equilibrium.x_aw(pressure_n, temperature)
    else:
        X[N_COMP, W_PHASE] = equilibrium.x_aw(pressure_n, temperature)
        X[W_COMP, N_PHASE] = equilibrium.x_wn(pressure_n, temperature)
    X[W_COMP, W_PHASE] = 1.0 - X[N_COMP, W_PHASE]
    X[N_COMP, N_PHASE] = 1.0 - X[W_COMP, N_PHASE]
    return X


@dataclass(slots=True)
class SecondaryVarsEvaluator:
    """Binds the material collaborators once; evaluate() is a pure function of its arguments."""

    formulation: Formulation
    fluid: FluidSystem
    material: MaterialLaw
    equilibrium: EquilibriumModel

    def evaluate(
        self,
        primary,
        phase_state: PhaseState,
        *,
        temperature: float,
        porosity: float,
        position=None,
        element=None,
        local_position=None,
    ) -> SecondaryVars:
        sw, sn = phase_saturations(primary, phase_state, self.formulation)
        pc = float(self.material.pc(sw, position, element, local_position, temperature))
        pw, pn = phase_pressures(primary, pc, self.formulation)
        X = phase_mass_fractions(primary, phase_state, pn, temperature, self.equilibrium)

        pressure = np.array([pw, pn], dtype=np.float64)
        density = np.empty(2, dtype=np.float64)
        mobility = np.empty(2, dtype=np.float64)
        diffusion = np.empty(2, dtype=np.float64)
        kr = (self.material.krw(sw), self.material.krn(sw))
        for phase in (W_PHASE, N_PHASE):
            density[phase] = self.fluid.density(phase, pressure[phase], temperature)
            mobility[phase] = kr[phase] / self.fluid.viscosity(phase, pressure[phase], temperature)
            diffusion[phase] = self.fluid.diffusion_coefficient(phase, pressure[phase], temperature)

        return SecondaryVars(
            density=density,
            saturation=np.array([sw, sn], dtype=np.float64),
            mobility=mobility,
            mass_fraction=X,
            pressure=pressure,
            capillary_pressure=pc,
            porosity=float(porosity),
            temperature=float(temperature),
            diffusion_coefficient=diffusion,
        )


def element_secondary_vars(
    evaluator: SecondaryVarsEvaluator,
    problem,
    element,
    solution: np.ndarray,
    phase_states,
) -> list[SecondaryVars]:
    """
    Evaluate one element cache, one SecondaryVars per local vertex.

    phase_states is indexed by global vertex index; pass the old phase states and the
    previous solution to build the previous-time-level cache.
    """
    temperature = problem.temperature()
    out = []
    for k, v in enumerate(element.vertices):
        pos = element.corners[k]
        out.append(
            evaluator.evaluate(
                solution[v],
                phase_states[v],
                temperature=temperature,
                porosity=problem.porosity(pos),
                position=pos,
                element=element,
                local_position=element.local_corners[k],
            )
        )
    return out
