"""
Secondary-variable evaluation per vertex.

Tests:
1. Saturations follow the formulation in BOTH_PHASES and are fixed in single-phase states
2. Phase pressures differ by the capillary pressure
3. Mass fractions: switch slot vs. equilibrium bounds per phase state
4. evaluate() returns independent arrays on every call
5. Equilibrium failures propagate to the caller
"""

from __future__ import annotations

import numpy as np
import pytest

from core.types import N_COMP, N_PHASE, W_COMP, W_PHASE, Formulation, PhaseState
from physics.secondary_vars import (
    SecondaryVarsEvaluator,
    phase_mass_fractions,
    phase_pressures,
    phase_saturations,
)
from properties.equilibrium import ConstantEquilibrium, EquilibriumError
from properties.fluid_system import ConstantFluidSystem
from properties.material_law import BrooksCorey, LinearCapillary


def _evaluator(formulation=Formulation.PW_SN, material=None):
    return SecondaryVarsEvaluator(
        formulation,
        ConstantFluidSystem(),
        material if material is not None else LinearCapillary(0.0, 0.0),
        ConstantEquilibrium(0.02, 2.0e-5),
    )


def test_saturations_per_formulation_and_state():
    primary = np.array([1.0e5, 0.3])
    assert phase_saturations(primary, PhaseState.BOTH_PHASES, Formulation.PW_SN) == pytest.approx((0.7, 0.3))
    assert phase_saturations(primary, PhaseState.BOTH_PHASES, Formulation.PN_SW) == pytest.approx((0.3, 0.7))
    assert phase_saturations(primary, PhaseState.WETTING_ONLY, Formulation.PW_SN) == (1.0, 0.0)
    assert phase_saturations(primary, PhaseState.NONWETTING_ONLY, Formulation.PN_SW) == (0.0, 1.0)


def test_phase_pressures_capillary_offset():
    primary = np.array([1.0e5, 0.3])
    assert phase_pressures(primary, 500.0, Formulation.PW_SN) == pytest.approx((1.0e5, 1.005e5))
    assert phase_pressures(primary, 500.0, Formulation.PN_SW) == pytest.approx((0.995e5, 1.0e5))


def test_mass_fractions_per_phase_state():
    eq = ConstantEquilibrium(0.02, 2.0e-5)
    X = phase_mass_fractions(np.array([1.0e5, 1.0e-5]), PhaseState.WETTING_ONLY, 1.0e5, 283.15, eq)
    assert X[N_COMP, W_PHASE] == pytest.approx(1.0e-5)
    assert X[W_COMP, W_PHASE] == pytest.approx(1.0 - 1.0e-5)
    assert X[W_COMP, N_PHASE] == pytest.approx(0.02)

    X = phase_mass_fractions(np.array([1.0e5, 0.01]), PhaseState.NONWETTING_ONLY, 1.0e5, 283.15, eq)
    assert X[W_COMP, N_PHASE] == pytest.approx(0.01)
    assert X[N_COMP, N_PHASE] == pytest.approx(0.99)
    assert X[N_COMP, W_PHASE] == pytest.approx(2.0e-5)

    X = phase_mass_fractions(np.array([1.0e5, 0.5]), PhaseState.BOTH_PHASES, 1.0e5, 283.15, eq)
    assert X[N_COMP, W_PHASE] == pytest.approx(2.0e-5)
    assert X[W_COMP, N_PHASE] == pytest.approx(0.02)
    assert np.allclose(X.sum(axis=0), 1.0)


def test_evaluate_full_set_and_independent_results():
    ev = _evaluator(material=BrooksCorey(entry_pressure=1.0e3, lambda_=2.0))
    primary = np.array([1.0e5, 0.4])
    a = ev.evaluate(primary, PhaseState.BOTH_PHASES, temperature=283.15, porosity=0.3)
    b = ev.evaluate(primary, PhaseState.BOTH_PHASES, temperature=283.15, porosity=0.3)

    assert a.saturation == pytest.approx([0.6, 0.4])
    assert a.pressure[N_PHASE] - a.pressure[W_PHASE] == pytest.approx(a.capillary_pressure)
    assert a.capillary_pressure > 1.0e3
    assert a.mobility[W_PHASE] == pytest.approx(BrooksCorey(1.0e3, 2.0).krw(0.6) / 1.0e-3)
    assert a.porosity == 0.3 and a.temperature == 283.15

    a.density[0] = -1.0
    assert b.density[0] == pytest.approx(1000.0)
    assert a.mass_fraction is not b.mass_fraction


def test_equilibrium_error_propagates():
    ev = _evaluator()
    with pytest.raises(EquilibriumError, match="Invalid pressure"):
        ev.evaluate(np.array([-1.0, 0.3]), PhaseState.BOTH_PHASES, temperature=283.15, porosity=0.3)
