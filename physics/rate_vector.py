"""
Source/sink rates per mass-balance equation [kg/(m^3 s)] or, for boundaries, [kg/(m^2 s)].

A RateVector is a (NUM_EQ,) float64 array with helpers that convert molar and
volumetric rates of a phase into component mass rates.
"""

from __future__ import annotations

import numpy as np

from core.types import NUM_COMPONENTS, NUM_EQ, SecondaryVars, comp_to_eq


class RateVector(np.ndarray):
    """Mass rate per equation; behaves like a plain (NUM_EQ,) numpy array."""

    def __new__(cls, value=0.0):
        obj = np.empty(NUM_EQ, dtype=np.float64).view(cls)
        obj[:] = value
        return obj

    def set_mass_rate(self, value) -> None:
        """Copy per-equation mass rates [kg/s/volume or area]."""
        self[:] = np.asarray(value, dtype=np.float64)

    def set_molar_rate(self, value, fluid) -> None:
        """Set mass rates from molar rates [mol/s/...] of each component."""
        value = np.asarray(value, dtype=np.float64)
        if value.shape != (NUM_COMPONENTS,):
            raise ValueError(f"molar rate shape {value.shape} != ({NUM_COMPONENTS},)")
        for comp in range(NUM_COMPONENTS):
            self[comp_to_eq(comp)] = value[comp] * fluid.molar_mass(comp)

    def set_volumetric_rate(self, vars_: SecondaryVars, phase_idx: int, volume: float) -> None:
        """Set mass rates carried by a volumetric rate [m^3/s/...] of one phase."""
        rho = float(vars_.density[phase_idx])
        for comp in range(NUM_COMPONENTS):
            self[comp_to_eq(comp)] = rho * float(vars_.mass_fraction[comp, phase_idx]) * float(volume)
