"""
Equilibrium solubility bounds for the two-phase, two-component system.

Responsibilities:
- x_wn(p_n, T): maximum mass fraction of the wetting component in the nonwetting phase.
- x_aw(p, T): maximum mass fraction of the nonwetting component in the wetting phase.
- molar_mass(comp): component molar masses [kg/mol].

HenryRaoultEquilibrium uses Raoult's law with the CoolProp vapour pressure of water
for x_wn and Henry's law for dissolved air for x_aw, converting mole to mass fractions.
Invalid states raise EquilibriumError; callers do not catch it.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

import numpy as np
import CoolProp.CoolProp as CP

from core.types import FluidConfig, N_COMP, W_COMP


class EquilibriumError(ValueError):
    """Raised when an equilibrium bound cannot be evaluated for the given state."""


@runtime_checkable
class EquilibriumModel(Protocol):
    def x_wn(self, pressure_n: float, temperature: float) -> float: ...

    def x_aw(self, pressure: float, temperature: float) -> float: ...

    def molar_mass(self, comp_idx: int) -> float: ...


def _check_state(pressure: float, temperature: float) -> None:
    if not np.isfinite(pressure) or pressure <= 0.0:
        raise EquilibriumError(f"Invalid pressure for equilibrium bound: p={pressure!r}")
    if not np.isfinite(temperature) or temperature <= 0.0:
        raise EquilibriumError(f"Invalid temperature for equilibrium bound: T={temperature!r}")


def mole_to_mass_fraction(x: float, molar_mass_solute: float, molar_mass_solvent: float) -> float:
    """Convert a binary mole fraction of the solute to its mass fraction."""
    num = x * molar_mass_solute
    return num / (num + (1.0 - x) * molar_mass_solvent)


def henry_inverse_air_water(temperature: float) -> float:
    """Inverse Henry coefficient of air in water [1/Pa]."""
    return (0.8942 + 1.47 * math.exp(-0.04394 * (temperature - 273.15))) * 1.0e-10


class HenryRaoultEquilibrium:
    """Water/air solubility bounds (Raoult for vapour, Henry for dissolved air)."""

    def __init__(self, molar_mass_w: float = 0.018015, molar_mass_n: float = 0.028964, fluid: str = "Water") -> None:
        if molar_mass_w <= 0.0 or molar_mass_n <= 0.0:
            raise ValueError("Molar masses must be positive.")
        self._M = (float(molar_mass_w), float(molar_mass_n))
        self.fluid = fluid

    def vapour_pressure(self, temperature: float) -> float:
        psat = float(CP.PropsSI("P", "T", temperature, "Q", 0, self.fluid))
        if not np.isfinite(psat) or psat <= 0.0:
            raise EquilibriumError(f"Invalid vapour pressure psat={psat!r} at T={temperature}")
        return psat

    def x_wn(self, pressure_n: float, temperature: float) -> float:
        _check_state(pressure_n, temperature)
        y = min(self.vapour_pressure(temperature) / pressure_n, 1.0)
        return mole_to_mass_fraction(y, self._M[W_COMP], self._M[N_COMP])

    def x_aw(self, pressure: float, temperature: float) -> float:
        _check_state(pressure, temperature)
        x = min(pressure * henry_inverse_air_water(temperature), 1.0)
        return mole_to_mass_fraction(x, self._M[N_COMP], self._M[W_COMP])

    def molar_mass(self, comp_idx: int) -> float:
        return self._M[comp_idx]


class ConstantEquilibrium:
    """Pressure- and temperature-independent bounds; still rejects invalid states."""

    def __init__(self, x_wn_max: float, x_aw_max: float, molar_mass=(0.018015, 0.028964)) -> None:
        for name, value in (("x_wn_max", x_wn_max), ("x_aw_max", x_aw_max)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must lie in [0, 1], got {value}")
        self._x_wn = float(x_wn_max)
        self._x_aw = float(x_aw_max)
        self._M = (float(molar_mass[0]), float(molar_mass[1]))

    def x_wn(self, pressure_n: float, temperature: float) -> float:
        _check_state(pressure_n, temperature)
        return self._x_wn

    def x_aw(self, pressure: float, temperature: float) -> float:
        _check_state(pressure, temperature)
        return self._x_aw

    def molar_mass(self, comp_idx: int) -> float:
        return self._M[comp_idx]


def build_equilibrium_model(cfg: FluidConfig) -> EquilibriumModel:
    """Constant bounds for the constant fluid system, Henry/Raoult for h2o_air."""
    if cfg.system == "h2o_air":
        return HenryRaoultEquilibrium(cfg.molar_mass_w, cfg.molar_mass_n)
    return ConstantEquilibrium(cfg.x_wn_max, cfg.x_aw_max, molar_mass=(cfg.molar_mass_w, cfg.molar_mass_n))
