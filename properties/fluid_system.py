"""
Fluid systems: phase densities, viscosities, diffusion coefficients and molar masses.

- ConstantFluidSystem: constant properties from the fluid block (tests, simple cases).
- H2OAirFluidSystem: liquid water / air, properties from CoolProp.

Fluid systems only evaluate; they never cache per-vertex data.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import numpy as np
import CoolProp.CoolProp as CP

from core.types import FluidConfig, N_COMP, N_PHASE, W_COMP, W_PHASE

logger = logging.getLogger(__name__)

# Binary diffusion of water vapour in air at 273.15 K and 1e5 Pa [m^2/s]
D_VAPOUR_AIR_REF = 2.13e-5
D_WATER_LIQUID = 2.0e-9


@runtime_checkable
class FluidSystem(Protocol):
    def density(self, phase_idx: int, pressure: float, temperature: float) -> float: ...

    def viscosity(self, phase_idx: int, pressure: float, temperature: float) -> float: ...

    def diffusion_coefficient(self, phase_idx: int, pressure: float, temperature: float) -> float: ...

    def molar_mass(self, comp_idx: int) -> float: ...


def _check_phase(phase_idx: int) -> None:
    if phase_idx not in (W_PHASE, N_PHASE):
        raise ValueError(f"Invalid phase index {phase_idx}")


class ConstantFluidSystem:
    """Constant densities, viscosities and diffusion coefficients."""

    def __init__(
        self,
        density=(1000.0, 1.2),
        viscosity=(1.0e-3, 1.8e-5),
        diffusion=(2.0e-9, 2.6e-5),
        molar_mass=(0.018015, 0.028964),
    ) -> None:
        self._rho = np.asarray(density, dtype=np.float64)
        self._mu = np.asarray(viscosity, dtype=np.float64)
        self._D = np.asarray(diffusion, dtype=np.float64)
        self._M = np.asarray(molar_mass, dtype=np.float64)
        for name, arr in (("density", self._rho), ("viscosity", self._mu), ("molar_mass", self._M)):
            if arr.shape != (2,) or np.any(arr <= 0.0):
                raise ValueError(f"{name} must hold two positive entries, got {arr}")
        if self._D.shape != (2,) or np.any(self._D < 0.0):
            raise ValueError(f"diffusion must hold two non-negative entries, got {self._D}")

    @classmethod
    def from_config(cls, cfg: FluidConfig) -> "ConstantFluidSystem":
        return cls(
            density=(cfg.density_w, cfg.density_n),
            viscosity=(cfg.viscosity_w, cfg.viscosity_n),
            diffusion=(cfg.diffusion_w, cfg.diffusion_n),
            molar_mass=(cfg.molar_mass_w, cfg.molar_mass_n),
        )

    def density(self, phase_idx: int, pressure: float, temperature: float) -> float:
        _check_phase(phase_idx)
        return float(self._rho[phase_idx])

    def viscosity(self, phase_idx: int, pressure: float, temperature: float) -> float:
        _check_phase(phase_idx)
        return float(self._mu[phase_idx])

    def diffusion_coefficient(self, phase_idx: int, pressure: float, temperature: float) -> float:
        _check_phase(phase_idx)
        return float(self._D[phase_idx])

    def molar_mass(self, comp_idx: int) -> float:
        return float(self._M[comp_idx])


class H2OAirFluidSystem:
    """
    Liquid water (wetting) and air (nonwetting) with CoolProp properties.

    Water density/viscosity are taken on the saturated-liquid line at T; air
    density/viscosity at (p, T). Gas diffusion follows the usual T^1.8 / p scaling.
    """

    def __init__(self, backend: str = "") -> None:
        self.water = f"{backend}::Water" if backend else "Water"
        self.air = f"{backend}::Air" if backend else "Air"
        self._M = (
            float(CP.PropsSI("M", self.water)),
            float(CP.PropsSI("M", self.air)),
        )

    @staticmethod
    def _check_state(pressure: float, temperature: float) -> None:
        if not np.isfinite(pressure) or pressure <= 0.0:
            raise ValueError(f"Invalid pressure {pressure!r} for fluid property evaluation")
        if not np.isfinite(temperature) or temperature <= 0.0:
            raise ValueError(f"Invalid temperature {temperature!r} for fluid property evaluation")

    def density(self, phase_idx: int, pressure: float, temperature: float) -> float:
        _check_phase(phase_idx)
        self._check_state(pressure, temperature)
        if phase_idx == W_PHASE:
            return float(CP.PropsSI("D", "T", temperature, "Q", 0, self.water))
        return float(CP.PropsSI("D", "T", temperature, "P", pressure, self.air))

    def viscosity(self, phase_idx: int, pressure: float, temperature: float) -> float:
        _check_phase(phase_idx)
        self._check_state(pressure, temperature)
        if phase_idx == W_PHASE:
            return float(CP.PropsSI("V", "T", temperature, "Q", 0, self.water))
        return float(CP.PropsSI("V", "T", temperature, "P", pressure, self.air))

    def diffusion_coefficient(self, phase_idx: int, pressure: float, temperature: float) -> float:
        _check_phase(phase_idx)
        self._check_state(pressure, temperature)
        if phase_idx == W_PHASE:
            return D_WATER_LIQUID
        return D_VAPOUR_AIR_REF * (temperature / 273.15) ** 1.8 * (1.0e5 / pressure)

    def molar_mass(self, comp_idx: int) -> float:
        if comp_idx not in (W_COMP, N_COMP):
            raise ValueError(f"Invalid component index {comp_idx}")
        return self._M[comp_idx]


def build_fluid_system(cfg: FluidConfig) -> FluidSystem:
    if cfg.system == "constant":
        return ConstantFluidSystem.from_config(cfg)
    if cfg.system == "h2o_air":
        logger.info("Using CoolProp-backed H2O/air fluid system.")
        return H2OAirFluidSystem()
    raise ValueError(f"Unknown fluid system '{cfg.system}'")
