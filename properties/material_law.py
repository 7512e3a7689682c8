"""
Capillary-pressure and relative-permeability laws.

Every law works on the wetting saturation and exposes
    pc(sw, position, element, local_position, temperature) -> capillary pressure [Pa]
    krw(sw), krn(sw) -> relative permeabilities [-]
The position/element/local_position/temperature arguments let heterogeneous laws
vary in space; the homogeneous laws below ignore them.

Near the residual wetting saturation Brooks-Corey and van Genuchten diverge; below
SWE_REG the capillary pressure is continued linearly with the slope at SWE_REG.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from core.types import MaterialConfig

SWE_REG = 1.0e-2


@runtime_checkable
class MaterialLaw(Protocol):
    def pc(self, sw: float, position, element, local_position, temperature: float) -> float: ...

    def krw(self, sw: float) -> float: ...

    def krn(self, sw: float) -> float: ...


class _EffectiveSaturation:
    def __init__(self, swr: float = 0.0, snr: float = 0.0) -> None:
        if swr < 0.0 or snr < 0.0 or swr + snr >= 1.0:
            raise ValueError(f"Invalid residual saturations swr={swr}, snr={snr}")
        self.swr = float(swr)
        self.snr = float(snr)

    def swe(self, sw: float) -> float:
        value = (float(sw) - self.swr) / (1.0 - self.swr - self.snr)
        return min(max(value, 0.0), 1.0)

    def swe_unclipped(self, sw: float) -> float:
        return (float(sw) - self.swr) / (1.0 - self.swr - self.snr)


class BrooksCorey(_EffectiveSaturation):
    """Brooks-Corey law with entry pressure pd and pore-size index lambda."""

    def __init__(self, entry_pressure: float, lambda_: float, swr: float = 0.0, snr: float = 0.0) -> None:
        super().__init__(swr, snr)
        if entry_pressure < 0.0:
            raise ValueError(f"entry_pressure must be non-negative, got {entry_pressure}")
        if lambda_ <= 0.0:
            raise ValueError(f"lambda must be positive, got {lambda_}")
        self.pd = float(entry_pressure)
        self.lam = float(lambda_)

    def _pc_swe(self, swe: float) -> float:
        return self.pd * swe ** (-1.0 / self.lam)

    def pc(self, sw, position=None, element=None, local_position=None, temperature=None) -> float:
        swe = self.swe_unclipped(sw)
        if swe >= 1.0:
            return self.pd
        if swe < SWE_REG:
            slope = -self.pd / self.lam * SWE_REG ** (-1.0 / self.lam - 1.0)
            return self._pc_swe(SWE_REG) + slope * (swe - SWE_REG)
        return self._pc_swe(swe)

    def krw(self, sw: float) -> float:
        swe = self.swe(sw)
        return swe ** ((2.0 + 3.0 * self.lam) / self.lam)

    def krn(self, sw: float) -> float:
        swe = self.swe(sw)
        return (1.0 - swe) ** 2 * (1.0 - swe ** ((2.0 + self.lam) / self.lam))


class VanGenuchten(_EffectiveSaturation):
    """Van Genuchten / Mualem law, m = 1 - 1/n."""

    def __init__(self, alpha: float, n: float, swr: float = 0.0, snr: float = 0.0) -> None:
        super().__init__(swr, snr)
        if alpha <= 0.0:
            raise ValueError(f"alpha must be positive, got {alpha}")
        if n <= 1.0:
            raise ValueError(f"n must be > 1, got {n}")
        self.alpha = float(alpha)
        self.n = float(n)
        self.m = 1.0 - 1.0 / self.n

    def _pc_swe(self, swe: float) -> float:
        return (swe ** (-1.0 / self.m) - 1.0) ** (1.0 / self.n) / self.alpha

    def _dpc_dswe(self, swe: float) -> float:
        inner = swe ** (-1.0 / self.m) - 1.0
        return (
            -1.0 / (self.alpha * self.n * self.m)
            * inner ** (1.0 / self.n - 1.0)
            * swe ** (-1.0 / self.m - 1.0)
        )

    def pc(self, sw, position=None, element=None, local_position=None, temperature=None) -> float:
        swe = self.swe_unclipped(sw)
        if swe >= 1.0:
            return 0.0
        if swe < SWE_REG:
            return self._pc_swe(SWE_REG) + self._dpc_dswe(SWE_REG) * (swe - SWE_REG)
        return self._pc_swe(swe)

    def krw(self, sw: float) -> float:
        swe = self.swe(sw)
        return float(np.sqrt(swe) * (1.0 - (1.0 - swe ** (1.0 / self.m)) ** self.m) ** 2)

    def krn(self, sw: float) -> float:
        swe = self.swe(sw)
        return (1.0 - swe) ** (1.0 / 3.0) * (1.0 - swe ** (1.0 / self.m)) ** (2.0 * self.m)


class LinearCapillary(_EffectiveSaturation):
    """Linear pc between entry pressure (swe=1) and max_pc (swe=0), linear kr."""

    def __init__(self, entry_pressure: float = 0.0, max_pc: float = 0.0, swr: float = 0.0, snr: float = 0.0) -> None:
        super().__init__(swr, snr)
        self.entry = float(entry_pressure)
        self.max_pc = float(max_pc)

    def pc(self, sw, position=None, element=None, local_position=None, temperature=None) -> float:
        swe = self.swe(sw)
        return self.entry + (self.max_pc - self.entry) * (1.0 - swe)

    def krw(self, sw: float) -> float:
        return self.swe(sw)

    def krn(self, sw: float) -> float:
        return 1.0 - self.swe(sw)


def build_material_law(cfg: MaterialConfig) -> MaterialLaw:
    """Construct the material law named in the material block."""
    if cfg.law == "brooks_corey":
        return BrooksCorey(cfg.entry_pressure, cfg.lambda_, swr=cfg.swr, snr=cfg.snr)
    if cfg.law == "van_genuchten":
        return VanGenuchten(cfg.vg_alpha, cfg.vg_n, swr=cfg.swr, snr=cfg.snr)
    if cfg.law == "linear":
        return LinearCapillary(cfg.entry_pressure, cfg.max_pc, swr=cfg.swr, snr=cfg.snr)
    raise ValueError(f"Unknown material law '{cfg.law}'")
