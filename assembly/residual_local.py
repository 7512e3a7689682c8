"""
Local (element) residual of the isothermal two-phase, two-component box model.

For the sub-control volume of local vertex i the residual per component equation is

    R_i = (M_i(new) - M_i(old)) / dt * V_i
          + Σ_faces(i is face.i) F_f - Σ_faces(i is face.j) F_f
          - q_i V_i
          + Σ_boundary segments(i) g_s A_s

with M the storage per unit volume, F the face flux (positive when mass leaves i),
q the problem source and g the Neumann flux (positive = outflow).

The element caches are supplied by the caller; this module never evaluates
secondary variables itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from core.grid import ElementGeometry
from core.types import (
    N_COMP,
    N_PHASE,
    NUM_COMPONENTS,
    NUM_EQ,
    NUM_PHASES,
    W_COMP,
    W_PHASE,
    FluxVars,
    ModelConfig,
    SecondaryVars,
    comp_to_eq,
)
from physics.flux_vars import compute_flux_vars


@dataclass(slots=True)
class LocalResidual:
    """
    Element-local storage, flux and source terms.

    Call bind() with the element and both caches before using the compute_* methods.
    """

    model: ModelConfig
    problem: object
    element: ElementGeometry | None = None
    cur_vars: List[SecondaryVars] = field(default_factory=list)
    prev_vars: List[SecondaryVars] = field(default_factory=list)
    flux_vars: List[FluxVars] = field(default_factory=list)

    def bind(
        self,
        element: ElementGeometry,
        cur_vars: Sequence[SecondaryVars],
        prev_vars: Sequence[SecondaryVars],
    ) -> None:
        nv = element.num_vertices
        if len(cur_vars) != nv or len(prev_vars) != nv:
            raise ValueError(
                f"element {element.index}: caches hold {len(cur_vars)}/{len(prev_vars)} entries, expected {nv}"
            )
        self.element = element
        self.cur_vars = list(cur_vars)
        self.prev_vars = list(prev_vars)
        permeability = [self.problem.permeability(x) for x in element.corners]
        gravity = self.problem.gravity()
        self.flux_vars = [
            compute_flux_vars(element, k, self.cur_vars, permeability, gravity, tortuosity=self.model.tortuosity)
            for k in range(len(element.faces))
        ]

    def _require_element(self) -> ElementGeometry:
        if self.element is None:
            raise RuntimeError("LocalResidual.bind() must be called before evaluating terms.")
        return self.element

    def compute_storage(self, scv_idx: int, use_previous: bool = False) -> np.ndarray:
        """Component mass per unit volume of one sub-control volume."""
        self._require_element()
        vars_ = self.prev_vars[scv_idx] if use_previous else self.cur_vars[scv_idx]
        result = np.zeros(NUM_EQ, dtype=np.float64)
        for phase in range(NUM_PHASES):
            for comp in range(NUM_COMPONENTS):
                result[comp_to_eq(comp)] += (
                    vars_.density[phase] * vars_.saturation[phase] * vars_.mass_fraction[comp, phase]
                )
        result *= vars_.porosity
        return result

    def compute_advective_flux(self, face_idx: int) -> np.ndarray:
        """Upwind-weighted advective mass flux of every component over one face."""
        self._require_element()
        fv = self.flux_vars[face_idx]
        alpha = self.model.mobility_upwind_alpha
        flux = np.zeros(NUM_EQ, dtype=np.float64)
        for phase in range(NUM_PHASES):
            up = self.cur_vars[fv.upstream_idx[phase]]
            dn = self.cur_vars[fv.downstream_idx[phase]]
            v = fv.darcy_normal[phase]
            for comp in range(NUM_COMPONENTS):
                eq = comp_to_eq(comp)
                if alpha > 0.0:
                    flux[eq] += v * alpha * (
                        up.density[phase] * up.mobility[phase] * up.mass_fraction[comp, phase]
                    )
                if alpha < 1.0:
                    flux[eq] += v * (1.0 - alpha) * (
                        dn.density[phase] * dn.mobility[phase] * dn.mass_fraction[comp, phase]
                    )
        return flux

    def compute_diffusive_flux(self, face_idx: int) -> np.ndarray:
        """
        Fickian flux of the dissolved component of each phase over one face.

        The flux of the dissolved component is mirrored with opposite sign into the
        equation of the phase's main component, so the main component's own
        diffusion is not evaluated separately.
        """
        self._require_element()
        fv = self.flux_vars[face_idx]
        flux = np.zeros(NUM_EQ, dtype=np.float64)

        # nonwetting component in the wetting phase
        tmp = fv.diff_coeff_pm[W_PHASE] * fv.density_at_ip[W_PHASE] * float(
            np.dot(fv.concentration_grad[W_PHASE], fv.normal)
        )
        flux[comp_to_eq(N_COMP)] -= tmp
        flux[comp_to_eq(W_COMP)] += tmp

        # wetting component in the nonwetting phase
        tmp = fv.diff_coeff_pm[N_PHASE] * fv.density_at_ip[N_PHASE] * float(
            np.dot(fv.concentration_grad[N_PHASE], fv.normal)
        )
        flux[comp_to_eq(W_COMP)] -= tmp
        flux[comp_to_eq(N_COMP)] += tmp
        return flux

    def compute_flux(self, face_idx: int) -> np.ndarray:
        return self.compute_advective_flux(face_idx) + self.compute_diffusive_flux(face_idx)

    def compute_source(self, scv_idx: int) -> np.ndarray:
        """Problem source of one sub-control volume, per unit volume."""
        element = self._require_element()
        q = np.asarray(self.problem.source(element, scv_idx), dtype=np.float64)
        if q.shape != (NUM_EQ,):
            raise ValueError(f"source returned shape {q.shape}, expected ({NUM_EQ},)")
        return q

    def eval(self, dt: float) -> np.ndarray:
        """Residual of every local vertex of the bound element, shape (n_local, NUM_EQ)."""
        element = self._require_element()
        if dt <= 0.0:
            raise ValueError(f"dt must be positive, got {dt}")
        nv = element.num_vertices
        res = np.zeros((nv, NUM_EQ), dtype=np.float64)

        for i in range(nv):
            vol = element.scv_volumes[i]
            storage_rate = (self.compute_storage(i) - self.compute_storage(i, use_previous=True)) / dt
            res[i] += (storage_rate - self.compute_source(i)) * vol

        for k, face in enumerate(element.faces):
            flux = self.compute_flux(k)
            res[face.i] += flux
            res[face.j] -= flux

        for seg in element.boundary_segments:
            i = seg.scv_idx
            bc = self.problem.boundary_types(element.vertices[i], element.corners[i])
            if all(bc.is_dirichlet(eq) for eq in range(NUM_EQ)):
                continue
            g = np.asarray(self.problem.neumann(element, seg), dtype=np.float64)
            for eq in range(NUM_EQ):
                if not bc.is_dirichlet(eq):
                    res[i, eq] += g[eq] * seg.area
        return res
