"""
Per-face flux variables of the box scheme.

For sub-control-volume face k of an element (between local vertices i and j):
    density_at_ip[α]   = (ρ_i[α] + ρ_j[α]) / 2
    potential_grad[α]  = Σ_v ∇N_v(ip) p_v[α] - density_at_ip[α] g
    darcy_normal[α]    = -(K_f potential_grad[α]) · n      (n area-scaled, i -> j)
    upstream[α]        = i if darcy_normal[α] >= 0 else j
    concentration_grad = Σ_v ∇N_v(ip) X_v  for the dissolved component of each phase
                         (nonwetting component in the wetting phase, wetting component in the nonwetting phase)
    diff_coeff_pm[α]   = mean over i, j of φ S_α τ D_α   (τ Millington-Quirk or 1)

K_f is the entry-wise harmonic mean of the vertex permeability tensors at i and j.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from core.grid import ElementGeometry
from core.types import N_COMP, N_PHASE, W_COMP, W_PHASE, FluxVars, SecondaryVars


def harmonic_mean_tensor(K_i: np.ndarray, K_j: np.ndarray) -> np.ndarray:
    """Entry-wise harmonic mean; entries where either side is zero give zero."""
    K_i = np.asarray(K_i, dtype=np.float64)
    K_j = np.asarray(K_j, dtype=np.float64)
    denom = K_i + K_j
    out = np.zeros_like(denom)
    mask = (K_i * K_j) > 0.0
    out[mask] = 2.0 * K_i[mask] * K_j[mask] / denom[mask]
    return out


def porous_medium_diffusion(vars_: SecondaryVars, phase: int, tortuosity: str) -> float:
    poro = vars_.porosity
    sat = max(float(vars_.saturation[phase]), 0.0)
    if tortuosity == "none":
        tau = 1.0
    else:
        tau = (poro * sat) ** (7.0 / 3.0) / (poro * poro)
    return poro * sat * tau * float(vars_.diffusion_coefficient[phase])


def compute_flux_vars(
    element: ElementGeometry,
    face_idx: int,
    elem_vars: Sequence[SecondaryVars],
    permeability: Sequence[np.ndarray],
    gravity: np.ndarray,
    *,
    tortuosity: str = "millington_quirk",
) -> FluxVars:
    """
    Evaluate the flux variables of one face.

    Parameters
    ----------
    element : ElementGeometry
    face_idx : int
        Index into element.faces.
    elem_vars : sequence of SecondaryVars
        Current-time-level variables of every local vertex of the element.
    permeability : sequence of (dim, dim) arrays
        Intrinsic permeability at every local vertex.
    gravity : (dim,) array
    """
    face = element.faces[face_idx]
    i, j = face.i, face.j
    vi, vj = elem_vars[i], elem_vars[j]
    dim = face.normal.shape[0]
    g = np.asarray(gravity, dtype=np.float64)
    if g.shape != (dim,):
        raise ValueError(f"gravity shape {g.shape} != ({dim},)")

    K = harmonic_mean_tensor(permeability[i], permeability[j])

    density_ip = 0.5 * (vi.density + vj.density)
    potential_grad = np.zeros((2, dim), dtype=np.float64)
    conc_grad = np.zeros((2, dim), dtype=np.float64)
    for k, vk in enumerate(elem_vars):
        grad = face.grad_n[k]
        potential_grad[W_PHASE] += grad * vk.pressure[W_PHASE]
        potential_grad[N_PHASE] += grad * vk.pressure[N_PHASE]
        conc_grad[W_PHASE] += grad * vk.mass_fraction[N_COMP, W_PHASE]
        conc_grad[N_PHASE] += grad * vk.mass_fraction[W_COMP, N_PHASE]

    darcy_normal = np.empty(2, dtype=np.float64)
    upstream = [i, i]
    downstream = [j, j]
    diff_pm = np.empty(2, dtype=np.float64)
    for phase in (W_PHASE, N_PHASE):
        potential_grad[phase] -= density_ip[phase] * g
        darcy_normal[phase] = -float(np.dot(K @ potential_grad[phase], face.normal))
        if darcy_normal[phase] < 0.0:
            upstream[phase], downstream[phase] = j, i
        diff_pm[phase] = 0.5 * (
            porous_medium_diffusion(vi, phase, tortuosity) + porous_medium_diffusion(vj, phase, tortuosity)
        )

    return FluxVars(
        upstream_idx=upstream,
        downstream_idx=downstream,
        darcy_normal=darcy_normal,
        diff_coeff_pm=diff_pm,
        concentration_grad=conc_grad,
        density_at_ip=density_ip,
        normal=np.asarray(face.normal, dtype=np.float64),
        potential_grad=potential_grad,
        permeability=K,
    )
