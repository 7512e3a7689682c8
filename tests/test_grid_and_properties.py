"""
Box geometry, material laws and fluid/equilibrium property models.

Tests:
1. Line mesh: SCV volumes sum to the domain volume, shape gradients sum to zero
2. Rectangle mesh: face normals, boundary segments and volumes
3. partition_mesh ownership of shared vertices
4. Brooks-Corey / van Genuchten / linear laws: end points and monotonicity
5. Constant fluid system and equilibrium validation
6. CoolProp-backed water/air system and Henry/Raoult bounds are physically plausible
"""

from __future__ import annotations

import numpy as np
import pytest

from core.grid import build_line_mesh, build_rectangle_mesh, partition_mesh
from core.types import FluidConfig, MaterialConfig, N_COMP, N_PHASE, W_COMP, W_PHASE
from properties.equilibrium import (
    ConstantEquilibrium,
    EquilibriumError,
    build_equilibrium_model,
    mole_to_mass_fraction,
)
from properties.fluid_system import ConstantFluidSystem, build_fluid_system
from properties.material_law import BrooksCorey, LinearCapillary, VanGenuchten, build_material_law


def test_line_mesh_geometry():
    mesh = build_line_mesh(2.0, 4, cross_section=0.5)
    total = sum(el.volume for el in mesh.elements)
    assert total == pytest.approx(1.0)
    for el in mesh.elements:
        assert el.faces[0].grad_n.sum(axis=0) == pytest.approx([0.0])
    assert mesh.boundary_vertices.tolist() == [True, False, False, False, True]
    assert mesh.elements[0].boundary_segments[0].normal == pytest.approx([-1.0])


def test_rectangle_mesh_geometry():
    mesh = build_rectangle_mesh([2.0, 1.0], [2, 1])
    assert mesh.num_vertices == 6
    assert sum(el.volume for el in mesh.elements) == pytest.approx(2.0)
    el = mesh.elements[1]
    assert el.vertices == [1, 2, 4, 5]
    face = el.faces[0]
    assert (face.i, face.j) == (0, 1)
    assert face.normal == pytest.approx([0.5, 0.0])
    assert face.grad_n.sum(axis=0) == pytest.approx([0.0, 0.0])
    outward = {tuple(seg.normal) for seg in el.boundary_segments}
    assert outward == {(0.0, -1.0), (0.0, 1.0), (1.0, 0.0)}
    assert sum(seg.area for seg in el.boundary_segments) == pytest.approx(3.0)


def test_partition_mesh_ownership():
    full = build_line_mesh(1.0, 4)
    part = partition_mesh(full, 2, 4, rank=1, lower_vertices=[0, 1, 2])
    assert part.local_vertices.tolist() == [2, 3, 4]
    assert part.owned.tolist() == [False, False, False, True, True]
    with pytest.raises(ValueError, match="Invalid element range"):
        partition_mesh(full, 3, 3, rank=0)


@pytest.mark.parametrize(
    "law",
    [BrooksCorey(1.0e3, 2.0, swr=0.1), VanGenuchten(3.7e-4, 4.7, swr=0.1), LinearCapillary(1.0e3, 5.0e3, swr=0.1)],
)
def test_material_laws_monotone(law):
    sw = np.linspace(0.12, 1.0, 12)
    pc = np.array([law.pc(s, None, None, None, 283.15) for s in sw])
    krw = np.array([law.krw(s) for s in sw])
    krn = np.array([law.krn(s) for s in sw])
    assert np.all(np.diff(pc) <= 0.0)
    assert np.all(np.diff(krw) >= 0.0)
    assert np.all(np.diff(krn) <= 0.0)
    assert law.krw(1.0) == pytest.approx(1.0)
    assert law.krn(1.0) == pytest.approx(0.0)
    assert np.isfinite(law.pc(0.0, None, None, None, 283.15))


def test_material_law_factory():
    assert isinstance(build_material_law(MaterialConfig(law="van_genuchten")), VanGenuchten)
    with pytest.raises(ValueError, match="swr \\+ snr"):
        MaterialConfig(swr=0.6, snr=0.5)


def test_constant_models_validate():
    fluid = ConstantFluidSystem()
    assert fluid.density(W_PHASE, 1.0e5, 283.15) == 1000.0
    assert fluid.molar_mass(N_COMP) == pytest.approx(0.028964)
    with pytest.raises(ValueError, match="Invalid phase index"):
        fluid.viscosity(2, 1.0e5, 283.15)
    with pytest.raises(ValueError, match="density"):
        ConstantFluidSystem(density=(1000.0, 0.0))

    eq = ConstantEquilibrium(0.02, 2.0e-5)
    assert eq.x_wn(1.0e5, 283.15) == 0.02
    with pytest.raises(EquilibriumError, match="temperature"):
        eq.x_aw(1.0e5, float("nan"))
    with pytest.raises(ValueError, match="x_wn_max"):
        ConstantEquilibrium(1.5, 0.0)


def test_mole_to_mass_fraction():
    assert mole_to_mass_fraction(0.0, 0.018, 0.029) == 0.0
    assert mole_to_mass_fraction(1.0, 0.018, 0.029) == pytest.approx(1.0)
    assert mole_to_mass_fraction(0.5, 0.018, 0.029) == pytest.approx(0.018 / 0.047)


def test_h2o_air_system_plausible():
    pytest.importorskip("CoolProp")
    cfg = FluidConfig(system="h2o_air")
    fluid = build_fluid_system(cfg)
    eq = build_equilibrium_model(cfg)

    rho_w = fluid.density(W_PHASE, 1.0e5, 283.15)
    rho_n = fluid.density(N_PHASE, 1.0e5, 283.15)
    assert 990.0 < rho_w < 1010.0
    assert 1.1 < rho_n < 1.4
    assert fluid.diffusion_coefficient(N_PHASE, 2.0e5, 273.15) == pytest.approx(2.13e-5 / 2.0)
    assert fluid.molar_mass(W_COMP) == pytest.approx(0.018015, rel=1e-3)

    # vapour at 10 degC: psat ~ 1228 Pa
    x_wn = eq.x_wn(1.0e5, 283.15)
    assert 0.005 < x_wn < 0.01
    assert eq.x_wn(2.0e5, 283.15) < x_wn
    # dissolved air: O(1e-5) at 1 bar
    x_aw = eq.x_aw(1.0e5, 283.15)
    assert 5.0e-6 < x_aw < 5.0e-5
    with pytest.raises(EquilibriumError):
        eq.x_wn(0.0, 283.15)
