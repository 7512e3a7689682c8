"""
Visualization fields, global residual boundary handling and the FD Jacobian.

Tests:
1. All literal vertex field names are produced; element velocity follows the pressure drop
2. Dirichlet rows of the residual are u - u_D and identity rows in the Jacobian
3. Jacobian columns agree with global finite differences of the residual
4. Fields write to .npz and only rank 0 writes
"""

from __future__ import annotations

import numpy as np
import pytest

from assembly.model import TwoPTwoCModel
from core.grid import build_line_mesh, build_rectangle_mesh
from core.types import CaseConfig, CaseMeta, GeometryConfig, ModelConfig, ProblemConfig
from output.fields import VERTEX_FIELDS, write_fields_npz
from physics.problem import ConfiguredProblem
from properties.equilibrium import ConstantEquilibrium
from properties.fluid_system import ConstantFluidSystem
from properties.material_law import LinearCapillary


def test_vertex_and_element_fields(model_factory):
    model = model_factory(n_cells=1)
    u = np.array([[2.0e5, 0.3], [1.0e5, 0.3]])
    fields = model.vtk_fields(u)

    for name in VERTEX_FIELDS:
        assert fields[name].shape == (2,)
    assert set(fields) == set(VERTEX_FIELDS) | {"Vx"}
    assert fields["pW"] == pytest.approx([2.0e5, 1.0e5])
    assert fields["SN"] == pytest.approx([0.3, 0.3])
    assert fields["XaW"] == pytest.approx([2.0e-5, 2.0e-5])
    assert fields["XwN"] == pytest.approx([0.02, 0.02])
    assert fields["phase state"] == pytest.approx([2.0, 2.0])
    assert fields["T"] == pytest.approx([283.15, 283.15])
    assert fields["Vx"] == pytest.approx([0.7 / 1.0e-3 * 1.0e-12 * 1.0e5])


def test_rectangle_fields_have_two_velocity_components(model_factory):
    model = model_factory(mesh=build_rectangle_mesh([1.0, 1.0], [2, 2]))
    fields = model.vtk_fields(model.initial_solution())
    assert "Vy" in fields and "Vz" not in fields
    assert fields["Vx"] == pytest.approx(np.zeros(4))


def _dirichlet_model():
    cfg = CaseConfig(
        case=CaseMeta(id="d"),
        model=ModelConfig(gravity=[0.0]),
        problem=ProblemConfig(
            initial_values=[1.0e5, 0.3],
            boundary="dirichlet_left_right",
            left_values=[2.0e5, 0.3],
            right_values=[1.0e5, 0.3],
        ),
        geometry=GeometryConfig(dim=1, lengths=[1.0], cells=[3]),
    )
    mesh = build_line_mesh(1.0, 3)
    model = TwoPTwoCModel(
        cfg.model,
        mesh,
        ConfiguredProblem(cfg, mesh),
        ConstantFluidSystem(),
        LinearCapillary(0.0, 0.0),
        ConstantEquilibrium(0.02, 2.0e-5),
    )
    model.init_static_data()
    return model


def test_dirichlet_rows():
    model = _dirichlet_model()
    u = model.initial_solution()
    u[:, 0] = [1.9e5, 1.6e5, 1.3e5, 1.05e5]
    res = model.global_residual(u, u, 1.0)
    assert res[0] == pytest.approx([1.9e5 - 2.0e5, 0.0])
    assert res[3] == pytest.approx([1.05e5 - 1.0e5, 0.0])

    J, diag = model.jacobian(u, u, 1.0)
    assert diag["n_dirichlet_rows"] == 4
    dense = J.toarray()
    expected = np.zeros(8)
    expected[0] = 1.0
    assert dense[0] == pytest.approx(expected)


def test_jacobian_matches_global_differences(model_factory):
    model = model_factory(n_cells=3)
    u_old = model.initial_solution()
    u = u_old.copy()
    u[:, 0] = [1.3e5, 1.2e5, 1.1e5, 1.0e5]
    u[:, 1] = [0.2, 0.3, 0.4, 0.5]
    dt = 1.0

    J, diag = model.jacobian(u, u_old, dt, eps=1.0e-7)
    assert J.shape == (8, 8)
    assert diag["n_res_evals"] == 3 * (1 + 4)

    F0 = model.global_residual(u, u_old, dt).ravel()
    dense = J.toarray()
    for v, k in [(0, 0), (1, 1), (3, 0)]:
        h = 1.0e-7 * max(1.0, abs(u[v, k]))
        up = u.copy()
        up[v, k] += h
        col = (model.global_residual(up, u_old, dt).ravel() - F0) / h
        assert dense[:, v * 2 + k] == pytest.approx(col, rel=1e-5, abs=1e-9)
    # vertex 0 does not couple to vertex 3
    assert dense[0, 3 * 2] == 0.0


def test_write_fields_npz(tmp_path, model_factory):
    model = model_factory(n_cells=2)
    fields = model.vtk_fields(model.initial_solution())
    path = write_fields_npz(tmp_path / "f" / "fields.npz", fields)
    data = np.load(path)
    assert data["pN"] == pytest.approx(np.full(3, 1.0e5))
    assert write_fields_npz(tmp_path / "other.npz", fields, rank=1) is None
    assert not (tmp_path / "other.npz").exists()
