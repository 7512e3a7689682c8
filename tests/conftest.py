"""
Shared builders for the box-model tests.

All tests use constant fluid properties, constant equilibrium bounds and a linear
capillary law with zero capillary pressure unless a test passes its own collaborators.
"""

from __future__ import annotations

import numpy as np
import pytest

from assembly.model import TwoPTwoCModel
from core.grid import build_line_mesh
from core.types import Formulation, ModelConfig, PhaseState
from physics.problem import BoundaryTypes, ProblemBase
from properties.equilibrium import ConstantEquilibrium
from properties.fluid_system import ConstantFluidSystem
from properties.material_law import LinearCapillary


class ClosedProblem(ProblemBase):
    """No-flow boundaries, optional per-vertex source, uniform initial data."""

    def __init__(self, mesh, *, initial=(1.0e5, 0.3), phase_state=PhaseState.BOTH_PHASES, source=None, **kwargs):
        kwargs.setdefault("temperature", 283.15)
        kwargs.setdefault("porosity", 0.3)
        kwargs.setdefault("permeability", 1.0e-12)
        super().__init__(mesh, **kwargs)
        self._initial = np.asarray(initial, dtype=np.float64)
        self._phase_state = phase_state
        self._source = {} if source is None else dict(source)

    def boundary_types_at_pos(self, position):
        return BoundaryTypes()

    def neumann_at_pos(self, position):
        return np.zeros(2)

    def source(self, element, scv_idx):
        return np.asarray(self._source.get(element.vertices[scv_idx], np.zeros(2)), dtype=np.float64)

    def initial_at_pos(self, position):
        return self._initial.copy()

    def initial_phase_state_at_pos(self, position):
        return self._phase_state


def make_model(
    *,
    n_cells: int = 4,
    length: float = 1.0,
    formulation=Formulation.PW_SN,
    alpha: float = 1.0,
    phase_state=PhaseState.BOTH_PHASES,
    initial=(1.0e5, 0.3),
    material=None,
    equilibrium=None,
    mesh=None,
    reduction=None,
    source=None,
    tortuosity: str = "millington_quirk",
):
    mesh = mesh if mesh is not None else build_line_mesh(length, n_cells)
    cfg = ModelConfig(
        formulation=formulation,
        mobility_upwind_alpha=alpha,
        gravity=[0.0] * mesh.dim,
        tortuosity=tortuosity,
    )
    problem = ClosedProblem(mesh, initial=initial, phase_state=phase_state, source=source, reduction=reduction)
    model = TwoPTwoCModel(
        cfg,
        mesh,
        problem,
        ConstantFluidSystem(),
        material if material is not None else LinearCapillary(0.0, 0.0),
        equilibrium if equilibrium is not None else ConstantEquilibrium(0.02, 2.0e-5),
        reduction,
    )
    model.init_static_data()
    return model


@pytest.fixture
def model_factory():
    return make_model
