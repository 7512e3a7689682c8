"""
TwoPTwoCModel: wires configuration, mesh, problem and material collaborators.

The model owns the static vertex data (through PrimaryVarSwitch) and exposes
the operations an outer time-step controller needs:
    initial_solution / init_static_data
    update_static_data / switched
    update_old_phase_state / reset_phase_state
    global_residual / jacobian
    calculate_mass / vtk_fields
    serialize / deserialize
The controller itself (Newton loop, step-size control) lives outside this package.
"""

from __future__ import annotations

import logging
from typing import Optional, TextIO

import numpy as np

from assembly.jacobian_fd import build_fd_jacobian
from assembly.residual_global import ResidualContext, assemble_residual
from core.grid import BoxMesh
from core.types import NUM_EQ, ModelConfig, PhaseState
from output.checkpoint import read_phase_states, write_phase_states
from output.fields import build_fields
from parallel.reduction import Reduction, SerialReduction
from physics.mass_balance import calculate_mass
from physics.phase_switch import PrimaryVarSwitch
from physics.secondary_vars import SecondaryVarsEvaluator
from properties.equilibrium import EquilibriumModel
from properties.fluid_system import FluidSystem
from properties.material_law import MaterialLaw

logger = logging.getLogger(__name__)


class TwoPTwoCModel:
    """Isothermal two-phase, two-component box model."""

    def __init__(
        self,
        model: ModelConfig,
        mesh: BoxMesh,
        problem,
        fluid: FluidSystem,
        material: MaterialLaw,
        equilibrium: EquilibriumModel,
        reduction: Optional[Reduction] = None,
    ) -> None:
        if len(model.gravity) != mesh.dim:
            raise ValueError(f"gravity has {len(model.gravity)} components, mesh dim is {mesh.dim}")
        self.config = model
        self.mesh = mesh
        self.problem = problem
        self.reduction = reduction if reduction is not None else SerialReduction()
        self.evaluator = SecondaryVarsEvaluator(model.formulation, fluid, material, equilibrium)
        self.switch = PrimaryVarSwitch(model, self.evaluator, problem, mesh, self.reduction)
        self.ctx = ResidualContext(model, mesh, problem, self.evaluator, self.switch)

    # -- initialization -------------------------------------------------------
    def initial_solution(self) -> np.ndarray:
        """Primary variables from the problem's initial hook; non-local vertices are zero."""
        u = np.zeros((self.mesh.num_vertices, NUM_EQ), dtype=np.float64)
        for v in self.mesh.local_vertices:
            v = int(v)
            u[v] = self.problem.initial(v, self.mesh.vertex_positions[v])
        return u

    def init_static_data(self) -> None:
        self.switch.init_static_data()

    # -- phase state ----------------------------------------------------------
    def update_static_data(self, solution: np.ndarray) -> bool:
        return self.switch.update_static_data(solution)

    def update_old_phase_state(self) -> None:
        self.switch.update_old_phase_state()

    def reset_phase_state(self) -> None:
        self.switch.reset_phase_state()

    @property
    def switched(self) -> bool:
        return self.switch.switched

    def phase_state(self, vertex_idx: int, old: bool = False) -> PhaseState:
        return self.switch.phase_state(vertex_idx, old=old)

    # -- assembly -------------------------------------------------------------
    def global_residual(self, u: np.ndarray, u_old: np.ndarray, dt: float) -> np.ndarray:
        return assemble_residual(self.ctx, u, u_old, dt)

    def jacobian(self, u: np.ndarray, u_old: np.ndarray, dt: float, *, eps: float = 1.0e-8):
        J, diag = build_fd_jacobian(self.ctx, u, u_old, dt, eps=eps)
        return J, diag

    # -- diagnostics / output -------------------------------------------------
    def calculate_mass(self, solution: np.ndarray):
        return calculate_mass(
            self.mesh,
            solution,
            self.switch.phase_state_array(old=False),
            self.evaluator,
            self.problem,
            self.reduction,
        )

    def vtk_fields(self, solution: np.ndarray):
        return build_fields(
            self.mesh, solution, self.switch, self.evaluator, self.problem, tortuosity=self.config.tortuosity
        )

    def serialize(self, stream: TextIO) -> int:
        return write_phase_states(stream, self.switch)

    def deserialize(self, stream: TextIO) -> int:
        return read_phase_states(stream, self.switch)
