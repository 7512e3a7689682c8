"""
Primary-variable switch: per-vertex phase-state tracking.

States and the meaning of the switch slot:
- NONWETTING_ONLY: switch = X[W_COMP, N_PHASE]; the wetting phase appears when it
  exceeds x_wn(p_n, T).
- WETTING_ONLY: switch = X[N_COMP, W_PHASE]; the nonwetting phase appears when it
  exceeds x_aw(p_w, T).
- BOTH_PHASES: switch = saturation (formulation dependent); a phase disappears when
  its saturation drops to min_saturation or below.

If the bound was exceeded on the previous refresh (was_switched), the bound is
inflated by switch_hysteresis before the comparison that decides the transition.
was_switched records whether the uninflated check fired, independent of whether a
transition happened.

After all local vertices have been visited the switched flag is OR-reduced over all
partitions; callers must not rely on it before update_static_data() returns.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from core.grid import BoxMesh
from core.types import (
    N_COMP,
    N_PHASE,
    SWITCH_IDX,
    W_COMP,
    W_PHASE,
    Formulation,
    ModelConfig,
    PhaseState,
    StaticVertexData,
    check_primary_shape,
)
from parallel.reduction import Reduction, SerialReduction
from physics.secondary_vars import SecondaryVarsEvaluator

logger = logging.getLogger(__name__)


class PrimaryVarSwitch:
    """Owns the static vertex data and applies phase transitions to a solution."""

    def __init__(
        self,
        model: ModelConfig,
        evaluator: SecondaryVarsEvaluator,
        problem,
        mesh: BoxMesh,
        reduction: Optional[Reduction] = None,
    ) -> None:
        self.model = model
        self.evaluator = evaluator
        self.problem = problem
        self.mesh = mesh
        self.reduction = reduction if reduction is not None else SerialReduction()
        self.static_data: List[Optional[StaticVertexData]] = [None] * mesh.num_vertices
        self._switched = False

    # -- lifecycle -----------------------------------------------------------
    def init_static_data(self) -> None:
        """Seed every local vertex from the problem's initial phase state."""
        self._switched = False
        for v in self.mesh.local_vertices:
            v = int(v)
            state = PhaseState(self.problem.initial_phase_state(v, self.mesh.vertex_positions[v]))
            self.static_data[v] = StaticVertexData(phase_state=state, old_phase_state=state, was_switched=False)

    def update_static_data(self, solution: np.ndarray) -> bool:
        """
        Run the switch on every local vertex, mutating the switch slot of `solution`.

        Returns the globally reduced switched flag.
        """
        check_primary_shape(solution, self.mesh.num_vertices)
        local_switch = False
        for v in self.mesh.local_vertices:
            local_switch = self.primary_var_switch(solution, int(v)) or local_switch
        self._switched = self.reduction.reduce_or(local_switch)
        return self._switched

    def update_old_phase_state(self) -> None:
        """Commit the current phase states (step accepted)."""
        for data in self.static_data:
            if data is None:
                continue
            data.old_phase_state = data.phase_state
            data.was_switched = False

    def reset_phase_state(self) -> None:
        """Roll every vertex back to its committed phase state (step rejected)."""
        for data in self.static_data:
            if data is not None:
                data.phase_state = data.old_phase_state

    # -- queries -------------------------------------------------------------
    @property
    def switched(self) -> bool:
        return self._switched

    def set_switched(self, flag: bool) -> None:
        self._switched = bool(flag)

    def vertex_data(self, vertex_idx: int) -> StaticVertexData:
        data = self.static_data[vertex_idx]
        if data is None:
            raise KeyError(f"vertex {vertex_idx} has no static data on rank {self.mesh.rank}")
        return data

    def phase_state(self, vertex_idx: int, old: bool = False) -> PhaseState:
        data = self.vertex_data(vertex_idx)
        return data.old_phase_state if old else data.phase_state

    def phase_state_array(self, old: bool = False) -> List[Optional[PhaseState]]:
        """Phase state per global vertex index; None where the vertex is not local."""
        if old:
            return [None if d is None else d.old_phase_state for d in self.static_data]
        return [None if d is None else d.phase_state for d in self.static_data]

    # -- the switch ----------------------------------------------------------
    def primary_var_switch(self, solution: np.ndarray, vertex_idx: int) -> bool:
        """Evaluate one vertex; returns True if its phase state changed."""
        data = self.vertex_data(vertex_idx)
        pos = self.mesh.vertex_positions[vertex_idx]
        temperature = self.problem.temperature()
        equilibrium = self.evaluator.equilibrium

        phase_state = data.phase_state
        new_state = phase_state
        would_switch = False
        vars_ = self.evaluator.evaluate(
            solution[vertex_idx],
            phase_state,
            temperature=temperature,
            porosity=self.problem.porosity(pos),
            position=pos,
            local_position=np.zeros(self.mesh.dim),
        )
        formulation = self.model.formulation
        margin = 1.0 + self.model.switch_hysteresis

        if phase_state == PhaseState.NONWETTING_ONLY:
            x_wn_max = equilibrium.x_wn(vars_.pressure[N_PHASE], temperature)
            x_wn = vars_.mass_fraction[W_COMP, N_PHASE]
            if x_wn > x_wn_max:
                would_switch = True
            if data.was_switched:
                x_wn_max *= margin
            if x_wn > x_wn_max:
                logger.info(
                    "wetting phase appears at vertex %d, coordinates: %s, xWN/xWNmax: %g",
                    vertex_idx, pos, x_wn / x_wn_max,
                )
                new_state = PhaseState.BOTH_PHASES
                solution[vertex_idx, SWITCH_IDX] = 0.0 if formulation == Formulation.PN_SW else 1.0

        elif phase_state == PhaseState.WETTING_ONLY:
            x_aw_max = equilibrium.x_aw(vars_.pressure[W_PHASE], temperature)
            x_aw = vars_.mass_fraction[N_COMP, W_PHASE]
            if x_aw > x_aw_max:
                would_switch = True
            if data.was_switched:
                x_aw_max *= margin
            if x_aw > x_aw_max:
                logger.info(
                    "nonwetting phase appears at vertex %d, coordinates: %s, xAW/xAWmax: %g",
                    vertex_idx, pos, x_aw / x_aw_max,
                )
                new_state = PhaseState.BOTH_PHASES
                solution[vertex_idx, SWITCH_IDX] = 1.0 if formulation == Formulation.PN_SW else 0.0

        elif phase_state == PhaseState.BOTH_PHASES:
            s_min = self.model.min_saturation
            if vars_.saturation[N_PHASE] <= s_min:
                would_switch = True
                logger.info(
                    "nonwetting phase disappears at vertex %d, coordinates: %s, Sn: %g",
                    vertex_idx, pos, vars_.saturation[N_PHASE],
                )
                new_state = PhaseState.WETTING_ONLY
                solution[vertex_idx, SWITCH_IDX] = equilibrium.x_aw(vars_.pressure[N_PHASE], temperature)
            elif vars_.saturation[W_PHASE] <= s_min:
                would_switch = True
                logger.info(
                    "wetting phase disappears at vertex %d, coordinates: %s, Sw: %g",
                    vertex_idx, pos, vars_.saturation[W_PHASE],
                )
                new_state = PhaseState.NONWETTING_ONLY
                solution[vertex_idx, SWITCH_IDX] = equilibrium.x_wn(vars_.pressure[N_PHASE], temperature)

        data.phase_state = new_state
        data.was_switched = would_switch
        return phase_state != new_state
