"""
Problem hooks consumed by the local residual, the phase switch and the model.

ProblemBase forwards every element/vertex-level hook to a position-level hook
(`*_at_pos`). The position-level hooks have no sensible default for these physics:
calling one that a concrete problem did not override raises ProblemConfigurationError.

Sign conventions:
- neumann: mass flux per equation [kg/(m^2 s)] through the boundary, positive = outflow.
- source: mass rate per equation [kg/(m^3 s)], positive = mass is created.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

import numpy as np

from core.grid import BoundarySegment, BoxMesh, ElementGeometry
from core.types import NUM_EQ, CaseConfig, PhaseState
from parallel.reduction import Reduction, SerialReduction


class ProblemConfigurationError(RuntimeError):
    """A required problem hook was not provided."""


class BoundaryTypes:
    """Per-equation boundary condition kind of one boundary vertex."""

    DIRICHLET = "dirichlet"
    NEUMANN = "neumann"

    def __init__(self, num_eq: int = NUM_EQ) -> None:
        self._types: List[str] = [self.NEUMANN] * num_eq

    def set_all_neumann(self) -> None:
        self._types = [self.NEUMANN] * len(self._types)

    def set_all_dirichlet(self) -> None:
        self._types = [self.DIRICHLET] * len(self._types)

    def set_dirichlet(self, eq_idx: int) -> None:
        self._types[eq_idx] = self.DIRICHLET

    def set_neumann(self, eq_idx: int) -> None:
        self._types[eq_idx] = self.NEUMANN

    def is_dirichlet(self, eq_idx: int) -> bool:
        return self._types[eq_idx] == self.DIRICHLET

    def has_dirichlet(self) -> bool:
        return self.DIRICHLET in self._types

    def __repr__(self) -> str:
        return f"BoundaryTypes({self._types})"


@runtime_checkable
class Problem(Protocol):
    """Capabilities the core requires from a concrete problem."""

    def temperature(self) -> float: ...

    def gravity(self) -> np.ndarray: ...

    def porosity(self, position) -> float: ...

    def permeability(self, position) -> np.ndarray: ...

    def boundary_types(self, vertex_idx: int, position) -> BoundaryTypes: ...

    def dirichlet(self, vertex_idx: int, position) -> np.ndarray: ...

    def neumann(self, element: ElementGeometry, segment: BoundarySegment) -> np.ndarray: ...

    def source(self, element: ElementGeometry, scv_idx: int) -> np.ndarray: ...

    def initial(self, vertex_idx: int, position) -> np.ndarray: ...

    def initial_phase_state(self, vertex_idx: int, position) -> PhaseState: ...


class ProblemBase:
    """
    Common problem functionality: soil data, gravity, bounding box, hook forwarding.

    Subclasses override the `*_at_pos` hooks they need (or the element-level hooks
    directly when position alone is not enough).
    """

    def __init__(
        self,
        mesh: BoxMesh,
        *,
        temperature: float,
        porosity: float,
        permeability: float | np.ndarray,
        gravity=None,
        reduction: Optional[Reduction] = None,
    ) -> None:
        self.mesh = mesh
        self.reduction = reduction if reduction is not None else SerialReduction()
        self._temperature = float(temperature)
        self._porosity = float(porosity)
        K = np.asarray(permeability, dtype=np.float64)
        if K.ndim == 0:
            K = float(K) * np.eye(mesh.dim)
        if K.shape != (mesh.dim, mesh.dim):
            raise ValueError(f"permeability shape {K.shape} != ({mesh.dim}, {mesh.dim})")
        self._K = K
        g = np.zeros(mesh.dim) if gravity is None else np.asarray(gravity, dtype=np.float64)
        if g.shape != (mesh.dim,):
            raise ValueError(f"gravity shape {g.shape} != ({mesh.dim},)")
        self._gravity = g

        # bounding box of the whole domain
        pos = mesh.vertex_positions[mesh.local_vertices]
        bbox_min = np.min(pos, axis=0)
        bbox_max = np.max(pos, axis=0)
        if self.reduction.size > 1:
            bbox_min = np.asarray(self.reduction.reduce_min(bbox_min))
            bbox_max = np.asarray(self.reduction.reduce_max(bbox_max))
        self.bbox_min = bbox_min
        self.bbox_max = bbox_max

    # -- soil / fluid scalars ------------------------------------------------
    def temperature(self) -> float:
        return self._temperature

    def gravity(self) -> np.ndarray:
        return self._gravity

    def porosity(self, position) -> float:
        return self._porosity

    def permeability(self, position) -> np.ndarray:
        return self._K

    # -- element/vertex hooks forwarding to position hooks ---------------------
    def boundary_types(self, vertex_idx: int, position) -> BoundaryTypes:
        return self.boundary_types_at_pos(position)

    def dirichlet(self, vertex_idx: int, position) -> np.ndarray:
        return np.asarray(self.dirichlet_at_pos(position), dtype=np.float64)

    def neumann(self, element: ElementGeometry, segment: BoundarySegment) -> np.ndarray:
        return np.asarray(self.neumann_at_pos(segment.position), dtype=np.float64)

    def source(self, element: ElementGeometry, scv_idx: int) -> np.ndarray:
        return np.asarray(self.source_at_pos(element.corners[scv_idx]), dtype=np.float64)

    def initial(self, vertex_idx: int, position) -> np.ndarray:
        return np.asarray(self.initial_at_pos(position), dtype=np.float64)

    def initial_phase_state(self, vertex_idx: int, position) -> PhaseState:
        return PhaseState(self.initial_phase_state_at_pos(position))

    # -- position hooks: no defaults -----------------------------------------
    def boundary_types_at_pos(self, position) -> BoundaryTypes:
        raise ProblemConfigurationError("The problem does not provide a boundary_types_at_pos() method.")

    def dirichlet_at_pos(self, position) -> np.ndarray:
        raise ProblemConfigurationError(
            "The problem declares some boundary segments are dirichlet, "
            "but does not provide a dirichlet_at_pos() method."
        )

    def neumann_at_pos(self, position) -> np.ndarray:
        raise ProblemConfigurationError(
            "The problem declares some boundary segments are neumann, "
            "but does not provide a neumann_at_pos() method."
        )

    def source_at_pos(self, position) -> np.ndarray:
        raise ProblemConfigurationError("The problem does not provide a source_at_pos() method.")

    def initial_at_pos(self, position) -> np.ndarray:
        raise ProblemConfigurationError("The problem does not provide an initial_at_pos() method.")

    def initial_phase_state_at_pos(self, position) -> PhaseState:
        raise ProblemConfigurationError("The problem does not provide an initial_phase_state_at_pos() method.")

    def on_left_boundary(self, position, eps: float = 1.0e-10) -> bool:
        return bool(position[0] < self.bbox_min[0] + eps)

    def on_right_boundary(self, position, eps: float = 1.0e-10) -> bool:
        return bool(position[0] > self.bbox_max[0] - eps)


class ConfiguredProblem(ProblemBase):
    """Problem fully described by a CaseConfig (uniform initial state, simple boundaries)."""

    def __init__(self, cfg: CaseConfig, mesh: BoxMesh, reduction: Optional[Reduction] = None) -> None:
        super().__init__(
            mesh,
            temperature=cfg.problem.temperature,
            porosity=cfg.soil.porosity,
            permeability=cfg.soil.permeability,
            gravity=cfg.model.gravity,
            reduction=reduction,
        )
        self.cfg = cfg
        self._initial = np.asarray(cfg.problem.initial_values, dtype=np.float64)
        self._injection = np.asarray(cfg.problem.injection_rate, dtype=np.float64)
        if self._injection.shape != (NUM_EQ,):
            raise ValueError(f"injection_rate must have {NUM_EQ} entries, got {self._injection.shape}")
        vidx = cfg.problem.injection_vertex
        if vidx is not None and not 0 <= vidx < mesh.num_vertices:
            raise ValueError(f"injection_vertex {vidx} outside [0, {mesh.num_vertices})")
        self._injection_pos = None if vidx is None else mesh.vertex_positions[vidx]

    def boundary_types_at_pos(self, position) -> BoundaryTypes:
        bc = BoundaryTypes()
        if self.cfg.problem.boundary == "dirichlet_left_right" and (
            self.on_left_boundary(position) or self.on_right_boundary(position)
        ):
            bc.set_all_dirichlet()
        return bc

    def dirichlet_at_pos(self, position) -> np.ndarray:
        if self.on_left_boundary(position):
            return np.asarray(self.cfg.problem.left_values, dtype=np.float64)
        return np.asarray(self.cfg.problem.right_values, dtype=np.float64)

    def neumann_at_pos(self, position) -> np.ndarray:
        return np.zeros(NUM_EQ)

    def source_at_pos(self, position) -> np.ndarray:
        if self._injection_pos is not None and np.allclose(position, self._injection_pos):
            return self._injection.copy()
        return np.zeros(NUM_EQ)

    def initial_at_pos(self, position) -> np.ndarray:
        return self._initial.copy()

    def initial_phase_state_at_pos(self, position) -> PhaseState:
        return self.cfg.problem.initial_phase_state
