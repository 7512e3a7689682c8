"""
Strongly typed containers for case configuration, per-vertex state, secondary variables and flux data.

Global shape and index conventions (law of the land):
- Two phases: W_PHASE = 0 (wetting), N_PHASE = 1 (nonwetting)
- Two components: W_COMP = 0 (wetting component), N_COMP = 1 (nonwetting component)
- Primary vector per vertex: [PRESSURE_IDX, SWITCH_IDX]; one mass balance per component,
  equation index == component index
- mass_fraction.shape == (2, 2), indexed [component, phase]
- Face normals are area-scaled and point from local vertex i to local vertex j
- Face fluxes are positive when mass leaves the sub-control volume of vertex i
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray

FloatArray = NDArray[np.float64]

NUM_PHASES = 2
NUM_COMPONENTS = 2
NUM_EQ = 2

W_PHASE = 0
N_PHASE = 1
W_COMP = 0
N_COMP = 1

PRESSURE_IDX = 0
SWITCH_IDX = 1


def comp_to_eq(comp_idx: int) -> int:
    """Equation index of the mass balance of a component."""
    return int(comp_idx)


class PhaseState(IntEnum):
    """Phases present at a vertex; the integer values are the checkpoint payload."""

    NONWETTING_ONLY = 0
    WETTING_ONLY = 1
    BOTH_PHASES = 2


class Formulation(str, Enum):
    """Which pressure/saturation pairing is primary."""

    PW_SN = "pW-sN"
    PN_SW = "pN-sW"


@dataclass(slots=True)
class CaseMeta:
    """Metadata for the case block."""

    id: str
    title: str = ""
    notes: Optional[str] = None


@dataclass(slots=True)
class ModelConfig:
    """Run-wide model choices, fixed after construction.

    Attributes
    ----------
    formulation : Formulation
        Primary pressure/saturation pairing.
    mobility_upwind_alpha : float
        Upwind weight in [0, 1]; 1 is full upwinding.
    gravity : list of float
        Gravity vector [m/s^2]; its length must match the mesh dimension.
    switch_hysteresis : float
        Relative inflation of the equilibrium bound after a vertex switched.
    min_saturation : float
        Saturation at or below which a phase disappears.
    tortuosity : str
        "millington_quirk" or "none" for the porous-medium diffusion coefficient.
    """

    formulation: Formulation = Formulation.PW_SN
    mobility_upwind_alpha: float = 1.0
    gravity: List[float] = field(default_factory=lambda: [0.0])
    switch_hysteresis: float = 1.0e-2
    min_saturation: float = 0.0
    tortuosity: str = "millington_quirk"

    def __post_init__(self) -> None:
        if not isinstance(self.formulation, Formulation):
            self.formulation = Formulation(self.formulation)
        alpha = float(self.mobility_upwind_alpha)
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"mobility_upwind_alpha must lie in [0, 1], got {alpha}")
        self.mobility_upwind_alpha = alpha
        if self.switch_hysteresis < 0.0:
            raise ValueError(f"switch_hysteresis must be non-negative, got {self.switch_hysteresis}")
        if self.tortuosity not in ("millington_quirk", "none"):
            raise ValueError(f"Unknown tortuosity model '{self.tortuosity}'")
        self.gravity = [float(g) for g in self.gravity]


@dataclass(slots=True)
class FluidConfig:
    """Fluid system selection (YAML fluid block)."""

    system: str = "constant"
    density_w: float = 1000.0
    density_n: float = 1.2
    viscosity_w: float = 1.0e-3
    viscosity_n: float = 1.8e-5
    diffusion_w: float = 2.0e-9
    diffusion_n: float = 2.6e-5
    molar_mass_w: float = 0.018015
    molar_mass_n: float = 0.028964
    x_wn_max: float = 0.02
    x_aw_max: float = 2.0e-5

    def __post_init__(self) -> None:
        if self.system not in ("constant", "h2o_air"):
            raise ValueError(f"Unknown fluid system '{self.system}'")


@dataclass(slots=True)
class MaterialConfig:
    """Capillary-pressure / relative-permeability law (YAML material block)."""

    law: str = "brooks_corey"
    swr: float = 0.0
    snr: float = 0.0
    entry_pressure: float = 1.0e3
    lambda_: float = 2.0
    vg_alpha: float = 3.7e-4
    vg_n: float = 4.7
    max_pc: float = 0.0

    def __post_init__(self) -> None:
        if self.law not in ("brooks_corey", "van_genuchten", "linear"):
            raise ValueError(f"Unknown material law '{self.law}'")
        if self.swr + self.snr >= 1.0:
            raise ValueError(f"swr + snr must be < 1, got {self.swr + self.snr}")


@dataclass(slots=True)
class SoilConfig:
    """Homogeneous soil parameters."""

    porosity: float = 0.3
    permeability: float = 1.0e-12

    def __post_init__(self) -> None:
        if not 0.0 < self.porosity <= 1.0:
            raise ValueError(f"porosity must lie in (0, 1], got {self.porosity}")
        if self.permeability <= 0.0:
            raise ValueError(f"permeability must be positive, got {self.permeability}")


@dataclass(slots=True)
class ProblemConfig:
    """Initial and boundary data of the configured problem."""

    temperature: float = 283.15
    initial_phase_state: PhaseState = PhaseState.BOTH_PHASES
    initial_values: List[float] = field(default_factory=lambda: [1.0e5, 0.1])
    boundary: str = "closed"
    left_values: Optional[List[float]] = None
    right_values: Optional[List[float]] = None
    injection_rate: List[float] = field(default_factory=lambda: [0.0, 0.0])
    injection_vertex: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.initial_phase_state, PhaseState):
            if isinstance(self.initial_phase_state, str):
                self.initial_phase_state = PhaseState[self.initial_phase_state.upper()]
            else:
                self.initial_phase_state = PhaseState(int(self.initial_phase_state))
        if len(self.initial_values) != NUM_EQ:
            raise ValueError(f"initial_values must have {NUM_EQ} entries, got {len(self.initial_values)}")
        if self.boundary not in ("closed", "dirichlet_left_right"):
            raise ValueError(f"Unknown boundary setup '{self.boundary}'")
        if self.boundary == "dirichlet_left_right" and (self.left_values is None or self.right_values is None):
            raise ValueError("dirichlet_left_right requires left_values and right_values.")
        if self.temperature <= 0.0:
            raise ValueError(f"temperature must be positive, got {self.temperature}")


@dataclass(slots=True)
class GeometryConfig:
    """Structured mesh parameters."""

    dim: int = 1
    lengths: List[float] = field(default_factory=lambda: [1.0])
    cells: List[int] = field(default_factory=lambda: [10])
    cross_section: float = 1.0

    def __post_init__(self) -> None:
        if self.dim not in (1, 2):
            raise ValueError(f"Only dim 1 or 2 supported, got {self.dim}")
        if len(self.lengths) != self.dim or len(self.cells) != self.dim:
            raise ValueError("lengths and cells must have one entry per dimension.")
        if any(n <= 0 for n in self.cells):
            raise ValueError(f"cells must be positive, got {self.cells}")


@dataclass(slots=True)
class CaseIO:
    """Output controls."""

    output_dir: Path = Path("out")
    write_fields: bool = True
    write_checkpoint: bool = True
    dt: float = 1.0


@dataclass(slots=True)
class CaseConfig:
    """Top-level case configuration container."""

    case: CaseMeta
    model: ModelConfig = field(default_factory=ModelConfig)
    fluid: FluidConfig = field(default_factory=FluidConfig)
    material: MaterialConfig = field(default_factory=MaterialConfig)
    soil: SoilConfig = field(default_factory=SoilConfig)
    problem: ProblemConfig = field(default_factory=ProblemConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    io: CaseIO = field(default_factory=CaseIO)

    def __post_init__(self) -> None:
        if not isinstance(self.model, ModelConfig):
            raise TypeError("model must be ModelConfig (loader must build dataclass).")
        if not isinstance(self.geometry, GeometryConfig):
            raise TypeError("geometry must be GeometryConfig (loader must build dataclass).")
        if len(self.model.gravity) != self.geometry.dim:
            raise ValueError(
                f"gravity has {len(self.model.gravity)} components but geometry.dim={self.geometry.dim}"
            )


@dataclass(slots=True)
class StaticVertexData:
    """Per-vertex phase bookkeeping that survives between assembly passes."""

    phase_state: PhaseState
    old_phase_state: PhaseState
    was_switched: bool = False


@dataclass(slots=True)
class SecondaryVars:
    """Secondary variables of one vertex at one time level.

    density, saturation, mobility, pressure, diffusion_coefficient : (2,) per phase
    mass_fraction : (2, 2) indexed [component, phase]
    """

    density: FloatArray
    saturation: FloatArray
    mobility: FloatArray
    mass_fraction: FloatArray
    pressure: FloatArray
    capillary_pressure: float
    porosity: float
    temperature: float
    diffusion_coefficient: FloatArray


@dataclass(slots=True)
class FluxVars:
    """Face data needed by the advective and diffusive flux.

    upstream_idx, downstream_idx : local vertex index per phase
    darcy_normal : (2,) signed volumetric flux through the face per phase (>0: i -> j)
    diff_coeff_pm : (2,) porous-medium diffusion coefficient per phase
    concentration_grad : (2, dim) gradient of the dissolved component's mass fraction per phase
    density_at_ip : (2,) phase density at the integration point
    normal : (dim,) area-scaled face normal
    potential_grad : (2, dim) pressure gradient minus the gravity term per phase
    permeability : (dim, dim) face permeability tensor
    """

    upstream_idx: List[int]
    downstream_idx: List[int]
    darcy_normal: FloatArray
    diff_coeff_pm: FloatArray
    concentration_grad: FloatArray
    density_at_ip: FloatArray
    normal: FloatArray
    potential_grad: FloatArray
    permeability: FloatArray


@dataclass(slots=True)
class MassBalance:
    """Domain-integrated component masses and extremal values."""

    total_n_comp: float
    n_comp_in_n_phase: float
    total_w_comp: float
    w_comp_in_w_phase: float
    min_sat_n: float
    max_sat_n: float
    min_pressure_w: float
    max_pressure_w: float
    min_x_aw: float
    max_x_aw: float
    min_temperature: float
    max_temperature: float

    def as_array(self) -> FloatArray:
        """Four totals in the order nComp, nComp-in-nPhase, wComp, wComp-in-wPhase."""
        return np.array(
            [self.total_n_comp, self.n_comp_in_n_phase, self.total_w_comp, self.w_comp_in_w_phase],
            dtype=np.float64,
        )


def check_primary_shape(solution: FloatArray, n_vertices: int) -> None:
    """Validate a global solution array against the vertex count."""
    if solution.shape != (n_vertices, NUM_EQ):
        raise ValueError(f"solution shape {solution.shape} != ({n_vertices}, {NUM_EQ})")
    if solution.dtype != np.float64:
        raise ValueError(f"solution dtype must be float64, got {solution.dtype}")
