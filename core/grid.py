"""
Box-scheme (vertex-centered finite-volume) geometry for structured line and rectangle meshes.

Responsibilities:
- ElementGeometry: sub-control volumes, sub-control-volume faces and boundary segments of one element.
- BoxMesh: vertex positions, elements, and which vertices/elements belong to the local partition.
- build_line_mesh / build_rectangle_mesh: structured generators.
- partition_mesh: restrict a mesh to a contiguous element range (rank-local view for tests/drivers).

Conventions:
- Face normals are area-scaled and point from local vertex i to local vertex j.
- Boundary segment normals are unit outward normals; the segment area is stored separately.
- Vertex numbering is global and identical on every partition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from core.types import FloatArray


@dataclass(slots=True)
class ScvFace:
    """Interior face between the sub-control volumes of local vertices i and j."""

    i: int
    j: int
    ip: FloatArray
    normal: FloatArray
    grad_n: FloatArray  # (n_local_vertices, dim) shape-function gradients at ip
    shape_values: FloatArray  # (n_local_vertices,)


@dataclass(slots=True)
class BoundarySegment:
    """Part of the domain boundary attached to one sub-control volume."""

    scv_idx: int
    position: FloatArray
    area: float
    normal: FloatArray


@dataclass(slots=True)
class ElementGeometry:
    """Geometry of one element as seen by the box scheme."""

    index: int
    vertices: List[int]
    corners: FloatArray
    local_corners: FloatArray
    center: FloatArray
    scv_volumes: FloatArray
    faces: List[ScvFace]
    boundary_segments: List[BoundarySegment] = field(default_factory=list)

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def volume(self) -> float:
        return float(np.sum(self.scv_volumes))

    def __post_init__(self) -> None:
        nv = len(self.vertices)
        if self.corners.shape[0] != nv:
            raise ValueError(f"corners rows {self.corners.shape[0]} != number of vertices {nv}")
        if self.scv_volumes.shape != (nv,):
            raise ValueError(f"scv_volumes shape {self.scv_volumes.shape} != ({nv},)")
        if np.any(self.scv_volumes <= 0.0):
            raise ValueError("scv_volumes must be positive.")
        for face in self.faces:
            if not (0 <= face.i < nv and 0 <= face.j < nv) or face.i == face.j:
                raise ValueError(f"Invalid face vertex pair ({face.i}, {face.j}) for {nv} vertices")


@dataclass(slots=True)
class BoxMesh:
    """Vertex-centered mesh, possibly restricted to one partition.

    Fields
    ------
    dim : int
    vertex_positions : (Nv, dim) positions of all vertices (global numbering)
    elements : elements of the local partition
    local_vertices : (Nloc,) sorted global indices touched by the local elements
    owned : (Nv,) bool, True where this partition owns the vertex
    boundary_vertices : (Nv,) bool, True for vertices on the domain boundary
    rank : int
    """

    dim: int
    vertex_positions: FloatArray
    elements: List[ElementGeometry]
    local_vertices: np.ndarray
    owned: np.ndarray
    boundary_vertices: np.ndarray
    rank: int = 0

    @property
    def num_vertices(self) -> int:
        return int(self.vertex_positions.shape[0])

    @property
    def num_elements(self) -> int:
        return len(self.elements)

    def __post_init__(self) -> None:
        nv = self.vertex_positions.shape[0]
        if self.vertex_positions.ndim != 2 or self.vertex_positions.shape[1] != self.dim:
            raise ValueError(f"vertex_positions shape {self.vertex_positions.shape} != (Nv, {self.dim})")
        if self.owned.shape != (nv,):
            raise ValueError(f"owned shape {self.owned.shape} != ({nv},)")
        if self.boundary_vertices.shape != (nv,):
            raise ValueError(f"boundary_vertices shape {self.boundary_vertices.shape} != ({nv},)")


def build_line_mesh(length: float, n_cells: int, *, cross_section: float = 1.0, x0: float = 0.0) -> BoxMesh:
    """Uniform 1D mesh of linear elements."""
    if length <= 0.0:
        raise ValueError(f"length must be positive, got {length}")
    if n_cells <= 0:
        raise ValueError(f"n_cells must be positive, got {n_cells}")
    h = float(length) / n_cells
    A = float(cross_section)
    x = x0 + h * np.arange(n_cells + 1, dtype=np.float64)

    elements: List[ElementGeometry] = []
    for e in range(n_cells):
        corners = np.array([[x[e]], [x[e + 1]]], dtype=np.float64)
        face = ScvFace(
            i=0,
            j=1,
            ip=np.array([x[e] + 0.5 * h]),
            normal=np.array([A]),
            grad_n=np.array([[-1.0 / h], [1.0 / h]]),
            shape_values=np.array([0.5, 0.5]),
        )
        segments: List[BoundarySegment] = []
        if e == 0:
            segments.append(BoundarySegment(0, np.array([x[0]]), A, np.array([-1.0])))
        if e == n_cells - 1:
            segments.append(BoundarySegment(1, np.array([x[-1]]), A, np.array([1.0])))
        elements.append(
            ElementGeometry(
                index=e,
                vertices=[e, e + 1],
                corners=corners,
                local_corners=np.array([[0.0], [1.0]]),
                center=np.array([x[e] + 0.5 * h]),
                scv_volumes=np.full(2, 0.5 * h * A),
                faces=[face],
                boundary_segments=segments,
            )
        )

    nv = n_cells + 1
    boundary = np.zeros(nv, dtype=bool)
    boundary[[0, -1]] = True
    return BoxMesh(
        dim=1,
        vertex_positions=x.reshape(-1, 1),
        elements=elements,
        local_vertices=np.arange(nv),
        owned=np.ones(nv, dtype=bool),
        boundary_vertices=boundary,
    )


def _bilinear_grads(xi: float, eta: float, hx: float, hy: float) -> FloatArray:
    # local vertex order: 0=(0,0), 1=(1,0), 2=(0,1), 3=(1,1)
    return np.array(
        [
            [-(1.0 - eta) / hx, -(1.0 - xi) / hy],
            [(1.0 - eta) / hx, -xi / hy],
            [-eta / hx, (1.0 - xi) / hy],
            [eta / hx, xi / hy],
        ],
        dtype=np.float64,
    )


def _bilinear_values(xi: float, eta: float) -> FloatArray:
    return np.array(
        [(1.0 - xi) * (1.0 - eta), xi * (1.0 - eta), (1.0 - xi) * eta, xi * eta],
        dtype=np.float64,
    )


def build_rectangle_mesh(
    lengths: Sequence[float],
    cells: Sequence[int],
    *,
    thickness: float = 1.0,
) -> BoxMesh:
    """Structured 2D mesh of bilinear quadrilaterals, vertices numbered x-fastest."""
    Lx, Ly = float(lengths[0]), float(lengths[1])
    nx, ny = int(cells[0]), int(cells[1])
    if Lx <= 0.0 or Ly <= 0.0:
        raise ValueError(f"lengths must be positive, got {lengths}")
    if nx <= 0 or ny <= 0:
        raise ValueError(f"cells must be positive, got {cells}")
    hx, hy = Lx / nx, Ly / ny
    t = float(thickness)

    xs = hx * np.arange(nx + 1, dtype=np.float64)
    ys = hy * np.arange(ny + 1, dtype=np.float64)
    X, Y = np.meshgrid(xs, ys)
    positions = np.column_stack([X.ravel(), Y.ravel()])

    def vid(ix: int, iy: int) -> int:
        return iy * (nx + 1) + ix

    local_corners = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
    # (i, j, ip in reference coords, unit normal, segment length)
    face_table = (
        (0, 1, (0.5, 0.25), (1.0, 0.0), 0.5 * hy),
        (2, 3, (0.5, 0.75), (1.0, 0.0), 0.5 * hy),
        (0, 2, (0.25, 0.5), (0.0, 1.0), 0.5 * hx),
        (1, 3, (0.75, 0.5), (0.0, 1.0), 0.5 * hx),
    )

    elements: List[ElementGeometry] = []
    for iy in range(ny):
        for ix in range(nx):
            verts = [vid(ix, iy), vid(ix + 1, iy), vid(ix, iy + 1), vid(ix + 1, iy + 1)]
            corners = positions[verts]
            origin = corners[0]
            faces = []
            for i, j, (xi, eta), n, seg_len in face_table:
                faces.append(
                    ScvFace(
                        i=i,
                        j=j,
                        ip=origin + np.array([xi * hx, eta * hy]),
                        normal=np.asarray(n, dtype=np.float64) * seg_len * t,
                        grad_n=_bilinear_grads(xi, eta, hx, hy),
                        shape_values=_bilinear_values(xi, eta),
                    )
                )

            segments: List[BoundarySegment] = []
            half_x, half_y = 0.5 * hx, 0.5 * hy
            if iy == 0:
                for k, dx in ((0, 0.25), (1, 0.75)):
                    segments.append(BoundarySegment(k, origin + np.array([dx * hx, 0.0]), half_x * t, np.array([0.0, -1.0])))
            if iy == ny - 1:
                for k, dx in ((2, 0.25), (3, 0.75)):
                    segments.append(BoundarySegment(k, origin + np.array([dx * hx, hy]), half_x * t, np.array([0.0, 1.0])))
            if ix == 0:
                for k, dy in ((0, 0.25), (2, 0.75)):
                    segments.append(BoundarySegment(k, origin + np.array([0.0, dy * hy]), half_y * t, np.array([-1.0, 0.0])))
            if ix == nx - 1:
                for k, dy in ((1, 0.25), (3, 0.75)):
                    segments.append(BoundarySegment(k, origin + np.array([hx, dy * hy]), half_y * t, np.array([1.0, 0.0])))

            elements.append(
                ElementGeometry(
                    index=iy * nx + ix,
                    vertices=verts,
                    corners=corners,
                    local_corners=local_corners,
                    center=origin + np.array([0.5 * hx, 0.5 * hy]),
                    scv_volumes=np.full(4, 0.25 * hx * hy * t),
                    faces=faces,
                    boundary_segments=segments,
                )
            )

    nv = positions.shape[0]
    boundary = (
        np.isclose(positions[:, 0], 0.0)
        | np.isclose(positions[:, 0], Lx)
        | np.isclose(positions[:, 1], 0.0)
        | np.isclose(positions[:, 1], Ly)
    )
    return BoxMesh(
        dim=2,
        vertex_positions=positions,
        elements=elements,
        local_vertices=np.arange(nv),
        owned=np.ones(nv, dtype=bool),
        boundary_vertices=boundary,
    )


def partition_mesh(mesh: BoxMesh, start: int, stop: int, *, rank: int, lower_vertices: Optional[np.ndarray] = None) -> BoxMesh:
    """
    Restrict a mesh to elements [start, stop) for the given rank.

    Vertices shared with a lower-ranked partition (lower_vertices) are not owned here;
    they remain local copies and are visited, never written remotely.
    """
    if not 0 <= start < stop <= mesh.num_elements:
        raise ValueError(f"Invalid element range [{start}, {stop}) for {mesh.num_elements} elements")
    elements = mesh.elements[start:stop]
    touched = sorted({v for el in elements for v in el.vertices})
    local = np.asarray(touched, dtype=np.int64)
    owned = np.zeros(mesh.num_vertices, dtype=bool)
    owned[local] = True
    if lower_vertices is not None:
        owned[np.asarray(lower_vertices, dtype=np.int64)] = False
    return BoxMesh(
        dim=mesh.dim,
        vertex_positions=mesh.vertex_positions,
        elements=list(elements),
        local_vertices=local,
        owned=owned,
        boundary_vertices=mesh.boundary_vertices,
        rank=rank,
    )
