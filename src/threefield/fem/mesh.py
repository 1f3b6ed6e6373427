"""Structured hexahedral/quadrilateral meshes of arbitrary Lagrange degree.

Node numbering is global-lexicographic over the (n_i * k + 1) grid, x
fastest. Each cell lists its (k + 1)**dim nodes in the local lexicographic
order of :class:`~threefield.fem.basis.LagrangeBasis`. Boundary faces carry an
integer marker; a face is addressed as ``(cell, face)`` with the numbering of
:func:`~threefield.fem.quadrature.face_axes`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

import numpy as np

from .basis import LagrangeBasis
from .quadrature import lexicographic_indices


@dataclass
class Mesh:
    nodes: np.ndarray          # (n_nodes, dim)
    cells: np.ndarray          # (n_cells, (k+1)**dim)
    degree: int
    face_cells: np.ndarray     # (n_bfaces,) cell index of each boundary face
    face_local: np.ndarray     # (n_bfaces,) local face number
    face_markers: np.ndarray   # (n_bfaces,) boundary id
    name: str = "mesh"

    @property
    def dim(self) -> int:
        return int(self.nodes.shape[1])

    @property
    def n_nodes(self) -> int:
        return int(self.nodes.shape[0])

    @property
    def n_cells(self) -> int:
        return int(self.cells.shape[0])

    def boundary_ids(self) -> Tuple[int, ...]:
        return tuple(sorted(int(b) for b in np.unique(self.face_markers)))

    def faces_with_id(self, boundary_id: int) -> Tuple[np.ndarray, np.ndarray]:
        """(cells, local faces) of all boundary faces carrying ``boundary_id``."""
        sel = self.face_markers == int(boundary_id)
        return self.face_cells[sel], self.face_local[sel]

    def boundary_nodes(self, boundary_id: int) -> np.ndarray:
        basis = LagrangeBasis(self.degree, self.dim)
        cells, faces = self.faces_with_id(boundary_id)
        out = [self.cells[c, basis.face_nodes(f)] for c, f in zip(cells, faces)]
        if not out:
            return np.zeros(0, dtype=int)
        return np.unique(np.concatenate(out))

    def face_center(self, cell: int, face: int) -> np.ndarray:
        basis = LagrangeBasis(self.degree, self.dim)
        return self.nodes[self.cells[cell, basis.face_nodes(face)]].mean(axis=0)

    def corner_cells(self) -> np.ndarray:
        """Vertex connectivity (n_cells, 2**dim), lexicographic local order."""
        basis = LagrangeBasis(self.degree, self.dim)
        return self.cells[:, basis.corner_nodes()]

    def transform(self, fn: Callable[[np.ndarray], np.ndarray]) -> None:
        self.nodes = np.asarray(fn(self.nodes), dtype=float)

    def scale(self, factor: float) -> None:
        self.nodes = self.nodes * float(factor)


def structured_grid(
    subdivisions: Sequence[int],
    lower: Sequence[float],
    upper: Sequence[float],
    degree: int = 1,
    colorize: bool = False,
) -> Mesh:
    """Subdivided hyper-rectangle.

    Boundary faces get id ``2 * axis + side`` when ``colorize`` is set
    (0: x=lower, 1: x=upper, 2: y=lower, ...), otherwise 0.
    """
    dim = len(subdivisions)
    if dim not in (2, 3) or len(lower) != dim or len(upper) != dim:
        raise ValueError("structured_grid needs 2 or 3 consistent extents")
    nsub = [int(n) for n in subdivisions]
    k = int(degree)
    npd = [n * k + 1 for n in nsub]

    axes = [np.linspace(float(lower[d]), float(upper[d]), npd[d]) for d in range(dim)]
    grid_idx = np.array(np.unravel_index(np.arange(int(np.prod(npd))), npd[::-1])).T[:, ::-1]
    nodes = np.column_stack([axes[d][grid_idx[:, d]] for d in range(dim)])

    strides = np.cumprod([1] + npd[:-1])
    local = lexicographic_indices(k + 1, dim)
    cell_idx = np.array(np.unravel_index(np.arange(int(np.prod(nsub))), nsub[::-1])).T[:, ::-1]
    cells = ((cell_idx[:, None, :] * k + local[None, :, :]) * strides[None, None, :]).sum(axis=2)

    fc, fl, fm = [], [], []
    for c, ijk in enumerate(cell_idx):
        for axis in range(dim):
            if ijk[axis] == 0:
                fc.append(c)
                fl.append(2 * axis)
                fm.append(2 * axis if colorize else 0)
            if ijk[axis] == nsub[axis] - 1:
                fc.append(c)
                fl.append(2 * axis + 1)
                fm.append(2 * axis + 1 if colorize else 0)

    return Mesh(
        nodes=nodes,
        cells=cells.astype(int),
        degree=k,
        face_cells=np.array(fc, dtype=int),
        face_local=np.array(fl, dtype=int),
        face_markers=np.array(fm, dtype=int),
    )


# ---------------------------------------------------------------------------
# Benchmark geometries
# ---------------------------------------------------------------------------

COOK_LENGTH = 48.0
COOK_HEIGHT = 44.0
COOK_TOP_RISE = 16.0
COOK_THICKNESS = 5.0


def cook_y_transform(points: np.ndarray) -> np.ndarray:
    """Map the 48 x 44 rectangle onto Cook's tapered membrane."""
    out = np.array(points, dtype=float, copy=True)
    x = out[:, 0]
    y = out[:, 1]
    y_upper = COOK_HEIGHT + (COOK_TOP_RISE / COOK_LENGTH) * x
    y_lower = (COOK_HEIGHT / COOK_LENGTH) * x
    theta = y / COOK_HEIGHT
    out[:, 1] = (1.0 - theta) * y_lower + theta * y_upper
    return out


def cooks_membrane_mesh(cells_per_edge: int, dim: int = 3, degree: int = 1, scale: float = 1.0) -> Mesh:
    """Cook's membrane; two cells through the thickness in 3D.

    Boundary ids: 1 on x=0 (clamped), 11 on x=48 (loaded), 2 on the z faces,
    3 on the remaining (top/bottom) faces.
    """
    n = int(cells_per_edge)
    if dim == 3:
        mesh = structured_grid(
            [n, n, 2],
            [0.0, 0.0, -0.5 * COOK_THICKNESS],
            [COOK_LENGTH, COOK_HEIGHT, 0.5 * COOK_THICKNESS],
            degree=degree,
        )
    else:
        mesh = structured_grid([n, n], [0.0, 0.0], [COOK_LENGTH, COOK_HEIGHT], degree=degree)

    axis = mesh.face_local // 2
    side = mesh.face_local % 2
    markers = np.full(mesh.face_markers.shape, 3, dtype=int)
    markers[axis == 2] = 2
    markers[(axis == 0) & (side == 1)] = 11
    markers[(axis == 0) & (side == 0)] = 1
    mesh.face_markers = markers

    mesh.transform(cook_y_transform)
    mesh.scale(scale)
    mesh.name = "cook"
    return mesh


def hyper_rectangle_mesh(refinement: int, dim: int = 3, degree: int = 1, scale: float = 1.0) -> Mesh:
    """Unit block with 2**max(1, refinement) cells per edge and colorized ids.

    Part of the top face (y = 1) is re-marked 6: ``x < 0.5`` in 2D,
    ``0.25 < x, z < 0.75`` in 3D.
    """
    n = 2 ** max(1, int(refinement))
    mesh = structured_grid([n] * dim, [0.0] * dim, [1.0] * dim, degree=degree, colorize=True)

    top = np.flatnonzero(mesh.face_markers == 3)
    for i in top:
        center = mesh.face_center(int(mesh.face_cells[i]), int(mesh.face_local[i]))
        if dim == 3:
            hit = 0.25 < center[0] < 0.75 and 0.25 < center[2] < 0.75
        else:
            hit = center[0] < 0.5
        if hit:
            mesh.face_markers[i] = 6

    mesh.scale(scale)
    mesh.name = "block"
    return mesh


def make_mesh(geometry: str, dim: int, degree: int, scale: float, cell_count: int, global_refinement: int) -> Mesh:
    if geometry == "cook":
        return cooks_membrane_mesh(cell_count, dim=dim, degree=degree, scale=scale)
    if geometry == "block":
        return hyper_rectangle_mesh(global_refinement, dim=dim, degree=degree, scale=scale)
    raise ValueError(f"Unknown geometry {geometry!r}")

