"""Shape-function data on the reference configuration.

The formulation is total-Lagrangian in its kinematics: gradients with respect
to the reference coordinates are computed once at setup and pushed forward
with F^-1 during assembly.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .basis import LagrangeBasis, MonomialBasis
from .mesh import Mesh
from .quadrature import face_axes, face_rule, gauss_rule


@dataclass
class CellValues:
    N: np.ndarray        # (nq, nn) displacement shape values
    dN_dX: np.ndarray    # (n_cells, nq, nn, dim) reference-configuration gradients
    JxW: np.ndarray      # (n_cells, nq)
    N_pJ: np.ndarray     # (nq, n_pJ) pressure/dilatation shape values

    @property
    def n_q_points(self) -> int:
        return int(self.N.shape[0])

    def volume(self) -> float:
        return float(self.JxW.sum())


@dataclass
class FaceValues:
    cells: np.ndarray    # (n_faces,)
    faces: np.ndarray    # (n_faces,) local face number
    N: np.ndarray        # (n_faces, nq_f, nn)
    JxW: np.ndarray      # (n_faces, nq_f)

    @property
    def n_faces(self) -> int:
        return int(self.cells.shape[0])

    def area(self) -> float:
        return float(self.JxW.sum())


def compute_cell_values(mesh: Mesh, u_basis: LagrangeBasis, pJ_basis: MonomialBasis, quad_order: int) -> CellValues:
    pts, w = gauss_rule(quad_order, mesh.dim)
    N = u_basis.values(pts)
    dN_ref = u_basis.gradients(pts)                       # (nq, nn, dim)
    X = mesh.nodes[mesh.cells]                            # (nc, nn, dim)
    jac = np.einsum("cai,qaj->cqij", X, dN_ref)
    det = np.linalg.det(jac)
    if np.any(det <= 0.0):
        bad = int(np.argwhere(det <= 0.0)[0, 0])
        raise ValueError(f"Non-positive Jacobian determinant in cell {bad} (distorted or inverted mesh)")
    jac_inv = np.linalg.inv(jac)
    dN_dX = np.einsum("qaj,cqji->cqai", dN_ref, jac_inv)
    return CellValues(N=N, dN_dX=dN_dX, JxW=det * w[None, :], N_pJ=pJ_basis.values(pts))


def compute_face_values(
    mesh: Mesh,
    u_basis: LagrangeBasis,
    cells: np.ndarray,
    faces: np.ndarray,
    quad_order: int,
) -> FaceValues:
    """Face shape values and surface measure for the listed boundary faces."""
    dim = mesh.dim
    cells = np.asarray(cells, dtype=int)
    faces = np.asarray(faces, dtype=int)
    nq_f = int(quad_order) ** (dim - 1)
    N = np.zeros((cells.size, nq_f, u_basis.n_functions))
    JxW = np.zeros((cells.size, nq_f))
    for i, (c, f) in enumerate(zip(cells, faces)):
        _, _, tangential = face_axes(int(f), dim)
        pts, w = face_rule(quad_order, int(f), dim)
        N[i] = u_basis.values(pts)
        dN_ref = u_basis.gradients(pts)
        jac = np.einsum("ai,qaj->qij", mesh.nodes[mesh.cells[c]], dN_ref)
        T = jac[:, :, list(tangential)]                   # (nq_f, dim, dim-1)
        metric = np.einsum("qki,qkj->qij", T, T)
        JxW[i] = np.sqrt(np.linalg.det(metric)) * w
    return FaceValues(cells=cells, faces=faces, N=N, JxW=JxW)
