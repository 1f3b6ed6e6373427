"""Cell-level residual/tangent assembly and the global reduce.

Assembly is split into a *map* over cells, which writes only to that cell's
slot of ``ke_all`` / ``fe_all``, and a serial *reduce* that scatters the local
systems into the global sparse matrix and right-hand side. The map runs
either as a NumPy loop (default) or as the parallel Numba kernel in
:mod:`threefield.numba.kernels_assembly` (``use_numba=True``).

Sign convention: ``fe`` holds the negative residual, so the Newton system is
``K du = fe``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import scipy.sparse as sp

from threefield.fem.dofs import DofHandler
from threefield.fem.fe_values import CellValues, FaceValues
from threefield.qp_record import QuadratureArrays


@dataclass
class ElementLocalSystem:
    cell: int
    matrix: np.ndarray       # (dofs_per_cell, dofs_per_cell)
    vector: np.ndarray       # (dofs_per_cell,)
    dof_indices: np.ndarray  # (dofs_per_cell,)


@dataclass
class GlobalSystem:
    K: sp.csr_matrix
    rhs: np.ndarray
    ke_all: np.ndarray       # (n_cells, ndpc, ndpc)
    fe_all: np.ndarray       # (n_cells, ndpc)


# ---------------------------------------------------------------------------
# Neumann load
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NeumannLoad:
    """Traction ``reference_pressure * p_p0 * (t / T) * direction``."""

    boundary_id: int
    direction: Sequence[float]
    reference_pressure: float
    p_p0: float

    def traction(self, time: float, end_time: float) -> np.ndarray:
        ramp = float(time) / float(end_time)
        return (self.reference_pressure * self.p_p0 * ramp) * np.asarray(self.direction, dtype=float)


def add_neumann_contributions(fe_all: np.ndarray, faces: FaceValues, traction: np.ndarray, dofs: DofHandler) -> None:
    """Add ``N_a t_c JxW`` on the loaded faces to the displacement block (in place)."""
    if faces.n_faces == 0:
        return
    weights = np.einsum("fqa,fq->fa", faces.N, faces.JxW)                   # (nf, nn)
    loads = (weights[:, :, None] * np.asarray(traction)[None, None, :]).reshape(faces.n_faces, -1)
    np.add.at(fe_all, (faces.cells[:, None], dofs.idx_u[None, :]), loads)


# ---------------------------------------------------------------------------
# Map: one cell
# ---------------------------------------------------------------------------


def _mirror_lower(ke: np.ndarray) -> np.ndarray:
    """Keep the lower triangle and copy it onto the strict upper triangle."""
    low = np.tril(ke)
    return low + np.tril(ke, -1).T


def assemble_cell_system(
    cell: int,
    cv: CellValues,
    qa: QuadratureArrays,
    dofs: DofHandler,
) -> ElementLocalSystem:
    """Local tangent and negative residual of one cell (NumPy)."""
    d = dofs.dim
    nn = dofs.nodes_per_cell
    npj = dofs.n_pJ
    JxW = cv.JxW[cell]
    N = cv.N_pJ

    F_inv = qa.F_inv[cell]
    tau = qa.tau[cell]
    Jc = qa.Jc[cell]
    det_F = qa.det_F[cell]

    # spatial gradients g_a = F^-T dN_a/dX
    g = np.einsum("qaj,qji->qai", cv.dN_dX[cell], F_inv)

    # residual
    f_u = -np.einsum("qcj,qaj,q->ac", tau, g, JxW).reshape(nn * d)
    f_p = -N.T @ ((det_F - qa.J_tilde[cell]) * JxW)
    f_J = -N.T @ ((qa.dPsi[cell] - qa.p_tilde[cell]) * JxW)

    # tangent blocks
    k_mat = np.einsum("qaj,qcjdl,qbl,q->acbd", g, Jc, g, JxW)
    k_geo = np.einsum("qai,qij,qbj,q->ab", g, tau, g, JxW)
    k_uu = k_mat + k_geo[:, None, :, None] * np.eye(d)[None, :, None, :]
    k_pu = np.einsum("qk,q,qbd->kbd", N, det_F * JxW, g).reshape(npj, nn * d)
    k_Jp = -np.einsum("qk,qm,q->km", N, N, JxW)
    k_JJ = np.einsum("qk,qm,q->km", N, N, qa.d2Psi[cell] * JxW)

    ndpc = dofs.dofs_per_cell
    ke = np.zeros((ndpc, ndpc))
    iu, ip, iJ = dofs.idx_u, dofs.idx_p, dofs.idx_J
    ke[np.ix_(iu, iu)] = k_uu.reshape(nn * d, nn * d)
    ke[np.ix_(ip, iu)] = k_pu
    ke[np.ix_(iJ, ip)] = k_Jp
    ke[np.ix_(iJ, iJ)] = k_JJ
    ke = _mirror_lower(ke)

    fe = np.concatenate([f_u, f_p, f_J])
    return ElementLocalSystem(cell=cell, matrix=ke, vector=fe, dof_indices=dofs.cell_dofs[cell])


def assemble_cells_numpy(cv: CellValues, qa: QuadratureArrays, dofs: DofHandler):
    ndpc = dofs.dofs_per_cell
    ke_all = np.zeros((dofs.n_cells, ndpc, ndpc))
    fe_all = np.zeros((dofs.n_cells, ndpc))
    for c in range(dofs.n_cells):
        local = assemble_cell_system(c, cv, qa, dofs)
        ke_all[c] = local.matrix
        fe_all[c] = local.vector
    return ke_all, fe_all


def assemble_cells(cv: CellValues, qa: QuadratureArrays, dofs: DofHandler, use_numba: bool = False):
    """Map phase: (ke_all, fe_all) for all cells."""
    if use_numba:
        from threefield.numba.kernels_assembly import assemble_cells_numba

        return assemble_cells_numba(
            np.ascontiguousarray(cv.dN_dX),
            np.ascontiguousarray(cv.N_pJ),
            np.ascontiguousarray(cv.JxW),
            qa.F_inv, qa.tau, qa.Jc, qa.det_F, qa.p_tilde, qa.J_tilde, qa.dPsi, qa.d2Psi,
        )
    return assemble_cells_numpy(cv, qa, dofs)


# ---------------------------------------------------------------------------
# Reduce
# ---------------------------------------------------------------------------


def scatter_matrix(ke_all: np.ndarray, cell_dofs: np.ndarray, n_dofs: int) -> sp.csr_matrix:
    ndpc = cell_dofs.shape[1]
    rows = np.repeat(cell_dofs, ndpc, axis=1).ravel()
    cols = np.tile(cell_dofs, (1, ndpc)).ravel()
    # duplicate (row, col) pairs are summed on conversion
    return sp.coo_matrix((ke_all.ravel(), (rows, cols)), shape=(n_dofs, n_dofs)).tocsr()


def scatter_vector(fe_all: np.ndarray, cell_dofs: np.ndarray, n_dofs: int) -> np.ndarray:
    rhs = np.zeros(n_dofs)
    np.add.at(rhs, cell_dofs.ravel(), fe_all.ravel())
    return rhs


def assemble_system(
    cv: CellValues,
    qa: QuadratureArrays,
    dofs: DofHandler,
    faces: Optional[FaceValues] = None,
    traction: Optional[np.ndarray] = None,
    use_numba: bool = False,
) -> GlobalSystem:
    ke_all, fe_all = assemble_cells(cv, qa, dofs, use_numba=use_numba)
    if faces is not None and traction is not None:
        add_neumann_contributions(fe_all, faces, traction, dofs)
    K = scatter_matrix(ke_all, dofs.cell_dofs, dofs.n_dofs)
    rhs = scatter_vector(fe_all, dofs.cell_dofs, dofs.n_dofs)
    return GlobalSystem(K=K, rhs=rhs, ke_all=ke_all, fe_all=fe_all)
