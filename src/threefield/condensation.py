"""Static condensation of the cell-local pressure and dilatation unknowns.

Pressure and dilatation are discontinuous, so each cell's (p, J) unknowns
can be eliminated locally. For every cell

    k_bbar = k_pu^T  k_pJ^-T  k_JJ  k_pJ^-1  k_pu

is added to the u-u block of the global tangent, and ``k_pJ^-1 - k_pJ`` is
added to the p-J block so that block afterwards holds ``k_pJ^-1`` for the
back-substitution of the p and J increments.

The per-cell work is batched over cells with NumPy; the scatter reuses the
serial reduce of :mod:`threefield.assembly`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import scipy.sparse as sp

from threefield.assembly import scatter_matrix
from threefield.errors import SingularCondensationBlock
from threefield.fem.dofs import DofHandler


@dataclass
class CondensationBlocks:
    k_pu: np.ndarray       # (nc, npj, nu)
    k_pJ: np.ndarray       # (nc, npj, npj)
    k_JJ: np.ndarray       # (nc, npj, npj)
    k_pJ_inv: np.ndarray   # (nc, npj, npj)
    k_bbar: np.ndarray     # (nc, nu, nu)


def condense_cells(ke_all: np.ndarray, dofs: DofHandler) -> CondensationBlocks:
    iu, ip, iJ = dofs.idx_u, dofs.idx_p, dofs.idx_J
    k_pu = ke_all[:, ip][:, :, iu]
    k_pJ = ke_all[:, ip][:, :, iJ]
    k_JJ = ke_all[:, iJ][:, :, iJ]

    s = np.linalg.svd(k_pJ, compute_uv=False)
    with np.errstate(divide="ignore", invalid="ignore"):
        cond = s[:, 0] / s[:, -1]
    bad = np.flatnonzero(~(cond < 1.0 / np.finfo(float).eps))
    if bad.size:
        c = int(bad[0])
        raise SingularCondensationBlock(f"k_pJ is singular (condition number {cond[c]:.3e})", cell=c)
    try:
        k_pJ_inv = np.linalg.inv(k_pJ)
    except np.linalg.LinAlgError as exc:
        raise SingularCondensationBlock(f"k_pJ inversion failed: {exc}") from exc

    A = k_pJ_inv @ k_pu                                   # (nc, npj, nu)
    B = k_JJ @ A
    C = np.swapaxes(k_pJ_inv, 1, 2) @ B
    k_bbar = np.swapaxes(k_pu, 1, 2) @ C
    return CondensationBlocks(k_pu=k_pu, k_pJ=k_pJ, k_JJ=k_JJ, k_pJ_inv=k_pJ_inv, k_bbar=k_bbar)


def condensed_cell_matrices(blocks: CondensationBlocks, dofs: DofHandler) -> np.ndarray:
    """Local contributions (nc, ndpc, ndpc) added on top of the assembled tangent."""
    ndpc = dofs.dofs_per_cell
    out = np.zeros((dofs.n_cells, ndpc, ndpc))
    iu, ip, iJ = dofs.idx_u, dofs.idx_p, dofs.idx_J
    out[:, iu[:, None], iu[None, :]] = blocks.k_bbar
    out[:, ip[:, None], iJ[None, :]] = blocks.k_pJ_inv - blocks.k_pJ
    return out


def assemble_condensed_system(K: sp.csr_matrix, ke_all: np.ndarray, dofs: DofHandler) -> sp.csr_matrix:
    """Global tangent after condensation: u-u holds K_uu + k_bbar, p-J holds k_pJ^-1."""
    blocks = condense_cells(ke_all, dofs)
    extra = scatter_matrix(condensed_cell_matrices(blocks, dofs), dofs.cell_dofs, dofs.n_dofs)
    return (K + extra).tocsr()


def condensed_rhs(K_sc: sp.csr_matrix, rhs: np.ndarray, dofs: DofHandler) -> np.ndarray:
    """u-block right-hand side ``f_u - K_up k_pJ^-T (f_J - K_JJ k_pJ^-1 f_p)``."""
    u, p, J = dofs.u_slice, dofs.p_slice, dofs.J_slice
    M = K_sc[p, J]
    a_J = M @ rhs[p]
    a_J = rhs[J] - K_sc[J, J] @ a_J
    a_p = M.T @ a_J
    return rhs[u] - K_sc[u, p] @ a_p


def back_substitute(K_sc: sp.csr_matrix, rhs: np.ndarray, du: np.ndarray, dofs: DofHandler) -> Tuple[np.ndarray, np.ndarray]:
    """(dp, dJ) from the displacement increment."""
    u, p, J = dofs.u_slice, dofs.p_slice, dofs.J_slice
    M = K_sc[p, J]
    dJ = M @ (rhs[p] - K_sc[p, u] @ du)
    dp = M.T @ (rhs[J] - K_sc[J, J] @ dJ)
    return dp, dJ
