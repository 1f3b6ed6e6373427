"""Block DOF layout for the (u | p | J) system.

Global ordering: all displacement DOFs first (``node * dim + component``),
then the discontinuous pressure coefficients (``cell * n_pJ + k``), then the
dilatation coefficients in the same pattern. Within a cell the local ordering
is u (node-major, component-minor), p, J.
"""

from __future__ import annotations

import numpy as np

from .mesh import Mesh


class DofHandler:
    def __init__(self, mesh: Mesh, n_pJ: int):
        self.dim = mesh.dim
        self.n_cells = mesh.n_cells
        self.nodes_per_cell = int(mesh.cells.shape[1])
        self.n_pJ = int(n_pJ)

        self.n_u = mesh.n_nodes * self.dim
        self.n_p = self.n_cells * self.n_pJ
        self.n_J = self.n_cells * self.n_pJ
        self.n_dofs = self.n_u + self.n_p + self.n_J

        self.u_slice = slice(0, self.n_u)
        self.p_slice = slice(self.n_u, self.n_u + self.n_p)
        self.J_slice = slice(self.n_u + self.n_p, self.n_dofs)

        n_loc_u = self.nodes_per_cell * self.dim
        self.idx_u = np.arange(n_loc_u)
        self.idx_p = n_loc_u + np.arange(self.n_pJ)
        self.idx_J = n_loc_u + self.n_pJ + np.arange(self.n_pJ)
        self.dofs_per_cell = n_loc_u + 2 * self.n_pJ

        comps = np.arange(self.dim)
        cell_u = (mesh.cells[:, :, None] * self.dim + comps[None, None, :]).reshape(self.n_cells, n_loc_u)
        base = np.arange(self.n_cells)[:, None] * self.n_pJ + np.arange(self.n_pJ)[None, :]
        self.cell_dofs = np.hstack([cell_u, self.n_u + base, self.n_u + self.n_p + base]).astype(np.int64)

    @property
    def dofs_per_block(self):
        return (self.n_u, self.n_p, self.n_J)

    def u_dofs(self, nodes: np.ndarray, component: int) -> np.ndarray:
        return np.asarray(nodes, dtype=np.int64) * self.dim + int(component)

    def split(self, vec: np.ndarray):
        """Views on the u, p and J blocks of a global vector."""
        return vec[self.u_slice], vec[self.p_slice], vec[self.J_slice]

    def cell_p_coefficients(self, vec: np.ndarray) -> np.ndarray:
        return vec[self.p_slice].reshape(self.n_cells, self.n_pJ)

    def cell_J_coefficients(self, vec: np.ndarray) -> np.ndarray:
        return vec[self.J_slice].reshape(self.n_cells, self.n_pJ)

    def nodal_displacements(self, vec: np.ndarray) -> np.ndarray:
        return vec[self.u_slice].reshape(-1, self.dim)
