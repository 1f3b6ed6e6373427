"""Dirichlet constraint helpers."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .dofs import DofHandler
from .mesh import Mesh


class DirichletConstraints:
    """Prescribed values on a set of global DOFs.

    The values act on the Newton *update*: at the first iteration of a step
    they carry the increment needed to reach the prescribed displacement,
    afterwards the homogeneous copy keeps the constrained DOFs fixed.
    """

    def __init__(self, dofs: Iterable[int] = (), values: Optional[Iterable[float]] = None):
        d = np.asarray(list(dofs), dtype=np.int64)
        v = np.zeros(d.size) if values is None else np.asarray(list(values), dtype=float)
        if v.shape != d.shape:
            raise ValueError("dofs and values must have the same length")
        order = np.argsort(d, kind="stable")
        d, v = d[order], v[order]
        # last write wins for repeated DOFs
        keep = np.ones(d.size, dtype=bool)
        if d.size:
            keep[:-1] = d[1:] != d[:-1]
        self.dofs = d[keep]
        self.values = v[keep]

    def __len__(self) -> int:
        return int(self.dofs.size)

    @classmethod
    def from_dict(cls, fixed: Dict[int, float]) -> "DirichletConstraints":
        return cls(fixed.keys(), fixed.values())

    def is_constrained(self, dof):
        """Whether ``dof`` is constrained; element-wise for an array of DOFs."""
        d = np.asarray(dof, dtype=np.int64)
        i = np.minimum(np.searchsorted(self.dofs, d), max(self.dofs.size - 1, 0))
        hit = (self.dofs[i] == d) if self.dofs.size else np.zeros(d.shape, dtype=bool)
        return bool(hit) if hit.ndim == 0 else hit

    def mask(self, n_dofs: int) -> np.ndarray:
        return self.is_constrained(np.arange(int(n_dofs)))

    @property
    def has_inhomogeneities(self) -> bool:
        return bool(np.any(self.values != 0.0))

    def homogeneous(self) -> "DirichletConstraints":
        return DirichletConstraints(self.dofs, np.zeros(self.dofs.size))

    def distribute(self, vec: np.ndarray) -> np.ndarray:
        """Write the prescribed values into ``vec`` (in place) and return it."""
        vec[self.dofs] = self.values
        return vec


def apply_dirichlet(K: sp.spmatrix, r: np.ndarray, constraints: DirichletConstraints):
    """
    Reduce ``K du = r`` to the free equations with ``du`` prescribed on the
    constrained DOFs:

        K_ff du_f = r_f - K_fc du_c

    Returns ``(free, K_ff, r_f, fixed_ids)``.
    """
    K = sp.csr_matrix(K)
    ndof = K.shape[0]
    fixed_ids = constraints.dofs[constraints.dofs < ndof]
    free = np.setdiff1d(np.arange(ndof, dtype=np.int64), fixed_ids)

    K_f = K[free, :]
    K_ff = K_f[:, free]
    r_f = np.asarray(r, dtype=float)[free].copy()
    if fixed_ids.size and constraints.has_inhomogeneities:
        du_c = constraints.values[constraints.dofs < ndof]
        r_f -= K_f[:, fixed_ids] @ du_c
    return free, K_ff, r_f, fixed_ids


def make_dirichlet_constraints(
    mesh: Mesh,
    dofs: DofHandler,
    entries: Iterable[Dict[str, Any]],
    load_fraction: float = 1.0,
    current: Optional[np.ndarray] = None,
) -> DirichletConstraints:
    """Constraints on the Newton update for one time step.

    Each entry ``{boundary_id, components, value}`` prescribes the total
    displacement ``value * load_fraction`` on the boundary's nodes; the
    constrained increment is that target minus the ``current`` converged
    displacement.
    """
    fixed: Dict[int, float] = {}
    for entry in entries:
        nodes = mesh.boundary_nodes(int(entry["boundary_id"]))
        target = float(entry.get("value", 0.0)) * float(load_fraction)
        for comp in entry["components"]:
            for dof in dofs.u_dofs(nodes, int(comp)):
                base = 0.0 if current is None else float(current[dof])
                fixed[int(dof)] = target - base
    return DirichletConstraints.from_dict(fixed)


def constrained_dofs_summary(constraints: DirichletConstraints, dofs: DofHandler) -> Tuple[int, int]:
    """(number of constrained DOFs, number of free displacement DOFs)."""
    n_c = len(constraints)
    return n_c, dofs.n_u - int(np.count_nonzero(constraints.dofs < dofs.n_u))
