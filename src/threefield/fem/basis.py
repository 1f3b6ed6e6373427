"""Reference-cell shape functions.

* :class:`LagrangeBasis`: continuous tensor-product Lagrange polynomials of
  degree ``k`` on equispaced nodes (Q_k). Used for the displacement components
  and, isoparametrically, for the geometry.
* :class:`MonomialBasis`: complete polynomials of total degree ``k`` (P_k),
  discontinuous across cells. Used for the pressure and dilatation fields.
  The constant function comes first, so a field that is constant in a cell
  has a single non-zero coefficient.
"""

from __future__ import annotations

import itertools
from typing import List, Tuple

import numpy as np

from .quadrature import lexicographic_indices


def _lagrange_1d(nodes: np.ndarray, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Values and derivatives of the 1D Lagrange polynomials, shape (len(x), n)."""
    n = nodes.size
    x = np.asarray(x, dtype=float)
    val = np.ones((x.size, n))
    der = np.zeros((x.size, n))
    for i in range(n):
        others = [j for j in range(n) if j != i]
        for j in others:
            val[:, i] *= (x - nodes[j]) / (nodes[i] - nodes[j])
        for m in others:
            term = np.full(x.size, 1.0 / (nodes[i] - nodes[m]))
            for j in others:
                if j != m:
                    term *= (x - nodes[j]) / (nodes[i] - nodes[j])
            der[:, i] += term
    return val, der


class LagrangeBasis:
    """Tensor-product Lagrange basis with lexicographic node numbering."""

    def __init__(self, degree: int, dim: int):
        if degree < 1:
            raise ValueError(f"Lagrange degree must be >= 1, got {degree}")
        self.degree = int(degree)
        self.dim = int(dim)
        self.nodes_1d = np.linspace(0.0, 1.0, self.degree + 1)
        self.multi_index = lexicographic_indices(self.degree + 1, self.dim)
        self.n_functions = self.multi_index.shape[0]

    @property
    def support_points(self) -> np.ndarray:
        """Reference coordinates of the nodes, (n_functions, dim)."""
        return self.nodes_1d[self.multi_index]

    def values(self, points: np.ndarray) -> np.ndarray:
        points = np.atleast_2d(points)
        out = np.ones((points.shape[0], self.n_functions))
        for d in range(self.dim):
            v, _ = _lagrange_1d(self.nodes_1d, points[:, d])
            out *= v[:, self.multi_index[:, d]]
        return out

    def gradients(self, points: np.ndarray) -> np.ndarray:
        """Reference gradients, (n_points, n_functions, dim)."""
        points = np.atleast_2d(points)
        vals = []
        ders = []
        for d in range(self.dim):
            v, dv = _lagrange_1d(self.nodes_1d, points[:, d])
            vals.append(v[:, self.multi_index[:, d]])
            ders.append(dv[:, self.multi_index[:, d]])
        out = np.empty((points.shape[0], self.n_functions, self.dim))
        for d in range(self.dim):
            g = ders[d].copy()
            for e in range(self.dim):
                if e != d:
                    g *= vals[e]
            out[:, :, d] = g
        return out

    def face_nodes(self, face: int) -> np.ndarray:
        """Local indices of the nodes lying on reference face ``face``."""
        axis, side = divmod(int(face), 2)
        target = 0 if side == 0 else self.degree
        return np.flatnonzero(self.multi_index[:, axis] == target)

    def corner_nodes(self) -> np.ndarray:
        """Local indices of the 2**dim vertices, lexicographic order."""
        mask = np.all((self.multi_index == 0) | (self.multi_index == self.degree), axis=1)
        return np.flatnonzero(mask)


class MonomialBasis:
    """Complete monomials of total degree <= ``degree`` in centred coordinates."""

    def __init__(self, degree: int, dim: int):
        if degree < 0:
            raise ValueError(f"polynomial degree must be >= 0, got {degree}")
        self.degree = int(degree)
        self.dim = int(dim)
        self.exponents = self._exponents(self.degree, self.dim)
        self.n_functions = len(self.exponents)

    @staticmethod
    def _exponents(degree: int, dim: int) -> List[Tuple[int, ...]]:
        exps = [e for e in itertools.product(range(degree + 1), repeat=dim) if sum(e) <= degree]
        exps.sort(key=lambda e: (sum(e), tuple(-v for v in e)))
        return exps

    def values(self, points: np.ndarray) -> np.ndarray:
        xi = np.atleast_2d(points) - 0.5
        out = np.ones((xi.shape[0], self.n_functions))
        for k, e in enumerate(self.exponents):
            for d, p in enumerate(e):
                if p:
                    out[:, k] *= xi[:, d] ** p
        return out
