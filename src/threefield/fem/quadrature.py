"""Tensor-product Gauss-Legendre rules on the unit reference cell [0, 1]^dim.

Points are ordered lexicographically with the x index running fastest, the
same ordering used for the Lagrange nodes in :mod:`threefield.fem.basis`.
"""

from __future__ import annotations

import itertools
from typing import Tuple

import numpy as np


def gauss_1d(order: int) -> Tuple[np.ndarray, np.ndarray]:
    """Gauss points/weights mapped from [-1, 1] to [0, 1]."""
    if order < 1:
        raise ValueError(f"quadrature order must be >= 1, got {order}")
    x, w = np.polynomial.legendre.leggauss(int(order))
    return 0.5 * (x + 1.0), 0.5 * w


def lexicographic_indices(n: int, ndim: int) -> np.ndarray:
    """Multi-indices (n**ndim, ndim) with the first index running fastest."""
    if ndim == 0:
        return np.zeros((1, 0), dtype=int)
    return np.array(list(itertools.product(range(n), repeat=ndim)), dtype=int)[:, ::-1]


def _tensor(points_1d: np.ndarray, weights_1d: np.ndarray, ndim: int) -> Tuple[np.ndarray, np.ndarray]:
    idx = lexicographic_indices(points_1d.size, ndim)
    pts = points_1d[idx].reshape(idx.shape[0], ndim)
    w = np.prod(weights_1d[idx], axis=1) if ndim else np.ones(1)
    return pts, w


def gauss_rule(order: int, dim: int) -> Tuple[np.ndarray, np.ndarray]:
    """Cell rule: points (nq, dim), weights (nq,)."""
    x, w = gauss_1d(order)
    return _tensor(x, w, dim)


def face_axes(face: int, dim: int) -> Tuple[int, int, Tuple[int, ...]]:
    """Face numbering: ``axis = face // 2``, ``side = face % 2`` (0 -> coordinate 0)."""
    if not 0 <= face < 2 * dim:
        raise ValueError(f"face {face} out of range for dim={dim}")
    axis, side = divmod(int(face), 2)
    tangential = tuple(k for k in range(dim) if k != axis)
    return axis, side, tangential


def face_rule(order: int, face: int, dim: int) -> Tuple[np.ndarray, np.ndarray]:
    """Face rule embedded in the cell reference coordinates.

    Returns points (nq_f, dim) lying on the face and the (dim-1)-dimensional
    reference weights (nq_f,).
    """
    axis, side, tangential = face_axes(face, dim)
    x, w = gauss_1d(order)
    pts_f, w_f = _tensor(x, w, dim - 1)
    pts = np.empty((pts_f.shape[0], dim), dtype=float)
    pts[:, axis] = float(side)
    for k, ax in enumerate(tangential):
        pts[:, ax] = pts_f[:, k]
    return pts, w_f
