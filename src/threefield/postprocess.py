"""Scalar diagnostics of a converged state."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from threefield.fem.fe_values import CellValues
from threefield.qp_record import QuadraturePointHistory


def compute_vol_current(qph: QuadraturePointHistory, cv: CellValues) -> float:
    """Current volume: integral of det(F) over the reference configuration."""
    vol = float(np.sum(qph.gather().det_F * cv.JxW))
    if not vol > 0.0:
        raise RuntimeError(f"current volume {vol:g} is not positive")
    return vol


def dilatation_error(qph: QuadraturePointHistory, cv: CellValues, vol_reference: float) -> Tuple[float, float]:
    """(L2 norm of det(F) - J_tilde, v / V_0)."""
    qa = qph.gather()
    diff = qa.det_F - qa.J_tilde
    l2 = float(np.sqrt(np.sum(diff * diff * cv.JxW)))
    return l2, compute_vol_current(qph, cv) / float(vol_reference)


def cell_stress_norm(qph: QuadraturePointHistory) -> np.ndarray:
    """Frobenius norm of tau averaged over each cell's quadrature points."""
    tau = qph.gather().tau
    return np.mean(np.sqrt(np.einsum("cqij,cqij->cq", tau, tau)), axis=1)


def deformed_nodes(nodes: np.ndarray, displacement: np.ndarray) -> np.ndarray:
    return nodes + displacement.reshape(nodes.shape)


def highest_point(nodes: np.ndarray, displacement: np.ndarray) -> np.ndarray:
    """Deformed node with the largest y coordinate."""
    x = deformed_nodes(nodes, displacement)
    return x[int(np.argmax(x[:, 1]))]


def point_displacement(nodes: np.ndarray, displacement: np.ndarray, point) -> np.ndarray:
    """Displacement of the node closest to ``point`` (reference coordinates)."""
    i = int(np.argmin(np.linalg.norm(nodes - np.asarray(point, dtype=float)[None, :], axis=1)))
    return displacement.reshape(nodes.shape)[i]
