"""Newton convergence helpers."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class ErrorNorms:
    """Euclidean norms of a global vector, total and per block."""

    norm: float = 1.0
    u: float = 1.0
    p: float = 1.0
    J: float = 1.0

    @classmethod
    def from_vector(cls, vec: np.ndarray, constrained: np.ndarray, dofs) -> "ErrorNorms":
        """Norms over the unconstrained entries of ``vec`` (``constrained`` is a bool mask)."""
        v = np.where(constrained, 0.0, np.asarray(vec, dtype=float))
        return cls(
            norm=float(np.linalg.norm(v)),
            u=float(np.linalg.norm(v[dofs.u_slice])),
            p=float(np.linalg.norm(v[dofs.p_slice])),
            J=float(np.linalg.norm(v[dofs.J_slice])),
        )

    def normalized(self, baseline: "ErrorNorms") -> "ErrorNorms":
        """Divide by ``baseline`` block-wise; zero baseline entries leave the value as is."""

        def _div(a: float, b: float) -> float:
            return a / b if b != 0.0 else a

        return ErrorNorms(
            norm=_div(self.norm, baseline.norm),
            u=_div(self.u, baseline.u),
            p=_div(self.p, baseline.p),
            J=_div(self.J, baseline.J),
        )


@dataclass(frozen=True)
class NewtonConvergence:
    tol_u: float = 1e-6
    tol_f: float = 1e-9

    def converged(self, iteration: int, update_norm: ErrorNorms, residual_norm: ErrorNorms) -> bool:
        """Checked from the second iteration on: displacement update and residual both small."""
        if iteration <= 0:
            return False
        return bool(update_norm.u <= self.tol_u and residual_norm.u <= self.tol_f)
