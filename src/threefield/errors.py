"""Exception types raised by the three-field solver.

Every failure that aborts a time step derives from :class:`ThreeFieldError`
so the command-line runner can report it uniformly. A linear solver that
misses its tolerance is *not* an exception: it is reported through
:class:`threefield.linear_solver.LinearSolveResult` and judged by the Newton
convergence check.
"""

from __future__ import annotations

from typing import Optional


class ThreeFieldError(Exception):
    """Base class for solver failures."""


class InvalidMaterialParameters(ThreeFieldError, ValueError):
    """Bulk modulus is not positive (or not finite)."""


class KinematicInversion(ThreeFieldError, RuntimeError):
    """det(F) <= 0 at a quadrature point; the stress is undefined."""

    def __init__(
        self,
        message: str,
        det_F: float,
        cell: Optional[int] = None,
        q_point: Optional[int] = None,
    ):
        self.det_F = float(det_F)
        self.cell = cell
        self.q_point = q_point
        where = ""
        if cell is not None:
            where = f" (cell={cell}, q_point={q_point})"
        super().__init__(f"{message}{where}")

    def at(self, cell: int, q_point: int) -> "KinematicInversion":
        """Return a copy of this error tagged with its location."""
        base = str(self.args[0]).split(" (cell=")[0]
        return KinematicInversion(base, self.det_F, cell=cell, q_point=q_point)


class SingularCondensationBlock(ThreeFieldError, RuntimeError):
    """The local pressure/dilatation coupling block k_pJ cannot be inverted."""

    def __init__(self, message: str, cell: Optional[int] = None):
        self.cell = cell
        if cell is not None:
            message = f"{message} (cell={cell})"
        super().__init__(message)


class NewtonNonConvergence(ThreeFieldError, RuntimeError):
    """Newton-Raphson reached its iteration cap without converging."""

    def __init__(self, message: str, iterations: int = 0, residual_u: float = float("nan"), update_u: float = float("nan")):
        self.iterations = int(iterations)
        self.residual_u = float(residual_u)
        self.update_u = float(update_u)
        super().__init__(message)
