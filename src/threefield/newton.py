"""Newton-Raphson controller for one time step.

State sequence per iteration::

    APPLY_CONSTRAINTS -> ASSEMBLE -> CHECK_CONVERGENCE
        -> CONVERGED
        -> SOLVE_LINEAR -> APPLY_UPDATE -> (next iteration)
    ... -> MAX_ITER_EXCEEDED  (raises NewtonNonConvergence)

The first iteration applies the full (inhomogeneous) Dirichlet constraints;
later iterations apply the homogeneous copy, so the constrained increments
vanish once the prescribed values have been reached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from threefield import linear_solver
from threefield.convergence import ErrorNorms, NewtonConvergence
from threefield.errors import NewtonNonConvergence


class NewtonState(Enum):
    APPLY_CONSTRAINTS = "CST"
    ASSEMBLE = "ASM"
    CHECK_CONVERGENCE = "CHK"
    SOLVE_LINEAR = "SLV"
    APPLY_UPDATE = "UQPH"
    CONVERGED = "CONVERGED"
    MAX_ITER_EXCEEDED = "MAX_ITER"


@dataclass
class NewtonIterationRecord:
    iteration: int
    residual_norm: ErrorNorms
    update_norm: ErrorNorms
    lin_iterations: int = 0
    lin_residual: float = 0.0
    lin_converged: bool = True


@dataclass
class NewtonResult:
    converged: bool
    iterations: int
    history: List[NewtonIterationRecord] = field(default_factory=list)
    residual_0: ErrorNorms = field(default_factory=ErrorNorms)
    update_0: ErrorNorms = field(default_factory=ErrorNorms)
    residual: ErrorNorms = field(default_factory=ErrorNorms)
    update: ErrorNorms = field(default_factory=ErrorNorms)

    @property
    def relative_displacement_error(self) -> float:
        return self.update.u / self.update_0.u if self.update_0.u != 0.0 else self.update.u

    @property
    def relative_force_error(self) -> float:
        return self.residual.u / self.residual_0.u if self.residual_0.u != 0.0 else self.residual.u


_HEADER = (
    "  it |  LIN_IT   LIN_RES    RES_NORM   RES_U      RES_P      RES_J      "
    "NU_NORM    NU_U       NU_P       NU_J"
)


class NewtonRaphsonController:
    """Drives ``solid`` to equilibrium for its current time.

    ``solid`` provides ``config``, ``dofs``, ``timer``, ``make_constraints()``,
    ``assemble()`` and ``update_qph(solution_delta)``.
    """

    def __init__(self, solid, convergence: Optional[NewtonConvergence] = None):
        self.solid = solid
        cfg = solid.config
        self.convergence = convergence or NewtonConvergence(tol_u=cfg.tol_u, tol_f=cfg.tol_f)
        self.max_iterations = int(cfg.max_iterations_NR)
        self.verbose = bool(cfg.verbose)
        self.debug = bool(cfg.debug_newton)
        self.state = NewtonState.APPLY_CONSTRAINTS

    def _enter(self, state: NewtonState, it: int) -> None:
        self.state = state
        if self.debug:
            print(f"[newton] it={it:2d} {state.value}")

    def solve(self, solution_delta: np.ndarray) -> NewtonResult:
        """Iterate until converged; ``solution_delta`` is updated in place."""
        solid = self.solid
        dofs = solid.dofs
        result = NewtonResult(converged=False, iterations=0)

        residual_0 = ErrorNorms()
        update_0 = ErrorNorms()
        update_norm = ErrorNorms()
        residual_norm = ErrorNorms()
        update = ErrorNorms()

        if self.verbose:
            print(_HEADER)

        constraints_full = None
        for it in range(self.max_iterations):
            self._enter(NewtonState.APPLY_CONSTRAINTS, it)
            if it == 0:
                constraints_full = solid.make_constraints()
                constraints = constraints_full
            else:
                constraints = constraints_full.homogeneous()
            constrained = constraints.mask(dofs.n_dofs)

            self._enter(NewtonState.ASSEMBLE, it)
            system = solid.assemble()

            self._enter(NewtonState.CHECK_CONVERGENCE, it)
            residual = ErrorNorms.from_vector(system.rhs, constrained, dofs)
            if it == 0:
                residual_0 = residual
            residual_norm = residual.normalized(residual_0)

            if self.convergence.converged(it, update_norm, residual_norm):
                self._enter(NewtonState.CONVERGED, it)
                result.converged = True
                result.iterations = it
                result.residual_0, result.update_0 = residual_0, update_0
                result.residual, result.update = residual, update
                if self.verbose:
                    print(f"  {it:2d} | CONVERGED")
                return result

            self._enter(NewtonState.SOLVE_LINEAR, it)
            newton_update, lin = linear_solver.solve_linear_system(
                system, dofs, constraints, solid.config, timer=solid.timer
            )

            self._enter(NewtonState.APPLY_UPDATE, it)
            update = ErrorNorms.from_vector(newton_update, constrained, dofs)
            if it == 0:
                update_0 = update
            update_norm = update.normalized(update_0)

            solution_delta += newton_update
            solid.update_qph(solution_delta)

            rec = NewtonIterationRecord(
                iteration=it,
                residual_norm=residual_norm,
                update_norm=update_norm,
                lin_iterations=lin.iterations,
                lin_residual=lin.residual,
                lin_converged=lin.converged,
            )
            result.history.append(rec)
            if self.verbose:
                print(
                    f"  {it:2d} | {lin.iterations:7d}  {lin.residual:.3e}  "
                    f"{residual_norm.norm:.3e}  {residual_norm.u:.3e}  {residual_norm.p:.3e}  {residual_norm.J:.3e}  "
                    f"{update_norm.norm:.3e}  {update_norm.u:.3e}  {update_norm.p:.3e}  {update_norm.J:.3e}"
                )

        self._enter(NewtonState.MAX_ITER_EXCEEDED, self.max_iterations)
        raise NewtonNonConvergence(
            f"No convergence in nonlinear solver after {self.max_iterations} iterations "
            f"(res_u={residual_norm.u:.3e}, nu_u={update_norm.u:.3e})",
            iterations=self.max_iterations,
            residual_u=residual_norm.u,
            update_u=update_norm.u,
        )
