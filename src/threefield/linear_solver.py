"""Linear solve of the Newton system.

Four paths, selected by ``use_static_condensation`` and
``linear_solver_type``:

* condensed + CG / Direct: solve the u-only system ``(K_uu + k_bbar) du = f_u'``
  and back-substitute dp, dJ cell-locally;
* full + Direct: sparse LU on the whole (u, p, J) system;
* full + CG: CG on the Schur-complement operator
  ``K_uu + K_up K_Jp^-1 K_JJ K_pJ^-1 K_pu`` with K_Jp factorised once.

A CG run that misses its tolerance is not an error here: the outcome is
reported in :class:`LinearSolveResult` and the Newton loop decides.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from threefield.assembly import GlobalSystem
from threefield.condensation import assemble_condensed_system, back_substitute, condensed_rhs
from threefield.config import SimulationConfig
from threefield.fem.bcs import DirichletConstraints, apply_dirichlet
from threefield.fem.dofs import DofHandler


@dataclass
class LinearSolveResult:
    iterations: int
    residual: float
    converged: bool = True


# ---------------------------------------------------------------------------
# Preconditioners
# ---------------------------------------------------------------------------


def make_preconditioner(A: sp.spmatrix, kind: str, relaxation: float = 1.0) -> Optional[spla.LinearOperator]:
    """Preconditioner ``M ~ A^-1`` as a LinearOperator (None for ``none``)."""
    kind = str(kind).lower()
    n = A.shape[0]
    if kind == "none":
        return None
    if kind == "identity":
        return spla.LinearOperator((n, n), matvec=lambda r: np.array(r, dtype=float, copy=True))

    diag = A.diagonal()
    if np.any(diag == 0.0):
        raise ValueError(f"{kind} preconditioner needs a non-zero diagonal")
    omega = float(relaxation)

    if kind == "jacobi":
        inv_d = omega / diag
        return spla.LinearOperator((n, n), matvec=lambda r: inv_d * np.ravel(r))

    if kind == "ssor":
        if not 0.0 < omega < 2.0:
            raise ValueError(f"SSOR relaxation must lie in (0, 2), got {omega}")
        A = sp.csr_matrix(A)
        D_w = sp.diags(diag / omega)
        lower = (sp.tril(A, k=-1) + D_w).tocsr()
        upper = (sp.triu(A, k=1) + D_w).tocsr()
        d_w = diag / omega
        fac = (2.0 - omega) / omega

        def apply(r):
            y = spla.spsolve_triangular(lower, np.ravel(r), lower=True)
            y = d_w * y
            z = spla.spsolve_triangular(upper, y, lower=False)
            return fac * z

        return spla.LinearOperator((n, n), matvec=apply)

    raise ValueError(f"Unknown preconditioner {kind!r}")


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def cg_solve(A, b: np.ndarray, config: SimulationConfig, M=None) -> Tuple[np.ndarray, LinearSolveResult]:
    n = b.shape[0]
    if not np.any(b):
        return np.zeros(n), LinearSolveResult(0, 0.0, True)
    maxiter = max(1, int(n * config.max_iterations_lin))
    count = [0]

    def _count(_xk):
        count[0] += 1

    x, info = spla.cg(A, b, rtol=config.tol_lin, atol=0.0, maxiter=maxiter, M=M, callback=_count)
    res = float(np.linalg.norm(b - A @ x))
    converged = bool(info == 0 and np.all(np.isfinite(x)))
    if not converged:
        print(f"[linsolve] CG did not reach tol_lin={config.tol_lin:g} after {count[0]} iterations (info={info})")
    return x, LinearSolveResult(count[0], res, converged)


def direct_solve(A: sp.spmatrix, b: np.ndarray) -> Tuple[np.ndarray, LinearSolveResult]:
    x = np.atleast_1d(spla.spsolve(sp.csc_matrix(A), b))
    ok = bool(np.all(np.isfinite(x)))
    if not ok:
        print("[linsolve] direct solve produced non-finite values (singular tangent?)")
    return x, LinearSolveResult(1, 0.0, ok)


def _solve_reduced(K: sp.spmatrix, r: np.ndarray, constraints: DirichletConstraints, config: SimulationConfig):
    """Solve ``K x = r`` with constrained entries of ``x`` prescribed."""
    free, K_ff, r_f, fixed = apply_dirichlet(K, r, constraints)
    x = np.zeros(K.shape[0])
    x[fixed] = constraints.values[constraints.dofs < K.shape[0]]
    if config.linear_solver_type == "CG":
        M = make_preconditioner(K_ff, config.preconditioner_type, config.preconditioner_relaxation)
        x_f, info = cg_solve(K_ff, r_f, config, M)
    else:
        x_f, info = direct_solve(K_ff, r_f)
    x[free] = x_f
    return x, info


def _schur_cg(system: GlobalSystem, dofs: DofHandler, constraints: DirichletConstraints, config: SimulationConfig):
    K = system.K
    f = system.rhs
    u, p, J = dofs.u_slice, dofs.p_slice, dofs.J_slice
    K_uu = K[u, u].tocsr()
    K_up = K[u, p].tocsr()
    K_pu = K[p, u].tocsr()
    K_Jp = K[J, p].tocsc()
    K_JJ = K[J, J].tocsr()

    lu = spla.splu(K_Jp)

    def K_Jp_inv(v):
        return lu.solve(np.asarray(v, dtype=float))

    def K_pJ_inv(v):
        return lu.solve(np.asarray(v, dtype=float), trans="T")

    def K_pp_bar(v):
        return K_Jp_inv(K_JJ @ K_pJ_inv(v))

    def schur(v):
        return K_uu @ v + K_up @ K_pp_bar(K_pu @ v)

    rhs_u = f[u] - K_up @ (K_Jp_inv(f[J]) - K_pp_bar(f[p]))

    n_u = dofs.n_u
    u_constraints = constraints.dofs < n_u
    fixed = constraints.dofs[u_constraints]
    free = np.setdiff1d(np.arange(n_u), fixed)
    du = np.zeros(n_u)
    du[fixed] = constraints.values[u_constraints]

    def embed(x_f):
        full = np.zeros(n_u)
        full[free] = np.ravel(x_f)
        return full

    S_ff = spla.LinearOperator((free.size, free.size), matvec=lambda x: schur(embed(x))[free])
    b_f = rhs_u[free] - schur(du)[free]

    M = make_preconditioner(K_uu[free, :][:, free], config.preconditioner_type, config.preconditioner_relaxation)
    du_f, info = cg_solve(S_ff, b_f, config, M)
    du[free] = du_f

    dJ = K_pJ_inv(f[p] - K_pu @ du)
    dp = K_Jp_inv(f[J] - K_JJ @ dJ)
    return np.concatenate([du, dp, dJ]), info


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def solve_linear_system(
    system: GlobalSystem,
    dofs: DofHandler,
    constraints: DirichletConstraints,
    config: SimulationConfig,
    timer=None,
) -> Tuple[np.ndarray, LinearSolveResult]:
    """Newton update for ``K du = rhs``; returns (update, result)."""
    if config.use_static_condensation:
        K_sc = _timed(timer, "static condensation", assemble_condensed_system, system.K, system.ke_all, dofs)
        u = dofs.u_slice
        rhs_u = condensed_rhs(K_sc, system.rhs, dofs)
        K_uu = K_sc[u, u].tocsr()
        u_cons = DirichletConstraints(
            constraints.dofs[constraints.dofs < dofs.n_u],
            constraints.values[constraints.dofs < dofs.n_u],
        )
        du, info = _timed(timer, "linear solver", _solve_reduced, K_uu, rhs_u, u_cons, config)
        dp, dJ = _timed(timer, "linear solver postprocessing", back_substitute, K_sc, system.rhs, du, dofs)
        update = np.concatenate([du, dp, dJ])
    elif config.linear_solver_type == "CG":
        update, info = _timed(timer, "linear solver", _schur_cg, system, dofs, constraints, config)
    else:
        update, info = _timed(timer, "linear solver", _solve_reduced, system.K, system.rhs, constraints, config)

    constraints.distribute(update)
    return update, info


def _timed(timer, name, fn, *args):
    if timer is None:
        return fn(*args)
    with timer.section(name):
        return fn(*args)
