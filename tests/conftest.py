"""
Pytest configuration for threefield tests.

Adds src/ to sys.path so tests can import threefield without installing it,
and provides small one-cell / few-cell problems shared across test modules.
"""

import os
import sys

import numpy as np
import pytest

repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
src_path = os.path.join(repo_root, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from threefield.config import SimulationConfig  # noqa: E402
from threefield.fem.basis import LagrangeBasis, MonomialBasis  # noqa: E402
from threefield.fem.dofs import DofHandler  # noqa: E402
from threefield.fem.fe_values import compute_cell_values  # noqa: E402
from threefield.fem.mesh import structured_grid  # noqa: E402
from threefield.materials import MaterialParameters  # noqa: E402
from threefield.qp_record import QuadraturePointHistory  # noqa: E402


class CellProblem:
    """A tiny structured mesh with everything needed to assemble it by hand."""

    def __init__(self, dim=2, degree=1, cells=1, mu=1.0, nu=0.3, quad_order=None):
        self.mesh = structured_grid([cells] * dim, [0.0] * dim, [1.0] * dim, degree=degree)
        self.u_basis = LagrangeBasis(degree, dim)
        self.pJ_basis = MonomialBasis(degree - 1, dim)
        self.dofs = DofHandler(self.mesh, self.pJ_basis.n_functions)
        self.cv = compute_cell_values(self.mesh, self.u_basis, self.pJ_basis, quad_order or degree + 1)
        self.params = MaterialParameters(mu, nu)
        self.qph = QuadraturePointHistory()
        self.qph.setup(self.mesh.n_cells, self.cv.n_q_points, self.params, dim)

    def reference_solution(self):
        U = np.zeros(self.dofs.n_dofs)
        self.dofs.cell_J_coefficients(U)[:, 0] = 1.0
        return U

    def perturbed_solution(self, seed=0, amplitude=0.05):
        rng = np.random.default_rng(seed)
        U = self.reference_solution()
        U[self.dofs.u_slice] += amplitude * rng.standard_normal(self.dofs.n_u)
        U[self.dofs.p_slice] += 0.1 * rng.standard_normal(self.dofs.n_p)
        U[self.dofs.J_slice] += 0.02 * rng.standard_normal(self.dofs.n_J)
        return U

    def update(self, U, use_numba=False):
        self.qph.update_from_solution(U, self.cv, self.dofs, use_numba=use_numba)
        return self.qph.gather()


@pytest.fixture
def cell_problem():
    return CellProblem


@pytest.fixture
def small_cook_config():
    """2D Q1 Cook's membrane, soft enough to converge in a handful of iterations."""
    return SimulationConfig(
        dim=2,
        poly_degree=1,
        quad_order=2,
        geometry="cook",
        cell_count=4,
        mu=1.0e6,
        nu=0.3,
        p_p0=0.01,
        delta_t=0.5,
        end_time=1.0,
        linear_solver_type="Direct",
        verbose=False,
    )
