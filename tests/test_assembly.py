"""Cell assembly: tangent consistency, symmetry and the Neumann load."""

import numpy as np
import pytest

from threefield.assembly import (
    NeumannLoad,
    add_neumann_contributions,
    assemble_cell_system,
    assemble_system,
)
from threefield.fem.basis import LagrangeBasis
from threefield.fem.dofs import DofHandler
from threefield.fem.fe_values import compute_face_values
from threefield.fem.mesh import structured_grid


def _rhs(prob, U):
    return assemble_system(prob.cv, prob.update(U), prob.dofs).rhs


@pytest.mark.parametrize("dim,degree", [(2, 1), (2, 2), (3, 1)])
def test_tangent_matches_finite_differences(cell_problem, dim, degree):
    prob = cell_problem(dim=dim, degree=degree)
    U = prob.perturbed_solution(seed=4, amplitude=0.03)
    K = assemble_system(prob.cv, prob.update(U), prob.dofs).K.toarray()

    h = 1e-6
    K_fd = np.zeros_like(K)
    for j in range(prob.dofs.n_dofs):
        e = np.zeros_like(U)
        e[j] = h
        # fe is the negative residual
        K_fd[:, j] = -(_rhs(prob, U + e) - _rhs(prob, U - e)) / (2.0 * h)

    np.testing.assert_allclose(K, K_fd, rtol=0.0, atol=1e-5 * np.abs(K).max())


def test_local_matrix_is_symmetric(cell_problem):
    prob = cell_problem(dim=3, degree=2)
    qa = prob.update(prob.perturbed_solution(seed=5))
    ke = assemble_cell_system(0, prob.cv, qa, prob.dofs).matrix
    np.testing.assert_array_equal(ke, ke.T)


def test_reference_state_has_zero_residual(cell_problem):
    prob = cell_problem(dim=2, degree=2, cells=2)
    rhs = _rhs(prob, prob.reference_solution())
    np.testing.assert_allclose(rhs, 0.0, atol=1e-12)


def test_global_matrix_sums_shared_node_contributions(cell_problem):
    prob = cell_problem(dim=2, degree=1, cells=2)
    system = assemble_system(prob.cv, prob.update(prob.reference_solution()), prob.dofs)
    # the centre node (x = y = 0.5) is shared by all four cells
    centre = int(np.flatnonzero(np.all(np.isclose(prob.mesh.nodes, 0.5), axis=1))[0])
    dof = prob.dofs.u_dofs([centre], 0)[0]
    local = 0.0
    for c in range(prob.mesh.n_cells):
        hits = np.flatnonzero(prob.dofs.cell_dofs[c] == dof)
        if hits.size:
            local += system.ke_all[c, hits[0], hits[0]]
    assert system.K[dof, dof] == pytest.approx(local)


def test_traction_ramps_linearly_in_time():
    load = NeumannLoad(boundary_id=11, direction=(0.0, 0.0625), reference_pressure=1.0e6, p_p0=10.0)
    half = load.traction(0.5, 1.0)
    full = load.traction(1.0, 1.0)
    np.testing.assert_allclose(2.0 * half, full)
    np.testing.assert_allclose(full, [0.0, 625000.0])


@pytest.mark.parametrize("degree", [1, 2])
def test_neumann_load_integrates_to_traction_times_area(degree):
    mesh = structured_grid([3, 2], [0.0, 0.0], [2.0, 1.5], degree=degree, colorize=True)
    basis = LagrangeBasis(degree, 2)
    dofs = DofHandler(mesh, 1)
    cells, faces = mesh.faces_with_id(1)
    fv = compute_face_values(mesh, basis, cells, faces, degree + 1)
    assert fv.area() == pytest.approx(1.5)

    t = np.array([3.0, -2.0])
    fe_all = np.zeros((mesh.n_cells, dofs.dofs_per_cell))
    add_neumann_contributions(fe_all, fv, t, dofs)
    total = fe_all[:, dofs.idx_u].reshape(mesh.n_cells, -1, 2).sum(axis=(0, 1))
    np.testing.assert_allclose(total, t * 1.5)
    # nothing reaches the pressure or dilatation rows
    assert not np.any(fe_all[:, dofs.idx_p])
    assert not np.any(fe_all[:, dofs.idx_J])
