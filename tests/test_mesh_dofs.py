"""Meshes, bases, quadrature and the block DOF layout."""

import numpy as np
import pytest

from threefield.fem.basis import LagrangeBasis, MonomialBasis
from threefield.fem.dofs import DofHandler
from threefield.fem.fe_values import compute_cell_values
from threefield.fem.mesh import cooks_membrane_mesh, hyper_rectangle_mesh, make_mesh, structured_grid
from threefield.fem.quadrature import gauss_rule


@pytest.mark.parametrize("degree", [1, 2])
def test_cook_area_2d(degree):
    mesh = cooks_membrane_mesh(4, dim=2, degree=degree, scale=1e-3)
    u_basis = LagrangeBasis(degree, 2)
    cv = compute_cell_values(mesh, u_basis, MonomialBasis(degree - 1, 2), degree + 1)
    assert cv.volume() == pytest.approx(1440.0e-6, rel=1e-12)


def test_cook_volume_3d():
    mesh = cooks_membrane_mesh(2, dim=3, degree=1, scale=1e-3)
    cv = compute_cell_values(mesh, LagrangeBasis(1, 3), MonomialBasis(0, 3), 2)
    assert cv.volume() == pytest.approx(1440.0 * 5.0 * 1e-9, rel=1e-12)
    assert mesh.n_cells == 2 * 2 * 2


def test_cook_boundary_ids():
    mesh2 = cooks_membrane_mesh(4, dim=2)
    assert mesh2.boundary_ids() == (1, 3, 11)
    mesh3 = cooks_membrane_mesh(4, dim=3)
    assert mesh3.boundary_ids() == (1, 2, 3, 11)

    # clamped edge at x = 0, loaded edge at x = 48 spanning y in [44, 60]
    assert np.allclose(mesh2.nodes[mesh2.boundary_nodes(1), 0], 0.0)
    loaded = mesh2.nodes[mesh2.boundary_nodes(11)]
    assert np.allclose(loaded[:, 0], 48.0)
    assert loaded[:, 1].min() == pytest.approx(44.0)
    assert loaded[:, 1].max() == pytest.approx(60.0)
    assert len(mesh2.faces_with_id(11)[0]) == 4


def test_structured_grid_node_counts():
    mesh = structured_grid([3, 2], [0.0, 0.0], [1.0, 1.0], degree=2)
    assert mesh.n_nodes == 7 * 5
    assert mesh.cells.shape == (6, 9)
    mesh = structured_grid([2, 2, 2], [0.0] * 3, [1.0] * 3, degree=1)
    assert mesh.n_nodes == 27
    assert mesh.corner_cells().shape == (8, 8)


@pytest.mark.parametrize("dim,refinement,n_marked", [(2, 1, 1), (3, 2, 4)])
def test_block_top_face_marker(dim, refinement, n_marked):
    mesh = hyper_rectangle_mesh(refinement, dim=dim)
    cells, faces = mesh.faces_with_id(6)
    assert len(cells) == n_marked
    for c, f in zip(cells, faces):
        assert mesh.face_center(int(c), int(f))[1] == pytest.approx(1.0)
    assert set(mesh.boundary_ids()) == set(range(2 * dim)) | {6}


def test_block_refinement_zero_still_splits_once():
    assert hyper_rectangle_mesh(0, dim=2).n_cells == 4


def test_make_mesh_rejects_unknown_geometry():
    with pytest.raises(ValueError):
        make_mesh("sphere", 2, 1, 1.0, 4, 2)


@pytest.mark.parametrize("degree,dim", [(1, 2), (2, 2), (2, 3), (3, 2)])
def test_lagrange_partition_of_unity(degree, dim):
    basis = LagrangeBasis(degree, dim)
    pts, _ = gauss_rule(degree + 2, dim)
    np.testing.assert_allclose(basis.values(pts).sum(axis=1), 1.0)
    np.testing.assert_allclose(basis.gradients(pts).sum(axis=1), 0.0, atol=1e-12)
    # nodal interpolation property
    np.testing.assert_allclose(basis.values(basis.support_points), np.eye(basis.n_functions), atol=1e-12)


def test_quadrature_integrates_polynomials_exactly():
    pts, w = gauss_rule(3, 2)
    assert w.sum() == pytest.approx(1.0)
    # x^5 y^4 on [0, 1]^2
    assert np.sum(w * pts[:, 0] ** 5 * pts[:, 1] ** 4) == pytest.approx(1.0 / 30.0)


def test_monomial_basis_sizes():
    assert MonomialBasis(0, 3).n_functions == 1
    assert MonomialBasis(1, 2).n_functions == 3
    assert MonomialBasis(1, 3).n_functions == 4
    assert MonomialBasis(2, 3).n_functions == 10
    np.testing.assert_array_equal(MonomialBasis(1, 2).values(np.array([[0.5, 0.5]])), [[1.0, 0.0, 0.0]])


def test_dof_layout():
    mesh = cooks_membrane_mesh(4, dim=2, degree=2)
    dofs = DofHandler(mesh, MonomialBasis(1, 2).n_functions)
    assert dofs.dofs_per_block == (81 * 2, 16 * 3, 16 * 3)
    assert dofs.dofs_per_cell == 9 * 2 + 3 + 3
    assert dofs.cell_dofs.dtype == np.int64

    # u DOFs node-major, then this cell's p and J coefficients
    c = 5
    np.testing.assert_array_equal(dofs.cell_dofs[c, :2], [mesh.cells[c, 0] * 2, mesh.cells[c, 0] * 2 + 1])
    np.testing.assert_array_equal(dofs.cell_dofs[c, dofs.idx_p], dofs.n_u + 3 * c + np.arange(3))
    np.testing.assert_array_equal(dofs.cell_dofs[c, dofs.idx_J], dofs.n_u + dofs.n_p + 3 * c + np.arange(3))

    vec = np.arange(dofs.n_dofs, dtype=float)
    u, p, J = dofs.split(vec)
    assert u.size == dofs.n_u and p.size == dofs.n_p and J.size == dofs.n_J
    assert dofs.cell_J_coefficients(vec)[c, 0] == dofs.n_u + dofs.n_p + 3 * c
