import numpy as np
import pytest

pytest.importorskip("numba")

from threefield.assembly import assemble_cells  # noqa: E402


@pytest.mark.parametrize("dim,degree", [(2, 2), (3, 1)])
def test_numba_kernel_matches_numpy(cell_problem, dim, degree):
    prob = cell_problem(dim=dim, degree=degree, cells=2, mu=3.0, nu=0.45)
    qa = prob.update(prob.perturbed_solution(seed=11, amplitude=0.02))

    ke_np, fe_np = assemble_cells(prob.cv, qa, prob.dofs, use_numba=False)
    ke_nb, fe_nb = assemble_cells(prob.cv, qa, prob.dofs, use_numba=True)

    np.testing.assert_allclose(ke_nb, ke_np, rtol=1e-10, atol=1e-10 * np.abs(ke_np).max())
    np.testing.assert_allclose(fe_nb, fe_np, rtol=1e-10, atol=1e-10 * np.abs(fe_np).max())


@pytest.mark.parametrize("dim,degree", [(2, 2), (3, 1)])
def test_numba_material_matches_numpy(cell_problem, dim, degree):
    prob = cell_problem(dim=dim, degree=degree, cells=2, mu=3.0, nu=0.45)
    U = prob.perturbed_solution(seed=13, amplitude=0.02)
    qa_np = prob.update(U, use_numba=False)
    qa_nb = prob.update(U, use_numba=True)
    assert qa_nb is not qa_np

    for name in ("F_inv", "tau", "Jc", "det_F", "p_tilde", "J_tilde", "dPsi", "d2Psi"):
        a, b = getattr(qa_nb, name), getattr(qa_np, name)
        np.testing.assert_allclose(a, b, rtol=1e-10, atol=1e-10 * max(np.abs(b).max(), 1.0), err_msg=name)
