"""Newton-Raphson controller on a small Cook's membrane."""

import numpy as np
import pytest

import threefield.linear_solver as linear_solver
from threefield.convergence import ErrorNorms, NewtonConvergence
from threefield.errors import NewtonNonConvergence
from threefield.newton import NewtonRaphsonController, NewtonState
from threefield.solid import Solid


def _solid_after_first_step(config):
    solid = Solid(config)
    solid.time.increment()
    return solid


def test_newton_converges_quadratically(small_cook_config):
    solid = _solid_after_first_step(small_cook_config)
    delta = np.zeros(solid.dofs.n_dofs)
    result = NewtonRaphsonController(solid).solve(delta)

    assert result.converged
    assert 1 <= result.iterations <= small_cook_config.max_iterations_NR
    assert result.relative_force_error <= small_cook_config.tol_f
    assert result.relative_displacement_error <= small_cook_config.tol_u
    assert len(result.history) == result.iterations
    # the tip moves upwards under the shear load
    assert np.max(solid.dofs.nodal_displacements(delta)[:, 1]) > 0.0


def test_zero_iteration_cap_raises_without_solving(small_cook_config, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("linear solve must not be reached")

    monkeypatch.setattr(linear_solver, "solve_linear_system", fail)
    solid = _solid_after_first_step(small_cook_config.replace(max_iterations_NR=0))
    controller = NewtonRaphsonController(solid)
    with pytest.raises(NewtonNonConvergence) as exc:
        controller.solve(np.zeros(solid.dofs.n_dofs))
    assert exc.value.iterations == 0
    assert controller.state is NewtonState.MAX_ITER_EXCEEDED


def test_iteration_cap_raises(small_cook_config):
    solid = _solid_after_first_step(small_cook_config.replace(max_iterations_NR=1))
    with pytest.raises(NewtonNonConvergence) as exc:
        NewtonRaphsonController(solid).solve(np.zeros(solid.dofs.n_dofs))
    assert exc.value.iterations == 1


def test_inhomogeneous_constraints_only_on_first_iteration(small_cook_config, monkeypatch):
    cfg = small_cook_config.replace(
        dirichlet=[{"boundary_id": 1, "components": [0, 1], "value": 1e-5}],
    )
    solid = _solid_after_first_step(cfg)
    seen = []
    real_solve = linear_solver.solve_linear_system

    def recording_solve(system, dofs, constraints, config, timer=None):
        seen.append(constraints.values.copy())
        return real_solve(system, dofs, constraints, config, timer=timer)

    monkeypatch.setattr(linear_solver, "solve_linear_system", recording_solve)
    delta = np.zeros(solid.dofs.n_dofs)
    result = NewtonRaphsonController(solid).solve(delta)

    assert result.converged
    assert len(seen) >= 2
    target = 1e-5 * solid.load_fraction()
    assert solid.load_fraction() == pytest.approx(0.5)
    np.testing.assert_allclose(seen[0], target)
    for values in seen[1:]:
        assert not np.any(values)
    clamped = solid.mesh.boundary_nodes(1)
    np.testing.assert_allclose(solid.dofs.nodal_displacements(delta)[clamped], target)


def test_error_norms_skip_constrained_entries(small_cook_config):
    solid = Solid(small_cook_config)
    vec = np.ones(solid.dofs.n_dofs)
    mask = solid.make_constraints().mask(solid.dofs.n_dofs)
    norms = ErrorNorms.from_vector(vec, mask, solid.dofs)
    n_free_u = solid.dofs.n_u - np.count_nonzero(mask)
    assert norms.u == pytest.approx(np.sqrt(n_free_u))
    assert norms.p == pytest.approx(np.sqrt(solid.dofs.n_p))
    assert norms.norm == pytest.approx(np.sqrt(solid.dofs.n_dofs - np.count_nonzero(mask)))


def test_normalisation_leaves_zero_baseline_untouched():
    norms = ErrorNorms(norm=2.0, u=4.0, p=3.0, J=0.5).normalized(ErrorNorms(norm=4.0, u=0.0, p=3.0, J=1.0))
    assert (norms.norm, norms.u, norms.p, norms.J) == (0.5, 4.0, 1.0, 0.5)


def test_convergence_never_accepts_first_iteration():
    check = NewtonConvergence(tol_u=1e-6, tol_f=1e-9)
    tiny = ErrorNorms(0.0, 0.0, 0.0, 0.0)
    assert not check.converged(0, tiny, tiny)
    assert check.converged(1, tiny, tiny)
    assert not check.converged(3, ErrorNorms(u=1e-5), tiny)
