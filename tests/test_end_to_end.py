"""Full runs: solver loop and command-line runner."""

import csv

import numpy as np
import pytest

from threefield.cli import main
from threefield.output.history import SolutionHistory
from threefield.solid import Solid


@pytest.mark.slow
def test_nearly_incompressible_cook_keeps_volume(small_cook_config):
    cfg = small_cook_config.replace(
        poly_degree=2,
        quad_order=3,
        mu=80.194e6,
        nu=0.4999,
        p_p0=10.0,
        delta_t=0.1,
        end_time=1.0,
    )
    solid = Solid(cfg)
    history = SolutionHistory()
    results = solid.run([history])

    assert len(results) == 10
    assert all(r.converged for r in results)
    assert history.column("volume_ratio")[-1] == pytest.approx(1.0, abs=1e-3)
    # the tip deflects monotonically upwards as the load is ramped
    assert np.all(np.diff(history.column("tip_uy")) > 0.0)


@pytest.mark.slow
def test_static_condensation_does_not_change_the_answer(small_cook_config):
    final = []
    for condense in (True, False):
        solid = Solid(small_cook_config.replace(use_static_condensation=condense))
        solid.run()
        final.append(solid.solution_n.copy())
    u0 = solid.dofs.split(final[0])[0]
    u1 = solid.dofs.split(final[1])[0]
    np.testing.assert_allclose(u0, u1, rtol=1e-8, atol=1e-10 * np.abs(u1).max())


_SOFT = [
    "--set", "dim=2",
    "--set", "poly_degree=1",
    "--set", "quad_order=2",
    "--set", "cell_count=4",
    "--set", "mu=1.0e6",
    "--set", "nu=0.3",
    "--set", "p_p0=0.01",
    "--set", "delta_t=0.5",
    "--set", "linear_solver_type=Direct",
]


@pytest.mark.slow
def test_cli_run_writes_outputs(tmp_path, capsys):
    code = main(_SOFT + ["--output-dir", str(tmp_path), "--quiet", "--plot"])
    assert code == 0

    for step in range(2):
        assert (tmp_path / f"solution-2d-{step}.vtk").exists()
    # t = 1.0 equals end_time and is not solved
    assert not (tmp_path / "solution-2d-2.vtk").exists()
    with open(tmp_path / "history.csv", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [int(r["step"]) for r in rows] == [0, 1]
    assert (tmp_path / "load_history.png").exists()
    assert "[run] history written" in capsys.readouterr().out


def test_cli_reads_yaml_config(tmp_path):
    cfg = tmp_path / "run.yaml"
    cfg.write_text("dim: 2\npoly_degree: 1\nquad_order: 2\ncell_count: 2\nmu: 1.0e6\nnu: 0.3\n"
                   "p_p0: 0.001\ndelta_t: 0.5\nlinear_solver_type: Direct\n")
    code = main(["--config", str(cfg), "--output-dir", str(tmp_path / "out"), "--no-vtk", "--quiet"])
    assert code == 0
    assert not list((tmp_path / "out").glob("*.vtk"))


def test_cli_rejects_bad_config(capsys):
    assert main(["--set", "poisson=0.3"]) == 1
    assert "Aborting!" in capsys.readouterr().err


def test_cli_reports_newton_failure(tmp_path, capsys):
    code = main(_SOFT + ["--set", "max_iterations_NR=1", "--output-dir", str(tmp_path), "--no-vtk", "--quiet"])
    assert code == 1
    assert "NewtonNonConvergence" in capsys.readouterr().err
