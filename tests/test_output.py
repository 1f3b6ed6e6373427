import csv

import numpy as np
import pytest

from threefield.output.history import SolutionHistory
from threefield.output.vtk_export import VTKWriter, write_vtk_unstructured_grid
from threefield.plotting import plot_load_history
from threefield.postprocess import dilatation_error, highest_point, point_displacement
from threefield.solid import Solid


def test_vtk_file_for_initial_state(small_cook_config, tmp_path):
    solid = Solid(small_cook_config)
    writer = VTKWriter(str(tmp_path), verbose=False)
    writer.write(solid)

    fname = tmp_path / "solution-2d-0.vtk"
    assert writer.written == [fname]
    text = fname.read_text()
    assert text.startswith("# vtk DataFile Version 3.0")
    assert "POINTS 25 double" in text
    assert "CELLS 16 80" in text
    assert "VECTORS displacement double" in text
    for name in ("pressure", "dilatation", "stress_norm"):
        assert f"SCALARS {name} double 1" in text


def test_vtk_vertex_order_and_cell_type(tmp_path):
    nodes = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
    elems = np.array([[0, 1, 2, 3]])
    fname = tmp_path / "quad.vtk"
    write_vtk_unstructured_grid(str(fname), nodes, elems, cell_data={"id": [7.0]})
    lines = fname.read_text().splitlines()
    # counter-clockwise order for VTK_QUAD
    assert lines[lines.index("CELLS 1 5") + 1] == "4 0 1 3 2"
    assert lines[lines.index("CELL_TYPES 1") + 1] == "9"


def test_vtk_rejects_wrong_cell_field_size(tmp_path):
    nodes = np.zeros((4, 2))
    with pytest.raises(ValueError):
        write_vtk_unstructured_grid(str(tmp_path / "bad.vtk"), nodes, np.array([[0, 1, 2, 3]]), cell_data={"p": [1.0, 2.0]})


def test_history_initial_row_and_csv(small_cook_config, tmp_path):
    solid = Solid(small_cook_config)
    history = SolutionHistory()
    history.write(solid)

    row = history.rows[0]
    assert row.step == 0 and row.time == 0.0
    assert row.newton_iterations == 0
    assert row.volume_ratio == pytest.approx(1.0)
    assert row.dilatation_l2 == pytest.approx(0.0, abs=1e-14)
    assert row.max_y == pytest.approx(0.060)

    path = tmp_path / "history.csv"
    history.to_csv(path)
    with open(path, newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 1
    assert float(rows[0]["volume_ratio"]) == pytest.approx(1.0)

    png = plot_load_history(history, tmp_path / "history.png")
    assert png.exists()


def test_reference_volume_diagnostics(small_cook_config):
    solid = Solid(small_cook_config)
    l2, ratio = dilatation_error(solid.qph, solid.cell_values, solid.vol_reference)
    assert l2 == 0.0
    assert ratio == pytest.approx(1.0)


def test_point_helpers():
    nodes = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0]])
    u = np.array([[0.0, 0.5], [0.0, 0.0], [0.1, -0.9]])
    np.testing.assert_allclose(highest_point(nodes, u), [0.0, 0.5])
    np.testing.assert_allclose(point_displacement(nodes, u, [0.9, 1.1]), [0.1, -0.9])
