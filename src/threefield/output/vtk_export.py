"""VTK export of the displacement, pressure and dilatation fields.

Legacy ASCII unstructured grids on the cell vertices (higher-order nodes are
dropped), readable by ParaView. One file per output step:
``solution-{dim}d-{step}.vtk``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import numpy as np

from threefield.postprocess import cell_stress_norm, highest_point

# lexicographic vertex order -> VTK order
_VTK_ORDER = {2: [0, 1, 3, 2], 3: [0, 1, 3, 2, 4, 5, 7, 6]}
_VTK_TYPE = {2: 9, 3: 12}   # VTK_QUAD, VTK_HEXAHEDRON


def write_vtk_unstructured_grid(
    filename: str,
    nodes: np.ndarray,
    elems: np.ndarray,
    point_data: Optional[Dict[str, np.ndarray]] = None,
    cell_data: Optional[Dict[str, np.ndarray]] = None,
    title: str = "three-field solution",
) -> None:
    """Write VTK unstructured grid file (legacy ASCII format).

    Parameters
    ----------
    filename : str
        Output .vtk filename
    nodes : np.ndarray
        Node coordinates [n_nodes, ndim]
    elems : np.ndarray
        Vertex connectivity [n_elem, 2**ndim], lexicographic vertex order
    point_data : dict
        Nodal data {field_name: values[n_nodes] or values[n_nodes, ndim]}
    cell_data : dict
        Element data {field_name: values[n_elem]}
    """
    n_nodes, ndim = nodes.shape
    n_elem = elems.shape[0]
    nodes_3d = np.column_stack([nodes, np.zeros(n_nodes)]) if ndim == 2 else nodes
    conn = elems[:, _VTK_ORDER[ndim]]

    with open(filename, "w") as f:
        f.write("# vtk DataFile Version 3.0\n")
        f.write(f"{title}\n")
        f.write("ASCII\n")
        f.write("DATASET UNSTRUCTURED_GRID\n")

        f.write(f"POINTS {n_nodes} double\n")
        for node in nodes_3d:
            f.write(f"{node[0]:.9e} {node[1]:.9e} {node[2]:.9e}\n")

        nv = conn.shape[1]
        f.write(f"\nCELLS {n_elem} {n_elem * (1 + nv)}\n")
        for elem in conn:
            f.write(f"{nv} " + " ".join(str(int(i)) for i in elem) + "\n")

        f.write(f"\nCELL_TYPES {n_elem}\n")
        for _ in range(n_elem):
            f.write(f"{_VTK_TYPE[ndim]}\n")

        if point_data:
            f.write(f"\nPOINT_DATA {n_nodes}\n")
            for name, values in point_data.items():
                values = np.asarray(values, dtype=float)
                if values.ndim == 2:
                    if values.shape[1] == 2:
                        values = np.column_stack([values, np.zeros(n_nodes)])
                    f.write(f"VECTORS {name} double\n")
                    for v in values:
                        f.write(f"{v[0]:.9e} {v[1]:.9e} {v[2]:.9e}\n")
                else:
                    f.write(f"SCALARS {name} double 1\n")
                    f.write("LOOKUP_TABLE default\n")
                    for val in values:
                        f.write(f"{float(val):.9e}\n")

        if cell_data:
            f.write(f"\nCELL_DATA {n_elem}\n")
            for name, values in cell_data.items():
                values = np.asarray(values, dtype=float).ravel()
                if values.size != n_elem:
                    raise ValueError(f"cell field {name!r} has {values.size} values, expected {n_elem}")
                f.write(f"SCALARS {name} double 1\n")
                f.write("LOOKUP_TABLE default\n")
                for val in values:
                    f.write(f"{float(val):.9e}\n")


class VTKWriter:
    """Output sink writing one VTK file per converged step."""

    def __init__(self, output_dir: str = "output", verbose: bool = True):
        self.output_dir = Path(output_dir)
        self.verbose = verbose
        self.written = []

    def write(self, solid) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        mesh = solid.mesh
        dofs = solid.dofs
        u = dofs.nodal_displacements(solid.solution_n)
        p = dofs.cell_p_coefficients(solid.solution_n)[:, 0]
        J = dofs.cell_J_coefficients(solid.solution_n)[:, 0]

        vertices = np.unique(mesh.corner_cells())
        renum = np.full(mesh.n_nodes, -1, dtype=int)
        renum[vertices] = np.arange(vertices.size)
        elems = renum[mesh.corner_cells()]

        fname = self.output_dir / f"solution-{mesh.dim}d-{solid.time.timestep}.vtk"
        write_vtk_unstructured_grid(
            str(fname),
            mesh.nodes[vertices],
            elems,
            point_data={"displacement": u[vertices]},
            cell_data={
                "pressure": p,
                "dilatation": J,
                "stress_norm": cell_stress_norm(solid.qph),
            },
        )
        self.written.append(fname)
        if self.verbose:
            top = highest_point(mesh.nodes, u)
            coords = ", ".join(f"{v:.6f}" for v in top)
            print(f"[output] highest deformed position: ({coords})")
            print(f"[output] VTK file written: {fname}")
