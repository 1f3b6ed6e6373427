"""In-memory record of the load history (one row per output step)."""

from __future__ import annotations

import csv
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from threefield.postprocess import dilatation_error, highest_point, point_displacement


@dataclass
class HistoryRow:
    step: int
    time: float
    newton_iterations: int
    tip_ux: float
    tip_uy: float
    max_y: float
    volume_ratio: float
    dilatation_l2: float


class SolutionHistory:
    """Output sink tracking a monitor point (default: Cook's top-right corner)."""

    def __init__(self, monitor_point: Optional[Sequence[float]] = None):
        self.monitor_point = monitor_point
        self.rows: List[HistoryRow] = []

    def _monitor(self, solid) -> np.ndarray:
        if self.monitor_point is not None:
            return np.asarray(self.monitor_point, dtype=float)
        nodes = solid.mesh.nodes
        # top-right corner at mid thickness
        pt = np.array([nodes[:, 0].max(), nodes[:, 1].max()] + [0.0] * (nodes.shape[1] - 2))
        if nodes.shape[1] == 3:
            pt[2] = 0.5 * (nodes[:, 2].min() + nodes[:, 2].max())
        return pt

    def write(self, solid) -> None:
        u = solid.dofs.nodal_displacements(solid.solution_n)
        tip = point_displacement(solid.mesh.nodes, u, self._monitor(solid))
        l2, ratio = dilatation_error(solid.qph, solid.cell_values, solid.vol_reference)
        result = solid.last_result if solid.time.timestep > 0 else None
        self.rows.append(
            HistoryRow(
                step=int(solid.time.timestep),
                time=float(solid.time.current),
                newton_iterations=int(result.iterations) if result is not None else 0,
                tip_ux=float(tip[0]),
                tip_uy=float(tip[1]),
                max_y=float(highest_point(solid.mesh.nodes, u)[1]),
                volume_ratio=float(ratio),
                dilatation_l2=float(l2),
            )
        )

    def column(self, name: str) -> np.ndarray:
        return np.array([getattr(r, name) for r in self.rows], dtype=float)

    def to_csv(self, path: Union[str, Path]) -> None:
        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=list(HistoryRow.__dataclass_fields__))
            writer.writeheader()
            for row in self.rows:
                writer.writerow(asdict(row))
