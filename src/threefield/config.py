"""Run configuration for the three-field solver.

A single flat dataclass holds every recognised option (finite element,
geometry, material, linear solver, nonlinear solver, time). Files are plain
YAML mappings with the same keys::

    poly_degree: 2
    mu: 80.194e6
    nu: 0.4999
    linear_solver_type: CG
    dirichlet:
      - {boundary_id: 1, components: [0, 1, 2], value: 0.0}

Boundary presets (load marker, traction direction, Dirichlet list) depend on
the geometry; ``None`` selects the preset.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml


_LINEAR_SOLVERS = ("CG", "Direct")
_PRECONDITIONERS = ("none", "identity", "jacobi", "ssor")
_GEOMETRIES = ("cook", "block")


@dataclass
class SimulationConfig:
    # Finite element system
    poly_degree: int = 2
    quad_order: int = 3

    # Geometry
    dim: int = 3
    geometry: str = "cook"
    global_refinement: int = 2
    scale: float = 1e-3
    p_p0: float = 10.0
    cell_count: int = 8

    # Material (compressible neo-Hookean)
    mu: float = 80.194e6
    nu: float = 0.4999

    # Linear solver
    linear_solver_type: str = "CG"
    tol_lin: float = 1e-6
    max_iterations_lin: float = 1.0
    use_static_condensation: bool = True
    preconditioner_type: str = "ssor"
    preconditioner_relaxation: float = 0.65

    # Nonlinear solver
    max_iterations_NR: int = 10
    tol_f: float = 1e-9
    tol_u: float = 1e-6

    # Time
    delta_t: float = 0.1
    end_time: float = 1.0

    # Boundary conditions (None -> geometry preset)
    load_boundary_id: Optional[int] = None
    traction_direction: Optional[List[float]] = None
    dirichlet: Optional[List[Dict[str, Any]]] = None

    # Runtime
    use_numba: bool = False
    verbose: bool = True
    debug_newton: bool = False
    output_dir: str = "output"
    write_vtk: bool = True

    def __post_init__(self):
        # YAML 1.1 reads "1e-3" as a string
        for f in fields(self):
            value = getattr(self, f.name)
            if f.type == "float" and isinstance(value, (int, str)) and not isinstance(value, bool):
                setattr(self, f.name, float(value))
        if self.traction_direction is not None:
            self.traction_direction = [float(v) for v in self.traction_direction]

        if self.dim not in (2, 3):
            raise ValueError(f"dim must be 2 or 3, got {self.dim}")
        if int(self.poly_degree) < 1:
            raise ValueError(f"poly_degree must be >= 1, got {self.poly_degree}")
        if int(self.quad_order) < 1:
            raise ValueError(f"quad_order must be >= 1, got {self.quad_order}")
        if self.geometry not in _GEOMETRIES:
            raise ValueError(f"geometry must be one of {_GEOMETRIES}, got {self.geometry!r}")
        if self.linear_solver_type not in _LINEAR_SOLVERS:
            raise ValueError(
                f"linear_solver_type must be one of {_LINEAR_SOLVERS}, got {self.linear_solver_type!r}"
            )
        self.preconditioner_type = str(self.preconditioner_type).lower()
        if self.preconditioner_type not in _PRECONDITIONERS:
            raise ValueError(
                f"preconditioner_type must be one of {_PRECONDITIONERS}, got {self.preconditioner_type!r}"
            )
        if self.scale <= 0.0:
            raise ValueError(f"scale must be positive, got {self.scale}")
        if int(self.cell_count) < 1:
            raise ValueError(f"cell_count must be >= 1, got {self.cell_count}")
        if self.delta_t <= 0.0 or self.end_time <= 0.0:
            raise ValueError("delta_t and end_time must be positive")
        if int(self.max_iterations_NR) < 0:
            raise ValueError("max_iterations_NR must be >= 0")
        if self.tol_lin <= 0.0 or self.tol_f <= 0.0 or self.tol_u <= 0.0:
            raise ValueError("tolerances must be positive")
        if self.max_iterations_lin <= 0.0:
            raise ValueError("max_iterations_lin must be positive")
        if self.traction_direction is not None and len(self.traction_direction) != self.dim:
            raise ValueError(
                f"traction_direction needs {self.dim} components, got {len(self.traction_direction)}"
            )
        if self.dirichlet is not None:
            for entry in self.dirichlet:
                missing = {"boundary_id", "components"} - set(entry)
                if missing:
                    raise ValueError(f"dirichlet entry {entry} is missing {sorted(missing)}")
                for c in entry["components"]:
                    if not 0 <= int(c) < self.dim:
                        raise ValueError(f"dirichlet component {c} out of range for dim={self.dim}")

    # -----------------------------
    # Derived quantities / presets
    # -----------------------------
    @property
    def reference_pressure(self) -> float:
        """Traction scale 1/scale^2 applied to ``p_p0``."""
        return 1.0 / (self.scale * self.scale)

    def resolved_load_boundary_id(self) -> int:
        if self.load_boundary_id is not None:
            return int(self.load_boundary_id)
        return 11 if self.geometry == "cook" else 6

    def resolved_traction_direction(self) -> List[float]:
        if self.traction_direction is not None:
            return [float(v) for v in self.traction_direction]
        d = [0.0] * self.dim
        d[1] = 0.0625 if self.geometry == "cook" else -1.0
        return d

    def resolved_dirichlet(self) -> List[Dict[str, Any]]:
        if self.dirichlet is not None:
            return [
                {
                    "boundary_id": int(e["boundary_id"]),
                    "components": [int(c) for c in e["components"]],
                    "value": float(e.get("value", 0.0)),
                }
                for e in self.dirichlet
            ]
        all_comp = list(range(self.dim))
        if self.geometry == "cook":
            bcs = [{"boundary_id": 1, "components": all_comp, "value": 0.0}]
            if self.dim == 3:
                bcs.append({"boundary_id": 2, "components": [2], "value": 0.0})
                bcs.append({"boundary_id": 3, "components": [2], "value": 0.0})
            return bcs
        # Block: symmetry planes x=0, y=0 (and z=0); top loaded face has x (and z) fixed.
        bcs = [
            {"boundary_id": 0, "components": [0], "value": 0.0},
            {"boundary_id": 2, "components": [1], "value": 0.0},
        ]
        if self.dim == 3:
            bcs.append({"boundary_id": 4, "components": [2], "value": 0.0})
            bcs.append({"boundary_id": 6, "components": [0, 2], "value": 0.0})
        else:
            bcs.append({"boundary_id": 6, "components": [0], "value": 0.0})
        return bcs

    # -----------------------------
    # (De)serialisation
    # -----------------------------
    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SimulationConfig":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        return cls.from_dict(data)

    def to_yaml(self, path: Union[str, Path]) -> None:
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def replace(self, **overrides: Any) -> "SimulationConfig":
        return dataclasses.replace(self, **overrides)


def parse_override(text: str) -> Dict[str, Any]:
    """Parse a ``key=value`` command-line override (value read as YAML)."""
    if "=" not in text:
        raise ValueError(f"Override must look like key=value, got {text!r}")
    key, raw = text.split("=", 1)
    return {key.strip(): yaml.safe_load(raw)}


def apply_overrides(config: SimulationConfig, overrides: Sequence[str]) -> SimulationConfig:
    data = config.to_dict()
    for text in overrides:
        data.update(parse_override(text))
    return SimulationConfig.from_dict(data)
