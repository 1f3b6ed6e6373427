"""Minimal finite-element building blocks (meshes, bases, quadrature, DOFs)."""

from .quadrature import gauss_rule, face_rule
from .basis import LagrangeBasis, MonomialBasis
from .mesh import Mesh, structured_grid, cooks_membrane_mesh, hyper_rectangle_mesh
from .dofs import DofHandler
from .fe_values import CellValues, FaceValues, compute_cell_values, compute_face_values
from .bcs import DirichletConstraints, apply_dirichlet, make_dirichlet_constraints

__all__ = [
    "gauss_rule", "face_rule",
    "LagrangeBasis", "MonomialBasis",
    "Mesh", "structured_grid", "cooks_membrane_mesh", "hyper_rectangle_mesh",
    "DofHandler",
    "CellValues", "FaceValues", "compute_cell_values", "compute_face_values",
    "DirichletConstraints", "apply_dirichlet", "make_dirichlet_constraints",
]
