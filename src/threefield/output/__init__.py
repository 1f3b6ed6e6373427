"""Output sinks for converged time steps."""

from .history import SolutionHistory
from .vtk_export import VTKWriter, write_vtk_unstructured_grid

__all__ = ["SolutionHistory", "VTKWriter", "write_vtk_unstructured_grid"]
