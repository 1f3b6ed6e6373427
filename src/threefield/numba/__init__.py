"""Numba-accelerated kernels.

Kernels here are stateless and run in Numba's ``nopython`` mode. They are
opt-in: the NumPy path is used unless ``use_numba`` is set in the
configuration (or ``--use-numba`` on the command line).
"""

from .kernels_assembly import assemble_cells_numba
from .kernels_material import neo_hookean_qp_numba

__all__ = ["assemble_cells_numba", "neo_hookean_qp_numba"]
