"""
Benchmarking module for assembly and solver timings.

Provides tools for:
- NumPy vs. Numba cell-map timings across mesh sizes
- Linear solve time and peak memory
"""

from .benchmark_assembly import run_single_benchmark

__all__ = ['run_single_benchmark']
