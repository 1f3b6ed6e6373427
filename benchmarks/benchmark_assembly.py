"""
Assembly and solve timings for Cook's membrane.

Measures the map phase (NumPy loop vs. parallel Numba kernel), the condensed
linear solve and peak memory across mesh sizes.

Usage:
    python -m benchmarks.benchmark_assembly --dim 2 --cells 8,16,32
    python -m benchmarks.benchmark_assembly --dim 3 --cells 4,8 --no-numba
    python -m benchmarks.benchmark_assembly --csv benchmarks/assembly.csv
"""

import argparse
import csv
import sys
import time
import tracemalloc
from pathlib import Path
from typing import Dict, List

import numpy as np

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from threefield.assembly import assemble_cells
from threefield.config import SimulationConfig
from threefield.linear_solver import solve_linear_system
from threefield.solid import Solid


# ============================================================================
# Benchmark runner
# ============================================================================

def _best_of(fn, repeats: int) -> float:
    best = np.inf
    for _ in range(repeats):
        t0 = time.perf_counter()
        fn()
        best = min(best, time.perf_counter() - t0)
    return best


def run_single_benchmark(dim: int, cells: int, degree: int, use_numba: bool, repeats: int = 3) -> Dict:
    """
    Time one mesh size.

    Returns
    -------
    benchmark : dict
        n_cells, n_dofs, numpy_s, numba_s (nan when skipped), solve_s,
        peak_memory_mb
    """
    cfg = SimulationConfig(dim=dim, poly_degree=degree, quad_order=degree + 1, cell_count=cells, verbose=False)

    print(f"\n{'='*70}")
    print(f"BENCHMARK: Cook's membrane dim={dim} Q{degree} cells/edge={cells}")
    print(f"{'='*70}\n")

    tracemalloc.start()
    solid = Solid(cfg)
    solid.time.increment()
    qa = solid.qph.gather()

    t_numpy = _best_of(lambda: assemble_cells(solid.cell_values, qa, solid.dofs, use_numba=False), repeats)
    t_numba = float("nan")
    if use_numba:
        # first call compiles (or loads the cache)
        assemble_cells(solid.cell_values, qa, solid.dofs, use_numba=True)
        t_numba = _best_of(lambda: assemble_cells(solid.cell_values, qa, solid.dofs, use_numba=True), repeats)

    system = solid.assemble()
    constraints = solid.make_constraints()
    t_solve = _best_of(lambda: solve_linear_system(system, solid.dofs, constraints, cfg), 1)

    _, peak_mem = tracemalloc.get_traced_memory()
    tracemalloc.stop()

    benchmark = {
        "dim": dim,
        "cells_per_edge": cells,
        "n_cells": solid.mesh.n_cells,
        "n_dofs": solid.dofs.n_dofs,
        "numpy_s": t_numpy,
        "numba_s": t_numba,
        "solve_s": t_solve,
        "peak_memory_mb": peak_mem / 1024 / 1024,
    }

    print(f"  Cells:           {benchmark['n_cells']}")
    print(f"  DOFs:            {benchmark['n_dofs']}")
    print(f"  NumPy assembly:  {t_numpy:.4f} s")
    if use_numba:
        print(f"  Numba assembly:  {t_numba:.4f} s  (speed-up {t_numpy / t_numba:.1f}x)")
    print(f"  Linear solve:    {t_solve:.4f} s")
    print(f"  Peak memory:     {benchmark['peak_memory_mb']:.2f} MB")
    return benchmark


def save_csv(rows: List[Dict], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0]))
        writer.writeheader()
        writer.writerows(rows)
    print(f"\n✓ Results saved: {path}")


def main():
    parser = argparse.ArgumentParser(description="Assembly/solve timings for the three-field solver")
    parser.add_argument("--dim", type=int, default=2, choices=[2, 3])
    parser.add_argument("--degree", type=int, default=2)
    parser.add_argument("--cells", type=str, default="4,8,16", help="Comma-separated cells per edge")
    parser.add_argument("--repeats", type=int, default=3)
    parser.add_argument("--no-numba", action="store_true", help="Skip the Numba kernel")
    parser.add_argument("--csv", type=str, default=None, help="Write results to this CSV file")
    args = parser.parse_args()

    rows = [
        run_single_benchmark(args.dim, int(n), args.degree, not args.no_numba, args.repeats)
        for n in args.cells.split(",")
    ]
    if args.csv:
        save_csv(rows, Path(args.csv))
    return 0


if __name__ == "__main__":
    sys.exit(main())
