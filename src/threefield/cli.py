"""Command-line runner.

Examples
--------
    threefield-run --config examples/cooks_membrane.yaml
    threefield-run --set dim=2 --set cell_count=16 --set linear_solver_type=Direct
    threefield-run --config examples/cooks_membrane.yaml --use-numba --plot
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from threefield.config import SimulationConfig, apply_overrides
from threefield.errors import ThreeFieldError
from threefield.output.history import SolutionHistory
from threefield.output.vtk_export import VTKWriter
from threefield.solid import Solid
from threefield.utils.run_info import print_material_summary, print_run_header


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="threefield-run",
        description="Quasi-static three-field (u/p/J) hyperelastic solver",
    )
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file")
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a configuration entry (repeatable)",
    )
    parser.add_argument("--output-dir", type=str, default=None, help="Directory for VTK/CSV output")
    parser.add_argument("--no-vtk", action="store_true", help="Do not write VTK files")
    parser.add_argument("--use-numba", action="store_true", help="Use the parallel Numba assembly kernel")
    parser.add_argument("--plot", action="store_true", help="Save a load-history plot (matplotlib)")
    parser.add_argument("--quiet", action="store_true", help="Suppress the per-iteration table")
    return parser


def load_config(args: argparse.Namespace) -> SimulationConfig:
    cfg = SimulationConfig.from_yaml(args.config) if args.config else SimulationConfig()
    cfg = apply_overrides(cfg, args.overrides)
    if args.output_dir:
        cfg = cfg.replace(output_dir=args.output_dir)
    if args.no_vtk:
        cfg = cfg.replace(write_vtk=False)
    if args.use_numba:
        cfg = cfg.replace(use_numba=True)
    if args.quiet:
        cfg = cfg.replace(verbose=False)
    return cfg


def _print_abort(message: str) -> None:
    bar = "-" * 52
    print(f"\n\n{bar}", file=sys.stderr)
    print(f"Exception on processing: \n{message}\nAborting!", file=sys.stderr)
    print(bar, file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args)
    except (OSError, ValueError) as exc:
        _print_abort(str(exc))
        return 1

    print_run_header(f"threefield {cfg.geometry} dim={cfg.dim}")
    print_material_summary(cfg)

    out_dir = Path(cfg.output_dir)
    history = SolutionHistory()
    sinks = [history]
    if cfg.write_vtk:
        sinks.append(VTKWriter(str(out_dir), verbose=cfg.verbose))

    try:
        solid = Solid(cfg)
        solid.run(sinks)
    except ThreeFieldError as exc:
        _print_abort(f"{type(exc).__name__}: {exc}")
        return 1

    out_dir.mkdir(parents=True, exist_ok=True)
    history.to_csv(out_dir / "history.csv")
    print(f"[run] history written: {out_dir / 'history.csv'}")
    if args.plot:
        from threefield.plotting import plot_load_history

        fname = plot_load_history(history, out_dir / "load_history.png")
        print(f"[run] plot written: {fname}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
