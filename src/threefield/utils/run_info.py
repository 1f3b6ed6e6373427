"""Run-time info printing utilities."""

from __future__ import annotations

from datetime import datetime, timezone

from threefield.config import SimulationConfig
from threefield.materials import MaterialParameters


def _fmt_pa(x: float) -> str:
    x = float(x)
    if abs(x) >= 1e9:
        return f"{x/1e9:.3g} GPa"
    if abs(x) >= 1e6:
        return f"{x/1e6:.3g} MPa"
    if abs(x) >= 1e3:
        return f"{x/1e3:.3g} kPa"
    return f"{x:.3g} Pa"


def print_run_header(tag: str) -> None:
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S %Z")
    print(f"\n[run] {tag}  start={ts}")


def print_material_summary(config: SimulationConfig) -> None:
    params = MaterialParameters(config.mu, config.nu)
    print(f"[material] (neo-Hookean, three-field) mu={_fmt_pa(params.mu)}  nu={params.nu:.6g}")
    print(f"[material] kappa={_fmt_pa(params.kappa)}  c_1={_fmt_pa(params.c_1)}")
    print(
        f"[solver] linear={config.linear_solver_type}  condensation={'yes' if config.use_static_condensation else 'no'}"
        f"  precond={config.preconditioner_type}({config.preconditioner_relaxation:g})"
        f"  numba={'yes' if config.use_numba else 'no'}"
    )
    print(
        f"[solver] NR max_it={config.max_iterations_NR}  tol_f={config.tol_f:g}  tol_u={config.tol_u:g}"
        f"  dt={config.delta_t:g}  end={config.end_time:g}"
    )
