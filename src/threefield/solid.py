"""Problem wiring: mesh, discretisation, state and the assembled system.

:class:`Solid` is what the Newton controller and the time stepper operate
on. It owns the converged solution ``solution_n`` (blocks u | p | J), the
quadrature-point history and the pseudo time.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import numpy as np

from threefield.assembly import GlobalSystem, NeumannLoad, assemble_system
from threefield.config import SimulationConfig
from threefield.fem.basis import LagrangeBasis, MonomialBasis
from threefield.fem.bcs import DirichletConstraints, constrained_dofs_summary, make_dirichlet_constraints
from threefield.fem.dofs import DofHandler
from threefield.fem.fe_values import compute_cell_values, compute_face_values
from threefield.fem.mesh import Mesh, make_mesh
from threefield.materials import MaterialParameters
from threefield.newton import NewtonResult
from threefield.postprocess import dilatation_error
from threefield.qp_record import QuadraturePointHistory
from threefield.time_stepper import Time, TimeStepper
from threefield.utils.timer import SectionTimer


class Solid:
    def __init__(self, config: SimulationConfig, mesh: Optional[Mesh] = None):
        self.config = config
        self.timer = SectionTimer()
        self.time = Time(config.end_time, config.delta_t)
        self.last_result: Optional[NewtonResult] = None
        with self.timer.section("setup"):
            self._setup(mesh)

    # -----------------------------
    # Setup
    # -----------------------------
    def _setup(self, mesh: Optional[Mesh]) -> None:
        cfg = self.config
        if mesh is None:
            mesh = make_mesh(cfg.geometry, cfg.dim, cfg.poly_degree, cfg.scale, cfg.cell_count, cfg.global_refinement)
        if mesh.dim != cfg.dim or mesh.degree != cfg.poly_degree:
            raise ValueError(
                f"mesh (dim={mesh.dim}, degree={mesh.degree}) does not match config "
                f"(dim={cfg.dim}, poly_degree={cfg.poly_degree})"
            )
        self.mesh = mesh

        self.u_basis = LagrangeBasis(cfg.poly_degree, cfg.dim)
        self.pJ_basis = MonomialBasis(cfg.poly_degree - 1, cfg.dim)
        self.dofs = DofHandler(mesh, self.pJ_basis.n_functions)
        self.cell_values = compute_cell_values(mesh, self.u_basis, self.pJ_basis, cfg.quad_order)
        self.vol_reference = self.cell_values.volume()

        self.load = NeumannLoad(
            boundary_id=cfg.resolved_load_boundary_id(),
            direction=tuple(cfg.resolved_traction_direction()),
            reference_pressure=cfg.reference_pressure,
            p_p0=cfg.p_p0,
        )
        cells, faces = mesh.faces_with_id(self.load.boundary_id)
        self.face_values = compute_face_values(mesh, self.u_basis, cells, faces, cfg.quad_order)
        self.dirichlet = cfg.resolved_dirichlet()

        self.qph = QuadraturePointHistory()
        self.qph.setup(
            mesh.n_cells,
            self.cell_values.n_q_points,
            MaterialParameters(cfg.mu, cfg.nu),
            cfg.dim,
        )

        # J_tilde = 1 is the constant (first) DG function in every cell
        self.solution_n = np.zeros(self.dofs.n_dofs)
        self.dofs.cell_J_coefficients(self.solution_n)[:, 0] = 1.0

        n_c, n_free_u = constrained_dofs_summary(self.make_constraints(), self.dofs)
        print(f"[setup] {mesh.name}: active cells={mesh.n_cells}  vertices={mesh.n_nodes}  Q{cfg.poly_degree}-DGP{cfg.poly_degree - 1}")
        print(f"[setup] dofs={self.dofs.n_dofs}  (u={self.dofs.n_u}, p={self.dofs.n_p}, J={self.dofs.n_J})"
              f"  constrained={n_c}  free u={n_free_u}")
        print(f"[setup] reference volume={self.vol_reference:.6e}  load boundary={self.load.boundary_id}"
              f"  loaded faces={self.face_values.n_faces}")

    # -----------------------------
    # Newton interface
    # -----------------------------
    def load_fraction(self) -> float:
        return self.time.current / self.time.end

    def total_solution(self, solution_delta: np.ndarray) -> np.ndarray:
        return self.solution_n + solution_delta

    def make_constraints(self) -> DirichletConstraints:
        """Constraints on the first Newton update of the current step."""
        return make_dirichlet_constraints(
            self.mesh, self.dofs, self.dirichlet, self.load_fraction(), current=self.solution_n
        )

    def traction(self) -> np.ndarray:
        return self.load.traction(self.time.current, self.time.end)

    def assemble(self) -> GlobalSystem:
        with self.timer.section("assembly"):
            qa = self.qph.gather()
            return assemble_system(
                self.cell_values,
                qa,
                self.dofs,
                faces=self.face_values,
                traction=self.traction(),
                use_numba=self.config.use_numba,
            )

    def update_qph(self, solution_delta: np.ndarray) -> None:
        with self.timer.section("QPH update"):
            self.qph.update_from_solution(
                self.total_solution(solution_delta), self.cell_values, self.dofs, use_numba=self.config.use_numba
            )

    # -----------------------------
    # Reporting
    # -----------------------------
    def print_convergence_footer(self, result: NewtonResult) -> None:
        l2, ratio = dilatation_error(self.qph, self.cell_values, self.vol_reference)
        print("Relative errors:")
        print(f"  Displacement:\t{result.relative_displacement_error:.3e}")
        print(f"  Force:\t\t{result.relative_force_error:.3e}")
        print(f"  Dilatation:\t{l2:.3e}")
        print(f"  v / V_0:\t{ratio * self.vol_reference:.6e} / {self.vol_reference:.6e} = {ratio:.6f}")

    def run(self, sinks: Iterable = ()) -> List[NewtonResult]:
        results = TimeStepper(self, sinks).run()
        if self.config.verbose:
            self.timer.print_summary()
        return results
