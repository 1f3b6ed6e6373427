"""Quadrature-point state containers.

One :class:`QuadraturePointRecord` per (cell, quadrature point). It owns its
material object and caches everything the assembly needs. The record is
*not* path dependent: each Newton iteration refreshes it from the total
trial solution ``solution_n + solution_delta``.

:class:`QuadraturePointHistory` evaluates the material for all points at
once (NumPy, or the Numba kernel) into contiguous arrays for the assembly
kernels. The per-point records are brought up to date cell by cell when they
are asked for through :meth:`QuadraturePointHistory.get_data`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from threefield.errors import KinematicInversion
from threefield.materials import MaterialModel, MaterialParameters, NeoHookeanThreeField


MaterialFactory = Callable[[MaterialParameters, int], MaterialModel]


class QuadraturePointRecord:
    def __init__(self):
        self.material: Optional[MaterialModel] = None
        self.dim = 0
        self._updated = False

    def setup(
        self,
        params: MaterialParameters,
        dim: int,
        material_factory: MaterialFactory = NeoHookeanThreeField,
    ) -> None:
        """Create the material and put the record in the reference state."""
        self.dim = int(dim)
        self.material = material_factory(params, self.dim)
        self.update(np.zeros((self.dim, self.dim)), 0.0, 1.0)

    def update(self, grad_u: np.ndarray, p_tilde: float, J_tilde: float) -> None:
        if self.material is None:
            raise RuntimeError("QuadraturePointRecord.update called before setup")
        F = np.eye(self.dim) + np.asarray(grad_u, dtype=float)
        self.material.update(F, p_tilde, J_tilde)

        self._F_inv = np.linalg.inv(F)
        self._tau = self.material.tau()
        self._Jc = self.material.tangent()
        self._dPsi_vol_dJ = float(self.material.dPsi_vol_dJ())
        self._d2Psi_vol_dJ2 = float(self.material.d2Psi_vol_dJ2())
        self._updated = True

    def _check(self) -> MaterialModel:
        if not self._updated or self.material is None:
            raise RuntimeError("QuadraturePointRecord accessed before its first update")
        return self.material

    @property
    def F_inv(self) -> np.ndarray:
        self._check()
        return self._F_inv

    @property
    def tau(self) -> np.ndarray:
        self._check()
        return self._tau

    @property
    def Jc(self) -> np.ndarray:
        self._check()
        return self._Jc

    @property
    def dPsi_vol_dJ(self) -> float:
        self._check()
        return self._dPsi_vol_dJ

    @property
    def d2Psi_vol_dJ2(self) -> float:
        self._check()
        return self._d2Psi_vol_dJ2

    @property
    def det_F(self) -> float:
        return float(self._check().det_F)

    @property
    def p_tilde(self) -> float:
        return float(self._check().p_tilde)

    @property
    def J_tilde(self) -> float:
        return float(self._check().J_tilde)


@dataclass
class QuadratureArrays:
    """Per-(cell, q) snapshot of all points, C-contiguous float64."""

    F_inv: np.ndarray        # (nc, nq, d, d)
    tau: np.ndarray          # (nc, nq, d, d)
    Jc: np.ndarray           # (nc, nq, d, d, d, d)
    det_F: np.ndarray        # (nc, nq)
    p_tilde: np.ndarray
    J_tilde: np.ndarray
    dPsi: np.ndarray
    d2Psi: np.ndarray


class QuadraturePointHistory:
    """Cell-wise storage of quadrature-point state."""

    def __init__(self):
        self.records: List[List[QuadraturePointRecord]] = []
        self._material: Optional[MaterialModel] = None
        self._arrays: Optional[QuadratureArrays] = None
        # (grad_u, p, J) at every point from the last update; records of stale cells lag behind it
        self._state = None
        self._stale = np.zeros(0, dtype=bool)

    def setup(
        self,
        n_cells: int,
        n_q_points: int,
        params: MaterialParameters,
        dim: int,
        material_factory: MaterialFactory = NeoHookeanThreeField,
    ) -> None:
        self.records = []
        for _ in range(int(n_cells)):
            row = []
            for _ in range(int(n_q_points)):
                rec = QuadraturePointRecord()
                rec.setup(params, dim, material_factory)
                row.append(rec)
            self.records.append(row)
        self._material = material_factory(params, int(dim))
        self._state = None
        self._stale = np.zeros(int(n_cells), dtype=bool)
        self._arrays = self._stack_records()

    @property
    def n_cells(self) -> int:
        return len(self.records)

    @property
    def batched(self) -> bool:
        """Whether the material can be evaluated for all points in one call."""
        return hasattr(self._material, "evaluate_batch")

    def get_data(self, cell: int) -> List[QuadraturePointRecord]:
        """Records of ``cell``, synchronised with the last update."""
        if self._stale[cell]:
            grad_u, p_q, J_q = self._state
            for q, rec in enumerate(self.records[cell]):
                rec.update(grad_u[cell, q], p_q[cell, q], J_q[cell, q])
            self._stale[cell] = False
        return self.records[cell]

    def update_from_solution(self, total_solution: np.ndarray, cell_values, dofs, use_numba: bool = False) -> None:
        """Refresh every point from the total (cumulative) solution.

        Raises
        ------
        KinematicInversion
            tagged with the offending cell and quadrature point (the first
            one in cell-major order).
        """
        U = np.asarray(total_solution, dtype=float)
        u_cell = U[dofs.cell_dofs[:, dofs.idx_u]].reshape(dofs.n_cells, dofs.nodes_per_cell, dofs.dim)
        grad_u = np.einsum("cai,cqaj->cqij", u_cell, cell_values.dN_dX)
        p_q = np.ascontiguousarray(dofs.cell_p_coefficients(U) @ cell_values.N_pJ.T)     # (nc, nq)
        J_q = np.ascontiguousarray(dofs.cell_J_coefficients(U) @ cell_values.N_pJ.T)

        if not self.batched:
            for c, row in enumerate(self.records):
                for q, rec in enumerate(row):
                    try:
                        rec.update(grad_u[c, q], p_q[c, q], J_q[c, q])
                    except KinematicInversion as exc:
                        raise exc.at(c, q) from exc
            self._stale[:] = False
            self._arrays = self._stack_records()
            return

        F = np.ascontiguousarray(np.eye(dofs.dim) + grad_u)
        det_F = np.linalg.det(F)
        bad = ~(np.isfinite(det_F) & (det_F > 0.0)) | ~np.isfinite(J_q) | (J_q == 0.0)
        if np.any(bad):
            c, q = (int(i) for i in np.argwhere(bad)[0])
            # the scalar update produces the detailed message
            try:
                self.records[c][q].update(grad_u[c, q], p_q[c, q], J_q[c, q])
            except KinematicInversion as exc:
                raise exc.at(c, q) from exc
            raise KinematicInversion(f"det(F) = {det_F[c, q]:.6e} <= 0", det_F[c, q], cell=c, q_point=q)

        if use_numba and isinstance(self._material, NeoHookeanThreeField):
            from threefield.numba.kernels_material import neo_hookean_qp_numba

            F_inv, tau, Jc, det_F, dPsi, d2Psi = neo_hookean_qp_numba(
                F, p_q, J_q, self._material.kappa, self._material.c_1
            )
        else:
            F_inv, tau, Jc, det_F, dPsi, d2Psi = self._material.evaluate_batch(F, p_q, J_q)

        self._arrays = QuadratureArrays(
            F_inv=F_inv, tau=tau, Jc=Jc, det_F=det_F, p_tilde=p_q, J_tilde=J_q, dPsi=dPsi, d2Psi=d2Psi,
        )
        self._state = (grad_u, p_q, J_q)
        self._stale[:] = True

    def gather(self) -> QuadratureArrays:
        """Arrays of the last update (the reference state right after setup)."""
        if self._arrays is None:
            raise RuntimeError("QuadraturePointHistory.gather called before setup")
        return self._arrays

    def _stack_records(self) -> QuadratureArrays:
        recs = [rec for row in self.records for rec in row]
        nc = len(self.records)
        nq = len(self.records[0]) if nc else 0

        def stack(values, tail=()):
            return np.ascontiguousarray(np.array(values, dtype=np.float64).reshape((nc, nq) + tail))

        d = recs[0].dim if recs else 0
        return QuadratureArrays(
            F_inv=stack([r.F_inv for r in recs], (d, d)),
            tau=stack([r.tau for r in recs], (d, d)),
            Jc=stack([r.Jc for r in recs], (d, d, d, d)),
            det_F=stack([r.det_F for r in recs]),
            p_tilde=stack([r.p_tilde for r in recs]),
            J_tilde=stack([r.J_tilde for r in recs]),
            dPsi=stack([r.dPsi_vol_dJ for r in recs]),
            d2Psi=stack([r.d2Psi_vol_dJ2 for r in recs]),
        )
