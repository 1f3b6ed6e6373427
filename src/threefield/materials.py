"""Compressible neo-Hookean material in the three-field (u, p, J) setting.

Stress is the Kirchhoff stress tau; the tangent Jc is the spatial tangent
such that the linearised Kirchhoff stress follows from ``Jc : sym(grad du)``
plus the geometric term added in assembly. Tensors are plain NumPy arrays:
rank-2 as (dim, dim), rank-4 as (dim, dim, dim, dim).

The free energy is split into an isochoric part
``Psi_iso = c_1 (tr(b_bar) - dim)`` evaluated with the true ``det(F)`` and a
volumetric part ``Psi_vol(J_tilde) = kappa/4 (J_tilde^2 - 1 - 2 ln J_tilde)``
evaluated with the independent dilatation field.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol, Tuple

import numpy as np

from threefield.errors import InvalidMaterialParameters, KinematicInversion


# ----------------------------
# Standard tensors
# ----------------------------


@lru_cache(maxsize=None)
def standard_tensors(dim: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """(I, I x I, S, P) for ``dim``: identity, its outer product, the
    symmetric fourth-order identity and the deviatoric projector
    ``P = S - I x I / dim``. Returned arrays are read-only."""
    I = np.eye(dim)
    IxI = np.einsum("ij,kl->ijkl", I, I)
    S = 0.5 * (np.einsum("ik,jl->ijkl", I, I) + np.einsum("il,jk->ijkl", I, I))
    P = S - IxI / dim
    for t in (I, IxI, S, P):
        t.setflags(write=False)
    return I, IxI, S, P


def dev(A: np.ndarray) -> np.ndarray:
    dim = A.shape[0]
    return A - (np.trace(A) / dim) * np.eye(dim)


# ----------------------------
# Parameters / interface
# ----------------------------


@dataclass(frozen=True)
class MaterialParameters:
    mu: float
    nu: float

    @property
    def kappa(self) -> float:
        denom = 3.0 * (1.0 - 2.0 * self.nu)
        if denom == 0.0:
            return math.inf
        return (2.0 * self.mu * (1.0 + self.nu)) / denom

    @property
    def c_1(self) -> float:
        return 0.5 * self.mu


class MaterialModel(Protocol):
    """Capability interface used by :class:`~threefield.qp_record.QuadraturePointRecord`."""

    det_F: float
    p_tilde: float
    J_tilde: float

    def update(self, F: np.ndarray, p_tilde: float, J_tilde: float) -> None:
        ...

    def tau(self) -> np.ndarray:
        ...

    def tangent(self) -> np.ndarray:
        ...

    def dPsi_vol_dJ(self) -> float:
        ...

    def d2Psi_vol_dJ2(self) -> float:
        ...


# ----------------------------
# Neo-Hookean
# ----------------------------


class NeoHookeanThreeField:
    """Compressible neo-Hookean law with independent pressure and dilatation."""

    def __init__(self, params: MaterialParameters, dim: int = 3):
        kappa = params.kappa
        if not (math.isfinite(kappa) and kappa > 0.0):
            raise InvalidMaterialParameters(
                f"mu={params.mu:g}, nu={params.nu:g} give kappa={kappa:g}; kappa must be positive"
            )
        self.params = params
        self.dim = int(dim)
        self.kappa = float(kappa)
        self.c_1 = float(params.c_1)

        self.det_F = 1.0
        self.p_tilde = 0.0
        self.J_tilde = 1.0
        self.b_bar = np.eye(self.dim)

    def update(self, F: np.ndarray, p_tilde: float, J_tilde: float) -> None:
        F = np.asarray(F, dtype=float)
        det_F = float(np.linalg.det(F))
        if not (math.isfinite(det_F) and det_F > 0.0):
            raise KinematicInversion(f"det(F) = {det_F:.6e} <= 0", det_F)
        J_tilde = float(J_tilde)
        # Psi_vol derivatives divide by J_tilde; a negative iterate is allowed
        if not math.isfinite(J_tilde) or J_tilde == 0.0:
            raise KinematicInversion(f"dilatation J_tilde = {J_tilde:.6e} is singular", det_F)

        self.det_F = det_F
        self.p_tilde = float(p_tilde)
        self.J_tilde = J_tilde
        F_bar = det_F ** (-1.0 / self.dim) * F
        self.b_bar = F_bar @ F_bar.T

    # --- stresses ---
    def tau_bar(self) -> np.ndarray:
        return 2.0 * self.c_1 * self.b_bar

    def tau_iso(self) -> np.ndarray:
        return dev(self.tau_bar())

    def tau_vol(self) -> np.ndarray:
        return self.p_tilde * self.det_F * np.eye(self.dim)

    def tau(self) -> np.ndarray:
        return self.tau_iso() + self.tau_vol()

    # --- tangents ---
    def Jc_vol(self) -> np.ndarray:
        _, IxI, S, _ = standard_tensors(self.dim)
        return self.p_tilde * self.det_F * (IxI - 2.0 * S)

    def Jc_iso(self) -> np.ndarray:
        I, _, _, P = standard_tensors(self.dim)
        tau_bar = self.tau_bar()
        tau_iso = dev(tau_bar)
        tau_iso_x_I = np.einsum("ij,kl->ijkl", tau_iso, I)
        I_x_tau_iso = np.einsum("ij,kl->ijkl", I, tau_iso)
        # c_bar vanishes for the neo-Hookean energy, so P : c_bar : P drops out
        return (2.0 / self.dim) * np.trace(tau_bar) * P - (2.0 / self.dim) * (tau_iso_x_I + I_x_tau_iso)

    def tangent(self) -> np.ndarray:
        return self.Jc_vol() + self.Jc_iso()

    # --- volumetric energy derivatives ---
    def dPsi_vol_dJ(self) -> float:
        return 0.5 * self.kappa * (self.J_tilde - 1.0 / self.J_tilde)

    def d2Psi_vol_dJ2(self) -> float:
        return 0.5 * self.kappa * (1.0 + 1.0 / (self.J_tilde * self.J_tilde))

    # --- batched evaluation ---
    def evaluate_batch(self, F: np.ndarray, p_tilde: np.ndarray, J_tilde: np.ndarray):
        """Evaluate many points at once without touching the scalar state.

        ``F`` has shape ``(..., dim, dim)``; ``p_tilde`` and ``J_tilde`` the
        leading shape. Every ``det(F)`` must be positive and every
        ``J_tilde`` non-zero. Returns C-contiguous
        ``(F_inv, tau, Jc, det_F, dPsi_vol_dJ, d2Psi_vol_dJ2)``.
        """
        d = self.dim
        I, IxI, S, P = standard_tensors(d)
        F = np.asarray(F, dtype=float)
        p_tilde = np.asarray(p_tilde, dtype=float)
        J_tilde = np.asarray(J_tilde, dtype=float)

        det_F = np.linalg.det(F)
        F_inv = np.linalg.inv(F)
        F_bar = det_F[..., None, None] ** (-1.0 / d) * F
        tau_bar = 2.0 * self.c_1 * np.einsum("...ik,...jk->...ij", F_bar, F_bar)
        tr_tau_bar = np.trace(tau_bar, axis1=-2, axis2=-1)
        tau_iso = tau_bar - (tr_tau_bar / d)[..., None, None] * I
        p_det = p_tilde * det_F
        tau = tau_iso + p_det[..., None, None] * I

        Jc = (
            p_det[..., None, None, None, None] * (IxI - 2.0 * S)
            + (2.0 / d) * tr_tau_bar[..., None, None, None, None] * P
            - (2.0 / d) * (np.einsum("...ij,kl->...ijkl", tau_iso, I) + np.einsum("ij,...kl->...ijkl", I, tau_iso))
        )

        dPsi = 0.5 * self.kappa * (J_tilde - 1.0 / J_tilde)
        d2Psi = 0.5 * self.kappa * (1.0 + 1.0 / (J_tilde * J_tilde))
        return tuple(np.ascontiguousarray(a) for a in (F_inv, tau, Jc, det_F, dPsi, d2Psi))
