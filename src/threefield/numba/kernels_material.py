"""Parallel neo-Hookean evaluation at every quadrature point.

Mirrors :meth:`threefield.materials.NeoHookeanThreeField.evaluate_batch`.
``prange`` runs over cells and every iteration writes only row ``c`` of the
outputs. Inputs must already be admissible (``det(F) > 0``, ``J_tilde != 0``);
the caller checks that before dispatching here.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange


@njit(cache=True, parallel=True)
def neo_hookean_qp_numba(F, p_tilde, J_tilde, kappa, c_1):
    nc = F.shape[0]
    nq = F.shape[1]
    d = F.shape[2]

    F_inv = np.zeros((nc, nq, d, d))
    tau = np.zeros((nc, nq, d, d))
    Jc = np.zeros((nc, nq, d, d, d, d))
    det_F = np.zeros((nc, nq))
    dPsi = np.zeros((nc, nq))
    d2Psi = np.zeros((nc, nq))

    for c in prange(nc):
        tau_iso = np.zeros((d, d))
        for q in range(nq):
            Fq = np.ascontiguousarray(F[c, q])
            dJ = np.linalg.det(Fq)
            F_inv[c, q] = np.linalg.inv(Fq)
            det_F[c, q] = dJ

            # tau_bar = 2 c_1 F_bar F_bar^T with F_bar = det^(-1/d) F
            scale = 2.0 * c_1 * dJ ** (-2.0 / d)
            tr = 0.0
            for i in range(d):
                for j in range(d):
                    s = 0.0
                    for k in range(d):
                        s += Fq[i, k] * Fq[j, k]
                    tau_iso[i, j] = scale * s
                tr += tau_iso[i, i]
            for i in range(d):
                tau_iso[i, i] -= tr / d

            p_det = p_tilde[c, q] * dJ
            for i in range(d):
                for j in range(d):
                    tau[c, q, i, j] = tau_iso[i, j]
                tau[c, q, i, i] += p_det

            for i in range(d):
                for j in range(d):
                    for k in range(d):
                        for l in range(d):
                            d_ij = 1.0 if i == j else 0.0
                            d_kl = 1.0 if k == l else 0.0
                            d_ik = 1.0 if i == k else 0.0
                            d_jl = 1.0 if j == l else 0.0
                            d_il = 1.0 if i == l else 0.0
                            d_jk = 1.0 if j == k else 0.0
                            IxI = d_ij * d_kl
                            S = 0.5 * (d_ik * d_jl + d_il * d_jk)
                            Jc[c, q, i, j, k, l] = (
                                p_det * (IxI - 2.0 * S)
                                + (2.0 / d) * tr * (S - IxI / d)
                                - (2.0 / d) * (tau_iso[i, j] * d_kl + d_ij * tau_iso[k, l])
                            )

            J = J_tilde[c, q]
            dPsi[c, q] = 0.5 * kappa * (J - 1.0 / J)
            d2Psi[c, q] = 0.5 * kappa * (1.0 + 1.0 / (J * J))

    return F_inv, tau, Jc, det_F, dPsi, d2Psi
