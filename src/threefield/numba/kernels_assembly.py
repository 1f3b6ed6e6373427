"""Parallel per-cell assembly kernel.

``prange`` runs over cells; every iteration writes only ``ke_all[c]`` and
``fe_all[c]``, so there is no contention. The global scatter happens
afterwards, serially, in :func:`threefield.assembly.scatter_matrix`.

Local DOF ordering matches :class:`threefield.fem.dofs.DofHandler`:
u (node-major, component-minor), then p, then J.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange


@njit(cache=True, parallel=True)
def assemble_cells_numba(dN_dX, N_pJ, JxW, F_inv, tau, Jc, det_F, p_tilde, J_tilde, dPsi, d2Psi):
    nc = dN_dX.shape[0]
    nq = dN_dX.shape[1]
    nn = dN_dX.shape[2]
    d = dN_dX.shape[3]
    npj = N_pJ.shape[1]
    nu = nn * d
    ndpc = nu + 2 * npj

    ke_all = np.zeros((nc, ndpc, ndpc))
    fe_all = np.zeros((nc, ndpc))

    for c in prange(nc):
        ke = ke_all[c]
        fe = fe_all[c]
        g = np.zeros((nn, d))

        for q in range(nq):
            w = JxW[c, q]
            dJ = det_F[c, q]

            # push gradients forward: g_a = F^-T dN_a/dX
            for a in range(nn):
                for i in range(d):
                    s = 0.0
                    for j in range(d):
                        s += dN_dX[c, q, a, j] * F_inv[c, q, j, i]
                    g[a, i] = s

            # residual
            for a in range(nn):
                for cc in range(d):
                    s = 0.0
                    for j in range(d):
                        s += tau[c, q, cc, j] * g[a, j]
                    fe[a * d + cc] -= s * w
            for k in range(npj):
                fe[nu + k] -= N_pJ[q, k] * (dJ - J_tilde[c, q]) * w
                fe[nu + npj + k] -= N_pJ[q, k] * (dPsi[c, q] - p_tilde[c, q]) * w

            # UU (lower triangle)
            for a in range(nn):
                for cc in range(d):
                    i_loc = a * d + cc
                    for b in range(a + 1):
                        for dd in range(d):
                            j_loc = b * d + dd
                            if j_loc > i_loc:
                                continue
                            s = 0.0
                            for j in range(d):
                                for l in range(d):
                                    s += g[a, j] * Jc[c, q, cc, j, dd, l] * g[b, l]
                            if cc == dd:
                                for i in range(d):
                                    for j in range(d):
                                        s += g[a, i] * tau[c, q, i, j] * g[b, j]
                            ke[i_loc, j_loc] += s * w

            # PU
            for k in range(npj):
                for b in range(nn):
                    for dd in range(d):
                        ke[nu + k, b * d + dd] += N_pJ[q, k] * dJ * g[b, dd] * w

            # JP and JJ
            for k in range(npj):
                for m in range(npj):
                    ke[nu + npj + k, nu + m] -= N_pJ[q, k] * N_pJ[q, m] * w
                for m in range(k + 1):
                    ke[nu + npj + k, nu + npj + m] += N_pJ[q, k] * d2Psi[c, q] * N_pJ[q, m] * w

        # mirror the strict lower triangle
        for i in range(ndpc):
            for j in range(i):
                ke[j, i] = ke[i, j]

    return ke_all, fe_all
