"""
Successive Substitution with DEM Acceleration
=============================================
Fixed-point iteration on lnK for a two-phase split (Michelsen, 1982):

    1. β from Rachford-Rice with the current K
    2. x, y from K and β (restricted components substituted, both renormalized)
    3. lnφ of both phases from the model, previous volumes as warm starts
    4. lnK = lnφx - lnφy
    5. error = Σ|lnK - lnK_old|

Every nacc iterations the last three lnK iterates are extrapolated by one-eigenvalue
direct error minimization (DEM). The extrapolated K is only kept when the Gibbs
energy of the phases it produces is strictly lower than that of the plain iterate.

The volume cache is a small mutable cell owned by one flash call. It is passed to
every model evaluation and overwritten with the volumes that evaluation returns.
"""

import logging
import numpy as np
from typing import Optional, Tuple, Dict
from dataclasses import dataclass

from pytpflash.classes import ss_state
from pytpflash.shared_fns import convert_to_numpy, dnorm
from pytpflash.constants import K_TOL, SS_ITERS, NACC, TRIVIAL_LNK_TOL
from pytpflash.flash._lib_rachford_rice import rachford_rice
from pytpflash.flash._lib_restrictions import rr_compositions

logger = logging.getLogger(__name__)


@dataclass
class VolumeCache:
    """Last molar volumes of phases x and y, handed to the model as warm starts."""
    volx: Optional[float] = None
    voly: Optional[float] = None


def _sum_nlnf(n: np.ndarray, lnphi: np.ndarray, present: np.ndarray) -> float:
    """ Σ n_i·(ln n_i + lnφ_i) over present components with n_i > 0 """
    m = present & (n > 0)
    return float(np.sum(n[m] * (np.log(n[m]) + lnphi[m])))


def phase_gibbs(x: np.ndarray, y: np.ndarray, lnphix: np.ndarray, lnphiy: np.ndarray, beta: float,
                inx: np.ndarray, iny: np.ndarray) -> float:
    """
    Dimensionless Gibbs energy of a split,
        g = β·Σ y_i·ln(y_i·φy_i) + (1-β)·Σ x_i·ln(x_i·φx_i)
    summed over the components allowed in each phase.
    """
    return beta * _sum_nlnf(y, lnphiy, iny) + (1.0 - beta) * _sum_nlnf(x, lnphix, inx)


def dem(lnK5: np.ndarray, lnK4: np.ndarray, lnK3: np.ndarray) -> Optional[np.ndarray]:
    """
    One-eigenvalue DEM extrapolation of three successive lnK iterates.

        Δ1 = lnK4 - lnK3, Δ2 = lnK5 - lnK4
        λ = (Δ2·Δ2)/(Δ1·Δ2)
        lnK_dem = lnK5 + Δ2·λ/(1 - λ)

    Returns None when λ is undefined or λ >= 1 (no contraction to extrapolate).
    """
    dx1 = lnK4 - lnK3
    dx2 = lnK5 - lnK4
    denom = np.dot(dx1, dx2)
    if denom == 0:
        return None
    lam = np.dot(dx2, dx2) / denom
    if not np.isfinite(lam) or lam >= 1.0:
        return None
    return lnK5 + dx2 * lam / (1.0 - lam)


def accelerate(model, p: float, T: float, z: np.ndarray, lnK_hist: Tuple[np.ndarray, np.ndarray, np.ndarray],
               beta: float, gibbs: float, cache: VolumeCache, phasex: str, phasey: str,
               non_inx: np.ndarray, non_iny: np.ndarray) -> Optional[Dict]:
    """
    Evaluates a DEM step from (lnK5, lnK4, lnK3). The candidate is re-flashed with
    Rachford-Rice and its phases re-evaluated by the model. Its energy is weighted
    with the phase fraction of the plain iterate, beta.

    Returns the accepted state {lnK, beta, x, y, gibbs} and updates the volume
    cache, or returns None and leaves the cache untouched.
    """
    lnK_dem = dem(*lnK_hist)
    if lnK_dem is None:
        return None
    K_dem = np.exp(lnK_dem)

    beta_dem, singlephase = rachford_rice(K_dem, z, beta0=beta, non_inx=non_inx, non_iny=non_iny)
    if singlephase:
        return None
    x_dem, y_dem = rr_compositions(K_dem, z, beta_dem, non_inx, non_iny)

    lnphix_dem, volx_dem = model.lnphi(p, T, x_dem, phase=phasex, vol0=cache.volx)
    lnphiy_dem, voly_dem = model.lnphi(p, T, y_dem, phase=phasey, vol0=cache.voly)

    gibbs_dem = phase_gibbs(x_dem, y_dem, lnphix_dem, lnphiy_dem, beta, ~non_inx, ~non_iny)

    if not gibbs_dem < gibbs:
        logger.debug("DEM step rejected: g_dem = %.10g >= g = %.10g", gibbs_dem, gibbs)
        return None

    logger.debug("DEM step accepted: g_dem = %.10g < g = %.10g", gibbs_dem, gibbs)
    cache.volx, cache.voly = volx_dem, voly_dem
    return {'lnK': lnK_dem, 'beta': beta_dem, 'x': x_dem, 'y': y_dem, 'gibbs': gibbs_dem}


def successive_substitution(model, p: float, T: float, z: np.ndarray, lnK: np.ndarray, beta: float,
                            cache: VolumeCache, phasex: str = 'liquid', phasey: str = 'vapor',
                            non_inx: Optional[np.ndarray] = None, non_iny: Optional[np.ndarray] = None,
                            K_tol: float = K_TOL, ss_iters: int = SS_ITERS, nacc: int = NACC) -> Dict:
    """
    Successive substitution on lnK with optional DEM acceleration.

    Args:
        model: Object providing lnphi(p, T, x, phase, vol0)
        p, T: Pressure (Pa) and temperature (K)
        z: Feed composition
        lnK: Initial log K-values
        beta: Initial phase-y fraction (Rachford-Rice warm start)
        cache: VolumeCache for this flash, updated in place
        phasex, phasey: Phase labels for the model ('liquid' / 'vapor')
        non_inx, non_iny: Restriction masks
        K_tol: Convergence tolerance on Σ|ΔlnK|
        ss_iters: Iteration cap
        nacc: DEM period, 0 for none

    Returns dict with:
        'lnK', 'x', 'y', 'beta': Last iterate (x, y, beta mutually consistent)
        'iterations', 'error': Iterations used and last Σ|ΔlnK|
        'state': ss_state.CONVERGED, STALLED or SINGLEPHASE
        'gibbs': Gibbs energy of the last iterate
        'accelerations': Number of accepted DEM steps
    """
    z = convert_to_numpy(z)
    nc = len(z)
    non_inx = np.zeros(nc, dtype=bool) if non_inx is None else np.asarray(non_inx, dtype=bool)
    non_iny = np.zeros(nc, dtype=bool) if non_iny is None else np.asarray(non_iny, dtype=bool)
    inx, iny = ~non_inx, ~non_iny

    lnK = convert_to_numpy(lnK).copy()
    K = np.exp(lnK)
    x, y = z.copy(), z.copy()
    gibbs = np.nan
    singlephase = False
    state = ss_state.ITERATING
    error = np.inf
    it, itacc, accelerations = 0, 0, 0
    lnK3 = lnK4 = None

    while state == ss_state.ITERATING:
        it += 1
        itacc += 1
        lnK_old = lnK.copy()

        beta, singlephase = rachford_rice(K, z, beta0=beta, non_inx=non_inx, non_iny=non_iny)
        if not (0.0 <= beta <= 1.0):
            state = ss_state.SINGLEPHASE
            break

        x, y = rr_compositions(K, z, beta, non_inx, non_iny)

        lnphix, cache.volx = model.lnphi(p, T, x, phase=phasex, vol0=cache.volx)
        lnphiy, cache.voly = model.lnphi(p, T, y, phase=phasey, vol0=cache.voly)
        lnK = lnphix - lnphiy

        gibbs = phase_gibbs(x, y, lnphix, lnphiy, beta, inx, iny)

        if nacc > 0:
            if itacc == nacc - 2:
                lnK3 = lnK.copy()
            elif itacc == nacc - 1:
                lnK4 = lnK.copy()
            elif itacc == nacc:
                itacc = 0
                accepted = accelerate(model, p, T, z, (lnK, lnK4, lnK3), beta, gibbs, cache,
                                      phasex, phasey, non_inx, non_iny)
                if accepted is not None:
                    accelerations += 1
                    lnK, beta = accepted['lnK'], accepted['beta']
                    x, y, gibbs = accepted['x'], accepted['y'], accepted['gibbs']
                    singlephase = False
                lnK3 = lnK4 = None

        K = np.exp(lnK)
        error = dnorm(lnK, lnK_old, 1)

        if error <= K_tol:
            state = ss_state.CONVERGED
        elif it >= ss_iters:
            state = ss_state.STALLED

    free = inx & iny
    if state != ss_state.SINGLEPHASE:
        if singlephase:
            state = ss_state.SINGLEPHASE
        elif state == ss_state.CONVERGED and free.any() and np.max(np.abs(lnK[free])) < TRIVIAL_LNK_TOL:
            state = ss_state.SINGLEPHASE

    logger.debug("Successive substitution: %s after %d iterations, error %.3e, %d DEM steps",
                 state.name, it, error, accelerations)

    return {
        'lnK': lnK, 'x': x, 'y': y, 'beta': beta,
        'iterations': it, 'error': error, 'state': state,
        'gibbs': gibbs, 'accelerations': accelerations,
    }
