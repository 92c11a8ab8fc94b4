"""
Rachford-Rice Solver
====================
Solves the two-phase mass balance for the phase-y fraction β,

    F(β) = Σ z_i (K_i - 1) / (1 + β(K_i - 1)) = 0

inside the bracket [βmin, βmax] where every phase mole fraction stays positive:

    βmin = max(0, max_{K_i>1} (K_i z_i - 1)/(K_i - 1))
    βmax = min(1, min_{K_i<1} (1 - z_i)/(1 - K_i))

F is monotonically decreasing on the bracket. A safeguarded Halley iteration is
used: the bracket is tightened each step from the sign of F, and any Halley step
landing outside it is replaced by bisection. Ten iterations at most, since this
runs once per successive substitution step.

Components restricted to one phase use the limiting terms
    non-in-y (K -> 0):  F_i = -1/(1 - β),   non-in-x (K -> ∞):  F_i = 1/β
and bound the bracket by 1 - z_i and z_i respectively.
"""

import numpy as np
import numpy.typing as npt
from typing import Optional, Tuple

from pytpflash.shared_fns import convert_to_numpy
from pytpflash.constants import RR_TOL, RR_MAXITER


def _masks(nc: int, non_inx: Optional[npt.ArrayLike], non_iny: Optional[npt.ArrayLike]) -> Tuple[np.ndarray, np.ndarray]:
    non_inx = np.zeros(nc, dtype=bool) if non_inx is None else np.asarray(non_inx, dtype=bool)
    non_iny = np.zeros(nc, dtype=bool) if non_iny is None else np.asarray(non_iny, dtype=bool)
    return non_inx, non_iny


def rr_bracket(K: npt.ArrayLike, z: npt.ArrayLike, non_inx: Optional[npt.ArrayLike] = None,
               non_iny: Optional[npt.ArrayLike] = None) -> Tuple[float, float]:
    """ Returns (βmin, βmax), the interval of β giving nonnegative phase compositions """
    K, z = convert_to_numpy(K), convert_to_numpy(z)
    non_inx, non_iny = _masks(len(z), non_inx, non_iny)
    free = ~(non_inx | non_iny)

    beta_min, beta_max = 0.0, 1.0
    hi = free & (K > 1.0)
    if hi.any():
        beta_min = max(beta_min, float(np.max((K[hi] * z[hi] - 1.0) / (K[hi] - 1.0))))
    if non_inx.any():
        beta_min = max(beta_min, float(np.max(z[non_inx])))
    lo = free & (K < 1.0)
    if lo.any():
        beta_max = min(beta_max, float(np.min((1.0 - z[lo]) / (1.0 - K[lo]))))
    if non_iny.any():
        beta_max = min(beta_max, float(np.min(1.0 - z[non_iny])))
    return beta_min, beta_max


def rr_terms(beta: float, K: np.ndarray, non_inx: np.ndarray, non_iny: np.ndarray) -> np.ndarray:
    """ Per-component terms F_i of the Rachford-Rice sum, with restricted components at their limits """
    beta = np.float64(beta)
    F = (K - 1.0) / (1.0 + beta * (K - 1.0))
    F[non_iny] = -1.0 / (1.0 - beta)
    F[non_inx] = 1.0 / beta
    return F


def rr_objective(beta: float, K: npt.ArrayLike, z: npt.ArrayLike, non_inx: Optional[npt.ArrayLike] = None,
                 non_iny: Optional[npt.ArrayLike] = None) -> Tuple[float, float, float]:
    """ Rachford-Rice function and its first two derivatives with respect to β """
    K, z = convert_to_numpy(K), convert_to_numpy(z)
    non_inx, non_iny = _masks(len(z), non_inx, non_iny)
    F = rr_terms(beta, K, non_inx, non_iny)
    zF = z * F
    FO = np.sum(zF)
    dFO = -np.sum(zF * F)
    d2FO = 2.0 * np.sum(zF * F * F)
    return float(FO), float(dFO), float(d2FO)


def rachford_rice(K: npt.ArrayLike, z: npt.ArrayLike, beta0: Optional[float] = None,
                  non_inx: Optional[npt.ArrayLike] = None,
                  non_iny: Optional[npt.ArrayLike] = None) -> Tuple[float, bool]:
    """
    Solve the Rachford-Rice equation for the phase-y fraction.

    Args:
        K: K-values y/x (positive)
        z: Feed composition
        beta0: Optional warm start, used when strictly inside the bracket
        non_inx: Boolean mask of components absent from phase x (non-condensables)
        non_iny: Boolean mask of components absent from phase y (non-volatiles)

    Returns:
        beta: Phase-y fraction
        singlephase: True if no split exists for these K-values (beta is then 0 or 1)
    """
    K, z = convert_to_numpy(K), convert_to_numpy(z)
    non_inx, non_iny = _masks(len(z), non_inx, non_iny)
    free = ~(non_inx | non_iny)

    # Single-phase checks, restricted components at K = ∞ (non-in-x) or K = 0 (non-in-y)
    g0 = np.inf if np.any(z[non_inx] > 0) else np.dot(z[free], K[free]) - 1.0
    g1 = -np.inf if np.any(z[non_iny] > 0) else 1.0 - np.sum(z[free] / K[free])
    if g0 < 0:
        return 0.0, True
    if g1 > 0:
        return 1.0, True

    beta_min, beta_max = rr_bracket(K, z, non_inx, non_iny)
    if beta0 is not None and beta_min < beta0 < beta_max:
        beta = float(beta0)
    else:
        beta = 0.5 * (beta_min + beta_max)

    it = 0
    error_beta, error_FO = 1.0, 1.0
    while (error_beta > RR_TOL or error_FO > RR_TOL) and it < RR_MAXITER:
        it += 1
        FO, dFO, d2FO = rr_objective(beta, K, z, non_inx, non_iny)

        # F decreases with β, so its sign tells which side of β the root is on
        if FO < 0:
            beta_max = beta
        elif FO > 0:
            beta_min = beta

        denom = 2.0 * dFO**2 - FO * d2FO
        dbeta = -(2.0 * FO * dFO) / denom if denom != 0 else np.inf
        beta_new = beta + dbeta
        if beta_min < beta_new < beta_max or dbeta == 0:
            beta = beta_new
        else:
            dbeta = 0.5 * (beta_min + beta_max) - beta
            beta = beta + dbeta

        error_beta = abs(dbeta)
        error_FO = abs(FO)

    return beta, False
