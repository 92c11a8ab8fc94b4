"""
Gibbs Energy Minimization
=========================
Second stage of the two-phase flash, used when successive substitution runs out
of iterations. The total Gibbs energy of the split,

    G(ny) = Σ ny_i·ln(y_i·φy_i) + Σ nx_i·ln(x_i·φx_i),   nx = z - ny

is minimized over the phase-y mole numbers of the components present in both
phases. Non-condensables are fixed at ny = z, non-volatiles at ny = 0.

    ∂G/∂ny_i      = ln(y_i·φy_i) - ln(x_i·φx_i)
    ∂²G/∂ny_i∂ny_j = Σ_phases [δ_ij/n_i - 1/N + (N·∂lnφ_i/∂n_j)/N]

The minimizer is scipy.optimize.minimize, Newton-CG with the analytical Hessian
when second order is requested, BFGS otherwise. Both use a line search.
"""

import logging
import numpy as np
from typing import Dict, Tuple
from scipy.optimize import minimize

from pytpflash.shared_fns import convert_to_numpy
from pytpflash.constants import GIBBS_MAXITER, GIBBS_GTOL
from pytpflash.flash._lib_michelsen import VolumeCache

logger = logging.getLogger(__name__)


class GibbsObjective:
    """
    Gibbs energy of a two-phase split as a function of the free phase-y mole numbers.

    Calling the object returns (G, ∂G/∂ny), hess() returns the Hessian. Every
    evaluation reads its volume warm starts from, and writes the new volumes to,
    the shared VolumeCache. Points where any free mole number is not positive
    evaluate to G = +inf so that line searches step back.
    """

    def __init__(self, model, p: float, T: float, z: np.ndarray, phasex: str, phasey: str,
                 cache: VolumeCache, non_inx: np.ndarray, non_iny: np.ndarray):
        self.model = model
        self.p, self.T = p, T
        self.z = convert_to_numpy(z)
        self.phasex, self.phasey = phasex, phasey
        self.cache = cache
        self.non_inx = np.asarray(non_inx, dtype=bool)
        self.non_iny = np.asarray(non_iny, dtype=bool)
        self.in_equilibria = ~self.non_inx & ~self.non_iny

        nc = len(self.z)
        self.nx = np.zeros(nc)
        self.ny = np.zeros(nc)
        self.ny[self.non_inx] = self.z[self.non_inx]
        self.nx[self.non_iny] = self.z[self.non_iny]
        self.nevals = 0

    def split(self, ny_var: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """ Full nx, ny vectors for the free phase-y mole numbers ny_var """
        eq = self.in_equilibria
        nx, ny = self.nx.copy(), self.ny.copy()
        ny[eq] = ny_var
        nx[eq] = self.z[eq] - ny_var
        return nx, ny

    def feasible(self, ny_var: np.ndarray) -> bool:
        nx, ny = self.split(ny_var)
        eq = self.in_equilibria
        return bool(np.all(nx[eq] > 0) and np.all(ny[eq] > 0))

    def _chemical_potentials(self, n: np.ndarray, lnphi: np.ndarray, present: np.ndarray) -> np.ndarray:
        # ln(x·φ) for present components, zero for the restricted ones
        mu = np.zeros_like(n)
        frac = n / np.sum(n)
        mu[present] = np.log(frac[present]) + lnphi[present]
        return mu

    def __call__(self, ny_var: np.ndarray) -> Tuple[float, np.ndarray]:
        ny_var = np.asarray(ny_var, dtype=float)
        if not self.feasible(ny_var):
            return np.inf, np.zeros_like(ny_var)
        self.nevals += 1
        nx, ny = self.split(ny_var)
        x, y = nx / np.sum(nx), ny / np.sum(ny)

        lnphix, self.cache.volx = self.model.lnphi(self.p, self.T, x, phase=self.phasex, vol0=self.cache.volx)
        lnphiy, self.cache.voly = self.model.lnphi(self.p, self.T, y, phase=self.phasey, vol0=self.cache.voly)

        mux = self._chemical_potentials(nx, lnphix, ~self.non_inx)
        muy = self._chemical_potentials(ny, lnphiy, ~self.non_iny)

        G = float(np.dot(ny, muy) + np.dot(nx, mux))
        grad = (muy - mux)[self.in_equilibria]
        return G, grad

    def hess(self, ny_var: np.ndarray) -> np.ndarray:
        ny_var = np.asarray(ny_var, dtype=float)
        eq = self.in_equilibria
        if not self.feasible(ny_var):
            return np.eye(int(eq.sum()))
        nx, ny = self.split(ny_var)
        nxsum, nysum = np.sum(nx), np.sum(ny)
        x, y = nx / nxsum, ny / nysum

        _, dlnphix, self.cache.volx = self.model.dlnphi_dn(self.p, self.T, x, phase=self.phasex, vol0=self.cache.volx)
        _, dlnphiy, self.cache.voly = self.model.dlnphi_dn(self.p, self.T, y, phase=self.phasey, vol0=self.cache.voly)

        Hx = (dlnphix[np.ix_(eq, eq)] - 1.0) / nxsum + np.diag(1.0 / nx[eq])
        Hy = (dlnphiy[np.ix_(eq, eq)] - 1.0) / nysum + np.diag(1.0 / ny[eq])
        return 0.5 * (Hx + Hx.T) + 0.5 * (Hy + Hy.T)


def minimize_gibbs(model, p: float, T: float, z: np.ndarray, x: np.ndarray, y: np.ndarray, beta: float,
                   cache: VolumeCache, phasex: str, phasey: str, non_inx: np.ndarray, non_iny: np.ndarray,
                   second_order: bool = False, maxiter: int = GIBBS_MAXITER) -> Dict:
    """
    Minimizes the Gibbs energy of the split starting from a successive substitution iterate.

    Args:
        model: Object providing lnphi (and dlnphi_dn when second_order)
        p, T: Pressure (Pa) and temperature (K)
        z: Feed composition
        x, y, beta: Starting split
        cache: VolumeCache for this flash, updated in place
        phasex, phasey: Phase labels for the model
        non_inx, non_iny: Restriction masks
        second_order: Newton-CG with Hessian if True, BFGS if False
        maxiter: Iteration limit for the minimizer

    Returns dict with:
        'x', 'y', 'beta': Minimizing split (the start if no improvement was found)
        'G0', 'G': Gibbs energy at start and at the returned split
        'nit': Minimizer iterations
        'success': True if the minimizer converged and lowered the energy
    """
    z = convert_to_numpy(z)
    obj = GibbsObjective(model, p, T, z, phasex, phasey, cache, non_inx, non_iny)
    eq = obj.in_equilibria
    ny0 = beta * convert_to_numpy(y)[eq]
    G0, _ = obj(ny0)

    if not eq.any():
        # Every component is restricted to one phase, the split is already fixed
        nx, ny = obj.split(ny0)
        return {'x': nx / np.sum(nx), 'y': ny / np.sum(ny), 'beta': float(np.sum(ny)),
                'G0': G0, 'G': G0, 'nit': 0, 'success': True}

    if second_order:
        res = minimize(obj, ny0, method='Newton-CG', jac=True, hess=obj.hess,
                       options={'maxiter': maxiter, 'xtol': GIBBS_GTOL})
    else:
        res = minimize(obj, ny0, method='BFGS', jac=True,
                       options={'maxiter': maxiter, 'gtol': GIBBS_GTOL})

    # Re-evaluate at the minimizer so the cache holds its volumes
    G, _ = obj(res.x)
    logger.debug("Gibbs minimization (%s): G %.10g -> %.10g in %d iterations, %d evaluations, %s",
                 'Newton-CG' if second_order else 'BFGS', G0, G, res.nit, obj.nevals, res.message)

    if not (np.isfinite(G) and G < G0):
        logger.warning("Gibbs energy minimization did not improve on the successive substitution "
                       "split (G0 = %.10g, G = %.10g): %s", G0, G, res.message)
        obj(ny0)
        return {'x': convert_to_numpy(x), 'y': convert_to_numpy(y), 'beta': beta,
                'G0': G0, 'G': G0, 'nit': res.nit, 'success': False}

    nx, ny = obj.split(res.x)
    return {
        'x': nx / np.sum(nx), 'y': ny / np.sum(ny), 'beta': float(np.sum(ny)),
        'G0': G0, 'G': G, 'nit': res.nit, 'success': bool(res.success),
    }
