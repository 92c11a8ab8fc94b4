#!/usr/bin/python3
# -*- coding: utf-8 -*-

"""
    pyTPFlash - Two-phase isothermal flash calculations
              Copyright (C) 2022, Mark Burgoyne

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    The GNU General Public License can be found in the LICENSE directory,
    and at  <https://www.gnu.org/licenses/>.

          Contact author at mark.w.burgoyne@gmail.com
"""

import logging
import dataclasses
from dataclasses import dataclass
from typing import Optional, Tuple, Union, List, Dict

import numpy as np
import numpy.typing as npt
import pandas as pd
from tabulate import tabulate

from pytpflash.classes import equil_type, ss_state
from pytpflash.validate import validate_methods
from pytpflash.shared_fns import convert_to_numpy, normalize, index_expansion, index_subset
from pytpflash.constants import K_TOL, SS_ITERS, NACC, TRIVIAL_LNK_TOL
from pytpflash.flash._lib_rachford_rice import rr_bracket
from pytpflash.flash._lib_restrictions import restriction_masks
from pytpflash.flash._lib_michelsen import VolumeCache, successive_substitution
from pytpflash.flash._lib_gibbs import minimize_gibbs

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class MichelsenTPFlash:
    """
    Settings for the two-phase Michelsen flash. Validated on construction.

    equilibrium: 'VLE' for vapor-liquid or 'LLE' for liquid-liquid equilibrium
    K0: Initial K-values (y/x). Computed from the Wilson correlation for VLE when not given
    x0, y0: Initial phase compositions, an alternative to K0
    v0: Initial molar volumes (vol_x, vol_y) in m3/mol
    K_tol: Tolerance on Σ|ΔlnK| ending successive substitution. Defaults to sqrt(machine eps)
    ss_iters: Successive substitution iterations before switching to Gibbs energy minimization. Defaults to 21
    nacc: Accelerate successive substitution by DEM every nacc iterations. 0 for none, otherwise >= 3. Defaults to 5
    second_order: Minimize Gibbs energy with the Hessian (Newton) rather than BFGS. Defaults to False
    noncondensables: Names of components not allowed in the liquid phase. VLE only
    nonvolatiles: Names of components not allowed in the vapor phase. VLE only
    """
    equilibrium: Union[str, equil_type] = equil_type.VLE
    K0: Optional[npt.ArrayLike] = None
    x0: Optional[npt.ArrayLike] = None
    y0: Optional[npt.ArrayLike] = None
    v0: Optional[Tuple[float, float]] = None
    K_tol: float = K_TOL
    ss_iters: int = SS_ITERS
    nacc: int = NACC
    second_order: bool = False
    noncondensables: Optional[List[str]] = None
    nonvolatiles: Optional[List[str]] = None

    def __post_init__(self):
        try:
            equilibrium = validate_methods(['equilibrium'], [self.equilibrium])
        except ValueError:
            raise ValueError(f"Invalid equilibrium specification: {self.equilibrium!r}. Use 'VLE' or 'LLE'")
        object.__setattr__(self, 'equilibrium', equilibrium)
        for name in ('K0', 'x0', 'y0'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, convert_to_numpy(value).copy())
        for name in ('noncondensables', 'nonvolatiles'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, tuple(value))

        if self.K0 is not None and (self.x0 is not None or self.y0 is not None):
            raise ValueError("Invalid specification of initial points: give either K0, or x0 and y0, not both")
        if (self.x0 is None) != (self.y0 is None):
            raise ValueError("Invalid specification of initial points: x0 and y0 must be given together")
        if self.K0 is not None and np.any(self.K0 <= 0):
            raise ValueError("K0 values must be positive")

        if self.equilibrium == equil_type.LLE:
            if self.K0 is None and self.x0 is None:
                raise ValueError("LLE requires an initial guess, either K0 or x0 and y0")
            if self.noncondensables:
                raise ValueError("LLE does not support setting noncondensables")
            if self.nonvolatiles:
                raise ValueError("LLE does not support setting nonvolatiles")

        if self.v0 is not None and len(self.v0) != 2:
            raise ValueError("v0 must be a pair of volumes (vol_x, vol_y)")
        if self.K_tol <= 0:
            raise ValueError(f"K_tol must be positive, got {self.K_tol}")
        if int(self.ss_iters) != self.ss_iters or self.ss_iters < 1:
            raise ValueError(f"ss_iters must be a positive integer, got {self.ss_iters}")
        if int(self.nacc) != self.nacc or (self.nacc != 0 and self.nacc < 3):
            raise ValueError(f"nacc must be 0 (no acceleration) or an integer of 3 or more, got {self.nacc}")

    @property
    def phases(self) -> Tuple[str, str]:
        """ Model phase labels of phases x and y """
        if self.equilibrium == equil_type.LLE:
            return 'liquid', 'liquid'
        return 'liquid', 'vapor'

    def index_reduction(self, mask: np.ndarray) -> "MichelsenTPFlash":
        """ Copy with initial guesses restricted to the components kept by mask """
        return dataclasses.replace(self, K0=index_subset(self.K0, mask),
                                   x0=index_subset(self.x0, mask), y0=index_subset(self.y0, mask))


def _initial_lnK(model, p: float, T: float, method: MichelsenTPFlash, cache: VolumeCache) -> np.ndarray:
    if method.K0 is not None:
        return np.log(method.K0)
    phasex, phasey = method.phases
    if method.x0 is not None:
        lnphix, cache.volx = model.lnphi(p, T, method.x0, phase=phasex, vol0=cache.volx)
        lnphiy, cache.voly = model.lnphi(p, T, method.y0, phase=phasey, vol0=cache.voly)
        return lnphix - lnphiy
    return np.log(model.wilson_k_values(p, T))


def tp_flash(model, p: float, T: float, z: npt.ArrayLike, method: Optional[MichelsenTPFlash] = None,
             full_output: bool = False):
    """ Two-phase isothermal flash by successive substitution, falling back to Gibbs energy minimization.
        Returns (x, y, beta), with phase x the one of smaller molar volume and beta the molar fraction of phase y.
        A single-phase feed returns x = y = z and beta = NaN

        model: Thermodynamic model, e.g. pytpflash.eos.PengRobinson. Must provide lnphi, dlnphi_dn,
               gibbs_free_energy, wilson_k_values (VLE without initial guesses) and index_reduction
        p: Pressure (Pa)
        T: Temperature (K)
        z: Feed composition, normalized internally. Zero entries are removed for the calculation
        method: MichelsenTPFlash settings. Defaults to VLE with Wilson K-values
        full_output: If True, returns a dictionary with
            'x', 'y', 'beta', 'z': Phase compositions, phase y fraction and feed
            'K': K-values y/x (NaN for components absent from the feed)
            'G': Dimensionless Gibbs energy of the result, (1-beta)*g(x) + beta*g(y)
            'volumes': Molar volumes (vol_x, vol_y)
            'iterations', 'error', 'state', 'accelerations': Successive substitution summary
            'fallback': True if Gibbs energy minimization was run
            'gibbs_fallback': (G at start, G at end) of the minimization, or None
            'singlephase': True if no split was found
            'components': Component names
    """
    method = MichelsenTPFlash() if method is None else method
    z_full = normalize(z)
    if len(z_full) != len(model):
        raise ValueError(f"Composition has {len(z_full)} entries, model has {len(model)} components")
    if np.any(z_full < 0) or not np.all(np.isfinite(z_full)):
        raise ValueError("Composition must be finite and nonnegative")

    model_full = model
    model, z_nonzero = model_full.index_reduction(z_full)
    z = z_full[z_nonzero]
    if not z_nonzero.all():
        method = method.index_reduction(z_nonzero)

    phasex, phasey = method.phases
    non_inx, non_iny = restriction_masks(model.components, method.noncondensables, method.nonvolatiles)
    cache = VolumeCache() if method.v0 is None else VolumeCache(*method.v0)

    lnK = _initial_lnK(model, p, T, method, cache)
    beta_min, beta_max = rr_bracket(np.exp(lnK), z, non_inx, non_iny)
    beta = 0.5 * (beta_min + beta_max)

    # Stage 1: Successive substitution
    ss = successive_substitution(model, p, T, z, lnK, beta, cache, phasex, phasey, non_inx, non_iny,
                                 K_tol=method.K_tol, ss_iters=method.ss_iters, nacc=method.nacc)
    x, y, beta, lnK = ss['x'], ss['y'], ss['beta'], ss['lnK']
    singlephase = ss['state'] == ss_state.SINGLEPHASE

    # Stage 2: Gibbs energy minimization
    gibbs = None
    if ss['state'] == ss_state.STALLED:
        logger.debug("Successive substitution stalled at error %.3e, minimizing Gibbs energy", ss['error'])
        gibbs = minimize_gibbs(model, p, T, z, x, y, beta, cache, phasex, phasey, non_inx, non_iny,
                               second_order=method.second_order)
        x, y, beta = gibbs['x'], gibbs['y'], gibbs['beta']
        free = (x > 0) & (y > 0)
        lnK = lnK.copy()
        lnK[free] = np.log(y[free] / x[free])

        # Near the critical point the split can end at the trivial solution
        eq = ~non_inx & ~non_iny
        if eq.any() and np.max(np.abs(lnK[eq])) < TRIVIAL_LNK_TOL:
            logger.debug("Gibbs energy minimization ended at the trivial solution, feed is single phase")
            singlephase = True

    if singlephase:
        x, y, beta = z.copy(), z.copy(), np.nan

    K = np.exp(lnK)
    if not z_nonzero.all():
        x = index_expansion(x, z_nonzero)
        y = index_expansion(y, z_nonzero)
        K = index_expansion(K, z_nonzero, fill=np.nan)

    volx, voly = cache.volx, cache.voly
    if volx is not None and voly is not None and not volx < voly:
        # Sort by increasing volume
        x, y, beta = y, x, 1.0 - beta
        K = 1.0 / K
        volx, voly = voly, volx

    if not full_output:
        return x, y, beta

    if singlephase:
        G = model_full.gibbs_free_energy(p, T, z_full)
    else:
        G = (1.0 - beta) * model_full.gibbs_free_energy(p, T, x) + beta * model_full.gibbs_free_energy(p, T, y)

    return {
        'x': x, 'y': y, 'beta': beta, 'z': z_full, 'K': K, 'G': G,
        'volumes': (volx, voly),
        'iterations': ss['iterations'], 'error': ss['error'], 'state': ss['state'],
        'accelerations': ss['accelerations'],
        'fallback': gibbs is not None,
        'gibbs_fallback': None if gibbs is None else (gibbs['G0'], gibbs['G']),
        'singlephase': singlephase,
        'components': list(model_full.components),
    }


def flash_dataframe(result: Dict) -> pd.DataFrame:
    """ Feed, phase compositions and K-values of a full_output flash result, one row per component """
    return pd.DataFrame({'z': result['z'], 'x': result['x'], 'y': result['y'], 'K': result['K']},
                        index=pd.Index(result['components'], name='Component'))


def flash_table(result: Dict, floatfmt: str = '.6f') -> str:
    """ Text table of a full_output flash result """
    df = flash_dataframe(result)
    table = tabulate(df, headers='keys', floatfmt=floatfmt)
    if result['singlephase']:
        summary = "Single phase"
    else:
        summary = f"Phase y fraction: {result['beta']:{floatfmt}}"
    return f"{table}\n{summary}, G/RT: {result['G']:{floatfmt}}, SS iterations: {result['iterations']}"
