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

import numpy as np
import numpy.typing as npt
from typing import Dict, Tuple, Optional, List
from dataclasses import dataclass

from pytpflash.classes import alpha_method
from pytpflash.validate import validate_methods
from pytpflash.shared_fns import convert_to_numpy, normalize
from pytpflash.constants import R_GAS, OMEGA_A, OMEGA_B, SQRT2, DELTA1, DELTA2
from pytpflash.eos._lib_cubic import solve_cubic_eos, gibbs_delta

# Models in this module share one calling convention, which is all the flash needs:
#   components, len(model)
#   lnphi(p, T, x, phase, vol0)            -> (ln_phi, molar volume)
#   dlnphi_dn(p, T, x, phase, vol0)        -> (ln_phi, N*dln_phi/dn, molar volume)
#   gibbs_free_energy(p, T, x, phase=None) -> G/RT
#   wilson_k_values(p, T)                  -> K
#   index_reduction(z)                     -> (reduced model, mask)
# Units: p in Pa, T in K, volumes in m3/mol

PHASES = ('liquid', 'vapor')


@dataclass
class ComponentProperties:
    """Critical properties and parameters for a component."""
    name: str
    Tc: float      # Critical temperature (K)
    Pc: float      # Critical pressure (Pa)
    omega: float   # Acentric factor


COMPONENTS = {
    'H2O': ComponentProperties('Water', 647.3, 22.12e6, 0.3434),
    'H2': ComponentProperties('Hydrogen', 33.145, 1.2964e6, -0.219),
    'CO2': ComponentProperties('Carbon Dioxide', 304.2, 7.38e6, 0.2273),
    'H2S': ComponentProperties('Hydrogen Sulfide', 373.2, 8.94e6, 0.1081),
    'N2': ComponentProperties('Nitrogen', 126.1, 3.40e6, 0.0403),
    'CH4': ComponentProperties('Methane', 190.6, 4.60e6, 0.0108),
    'C2H6': ComponentProperties('Ethane', 305.4, 4.88e6, 0.0986),
    'C3H8': ComponentProperties('Propane', 369.8, 4.25e6, 0.1524),
    'iC4H10': ComponentProperties('i-Butane', 408.1, 3.65e6, 0.1770),
    'nC4H10': ComponentProperties('n-Butane', 425.2, 3.80e6, 0.1931),
    'iC5H12': ComponentProperties('i-Pentane', 460.4, 3.38e6, 0.2270),
    'nC5H12': ComponentProperties('n-Pentane', 469.6, 3.37e6, 0.2510),
    'nC6H14': ComponentProperties('n-Hexane', 507.4, 3.01e6, 0.2990),
    'nC7H16': ComponentProperties('n-Heptane', 540.3, 2.74e6, 0.3490),
    'nC8H18': ComponentProperties('n-Octane', 568.8, 2.49e6, 0.3980),
    'nC10H22': ComponentProperties('n-Decane', 617.7, 2.10e6, 0.4900),
}

# Sources: GPSA Engineering Data Book, Knapp et al., various EOS studies
# Convention: GAS_GAS_BIPS[(gas_a, gas_b)] = kij
# Unspecified pairs default to 0.0
GAS_GAS_BIPS = {
    ('CH4', 'CO2'): 0.12,      ('CO2', 'C2H6'): 0.13,
    ('CO2', 'C3H8'): 0.135,    ('CO2', 'N2'): -0.02,
    ('CO2', 'H2S'): 0.097,     ('CO2', 'H2'): 0.0,
    ('CO2', 'nC4H10'): 0.13,   ('CO2', 'iC4H10'): 0.13,
    ('CH4', 'C2H6'): 0.0026,   ('CH4', 'C3H8'): 0.014,
    ('CH4', 'N2'): 0.036,      ('CH4', 'H2S'): 0.08,
    ('CH4', 'H2'): 0.0,        ('CH4', 'nC4H10'): 0.02,
    ('CH4', 'iC4H10'): 0.02,   ('H2', 'N2'): 0.0,
    ('H2S', 'N2'): 0.17,       ('C2H6', 'N2'): 0.04,
    ('C3H8', 'N2'): 0.08,      ('H2', 'H2S'): 0.0,
    ('C2H6', 'H2S'): 0.085,    ('C3H8', 'H2S'): 0.08,
    ('C2H6', 'H2'): 0.0,       ('C3H8', 'H2'): 0.0,
    ('H2', 'nC4H10'): 0.0,     ('H2', 'iC4H10'): 0.0,
    ('C2H6', 'C3H8'): 0.001,   ('C2H6', 'nC4H10'): 0.01,
    ('C3H8', 'nC4H10'): 0.003,
}


def get_gas_gas_bip(gas_a: str, gas_b: str) -> float:
    """Get gas-gas BIP from database. Returns 0.0 for unknown pairs."""
    if gas_a == gas_b:
        return 0.0
    for key in [(gas_a, gas_b), (gas_b, gas_a)]:
        if key in GAS_GAS_BIPS:
            return GAS_GAS_BIPS[key]
    return 0.0


# =============================================================================
# Alpha Functions
# =============================================================================
def alpha_standard_pr(Tr: npt.ArrayLike, omega: npt.ArrayLike) -> np.ndarray:
    """
    Standard Peng-Robinson alpha function.

    Args:
        Tr: Reduced temperature T/Tc
        omega: Acentric factor

    Returns:
        Alpha parameter for PR EOS
    """
    Tr, omega = np.asarray(Tr, dtype=float), np.asarray(omega, dtype=float)
    m = 0.37464 + 1.54226 * omega - 0.26992 * omega**2
    return (1.0 + m * (1.0 - np.sqrt(np.maximum(Tr, 0.0))))**2


def alpha_twu(Tr: npt.ArrayLike, L: npt.ArrayLike, M: npt.ArrayLike, N: npt.ArrayLike) -> np.ndarray:
    """
    Twu, Lee & Starling (1980) alpha function.

    α = Tr^(N(M-1)) · exp(L(1 - Tr^(NM)))

    Args:
        Tr: Reduced temperature T/Tc
        L, M, N: Component-specific Twu parameters

    Returns:
        Alpha parameter, equal to 1 at Tr = 1 for any parameter set
    """
    Tr = np.asarray(Tr, dtype=float)
    L, M, N = np.asarray(L, dtype=float), np.asarray(M, dtype=float), np.asarray(N, dtype=float)
    return Tr**(N * (M - 1.0)) * np.exp(L * (1.0 - Tr**(N * M)))


def wilson_k_values(Tc: np.ndarray, Pc: np.ndarray, omega: np.ndarray, T_K: float, P_Pa: float) -> np.ndarray:
    """ Wilson (1968) K-value correlation, K = (Pc/P)·exp(5.373(1+ω)(1-Tc/T)) """
    return (Pc / P_Pa) * np.exp(5.373 * (1.0 + omega) * (1.0 - Tc / T_K))


def _check_phase(phase: Optional[str]) -> Optional[str]:
    if phase is None:
        return None
    phase = phase.lower()
    if phase not in PHASES:
        raise ValueError(f"Unknown phase: {phase}. Use 'liquid', 'vapor' or None")
    return phase


def _numerical_dlnphi_dn(lnphi_fn, x: np.ndarray, h: float = 1e-6) -> np.ndarray:
    """
    N·∂lnφ_i/∂n_j at one total mole by central differences on the mole numbers.
    Forward differences are used for components with fewer than 2h moles.
    """
    nc = len(x)
    lnphi0 = lnphi_fn(x)
    jac = np.zeros((nc, nc))
    for j in range(nc):
        n_hi = x.copy()
        n_hi[j] += h
        if x[j] > 2.0 * h:
            n_lo = x.copy()
            n_lo[j] -= h
            jac[:, j] = (lnphi_fn(n_hi) - lnphi_fn(n_lo)) / (2.0 * h)
        else:
            jac[:, j] = (lnphi_fn(n_hi) - lnphi0) / h
    return jac


# =============================================================================
# Peng-Robinson Equation of State
# =============================================================================
class PengRobinson:
    """
    Peng-Robinson (1976) equation of state with van der Waals one-fluid mixing.

    Usage:
        model = PengRobinson(['CH4', 'C3H8', 'nC5H12'])
        lnphi, v = model.lnphi(3e6, 300.0, [0.4, 0.3, 0.3], phase='vapor')
    """

    def __init__(self, components: List[str], kij: Optional[npt.ArrayLike] = None,
                 alpha: alpha_method = alpha_method.PR,
                 twu: Optional[Dict[str, Tuple[float, float, float]]] = None,
                 props: Optional[Dict[str, ComponentProperties]] = None):
        """
        Args:
            components: Component names. Looked up in props first, then COMPONENTS
            kij: Optional N×N binary interaction matrix. Defaults to GAS_GAS_BIPS
            alpha: 'PR' for the standard Soave-type PR alpha, 'TWU' for Twu alpha
            twu: {name: (L, M, N)} Twu parameters, required for every component with alpha='TWU'
            props: Optional {name: ComponentProperties} for components outside COMPONENTS
        """
        props = {} if props is None else dict(props)
        self.components = list(components)
        self.nc = len(self.components)
        if self.nc == 0:
            raise ValueError("At least one component is required")
        data = []
        for name in self.components:
            if name in props:
                data.append(props[name])
            elif name in COMPONENTS:
                data.append(COMPONENTS[name])
            else:
                raise ValueError(f"Unknown component: {name}. Supported: {list(COMPONENTS.keys())}")
        self.props = dict(zip(self.components, data))
        self.Tc = np.array([c.Tc for c in data])
        self.Pc = np.array([c.Pc for c in data])
        self.omega = np.array([c.omega for c in data])

        self.alpha = validate_methods(['alpha'], [alpha])
        self.twu = None
        if self.alpha == alpha_method.TWU:
            twu = {} if twu is None else twu
            missing = [name for name in self.components if name not in twu]
            if missing:
                raise ValueError(f"Twu parameters (L, M, N) missing for: {missing}")
            self.twu = {name: tuple(twu[name]) for name in self.components}

        if kij is None:
            self.kij = self.build_kij_matrix()
        else:
            self.kij = np.array(kij, dtype=float)
            if self.kij.shape != (self.nc, self.nc):
                raise ValueError(f"kij must be {self.nc}x{self.nc}, got {self.kij.shape}")
            if not np.allclose(self.kij, self.kij.T):
                raise ValueError("kij matrix must be symmetric")

    def __len__(self):
        return self.nc

    def __repr__(self):
        return f"PengRobinson({self.components}, alpha='{self.alpha.name}')"

    def build_kij_matrix(self) -> np.ndarray:
        """Build N×N kij matrix from the gas-gas BIP database."""
        kij = np.zeros((self.nc, self.nc))
        for i in range(self.nc):
            for j in range(i + 1, self.nc):
                val = get_gas_gas_bip(self.components[i], self.components[j])
                kij[i, j] = val
                kij[j, i] = val
        return kij

    def _calc_alpha(self, T_K: float) -> np.ndarray:
        Tr = T_K / self.Tc
        if self.alpha == alpha_method.TWU:
            L, M, N = np.array([self.twu[name] for name in self.components]).T
            return alpha_twu(Tr, L, M, N)
        return alpha_standard_pr(Tr, self.omega)

    def _calc_ai_bi(self, T_K: float) -> Tuple[np.ndarray, np.ndarray]:
        alpha = self._calc_alpha(T_K)
        ai = OMEGA_A * (R_GAS * self.Tc)**2 * alpha / self.Pc
        bi = OMEGA_B * R_GAS * self.Tc / self.Pc
        return ai, bi

    def _mixture(self, P_Pa: float, T_K: float, comp: np.ndarray):
        """ Reduced mixture parameters A, B and the Aij / Bi arrays they are built from """
        ai, bi = self._calc_ai_bi(T_K)
        RT = R_GAS * T_K
        Ai = ai * P_Pa / RT**2
        Bi = bi * P_Pa / RT
        sqrt_Ai = np.sqrt(Ai)
        Aij = np.outer(sqrt_Ai, sqrt_Ai) * (1.0 - self.kij)
        A_mix = comp @ Aij @ comp
        B_mix = np.dot(comp, Bi)
        return A_mix, B_mix, Aij, Bi

    def _select_root(self, roots: List[float], A: float, B: float, phase: Optional[str],
                     Z0: Optional[float]) -> float:
        if phase == 'liquid':
            return roots[0]
        if phase == 'vapor':
            return roots[-1]
        if Z0 is not None:
            return min(roots, key=lambda r: abs(r - Z0))
        if len(roots) > 1 and gibbs_delta(A, B, roots[0], roots[-1]) > 0:
            return roots[0]
        return roots[-1]

    def _lnphi_z(self, P_Pa: float, T_K: float, comp: np.ndarray, phase: Optional[str],
                 vol0: Optional[float]) -> Tuple[np.ndarray, float]:
        A, B, Aij, Bi = self._mixture(P_Pa, T_K, comp)
        RT = R_GAS * T_K
        Z0 = None if vol0 is None else P_Pa * vol0 / RT
        Z = self._select_root(solve_cubic_eos(A, B), A, B, phase, Z0)

        Bi_over_B = Bi / B
        sum_xA_over_A = (Aij @ comp) / A
        log_arg = (Z + DELTA1 * B) / (Z + DELTA2 * B)
        lnphi = (Bi_over_B * (Z - 1.0) - np.log(Z - B)
                 + (A / (2.0 * SQRT2 * B)) * (Bi_over_B - 2.0 * sum_xA_over_A) * np.log(log_arg))
        return lnphi, Z

    def lnphi(self, P_Pa: float, T_K: float, x: npt.ArrayLike, phase: Optional[str] = 'liquid',
              vol0: Optional[float] = None) -> Tuple[np.ndarray, float]:
        """
        Log fugacity coefficients of all components.

        Args:
            P_Pa: Pressure (Pa)
            T_K: Temperature (K)
            x: Composition (normalized internally)
            phase: 'liquid' (smallest root), 'vapor' (largest root) or None (root nearest
                   vol0 if given, else the root of lowest Gibbs energy)
            vol0: Molar volume hint (m3/mol)

        Returns:
            ln_phi array and molar volume (m3/mol)
        """
        phase = _check_phase(phase)
        comp = normalize(x)
        lnphi, Z = self._lnphi_z(P_Pa, T_K, comp, phase, vol0)
        return lnphi, Z * R_GAS * T_K / P_Pa

    def dlnphi_dn(self, P_Pa: float, T_K: float, x: npt.ArrayLike, phase: Optional[str] = 'liquid',
                  vol0: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray, float]:
        """
        Log fugacity coefficients and their mole number derivatives at one total mole,
        (∂lnφ_i/∂n_j)·N, evaluated on the same root branch as the base point.

        Returns:
            ln_phi array, N×N derivative matrix and molar volume (m3/mol)
        """
        phase = _check_phase(phase)
        comp = normalize(x)
        lnphi, v = self.lnphi(P_Pa, T_K, comp, phase=phase, vol0=vol0)
        dlnphi = _numerical_dlnphi_dn(lambda n: self.lnphi(P_Pa, T_K, n, phase=phase, vol0=v)[0], comp)
        return lnphi, dlnphi, v

    def gibbs_free_energy(self, P_Pa: float, T_K: float, x: npt.ArrayLike,
                          phase: Optional[str] = None) -> float:
        """ Dimensionless molar Gibbs energy of mixing relative to the pure ideal gases, Σ x·ln(x·φ) """
        comp = normalize(x)
        lnphi, _ = self.lnphi(P_Pa, T_K, comp, phase=phase)
        present = comp > 0
        return float(np.sum(comp[present] * (np.log(comp[present]) + lnphi[present])))

    def wilson_k_values(self, P_Pa: float, T_K: float) -> np.ndarray:
        """ Wilson correlation K-values for a vapor-liquid initial guess """
        return wilson_k_values(self.Tc, self.Pc, self.omega, T_K, P_Pa)

    def index_reduction(self, z: npt.ArrayLike) -> Tuple["PengRobinson", np.ndarray]:
        """ Returns a model restricted to the components with nonzero composition, and the mask used """
        mask = convert_to_numpy(z) > 0
        if mask.all():
            return self, mask
        names = [c for c, keep in zip(self.components, mask) if keep]
        twu = None if self.twu is None else {name: self.twu[name] for name in names}
        model = PengRobinson(names, kij=self.kij[np.ix_(mask, mask)], alpha=self.alpha, twu=twu,
                             props={name: self.props[name] for name in names})
        return model, mask


# =============================================================================
# Margules Activity Model
# =============================================================================
class Margules:
    """
    Two-suffix (symmetric) Margules liquid activity model, for liquid-liquid work.

        G^E/RT = ½ Σ_ij A_ij x_i x_j,   lnγ_k = (A·x)_k - ½ xᵀ·A·x

    With a zero diagonal this reduces to lnγ_1 = A_12·x_2² for a binary, which
    splits into two liquids when A_12 > 2. The fugacity coefficient reported is
    the activity coefficient (pure liquids as reference), so only the 'liquid'
    phase exists. Molar volume is the ideal mix of the pure volumes v.
    """

    def __init__(self, components: List[str], A: npt.ArrayLike, v: Optional[npt.ArrayLike] = None):
        self.components = list(components)
        self.nc = len(self.components)
        A = np.asarray(A, dtype=float)
        if A.ndim == 0:
            if self.nc != 2:
                raise ValueError("A scalar Margules parameter is only valid for a binary")
            A = np.array([[0.0, float(A)], [float(A), 0.0]])
        if A.shape != (self.nc, self.nc):
            raise ValueError(f"A must be {self.nc}x{self.nc}, got {A.shape}")
        if not np.allclose(A, A.T):
            raise ValueError("Margules A matrix must be symmetric")
        self.A = A
        self.v = np.full(self.nc, 1e-4) if v is None else convert_to_numpy(v)
        if self.v.size != self.nc:
            raise ValueError(f"v must have {self.nc} entries, got {self.v.size}")

    def __len__(self):
        return self.nc

    def __repr__(self):
        return f"Margules({self.components})"

    def lnphi(self, P_Pa: float, T_K: float, x: npt.ArrayLike, phase: Optional[str] = 'liquid',
              vol0: Optional[float] = None) -> Tuple[np.ndarray, float]:
        if _check_phase(phase) == 'vapor':
            raise ValueError("Margules model has no vapor phase")
        comp = normalize(x)
        Ax = self.A @ comp
        return Ax - 0.5 * (comp @ Ax), float(comp @ self.v)

    def dlnphi_dn(self, P_Pa: float, T_K: float, x: npt.ArrayLike, phase: Optional[str] = 'liquid',
                  vol0: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray, float]:
        lnphi, v = self.lnphi(P_Pa, T_K, x, phase=phase, vol0=vol0)
        comp = normalize(x)
        Ax = self.A @ comp
        dlnphi = self.A - Ax[:, None] - Ax[None, :] + comp @ Ax
        return lnphi, dlnphi, v

    def gibbs_free_energy(self, P_Pa: float, T_K: float, x: npt.ArrayLike,
                          phase: Optional[str] = None) -> float:
        comp = normalize(x)
        lnphi, _ = self.lnphi(P_Pa, T_K, comp)
        present = comp > 0
        return float(np.sum(comp[present] * (np.log(comp[present]) + lnphi[present])))

    def wilson_k_values(self, P_Pa: float, T_K: float) -> np.ndarray:
        raise ValueError("Margules model has no vapor phase, supply K0 or x0, y0")

    def index_reduction(self, z: npt.ArrayLike) -> Tuple["Margules", np.ndarray]:
        mask = convert_to_numpy(z) > 0
        if mask.all():
            return self, mask
        names = [c for c, keep in zip(self.components, mask) if keep]
        return Margules(names, self.A[np.ix_(mask, mask)], self.v[mask]), mask
