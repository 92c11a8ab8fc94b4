"""
Cubic Equation of State Root Finding
====================================
Peng-Robinson compressibility roots for a mixture with reduced parameters
A = a·P/(R·T)^2 and B = b·P/(R·T):

    Z^3 - (1-B)Z^2 + (A-3B^2-2B)Z - (AB-B^2-B^3) = 0

The largest root is found by Halley iteration from a start chosen relative to
the inflection point (Michelsen-style), the others by synthetic division and
the quadratic formula, each polished with one Halley step. np.roots is the
fallback when the iteration fails.
"""

import numpy as np
from typing import List

from pytpflash.constants import SQRT2, DELTA1, DELTA2


def _halley_cubic(c2: float, c1: float, c0: float, B: float) -> List[float]:
    """
    Solve Z^3 + c2*Z^2 + c1*Z + c0 = 0 using Halley iteration.

    Returns sorted list of valid roots (Z > B), or an empty list if the
    iteration for the largest root did not converge.
    """
    MAX_ITER = 50
    TOL = 1e-12

    def halley_step(Z):
        F = Z**3 + c2 * Z**2 + c1 * Z + c0
        Fp = 3.0 * Z**2 + 2.0 * c2 * Z + c1
        Fpp = 6.0 * Z + 2.0 * c2
        if abs(Fp) < 1e-30:
            return 0.0
        DZ = F / Fp
        denom = 1.0 - 0.5 * DZ * Fpp / Fp
        if abs(denom) > 1e-15:
            DZ = DZ / denom
        return DZ

    Z_inf = -c2 / 3.0
    F_inf = Z_inf**3 + c2 * Z_inf**2 + c1 * Z_inf + c0

    # Choose starting point for largest root
    Z = max(B + 1.0, Z_inf + 1.0)
    if F_inf <= 0:
        disc_Fp = c2**2 - 3.0 * c1
        if disc_Fp > 0:
            Z_local_max = (-c2 + np.sqrt(disc_Fp)) / 3.0
            F_max = Z_local_max**3 + c2 * Z_local_max**2 + c1 * Z_local_max + c0
            if F_max > 0:
                # Three real roots, start above local max for largest
                Z = Z_local_max + 0.5

    converged = False
    for _ in range(MAX_ITER):
        DZ = halley_step(Z)
        Z -= DZ
        if abs(DZ) < TOL * max(1.0, abs(Z)):
            converged = True
            break

    if not converged:
        return []

    Z1 = Z

    # Synthetic division: (Z - Z1)(Z^2 + q1*Z + q0)
    q1 = c2 + Z1
    q0 = c1 + Z1 * q1
    disc = q1**2 - 4.0 * q0
    roots = [Z1]

    if disc >= 0:
        sqrt_disc = np.sqrt(disc)
        for Zk in [(-q1 - sqrt_disc) / 2.0, (-q1 + sqrt_disc) / 2.0]:
            roots.append(Zk - halley_step(Zk))

    valid = [r for r in roots if r > B + 1e-10]
    return sorted(valid)


def solve_cubic_eos(A: float, B: float) -> List[float]:
    """
    Solve PR cubic EOS for compressibility factor Z.

    Args:
        A: EOS parameter a*P/(R*T)^2
        B: EOS parameter b*P/(R*T)

    Returns:
        List of valid Z roots (sorted ascending, all > B)
    """
    c2 = -(1.0 - B)
    c1 = A - 3.0 * B**2 - 2.0 * B
    c0 = -(A * B - B**2 - B**3)

    valid = _halley_cubic(c2, c1, c0, B)

    if not valid:
        roots = np.roots([1.0, c2, c1, c0])
        valid = [r.real for r in roots if abs(r.imag) < 1e-10 and r.real > B + 1e-10]
        valid = sorted(valid) if valid else [max(B + 0.01, 0.1)]

    return valid


def gibbs_delta(A: float, B: float, Zl: float, Zv: float) -> float:
    """
    Gibbs energy difference G_vapor - G_liquid (dimensionless) between two
    roots of the same composition, i.e. the difference of the mixture ln(phi).

    ΔG = (Zv-Zl) - ln((Zv-B)/(Zl-B)) - A/(2√2·B)·ln((Zv+δ₁B)(Zl+δ₂B)/((Zv+δ₂B)(Zl+δ₁B)))

    If ΔG < 0, the vapor root is stable; if ΔG > 0, the liquid root.
    """
    if Zv - B <= 0 or Zl - B <= 0 or B < 1e-15:
        return 0.0

    num = (Zv + DELTA1 * B) * (Zl + DELTA2 * B)
    den = (Zv + DELTA2 * B) * (Zl + DELTA1 * B)
    if den <= 0 or num <= 0:
        return 0.0

    term1 = Zv - Zl
    term2 = -np.log((Zv - B) / (Zl - B))
    term3 = -(A / (2.0 * SQRT2 * B)) * np.log(num / den)

    return term1 + term2 + term3
