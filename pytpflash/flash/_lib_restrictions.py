"""
Component Restrictions
======================
Non-condensable components are barred from phase x (K -> ∞) and non-volatile
components from phase y (K -> 0). Rather than iterate with extreme K-values,
their limiting behaviour is substituted directly wherever phase compositions
are recovered from K and β.
"""

import numpy as np
import numpy.typing as npt
from typing import Iterable, List, Optional, Tuple

from pytpflash.shared_fns import convert_to_numpy


def restriction_masks(components: List[str], noncondensables: Optional[Iterable[str]] = None,
                      nonvolatiles: Optional[Iterable[str]] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Builds the restriction masks for a component list. Names not in the list are ignored,
    so a restriction on a component removed by index reduction has no effect.

    Returns:
        non_inx: True for components absent from phase x (non-condensables)
        non_iny: True for components absent from phase y (non-volatiles)
    """
    noncondensables = set() if noncondensables is None else set(noncondensables)
    nonvolatiles = set() if nonvolatiles is None else set(nonvolatiles)
    both = noncondensables & nonvolatiles
    if both:
        raise ValueError(f"Components cannot be both noncondensable and nonvolatile: {sorted(both)}")
    non_inx = np.array([c in noncondensables for c in components], dtype=bool)
    non_iny = np.array([c in nonvolatiles for c in components], dtype=bool)
    return non_inx, non_iny


def rr_compositions(K: npt.ArrayLike, z: npt.ArrayLike, beta: float,
                    non_inx: Optional[np.ndarray] = None,
                    non_iny: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Phase compositions from K-values and phase fraction,
        x_i = z_i / (1 + β(K_i - 1)),  y_i = K_i·x_i
    with non-volatiles at x_i = z_i/(1 - β), y_i = 0 and non-condensables at
    x_i = 0, y_i = z_i/β. Both phases are renormalized to sum to 1.
    """
    K, z = convert_to_numpy(K), convert_to_numpy(z)
    beta = np.float64(beta)
    x = z / (1.0 + beta * (K - 1.0))
    y = x * K

    if non_iny is not None and np.any(non_iny):
        x[non_iny] = z[non_iny] / (1.0 - beta)
        y[non_iny] = 0.0

    if non_inx is not None and np.any(non_inx):
        x[non_inx] = 0.0
        y[non_inx] = z[non_inx] / beta

    return x / np.sum(x), y / np.sum(y)
