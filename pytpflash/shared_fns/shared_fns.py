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
from typing import Optional

def convert_to_numpy(input_data):
    # Convert input data to a float numpy array ensuring it is always sizeable
    if isinstance(input_data, np.ndarray):
        return input_data.astype(float)
    else:
        # Convert list, tuple, scalar, or other types to numpy array
        # Ensuring even scalars become arrays with one element
        return np.atleast_1d(np.asarray(input_data, dtype=float))

def normalize(x: npt.ArrayLike) -> np.ndarray:
    """ Returns x scaled to sum to unity """
    x = convert_to_numpy(x)
    return x / np.sum(x)

def dnorm(x: np.ndarray, y: np.ndarray, p: float = 1) -> float:
    """ p-norm of the difference between two vectors """
    return float(np.linalg.norm(np.asarray(x) - np.asarray(y), ord=p))

def index_expansion(x: np.ndarray, mask: np.ndarray, fill: float = 0.0) -> np.ndarray:
    """ Inverse of index reduction. Scatters a reduced vector back to full length,
        with removed entries set to fill
    """
    mask = np.asarray(mask, dtype=bool)
    out = np.full(mask.size, fill, dtype=float)
    out[mask] = x
    return out

def index_subset(x: Optional[npt.ArrayLike], mask: np.ndarray) -> Optional[np.ndarray]:
    """ Applies an index reduction mask to an optional vector """
    if x is None:
        return None
    return convert_to_numpy(x)[np.asarray(mask, dtype=bool)]
