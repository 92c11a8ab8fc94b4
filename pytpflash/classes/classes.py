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

from enum import Enum

class equil_type(Enum):  # Two-phase equilibrium kind
    VLE = 0
    LLE = 1

class alpha_method(Enum):  # Peng-Robinson alpha function
    PR = 0
    TWU = 1

class ss_state(Enum):  # Successive substitution outcome
    ITERATING = 0
    CONVERGED = 1
    STALLED = 2
    SINGLEPHASE = 3

class_dic = {
    "equilibrium": equil_type,
    "alpha": alpha_method,
    "state": ss_state,
}
