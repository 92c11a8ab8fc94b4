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

# Constants
R_GAS = 8.314462  # Universal gas constant, J/(mol·K)
OMEGA_A = 0.45724  # Peng-Robinson a-parameter constant
OMEGA_B = 0.07780  # Peng-Robinson b-parameter constant
SQRT2 = 1.4142135623730951
DELTA1 = 1.0 + SQRT2  # PR attractive-term denominator v² + 2bv - b² = (v + δ1·b)(v + δ2·b)
DELTA2 = 1.0 - SQRT2

# Flash defaults
K_TOL = float(np.sqrt(np.finfo(float).eps))  # Convergence tolerance on lnK 1-norm
SS_ITERS = 21  # Successive substitution iteration cap
NACC = 5  # DEM acceleration period (0 disables)
RR_TOL = 1e-8  # Rachford-Rice step and residual tolerance
RR_MAXITER = 10  # Rachford-Rice Halley iteration cap
GIBBS_MAXITER = 200  # Iteration limit handed to the Gibbs energy minimizer
GIBBS_GTOL = 1e-10  # Gradient tolerance for the Gibbs energy minimizer
TRIVIAL_LNK_TOL = 1e-4  # max|lnK| below which a converged split is the trivial solution
