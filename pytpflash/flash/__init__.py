"""
Two-phase isothermal flash (Michelsen): Rachford-Rice, successive substitution with
DEM acceleration, component restrictions and Gibbs energy minimization fallback.
"""

from .flash import MichelsenTPFlash, tp_flash, flash_dataframe, flash_table
from ._lib_rachford_rice import rachford_rice, rr_bracket, rr_objective
from ._lib_restrictions import restriction_masks, rr_compositions
from ._lib_michelsen import VolumeCache, successive_substitution, accelerate, dem, phase_gibbs
from ._lib_gibbs import GibbsObjective, minimize_gibbs
