"""
Thermodynamic models providing the fugacity interface used by the flash:
Peng-Robinson EOS (standard PR or Twu alpha) and a two-suffix Margules liquid model.
"""

from .eos import (PengRobinson, Margules, ComponentProperties, COMPONENTS, GAS_GAS_BIPS,
                  get_gas_gas_bip, alpha_standard_pr, alpha_twu, wilson_k_values)
from ._lib_cubic import solve_cubic_eos, gibbs_delta
