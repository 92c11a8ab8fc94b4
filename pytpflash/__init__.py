"""
pytpflash
===================================

-----------------------------------------------
Two-phase isothermal flash calculations
-----------------------------------------------

Vapor-liquid or liquid-liquid equilibrium split of a multicomponent mixture at
fixed pressure and temperature, following Michelsen's two-stage scheme.

Includes;

- Robust Rachford-Rice solver with component restrictions (non-condensables / non-volatiles)
- Successive substitution on ln(K) with DEM acceleration
- Gibbs energy minimization fallback (BFGS or Newton with analytical Hessian)
- Peng-Robinson EOS (standard or Twu alpha) and Margules liquid model

Note: Functions live in submodules, requiring seperate imports, e.g.

    from pytpflash import eos, flash
    model = eos.PengRobinson(['CH4', 'C3H8', 'nC5H12'])
    x, y, beta = flash.tp_flash(model, 3e6, 300.0, [0.4, 0.3, 0.3])
"""

submodules = [
    'classes',
    'constants',
    'eos',
    'flash',
    'shared_fns',
    'validate'
]

__all__ = submodules 

import importlib

def __dir__():
    return __all__


def __getattr__(name):
    if name in submodules:
        return importlib.import_module(f'pytpflash.{name}')
    else:
        try:
            return globals()[name]
        except KeyError:
            raise AttributeError(
                f"Module 'pytpflash' has no attribute '{name}'"
            )
