#!/usr/bin/env python3
"""
Validation tests for the two-phase Michelsen flash.
Run with: python3 -m pytest pytpflash/tests/ -v
Or standalone: python3 pytpflash/tests/test_flash.py
"""

import sys
import os
import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pytpflash.eos import PengRobinson, Margules
from pytpflash.flash import MichelsenTPFlash, tp_flash, flash_dataframe, flash_table
from pytpflash.classes import ss_state

# Light hydrocarbon mixture, well inside its two-phase region
HC = ['CH4', 'C3H8', 'nC5H12']
Z_HC = np.array([0.4, 0.3, 0.3])
P_HC, T_HC = 3e6, 300.0

# Partially miscible binary
P_LLE, T_LLE = 1e5, 300.0
Z_LLE = np.array([0.5, 0.5])


def lle_model():
    return Margules(['a', 'b'], 3.0, v=[1e-4, 2e-4])

def lle_method(**kwargs):
    return MichelsenTPFlash(equilibrium='LLE', x0=[0.2, 0.8], y0=[0.8, 0.2], **kwargs)

def vle_residual(model, p, T, x, y, mask=None):
    lnphix, _ = model.lnphi(p, T, x, phase='liquid')
    lnphiy, _ = model.lnphi(p, T, y, phase='vapor')
    mask = np.ones(len(x), dtype=bool) if mask is None else mask
    return np.max(np.abs(np.log(x[mask]) + lnphix[mask] - np.log(y[mask]) - lnphiy[mask]))

def lle_residual(model, x, y):
    lnphix, _ = model.lnphi(P_LLE, T_LLE, x)
    lnphiy, _ = model.lnphi(P_LLE, T_LLE, y)
    return np.max(np.abs(np.log(x) + lnphix - np.log(y) - lnphiy))

# =============================================================================
# Vapor-liquid flash
# =============================================================================

def test_vle_two_phase():
    """Hydrocarbon mixture splits into liquid and vapor in equilibrium"""
    model = PengRobinson(HC)
    x, y, beta = tp_flash(model, P_HC, T_HC, Z_HC)
    assert 0 < beta < 1, f"beta = {beta}"
    assert abs(np.sum(x) - 1) < 1e-12 and abs(np.sum(y) - 1) < 1e-12
    assert np.allclose(beta * y + (1 - beta) * x, Z_HC, atol=1e-7), "Mass balance not satisfied"
    assert vle_residual(model, P_HC, T_HC, x, y) < 1e-6
    assert y[0] > x[0], "Methane should concentrate in the vapor"
    assert x[2] > y[2], "Pentane should concentrate in the liquid"

def test_vle_full_output():
    """full_output reports the run and orders phases by volume"""
    model = PengRobinson(HC)
    res = tp_flash(model, P_HC, T_HC, Z_HC, full_output=True)
    for key in ['x', 'y', 'beta', 'z', 'K', 'G', 'volumes', 'iterations', 'error', 'state',
                'accelerations', 'fallback', 'gibbs_fallback', 'singlephase', 'components']:
        assert key in res, f"Missing key {key}"
    assert res['components'] == HC
    assert not res['singlephase']
    assert res['volumes'][0] < res['volumes'][1]
    assert np.allclose(res['K'], res['y'] / res['x'], rtol=1e-6)
    assert res['iterations'] >= 1
    if not res['fallback']:
        assert res['state'] == ss_state.CONVERGED and res['gibbs_fallback'] is None

def test_vle_gibbs_below_feed():
    """The split has lower Gibbs energy than the unsplit feed"""
    model = PengRobinson(HC)
    res = tp_flash(model, P_HC, T_HC, Z_HC, full_output=True)
    assert res['G'] < model.gibbs_free_energy(P_HC, T_HC, Z_HC)

def test_vle_feed_normalized():
    """Unnormalized feeds give the same result"""
    model = PengRobinson(HC)
    x1, y1, b1 = tp_flash(model, P_HC, T_HC, Z_HC)
    x2, y2, b2 = tp_flash(model, P_HC, T_HC, Z_HC * 10)
    assert np.allclose(x1, x2) and np.allclose(y1, y2) and abs(b1 - b2) < 1e-9

def test_vle_restart_from_solution():
    """Restarting from converged K-values converges in one iteration"""
    model = PengRobinson(HC)
    first = tp_flash(model, P_HC, T_HC, Z_HC, MichelsenTPFlash(nacc=0, ss_iters=100), full_output=True)
    assert first['state'] == ss_state.CONVERGED
    again = tp_flash(model, P_HC, T_HC, Z_HC, MichelsenTPFlash(K0=first['K']), full_output=True)
    assert again['state'] == ss_state.CONVERGED
    assert again['iterations'] == 1, f"Took {again['iterations']} iterations from the solution"
    assert np.allclose(again['x'], first['x'], atol=1e-7)
    assert abs(again['beta'] - first['beta']) < 1e-7

def test_vle_initial_compositions():
    """x0, y0 as the initial guess reach the same split as Wilson K-values"""
    model = PengRobinson(HC)
    x, y, beta = tp_flash(model, P_HC, T_HC, Z_HC)
    method = MichelsenTPFlash(x0=[0.2, 0.35, 0.45], y0=[0.85, 0.12, 0.03], v0=(1e-4, 7e-4))
    x2, y2, beta2 = tp_flash(model, P_HC, T_HC, Z_HC, method)
    assert np.allclose(x, x2, atol=1e-6) and abs(beta - beta2) < 1e-6

def test_vle_with_and_without_acceleration():
    """DEM changes the path, not the answer"""
    model = PengRobinson(HC)
    x1, y1, b1 = tp_flash(model, P_HC, T_HC, Z_HC, MichelsenTPFlash(nacc=0, ss_iters=100))
    x2, y2, b2 = tp_flash(model, P_HC, T_HC, Z_HC, MichelsenTPFlash(nacc=3, ss_iters=100))
    assert np.allclose(x1, x2, atol=1e-6) and np.allclose(y1, y2, atol=1e-6) and abs(b1 - b2) < 1e-6

def test_vle_twu_alpha():
    """Flash runs with the Twu alpha function"""
    twu = {'CH4': (0.1473, 0.9075, 1.8243), 'C3H8': (0.3006, 0.8440, 1.9829),
           'nC5H12': (0.3798, 0.8156, 2.0687)}
    model = PengRobinson(HC, alpha='TWU', twu=twu)
    x, y, beta = tp_flash(model, P_HC, T_HC, Z_HC)
    assert 0 < beta < 1
    assert np.allclose(beta * y + (1 - beta) * x, Z_HC, atol=1e-7)

# =============================================================================
# Single phase
# =============================================================================

def test_single_phase_vapor():
    """A lean gas far from its dew point returns x = y = z, beta = NaN"""
    model = PengRobinson(HC)
    z = np.array([0.95, 0.04, 0.01])
    x, y, beta = tp_flash(model, 1e6, 350.0, z)
    assert np.isnan(beta)
    assert np.allclose(x, z) and np.allclose(y, z)

def test_single_phase_liquid():
    """A compressed liquid returns x = y = z, beta = NaN"""
    model = PengRobinson(HC)
    z = np.array([0.01, 0.09, 0.9])
    res = tp_flash(model, 5e6, 300.0, z, full_output=True)
    assert res['singlephase'] and res['state'] == ss_state.SINGLEPHASE
    assert np.isnan(res['beta'])
    assert np.allclose(res['x'], z) and np.allclose(res['y'], z)
    assert res['G'] == pytest.approx(model.gibbs_free_energy(5e6, 300.0, z))

def test_single_phase_miscible_liquids():
    """Margules A < 2 never splits: the trivial solution is reported as single phase"""
    model = Margules(['a', 'b'], 1.0, v=[1e-4, 2e-4])
    method = MichelsenTPFlash(equilibrium='LLE', K0=[1.5, 0.6], ss_iters=200)
    x, y, beta = tp_flash(model, P_LLE, T_LLE, Z_LLE, method)
    assert np.isnan(beta)
    assert np.allclose(x, Z_LLE) and np.allclose(y, Z_LLE)

# =============================================================================
# Liquid-liquid flash
# =============================================================================

def test_lle_split():
    """Symmetric Margules binary splits evenly into mirror-image liquids"""
    model = lle_model()
    res = tp_flash(model, P_LLE, T_LLE, Z_LLE, lle_method(), full_output=True)
    x, y, beta = res['x'], res['y'], res['beta']
    assert abs(beta - 0.5) < 1e-5, f"beta = {beta}"
    assert lle_residual(model, x, y) < 1e-5
    assert np.allclose(x, y[::-1], atol=1e-5), "Phases of a symmetric system should mirror each other"
    assert 0.05 < x[1] < 0.1, f"Minor component in phase x: {x[1]}"

def test_lle_phase_order_by_volume():
    """Phase x is the one of smaller molar volume, whichever guess it started from"""
    model = lle_model()
    res = tp_flash(model, P_LLE, T_LLE, Z_LLE, lle_method(), full_output=True)
    assert res['volumes'][0] < res['volumes'][1]
    assert res['x'][0] > res['y'][0], "Phase rich in the small-volume component should be x"
    assert np.allclose(res['K'], res['y'] / res['x'], rtol=1e-5)
    flipped = MichelsenTPFlash(equilibrium='LLE', x0=[0.8, 0.2], y0=[0.2, 0.8])
    x, y, beta = tp_flash(model, P_LLE, T_LLE, Z_LLE, flipped)
    assert np.allclose(x, res['x'], atol=1e-5) and np.allclose(y, res['y'], atol=1e-5)

# =============================================================================
# Gibbs energy fallback
# =============================================================================

def test_fallback_after_stall():
    """Successive substitution capped at one iteration hands over to Gibbs minimization"""
    model = lle_model()
    res = tp_flash(model, P_LLE, T_LLE, Z_LLE, lle_method(ss_iters=1, nacc=0), full_output=True)
    assert res['state'] == ss_state.STALLED
    assert res['fallback']
    G0, G = res['gibbs_fallback']
    assert G < G0, f"Gibbs energy did not decrease: {G0} -> {G}"
    assert lle_residual(model, res['x'], res['y']) < 1e-5
    assert np.allclose(res['beta'] * res['y'] + (1 - res['beta']) * res['x'], Z_LLE, atol=1e-10)

def test_fallback_second_order():
    """Newton fallback reaches the same split as BFGS"""
    model = lle_model()
    bfgs = tp_flash(model, P_LLE, T_LLE, Z_LLE, lle_method(ss_iters=1, nacc=0))
    newton = tp_flash(model, P_LLE, T_LLE, Z_LLE, lle_method(ss_iters=1, nacc=0, second_order=True))
    assert np.allclose(bfgs[0], newton[0], atol=1e-5)
    assert abs(bfgs[2] - newton[2]) < 1e-5

def test_fallback_peng_robinson():
    """Fallback on an EOS model agrees with the converged substitution result"""
    model = PengRobinson(HC)
    x, y, beta = tp_flash(model, P_HC, T_HC, Z_HC, MichelsenTPFlash(ss_iters=100))
    res = tp_flash(model, P_HC, T_HC, Z_HC, MichelsenTPFlash(ss_iters=2, nacc=0, second_order=True),
                   full_output=True)
    assert res['fallback']
    G0, G = res['gibbs_fallback']
    assert G < G0
    assert np.allclose(res['x'], x, atol=1e-5) and abs(res['beta'] - beta) < 1e-5

def test_stall_near_critical_is_single_phase():
    """A feed near its critical point that stalls at the trivial solution is still reported single phase"""
    model = PengRobinson(HC)
    p, T = 8e6, 450.0
    res = tp_flash(model, p, T, Z_HC, full_output=True)
    ref = tp_flash(model, p, T, Z_HC, MichelsenTPFlash(ss_iters=2000), full_output=True)
    assert ref['singlephase'] and np.isnan(ref['beta'])
    assert res['singlephase'], f"state {res['state']}, fallback {res['fallback']}, beta {res['beta']}"
    assert np.isnan(res['beta'])
    assert np.allclose(res['x'], Z_HC) and np.allclose(res['y'], Z_HC)
    assert res['G'] == pytest.approx(model.gibbs_free_energy(p, T, Z_HC))

# =============================================================================
# Restricted components and index reduction
# =============================================================================

def test_restricted_components():
    """Non-condensable N2 stays out of the liquid, non-volatile decane out of the vapor"""
    comps = ['N2', 'C3H8', 'nC10H22']
    model = PengRobinson(comps)
    z = np.array([0.3, 0.3, 0.4])
    method = MichelsenTPFlash(noncondensables=['N2'], nonvolatiles=['nC10H22'])
    x, y, beta = tp_flash(model, 2e6, 320.0, z, method)
    assert x[0] == 0.0, f"x[N2] = {x[0]}"
    assert y[2] == 0.0, f"y[nC10] = {y[2]}"
    assert 0.3 <= beta <= 0.6
    assert np.allclose(beta * y + (1 - beta) * x, z, atol=1e-7)
    assert vle_residual(model, 2e6, 320.0, x, y, mask=np.array([False, True, False])) < 1e-6

def test_restricted_components_after_stall():
    """With every component restricted to one phase, the fallback keeps the fixed split"""
    model = PengRobinson(['N2', 'nC10H22'])
    z = np.array([0.3, 0.7])
    method = MichelsenTPFlash(noncondensables=['N2'], nonvolatiles=['nC10H22'], ss_iters=1)
    res = tp_flash(model, 2e6, 320.0, z, method, full_output=True)
    assert np.array_equal(res['x'], [0.0, 1.0]) and np.array_equal(res['y'], [1.0, 0.0])
    assert res['beta'] == pytest.approx(0.3)
    ref = tp_flash(model, 2e6, 320.0, z, MichelsenTPFlash(noncondensables=['N2'], nonvolatiles=['nC10H22']))
    assert np.array_equal(ref[0], res['x']) and ref[2] == pytest.approx(res['beta'])

def test_zero_component_removed():
    """A component absent from the feed is removed and reported as zero in both phases"""
    model4 = PengRobinson(['CH4', 'C2H6', 'C3H8', 'nC5H12'])
    model3 = PengRobinson(HC)
    res = tp_flash(model4, P_HC, T_HC, [0.4, 0.0, 0.3, 0.3], full_output=True)
    x3, y3, beta3 = tp_flash(model3, P_HC, T_HC, Z_HC)
    assert res['x'][1] == 0.0 and res['y'][1] == 0.0
    assert np.isnan(res['K'][1])
    keep = [0, 2, 3]
    assert np.allclose(res['x'][keep], x3, atol=1e-10)
    assert np.allclose(res['y'][keep], y3, atol=1e-10)
    assert abs(res['beta'] - beta3) < 1e-10

def test_zero_component_with_initial_k():
    """K0 given for all components is reduced along with the model"""
    model4 = PengRobinson(['CH4', 'C2H6', 'C3H8', 'nC5H12'])
    K0 = model4.wilson_k_values(P_HC, T_HC)
    x, y, beta = tp_flash(model4, P_HC, T_HC, [0.4, 0.0, 0.3, 0.3], MichelsenTPFlash(K0=K0))
    assert x[1] == 0.0 and 0 < beta < 1

# =============================================================================
# Input checks and reporting
# =============================================================================

def test_bad_feed():
    model = PengRobinson(HC)
    with pytest.raises(ValueError):
        tp_flash(model, P_HC, T_HC, [0.5, 0.5])
    with pytest.raises(ValueError):
        tp_flash(model, P_HC, T_HC, [-0.1, 0.6, 0.5])

def test_flash_dataframe_and_table():
    """Tabulated results list every component"""
    model = PengRobinson(HC)
    res = tp_flash(model, P_HC, T_HC, Z_HC, full_output=True)
    df = flash_dataframe(res)
    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ['z', 'x', 'y', 'K']
    assert list(df.index) == HC and df.index.name == 'Component'
    assert df.loc['C3H8', 'z'] == pytest.approx(0.3)
    table = flash_table(res)
    for name in HC:
        assert name in table
    assert 'Phase y fraction' in table

    single = tp_flash(model, 1e6, 350.0, [0.95, 0.04, 0.01], full_output=True)
    assert 'Single phase' in flash_table(single)


if __name__ == '__main__':
    print("=" * 70)
    print("TP FLASH VALIDATION TESTS")
    print("=" * 70)

    tests = [v for k, v in globals().items() if k.startswith('test_')]
    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
            print(f"  PASS: {test.__name__}")
        except Exception as e:
            failed += 1
            print(f"  FAIL: {test.__name__}: {e}")

    print(f"\n{'=' * 70}")
    print(f"Results: {passed} passed, {failed} failed out of {passed + failed}")
    print("=" * 70)
    sys.exit(1 if failed > 0 else 0)
