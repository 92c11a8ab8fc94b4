from .constants import (R_GAS, OMEGA_A, OMEGA_B, SQRT2, DELTA1, DELTA2, K_TOL, SS_ITERS, NACC,
                        RR_TOL, RR_MAXITER, GIBBS_MAXITER, GIBBS_GTOL, TRIVIAL_LNK_TOL)
