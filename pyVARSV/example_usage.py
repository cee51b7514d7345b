"""
pyVARSV usage example
=====================

This script shows the main features of the pyVARSV package.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from pyVARSV import VARSV, sample_mvn, sample_iw, sample_mniw
from pyVARSV.utils import build_group_matrix

# =============================================================================
# Example 1: Data preparation
# =============================================================================

print("=" * 80)
print("Example 1: Data preparation")
print("=" * 80)

# Simulate a trivariate VAR(1) with stochastic volatility
rng = np.random.default_rng(42)

T = 200  # length of the time series
K = 3    # number of variables
A1 = np.array([
    [0.5, 0.1, 0.0],
    [0.0, 0.4, 0.0],
    [0.2, 0.0, 0.3]
])
const = np.array([0.1, -0.1, 0.0])
L = np.array([
    [1.0, 0.0, 0.0],
    [-0.3, 1.0, 0.0],
    [0.2, -0.1, 1.0]
])
L_inv = np.linalg.inv(L)

# log-volatilities follow random walks
h = np.cumsum(rng.normal(scale=0.1, size=(T, K)), axis=0) - 1.0

Y = np.zeros((T, K))
for t in range(1, T):
    eps = L_inv @ (np.exp(h[t] / 2) * rng.standard_normal(K))
    Y[t] = const + A1 @ Y[t - 1] + eps

data = pd.DataFrame(Y, columns=['y', 'Dp', 'stir'])

print(f"Number of variables: {data.shape[1]}")
print(f"Length of time series: {T}")
print("\nData sample:")
print(data.head())

# =============================================================================
# Example 2: Minnesota prior
# =============================================================================

print("\n" + "=" * 80)
print("Example 2: VAR-SV with Minnesota prior")
print("=" * 80)

# Estimate model (small draws/burnin for a quick run)
model_mn = VARSV(
    data=data,
    p=1,                 # lag order
    draws=500,           # MCMC draws (5000+ recommended in practice)
    burnin=500,          # burn-in (5000+ recommended in practice)
    prior="MN",
    hyperpara={'lambda': 0.2},
    expert={'seed': 1},
    verbose=True
)

print(model_mn)

# Posterior median coefficients
print("\nCoefficients (median):")
print(model_mn.coef(quantile=0.50).round(3))

# Time-varying variance-covariance matrix
vcov_path = model_mn.vcov(quantile=0.50)
print(f"\nSize of Sigma_t path: {vcov_path.shape}")

# Fitted values and residuals
print(f"Size of fitted values: {model_mn.fitted().shape}")
print(f"Size of residuals: {model_mn.residuals().shape}")

# =============================================================================
# Example 3: SSVS prior with lag groups
# =============================================================================

print("\n" + "=" * 80)
print("Example 3: VAR-SV with SSVS prior")
print("=" * 80)

model_ssvs = VARSV(
    data=data,
    p=2,
    draws=500,
    burnin=500,
    prior="SSVS",
    group="lag",         # one slab weight per lag
    hyperpara={'coef_spike': 0.05, 'coef_slab': 2.0},
    expert={'seed': 2, 'nthreads': 2},
    verbose=False
)

print("Posterior inclusion probabilities:")
print(model_ssvs.shrinkage().round(2))

# =============================================================================
# Example 4: Horseshoe prior with a user-defined grouping
# =============================================================================

print("\n" + "=" * 80)
print("Example 4: VAR-SV with Horseshoe prior")
print("=" * 80)

grp_mat = build_group_matrix(K, 1, include_mean=True, by="own_cross")
print("Group matrix:")
print(grp_mat)


def report(i, n):
    if i % 250 == 0:
        print(f"  iteration {i}/{n}")


model_hs = VARSV(
    data=data,
    p=1,
    draws=500,
    burnin=500,
    prior="HS",
    group=grp_mat,
    expert={'seed': 3, 'progress': report},
    verbose=False
)

summary = model_hs.summary()

print("Shrinkage factors:")
print(model_hs.shrinkage().round(2))

# =============================================================================
# Example 5: Random matrix generators
# =============================================================================

print("\n" + "=" * 80)
print("Example 5: Random matrix generators")
print("=" * 80)

mvn_draws = sample_mvn(1000, np.array([1.0, -1.0]), np.array([[2.0, 0.5], [0.5, 1.0]]), rng=rng)
print(f"MVN sample mean: {mvn_draws.mean(axis=0).round(2)}")

iw_draw = sample_iw(np.eye(2), 5.0, rng=rng)
print(f"Inverse-Wishart draw:\n{iw_draw.round(3)}")

mniw = sample_mniw(10, np.zeros((3, 2)), np.eye(3), np.eye(2), 5.0, rng=rng)
print(f"MNIW shapes: mn {mniw['mn'].shape}, iw {mniw['iw'].shape}")

# =============================================================================
# Example 6: Plots
# =============================================================================

print("\n" + "=" * 80)
print("Example 6: Plots")
print("=" * 80)

from pyVARSV.plot import plot_volatility, plot_trace, plot_shrinkage

fig_vol = plot_volatility(model_mn)
fig_trace = plot_trace(model_mn, record='a_record')
fig_shrink = plot_shrinkage(model_hs)
plt.show()

print("\nDone!")
