"""
pyVARSV: Bayesian Vector Autoregressions with Stochastic Volatility

This package provides Gibbs samplers for VAR models with stochastic
volatility under Minnesota, SSVS and Horseshoe priors, together with
multivariate normal, matrix normal and inverse-Wishart generators.
"""

__version__ = "0.1.0"
__author__ = "Python VARSV Team"

from .varsv import VARSV
from . import utils
from . import helpers
from . import distributions
from . import priors
from . import gibbs
from . import plot

# Sampler
from .gibbs import estimate_var_sv

# Random matrix generators
from .distributions import (
    sample_mvn,
    sample_mvn_cholesky,
    sample_matrix_normal,
    sample_iw_tri,
    sample_iw,
    sample_mniw
)

# Errors
from .errors import (
    InvalidDimension,
    InvalidParameter,
    NonPositiveDefinite,
    Aborted
)

__all__ = [
    # Main class
    "VARSV",

    # Modules
    "utils",
    "helpers",
    "distributions",
    "priors",
    "gibbs",
    "plot",

    # Sampler
    "estimate_var_sv",

    # Generators
    "sample_mvn",
    "sample_mvn_cholesky",
    "sample_matrix_normal",
    "sample_iw_tri",
    "sample_iw",
    "sample_mniw",

    # Errors
    "InvalidDimension",
    "InvalidParameter",
    "NonPositiveDefinite",
    "Aborted",
]
