"""
Exceptions and warnings raised by pyVARSV
"""

import numpy as np


class InvalidDimension(ValueError):
    """Mismatched or non-square shapes of means, scales or design matrices."""


class InvalidParameter(ValueError):
    """Parameter outside its admissible range (e.g. IW shape, group ids, prior type)."""


class NonPositiveDefinite(np.linalg.LinAlgError):
    """A precision or scale matrix failed its Cholesky decomposition."""


class Aborted(UserWarning):
    """The sampler stopped early after the abort hook fired."""
