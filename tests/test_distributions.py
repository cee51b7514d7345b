"""
Unit tests for the random matrix generators.

Tests cover:
1. Multivariate normal moments
2. Matrix normal shapes and moments
3. Inverse-Wishart positive definiteness and mean
4. Normal-inverse-Wishart output
5. Input validation
"""

import pytest
import numpy as np

from pyVARSV.distributions import (
    sample_mvn,
    sample_mvn_cholesky,
    sample_matrix_normal,
    sample_iw_tri,
    sample_iw,
    sample_mniw
)
from pyVARSV.errors import InvalidDimension, InvalidParameter, NonPositiveDefinite


MU = np.array([1.0, -1.0])
SIG = np.array([[2.0, 0.5], [0.5, 1.0]])


# ============================================================================
# Test Class 1: Multivariate normal
# ============================================================================

class TestMultivariateNormal:
    """Moments and validation of the MVN generators"""

    @pytest.mark.parametrize("sampler", [sample_mvn, sample_mvn_cholesky])
    def test_moments(self, sampler):
        rng = np.random.default_rng(123)
        draws = sampler(100000, MU, SIG, rng=rng)
        assert draws.shape == (100000, 2)
        np.testing.assert_allclose(draws.mean(axis=0), MU, atol=0.03)
        np.testing.assert_allclose(np.cov(draws.T), SIG, atol=0.05)

    def test_seed_reproducible(self):
        a = sample_mvn(5, MU, SIG, rng=np.random.default_rng(1))
        b = sample_mvn(5, MU, SIG, rng=np.random.default_rng(1))
        np.testing.assert_array_equal(a, b)

    def test_singular_covariance_allowed(self):
        draws = sample_mvn(10, np.zeros(2), np.ones((2, 2)), rng=np.random.default_rng(0))
        np.testing.assert_allclose(draws[:, 0], draws[:, 1], atol=1e-10)

    def test_mean_size_mismatch(self):
        with pytest.raises(InvalidDimension):
            sample_mvn(1, np.zeros(3), SIG)

    def test_not_square(self):
        with pytest.raises(InvalidDimension):
            sample_mvn(1, np.zeros(2), np.ones((2, 3)))

    def test_not_symmetric(self):
        with pytest.raises(InvalidDimension):
            sample_mvn(1, np.zeros(2), np.array([[1.0, 0.5], [0.0, 1.0]]))

    def test_indefinite(self):
        with pytest.raises(NonPositiveDefinite):
            sample_mvn(1, np.zeros(2), np.array([[1.0, 2.0], [2.0, 1.0]]))

    def test_cholesky_indefinite(self):
        with pytest.raises(NonPositiveDefinite):
            sample_mvn_cholesky(1, np.zeros(2), np.array([[1.0, 2.0], [2.0, 1.0]]))


# ============================================================================
# Test Class 2: Matrix normal
# ============================================================================

class TestMatrixNormal:
    """Matrix normal draws"""

    def test_shape(self):
        draw = sample_matrix_normal(np.zeros((3, 2)), np.eye(3), SIG, rng=np.random.default_rng(0))
        assert draw.shape == (3, 2)

    def test_column_covariance(self):
        """Each row of MN(M, I, V) is N(M_i, V)"""
        rng = np.random.default_rng(7)
        draws = np.array([
            sample_matrix_normal(np.zeros((1, 2)), np.eye(1), SIG, rng=rng)[0]
            for _ in range(20000)
        ])
        np.testing.assert_allclose(np.cov(draws.T), SIG, atol=0.08)

    def test_row_scale_dimension(self):
        with pytest.raises(InvalidDimension):
            sample_matrix_normal(np.zeros((3, 2)), np.eye(2), SIG)

    def test_column_scale_dimension(self):
        with pytest.raises(InvalidDimension):
            sample_matrix_normal(np.zeros((3, 2)), np.eye(3), np.eye(3))


# ============================================================================
# Test Class 3: Inverse-Wishart
# ============================================================================

class TestInverseWishart:
    """Inverse-Wishart draws"""

    def test_factor_reconstructs_draw(self):
        A = sample_iw_tri(SIG, 6.0, rng=np.random.default_rng(3))
        draw = sample_iw(SIG, 6.0, rng=np.random.default_rng(3))
        np.testing.assert_allclose(A @ A.T, draw)

    def test_symmetric_positive_definite(self):
        rng = np.random.default_rng(11)
        for _ in range(50):
            draw = sample_iw(SIG, 3.0, rng=rng)
            np.testing.assert_allclose(draw, draw.T)
            assert np.linalg.eigvalsh(draw).min() > 0

    def test_mean(self):
        """E[Sigma] = Psi / (nu - m - 1)"""
        rng = np.random.default_rng(2024)
        shape = 10.0
        draws = np.array([sample_iw(SIG, shape, rng=rng) for _ in range(20000)])
        np.testing.assert_allclose(draws.mean(axis=0), SIG / (shape - 3), atol=0.02)

    def test_invalid_shape(self):
        with pytest.raises(InvalidParameter):
            sample_iw(SIG, 1.0)

    def test_not_square(self):
        with pytest.raises(InvalidDimension):
            sample_iw(np.ones((2, 3)), 5.0)


# ============================================================================
# Test Class 4: Normal-inverse-Wishart
# ============================================================================

class TestMNIW:
    """Joint MNIW draws"""

    def test_output_shapes(self):
        res = sample_mniw(4, np.zeros((3, 2)), np.eye(3), SIG, 5.0, rng=np.random.default_rng(0))
        assert res['mn'].shape == (4, 3, 2)
        assert res['iw'].shape == (4, 2, 2)
        for iw in res['iw']:
            assert np.linalg.eigvalsh(iw).min() > 0

    def test_mean_mismatch(self):
        with pytest.raises(InvalidDimension):
            sample_mniw(1, np.zeros((3, 3)), np.eye(3), SIG, 5.0)

    def test_row_scale_mismatch(self):
        with pytest.raises(InvalidDimension):
            sample_mniw(1, np.zeros((3, 2)), np.eye(2), SIG, 5.0)
