"""
Unit tests for the conditional posterior draws in pyVARSV.helpers.
"""

import pytest
import numpy as np

from pyVARSV import helpers
from pyVARSV.errors import InvalidParameter


# ============================================================================
# Test Class 1: Regression core
# ============================================================================

class TestRegression:
    """Gaussian regression draws"""

    def test_flat_prior_gls_mean(self):
        """Under a near-flat prior the draws center on the GLS estimate"""
        rng = np.random.default_rng(5)
        X = rng.standard_normal((200, 3))
        beta = np.array([1.0, -0.5, 0.25])
        weights = rng.uniform(0.5, 2.0, 200)
        y = X @ beta + rng.standard_normal(200) / np.sqrt(weights)
        innov_prec = np.diag(weights)

        gls = np.linalg.solve(X.T @ innov_prec @ X, X.T @ innov_prec @ y)
        draws = np.array([
            helpers.varsv_regression(X, y, np.zeros(3), 1e-8 * np.eye(3), innov_prec, rng=rng)
            for _ in range(4000)
        ])
        np.testing.assert_allclose(draws.mean(axis=0), gls, atol=0.01)
        np.testing.assert_allclose(
            draws.var(axis=0), np.diag(np.linalg.inv(X.T @ innov_prec @ X)), rtol=0.1
        )

    def test_tight_prior_dominates(self):
        rng = np.random.default_rng(0)
        X = rng.standard_normal((20, 2))
        y = rng.standard_normal(20)
        prior_mean = np.array([3.0, -3.0])
        draw = helpers.varsv_regression(X, y, prior_mean, 1e10 * np.eye(2), np.eye(20), rng=rng)
        np.testing.assert_allclose(draw, prior_mean, atol=1e-3)


# ============================================================================
# Test Class 2: Stochastic volatility blocks
# ============================================================================

class TestStochasticVolatility:
    """Mixture indicators and log-volatility draws"""

    def test_mixture_constants(self):
        assert helpers.KSC_PROB.sum() == pytest.approx(1.0, abs=1e-4)
        assert helpers.KSC_MEAN.size == helpers.KSC_VAR.size == 7

    def test_mixture_indicator_range(self):
        rng = np.random.default_rng(1)
        s = helpers.draw_mixture_indicator(rng.standard_normal(500) * 3, rng)
        assert s.shape == (500,)
        assert s.min() >= 0 and s.max() <= 6

    def test_ht_shape_and_finite(self):
        rng = np.random.default_rng(2)
        latent = np.log(rng.standard_normal(100) ** 2 + helpers.LOG_SQ_OFFSET)
        draw = helpers.varsv_ht(np.zeros(100), 0.0, 0.1, latent, rng=rng)
        assert draw.shape == (100,)
        assert np.isfinite(draw).all()

    def test_ht_tracks_level(self):
        """With small state noise the path recovers a constant log-variance"""
        rng = np.random.default_rng(3)
        level = 2.0
        resid = rng.standard_normal(2000) * np.exp(level / 2)
        latent = np.log(resid ** 2 + helpers.LOG_SQ_OFFSET)
        h = np.full(2000, level)
        for _ in range(20):
            h = helpers.varsv_ht(h, level, 1e-4, latent, rng=rng)
        assert h.mean() == pytest.approx(level, abs=0.2)

    def test_sigh_positive(self):
        rng = np.random.default_rng(4)
        h1 = np.cumsum(rng.normal(scale=0.1, size=(50, 3)), axis=0)
        sigh = helpers.varsv_sigh(np.full(3, 3.0), np.full(3, 0.01), np.zeros(3), h1, rng=rng)
        assert sigh.shape == (3,)
        assert (sigh > 0).all()

    def test_h0_shape(self):
        rng = np.random.default_rng(5)
        h0 = helpers.varsv_h0(np.ones(2), 0.1 * np.eye(2), np.zeros(2), np.full(2, 0.1), rng=rng)
        assert h0.shape == (2,)


# ============================================================================
# Test Class 3: Minnesota moments
# ============================================================================

class TestMinnesota:
    """Dummy-observation Minnesota moments"""

    def test_shapes(self):
        Y = np.random.default_rng(0).standard_normal((50, 3))
        mean, prec, prec_diag = helpers.get_minnesota_moments(Y, 2)
        assert mean.shape == (7, 3)
        assert prec.shape == (7, 7)
        assert prec_diag.shape == (3, 3)

    def test_own_lag_mean(self):
        Y = np.random.default_rng(0).standard_normal((50, 2))
        mean, _, _ = helpers.get_minnesota_moments(Y, 1, delta=np.array([1.0, 0.5]))
        np.testing.assert_allclose(mean[:2, :], np.diag([1.0, 0.5]), atol=1e-10)

    def test_higher_lags_tighter(self):
        Y = np.random.default_rng(0).standard_normal((50, 2))
        _, prec, _ = helpers.get_minnesota_moments(Y, 2, sigma=np.ones(2))
        assert prec[2, 2] > prec[0, 0]

    def test_no_mean(self):
        Y = np.random.default_rng(0).standard_normal((50, 2))
        mean, prec, _ = helpers.get_minnesota_moments(Y, 1, include_mean=False)
        assert mean.shape == (2, 2)
        assert prec.shape == (2, 2)

    def test_invalid_lambda(self):
        with pytest.raises(InvalidParameter):
            helpers.get_minnesota_moments(np.ones((10, 2)), 1, sigma=np.ones(2), lambda_=0.0)
