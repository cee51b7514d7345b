"""
Helper functions for VAR-SV estimation

Conditional posterior draws shared by the Gibbs sampler: the generalized
least squares regression core and the stochastic volatility blocks.
"""

import numpy as np
from typing import Optional, Tuple
from scipy.linalg import cho_solve, cholesky_banded, cho_solve_banded, solve_banded, solve_triangular
from scipy.stats import invgamma, norm

from . import utils
from .distributions import sample_mvn_cholesky
from .errors import InvalidParameter, NonPositiveDefinite


# 7-component normal mixture approximating log(chi^2_1), Kim, Shephard and Chib (1998)
KSC_PROB = np.array([0.00730, 0.10556, 0.00002, 0.04395, 0.34001, 0.24566, 0.25750])
KSC_MEAN = np.array([-10.12999, -3.97281, -8.56686, 2.77786, 0.61942, 1.79518, -1.08819]) - 1.2704
KSC_VAR = np.array([5.79596, 2.61369, 5.17950, 0.16735, 0.64009, 0.34023, 1.26261])

# offset c in log(e^2 + c)
LOG_SQ_OFFSET = 1e-4


def varsv_regression(design: np.ndarray,
                     response: np.ndarray,
                     prior_mean: np.ndarray,
                     prior_prec: np.ndarray,
                     innov_prec: np.ndarray,
                     rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Draw regression coefficients from their Gaussian full conditional.

    y = X beta + e with e ~ N(0, Sigma) and beta ~ N(b0, B0^{-1}):

    - posterior precision P = X^T Sigma^{-1} X + B0^{-1}
    - posterior mean m = P^{-1} (X^T Sigma^{-1} y + B0^{-1} b0)

    The draw m + L_P^{-T} z uses the Cholesky factor L_P of P, so the
    posterior covariance is never formed.

    Parameters
    ----------
    design : array
        Stacked design matrix X (n x q).
    response : array
        Stacked response y (n,).
    prior_mean : array
        Prior mean b0 (q,).
    prior_prec : array
        Prior precision B0^{-1} (q x q).
    innov_prec : array
        Residual precision Sigma^{-1} (n x n).
    rng : Generator, optional
        Random number generator.

    Returns
    -------
    array
        One draw of beta (q,).
    """
    rng = np.random.default_rng() if rng is None else rng
    weighted = design.T @ innov_prec
    post_prec = weighted @ design + prior_prec
    chol_prec = utils.cholesky_lower(post_prec, "posterior precision")
    post_mean = cho_solve((chol_prec, True), weighted @ response + prior_prec @ prior_mean)
    standard_normal = rng.standard_normal(post_mean.size)
    return post_mean + solve_triangular(chol_prec.T, standard_normal, lower=False)


def draw_mixture_indicator(resid: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """
    Draw the mixture component of each observation by inverse transform.

    Parameters
    ----------
    resid : array
        log(e_t^2 + c) - h_t.

    Returns
    -------
    array
        Component index in 0..6 for every t.
    """
    log_pdf = np.log(KSC_PROB) + norm.logpdf(resid[:, np.newaxis], KSC_MEAN, np.sqrt(KSC_VAR))
    log_pdf -= log_pdf.max(axis=1, keepdims=True)
    mixture_pdf = np.exp(log_pdf)
    mixture_cumsum = np.cumsum(mixture_pdf / mixture_pdf.sum(axis=1, keepdims=True), axis=1)
    inv_method = rng.random(resid.size)
    return np.minimum((inv_method[:, np.newaxis] > mixture_cumsum).sum(axis=1), len(KSC_PROB) - 1)


def varsv_ht(sv_vec: np.ndarray,
             init_sv: float,
             sv_sig: float,
             latent_vec: np.ndarray,
             rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Draw the log-volatility path of one series.

    h_t = h_{t-1} + N(0, sigma_h^2) with h_0 = `init_sv`, observed through
    log(e_t^2 + c) = h_t + log(chi^2_1). Given the mixture indicators s_t,
    the path is Gaussian with tridiagonal precision

        H^T H / sigma_h^2 + diag(1 / v_{s_t})

    where H is the first-difference matrix, and is drawn jointly through a
    banded Cholesky factorisation.

    Parameters
    ----------
    sv_vec : array
        Current path h_1, ..., h_T.
    init_sv : float
        Initial state h_0.
    sv_sig : float
        Volatility of volatility sigma_h^2.
    latent_vec : array
        log of squared orthogonalized residuals, log(e_t^2 + c).
    rng : Generator, optional
        Random number generator.

    Returns
    -------
    array
        New path (T,).
    """
    rng = np.random.default_rng() if rng is None else rng
    num_design = sv_vec.size
    binom_latent = draw_mixture_indicator(latent_vec - sv_vec, rng)
    ds = KSC_MEAN[binom_latent]
    inv_sig_s = 1 / KSC_VAR[binom_latent]

    # upper banded storage: row 0 superdiagonal, row 1 diagonal
    post_prec = np.zeros((2, num_design))
    post_prec[1, :] = 2 / sv_sig + inv_sig_s
    post_prec[1, -1] = 1 / sv_sig + inv_sig_s[-1]
    post_prec[0, 1:] = -1 / sv_sig
    try:
        chol_upper = cholesky_banded(post_prec, lower=False)
    except np.linalg.LinAlgError as err:
        raise NonPositiveDefinite(f"Log-volatility precision is not positive definite: {err}") from err

    rhs = inv_sig_s * (latent_vec - ds)
    rhs[0] += init_sv / sv_sig
    post_mean = cho_solve_banded((chol_upper, False), rhs)
    standard_normal = rng.standard_normal(num_design)
    return post_mean + solve_banded((0, 1), chol_upper, standard_normal)


def varsv_sigh(shp: np.ndarray,
               scl: np.ndarray,
               init_sv: np.ndarray,
               h1: np.ndarray,
               rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Draw the variance of the log-volatility innovations.

    sigma_h,i^2 ~ IG(shp_i + T/2, scl_i + sum_t (h_it - h_i,t-1)^2 / 2)

    Parameters
    ----------
    shp, scl : array
        Inverse-gamma prior shape and scale (k,).
    init_sv : array
        Initial states h_0 (k,).
    h1 : array
        Log-volatility paths (T x k).

    Returns
    -------
    array
        sigma_h^2 (k,).
    """
    rng = np.random.default_rng() if rng is None else rng
    num_design = h1.shape[0]
    lvol_add = np.vstack([init_sv, h1])
    lvol_diff = h1 - lvol_add[:-1, :]
    post_shp = shp + num_design / 2
    post_scl = scl + (lvol_diff ** 2).sum(axis=0) / 2
    return invgamma.rvs(a=post_shp, scale=post_scl, random_state=rng)


def varsv_h0(prior_mean: np.ndarray,
             prior_prec: np.ndarray,
             h1: np.ndarray,
             sv_sig: np.ndarray,
             rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Draw the initial log-volatilities h_0.

    h_0 ~ N(b0, B0) and h_1 | h_0 ~ N(h_0, diag(sigma_h^2)).

    Parameters
    ----------
    prior_mean : array
        b0 (k,).
    prior_prec : array
        B0^{-1} (k x k).
    h1 : array
        First-period log-volatilities (k,).
    sv_sig : array
        sigma_h^2 (k,).

    Returns
    -------
    array
        h_0 (k,).
    """
    rng = np.random.default_rng() if rng is None else rng
    post_prec = prior_prec + np.diag(1 / sv_sig)
    chol_prec = utils.cholesky_lower(post_prec, "h0 posterior precision")
    post_mean = cho_solve((chol_prec, True), prior_prec @ prior_mean + h1 / sv_sig)
    post_var = cho_solve((chol_prec, True), np.eye(post_mean.size))
    return sample_mvn_cholesky(1, post_mean, (post_var + post_var.T) / 2, rng=rng)[0]


def get_minnesota_moments(Yraw: np.ndarray,
                          p: int,
                          sigma: Optional[np.ndarray] = None,
                          lambda_: float = 0.1,
                          delta: Optional[np.ndarray] = None,
                          eps: float = 1e-4,
                          include_mean: bool = True) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Construct Minnesota prior moments from dummy observations.

    Dummy observations (Y_p, X_p) shrink own first lags towards `delta` and
    all other lags towards zero with tightness `lambda_` scaled by `sigma`.
    The implied prior of A given Sigma is MN(A0, Omega0, Sigma) with
    Omega0^{-1} = X_p^T X_p and A0 = (X_p^T X_p)^{-1} X_p^T Y_p.

    Parameters
    ----------
    Yraw : array
        Raw data (Traw x k), used for the default `sigma`.
    p : int
        Lag order.
    sigma : array, optional
        Scale of each series. Defaults to the sample standard deviations.
    lambda_ : float
        Overall tightness.
    delta : array, optional
        Prior mean of the own first lags. Defaults to zeros.
    eps : float
        Precision of the constant term.
    include_mean : bool
        Whether the design has a constant column.

    Returns
    -------
    tuple
        (prior_coef_mean (d x k), prior_coef_prec (d x d), prec_diag (k x k))
    """
    Yraw = np.asarray(Yraw, dtype=float)
    dim = Yraw.shape[1]
    if sigma is None:
        sigma = Yraw.std(axis=0, ddof=1)
    sigma = np.broadcast_to(np.asarray(sigma, dtype=float), (dim,))
    if delta is None:
        delta = np.zeros(dim)
    delta = np.broadcast_to(np.asarray(delta, dtype=float), (dim,))
    if lambda_ <= 0 or (sigma <= 0).any():
        raise InvalidParameter("'lambda_' and 'sigma' must be positive.")

    dim_design = dim * p + 1
    Yp = np.zeros((dim * p + dim + 1, dim))
    Yp[:dim, :] = np.diag(delta * sigma) / lambda_
    Yp[dim * p:dim * p + dim, :] = np.diag(sigma)

    Xp = np.zeros((dim * p + dim + 1, dim_design))
    Xp[:dim * p, :dim * p] = np.kron(np.diag(np.arange(1, p + 1)), np.diag(sigma) / lambda_)
    Xp[-1, -1] = eps

    if not include_mean:
        Yp = Yp[:-1, :]
        Xp = Xp[:-1, :-1]

    prior_coef_prec = Xp.T @ Xp
    prior_coef_mean = np.linalg.solve(prior_coef_prec, Xp.T @ Yp)
    prec_diag = np.diag(1 / sigma ** 2)

    return prior_coef_mean, prior_coef_prec, prec_diag
