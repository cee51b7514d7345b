"""
Random matrix generators

Multivariate normal, matrix normal, inverse-Wishart and
normal-inverse-Wishart draws. They are used as building blocks of the
VAR-SV Gibbs sampler and can be called on their own.
"""

import numpy as np
from typing import Dict, Optional
from scipy.linalg import solve_triangular
from scipy.stats import chi2

from . import utils
from .errors import InvalidDimension, InvalidParameter, NonPositiveDefinite


def _check_mean(mu: np.ndarray, dim: int) -> np.ndarray:
    mu = np.atleast_1d(np.asarray(mu, dtype=float)).ravel()
    if mu.size != dim:
        raise InvalidDimension(f"Invalid 'mu' size: expected {dim}, got {mu.size}.")
    return mu


def sample_mvn(num_sim: int,
               mu: np.ndarray,
               sig: np.ndarray,
               rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Generate multivariate normal random vectors.

    Uses the symmetric square root of `sig`: X_i = mu + Sigma^{1/2} Z_i.

    Parameters
    ----------
    num_sim : int
        Number of draws.
    mu : array
        Mean vector of length m.
    sig : array
        Covariance matrix (m x m).
    rng : Generator, optional
        Random number generator.

    Returns
    -------
    array
        num_sim x m matrix, one draw per row.
    """
    rng = np.random.default_rng() if rng is None else rng
    sig = utils.check_symmetric(sig, "sig")
    dim = sig.shape[0]
    mu = _check_mean(mu, dim)

    eigval, eigvec = np.linalg.eigh(sig)
    if eigval.min() < -1e-10 * max(1.0, np.abs(eigval).max()):
        raise NonPositiveDefinite("'sig' is not positive semi-definite.")
    sig_sqrt = eigvec @ np.diag(np.sqrt(np.clip(eigval, 0, None))) @ eigvec.T

    standard_normal = rng.standard_normal((num_sim, dim))
    return standard_normal @ sig_sqrt + mu


def sample_mvn_cholesky(num_sim: int,
                        mu: np.ndarray,
                        sig: np.ndarray,
                        rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Generate multivariate normal random vectors with a Cholesky factor.

    X_i = mu + L Z_i with Sigma = L L^T. Rows are draws, so the upper
    factor L^T multiplies from the right.
    """
    rng = np.random.default_rng() if rng is None else rng
    sig = utils.check_symmetric(sig, "sig")
    dim = sig.shape[0]
    mu = _check_mean(mu, dim)

    chol_sig = utils.cholesky_lower(sig, "sig")
    standard_normal = rng.standard_normal((num_sim, dim))
    return standard_normal @ chol_sig.T + mu


def sample_matrix_normal(mat_mean: np.ndarray,
                         mat_scale_u: np.ndarray,
                         mat_scale_v: np.ndarray,
                         rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Generate one matrix normal random matrix.

    Y ~ MN(M, U, V) with M (s x m), U (s x s) and V (m x m):
    Y = M + P Z L^T where U = P P^T and V = L L^T.

    Parameters
    ----------
    mat_mean : array
        Mean matrix M.
    mat_scale_u : array
        Row scale U.
    mat_scale_v : array
        Column scale V.
    rng : Generator, optional
        Random number generator.

    Returns
    -------
    array
        s x m matrix.
    """
    rng = np.random.default_rng() if rng is None else rng
    mat_mean = np.atleast_2d(np.asarray(mat_mean, dtype=float))
    num_rows, num_cols = mat_mean.shape
    mat_scale_u = utils.check_symmetric(mat_scale_u, "mat_scale_u")
    mat_scale_v = utils.check_symmetric(mat_scale_v, "mat_scale_v")
    if mat_scale_u.shape[0] != num_rows:
        raise InvalidDimension("Invalid 'mat_scale_u' dimension.")
    if mat_scale_v.shape[0] != num_cols:
        raise InvalidDimension("Invalid 'mat_scale_v' dimension.")

    chol_scale_u = utils.cholesky_lower(mat_scale_u, "mat_scale_u")
    chol_scale_v = utils.cholesky_lower(mat_scale_v, "mat_scale_v")
    mat_norm = rng.standard_normal((num_rows, num_cols))
    return mat_mean + chol_scale_u @ mat_norm @ chol_scale_v.T


def sample_iw_tri(mat_scale: np.ndarray,
                  shape: float,
                  rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Generate a square-root factor A of an inverse-Wishart draw, Sigma = A A^T.

    Bartlett decomposition: Q is upper triangular with
    q_ii^2 ~ chi^2(shape - i) (0-indexed rows) and q_ij ~ N(0, 1) for j > i,
    so that Q^T Q ~ W(I, shape). With Psi = L L^T,
    A = L Q^{-1} gives A A^T = L (Q^T Q)^{-1} L^T ~ IW(Psi, shape).

    Parameters
    ----------
    mat_scale : array
        Scale matrix Psi (m x m).
    shape : float
        Degrees of freedom, shape > m - 1.
    rng : Generator, optional
        Random number generator.

    Returns
    -------
    array
        m x m factor A.
    """
    rng = np.random.default_rng() if rng is None else rng
    mat_scale = utils.check_symmetric(mat_scale, "mat_scale")
    dim = mat_scale.shape[0]
    if shape <= dim - 1:
        raise InvalidParameter("Wrong 'shape'. shape > dim - 1 must be satisfied.")

    mat_bartlett = np.zeros((dim, dim))
    for i in range(dim):
        mat_bartlett[i, i] = np.sqrt(chi2.rvs(shape - i, random_state=rng))
        mat_bartlett[i, i + 1:] = rng.standard_normal(dim - i - 1)

    chol_scale = utils.cholesky_lower(mat_scale, "mat_scale")
    # L Q^{-1} = (Q^{-T} L^T)^T
    return solve_triangular(mat_bartlett, chol_scale.T, trans='T', lower=False).T


def sample_iw(mat_scale: np.ndarray,
              shape: float,
              rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Generate one inverse-Wishart random matrix Sigma ~ IW(Psi, shape).

    Returns
    -------
    array
        m x m symmetric positive definite matrix.
    """
    chol_res = sample_iw_tri(mat_scale, shape, rng=rng)
    res = chol_res @ chol_res.T
    return (res + res.T) / 2


def sample_mniw(num_sim: int,
                mat_mean: np.ndarray,
                mat_scale_u: np.ndarray,
                mat_scale: np.ndarray,
                shape: float,
                rng: Optional[np.random.Generator] = None) -> Dict[str, np.ndarray]:
    """
    Generate normal-inverse-Wishart random matrices.

    (Y_i, Sigma_i) ~ MNIW(M, U, Psi, shape):
    Sigma_i ~ IW(Psi, shape), then Y_i | Sigma_i ~ MN(M, U, Sigma_i).

    Parameters
    ----------
    num_sim : int
        Number of draws.
    mat_mean : array
        Mean matrix M (s x m).
    mat_scale_u : array
        Row scale U (s x s).
    mat_scale : array
        IW scale Psi (m x m).
    shape : float
        IW shape.
    rng : Generator, optional
        Random number generator.

    Returns
    -------
    dict
        - 'mn': array (num_sim x s x m)
        - 'iw': array (num_sim x m x m)
    """
    rng = np.random.default_rng() if rng is None else rng
    mat_mean = np.atleast_2d(np.asarray(mat_mean, dtype=float))
    nrow_mn, ncol_mn = mat_mean.shape
    mat_scale = utils.check_symmetric(mat_scale, "mat_scale")
    dim_iw = mat_scale.shape[0]
    if dim_iw != ncol_mn:
        raise InvalidDimension("Invalid 'mat_scale' dimension.")
    mat_scale_u = utils.check_symmetric(mat_scale_u, "mat_scale_u")
    if mat_scale_u.shape[0] != nrow_mn:
        raise InvalidDimension("Invalid 'mat_scale_u' dimension.")

    res_mn = np.zeros((num_sim, nrow_mn, ncol_mn))
    res_iw = np.zeros((num_sim, dim_iw, dim_iw))
    for i in range(num_sim):
        res_iw[i] = sample_iw(mat_scale, shape, rng=rng)
        res_mn[i] = sample_matrix_normal(mat_mean, mat_scale_u, res_iw[i], rng=rng)

    return {'mn': res_mn, 'iw': res_iw}
