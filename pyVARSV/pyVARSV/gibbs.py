"""
VAR-SV estimation by Gibbs sampling

This module implements the Gibbs sampler of a VAR with stochastic
volatility and one of the following priors on the coefficients:
- Minnesota (prior_type 1)
- Stochastic Search Variable Selection (prior_type 2)
- Horseshoe (prior_type 3)

The reduced-form residuals satisfy L eps_t ~ N(0, D_t) with L unit lower
triangular and D_t = diag(exp(h_1t), ..., exp(h_kt)), i.e.
Sigma_t^{-1} = L^T D_t^{-1} L.
"""

import numpy as np
from typing import Callable, Dict, Optional, Union
from scipy.linalg import cho_solve
from joblib import Parallel, delayed
import warnings

from . import utils
from . import helpers
from .errors import Aborted, InvalidDimension, InvalidParameter
from .priors import HorseshoePrior, MinnesotaPrior, SSVSPrior


PRIOR_TYPES = {1: 'MN', 2: 'SSVS', 3: 'HS'}


class _Workspace:
    """
    Scratch matrices of one iteration.

    They are allocated once and overwritten in place every iteration; only
    the blocks on the diagonal (and the lower-triangular design entries) are
    ever written, so everything else stays zero.
    """

    def __init__(self, num_design: int, dim: int):
        self.num_design = num_design
        self.dim = dim
        num_lowerchol = dim * (dim - 1) // 2
        self.prec_stack = np.zeros((num_design * dim, num_design * dim))
        self.innov_prec = np.zeros((num_design * dim, num_design * dim))
        self.reginnov_stack = np.zeros((num_design * dim, num_lowerchol))

        # (t, i, j) -> (t*dim + i, t*dim + j)
        block_start = np.arange(num_design)[:, np.newaxis, np.newaxis] * dim
        self._block_rows = block_start + np.arange(dim)[np.newaxis, :, np.newaxis]
        self._block_cols = block_start + np.arange(dim)[np.newaxis, np.newaxis, :]

        # packed element m = (j, i), j > i, regresses eps_j on -eps_i
        self._lower_rows, self._lower_cols = utils.lower_packing_index(dim)
        self._reg_rows = np.arange(num_design)[:, np.newaxis] * dim + self._lower_rows[np.newaxis, :]
        self._reg_cols = np.broadcast_to(np.arange(num_lowerchol), self._reg_rows.shape)

    def fill_prec_stack(self, chol_lower: np.ndarray, lvol: np.ndarray) -> np.ndarray:
        """Sigma^{-1} = diag(L^T D_1^{-1} L, ..., L^T D_T^{-1} L)."""
        blocks = np.einsum('ji,tj,jk->tik', chol_lower, np.exp(-lvol), chol_lower)
        self.prec_stack[self._block_rows, self._block_cols] = blocks
        return self.prec_stack

    def fill_innov_prec(self, lvol: np.ndarray) -> np.ndarray:
        """D^{-1} = diag(D_1^{-1}, ..., D_T^{-1})."""
        np.fill_diagonal(self.innov_prec, np.exp(-lvol).ravel())
        return self.innov_prec

    def fill_reginnov_stack(self, latent_innov: np.ndarray) -> np.ndarray:
        """Design of eps_t = -(L - I) eps_t + e_t stacked over t."""
        self.reginnov_stack[self._reg_rows, self._reg_cols] = -latent_innov[:, self._lower_cols]
        return self.reginnov_stack


def _build_priors(prior: Dict,
                  prior_type: int,
                  dim: int,
                  dim_design: int,
                  include_mean: bool,
                  grp_index: np.ndarray,
                  num_grp: int):
    """Create the coefficient and contemporaneous shrinkage strategies."""
    num_coef = dim * dim_design
    num_lowerchol = dim * (dim - 1) // 2

    if prior_type == 1:
        prior_coef_mean = np.atleast_2d(np.asarray(prior['prior_coef_mean'], dtype=float))
        prior_coef_prec = utils.check_symmetric(prior['prior_coef_prec'], "prior_coef_prec")
        prec_diag = utils.check_symmetric(prior['prec_diag'], "prec_diag")
        if prior_coef_mean.shape != (dim_design, dim):
            raise InvalidDimension(f"'prior_coef_mean' must have shape ({dim_design}, {dim}).")
        if prior_coef_prec.shape[0] != dim_design:
            raise InvalidDimension(f"'prior_coef_prec' must have shape ({dim_design}, {dim_design}).")
        if prec_diag.shape[0] != dim:
            raise InvalidDimension(f"'prec_diag' must have shape ({dim}, {dim}).")
        coef_prior = MinnesotaPrior(
            utils.vectorize(prior_coef_mean),
            utils.kronecker(prec_diag, prior_coef_prec)
        )
        contem_prior = MinnesotaPrior(np.zeros(num_lowerchol), np.eye(num_lowerchol))

    elif prior_type == 2:
        shrink_mat = np.ones((dim_design, dim), dtype=bool)
        if include_mean:
            shrink_mat[-1, :] = False
        shrink_mask = utils.vectorize(shrink_mat)
        num_alpha = int(shrink_mask.sum())
        coef_prior = SSVSPrior(
            spike_sd=utils.broadcast_vector(prior.get('coef_spike', 0.1), num_alpha, 'coef_spike'),
            slab_sd=utils.broadcast_vector(prior.get('coef_slab', 5.0), num_alpha, 'coef_slab'),
            slab_weight=utils.broadcast_vector(prior.get('coef_slab_weight', 0.5), num_grp, 'coef_slab_weight'),
            grp_index=grp_index[shrink_mask],
            s1=prior.get('coef_s1', 1.0),
            s2=prior.get('coef_s2', 1.0),
            shrink_mask=shrink_mask,
            mean_non=utils.broadcast_vector(prior.get('mean_non', 0.0), dim, 'mean_non'),
            sd_non=prior.get('sd_non', 10.0),
            num_grp=num_grp,
            record_name='gamma_record'
        )
        contem_prior = SSVSPrior(
            spike_sd=utils.broadcast_vector(prior.get('chol_spike', 0.1), num_lowerchol, 'chol_spike'),
            slab_sd=utils.broadcast_vector(prior.get('chol_slab', 5.0), num_lowerchol, 'chol_slab'),
            slab_weight=utils.broadcast_vector(prior.get('chol_slab_weight', 0.5), 1, 'chol_slab_weight'),
            grp_index=np.zeros(num_lowerchol, dtype=int),
            s1=prior.get('chol_s1', 1.0),
            s2=prior.get('chol_s2', 1.0),
            num_grp=1
        )

    elif prior_type == 3:
        coef_prior = HorseshoePrior(
            init_local=utils.broadcast_vector(prior.get('init_local', 1.0), num_coef, 'init_local'),
            init_global=utils.broadcast_vector(prior.get('init_global', 1.0), num_grp, 'init_global'),
            grp_index=grp_index,
            num_grp=num_grp,
            record_names={'local': 'lambda_record', 'global': 'tau_record', 'shrink': 'kappa_record'}
        )
        contem_prior = HorseshoePrior(
            init_local=utils.broadcast_vector(prior.get('init_contem_local', 1.0), num_lowerchol, 'init_contem_local'),
            init_global=utils.broadcast_vector(prior.get('init_contem_global', 1.0), 1, 'init_contem_global'),
            grp_index=np.zeros(num_lowerchol, dtype=int),
            num_grp=1
        )

    else:
        raise InvalidParameter(f"'prior_type' must be one of {list(PRIOR_TYPES)}, got {prior_type}.")

    return coef_prior, contem_prior


def _collect(records: Dict[str, np.ndarray],
             num_rows: int,
             num_design: int,
             num_burn: Optional[int] = None) -> Dict[str, np.ndarray]:
    """
    Cut the traces to their populated rows.

    With `num_burn` given, row 0 and the burn-in iterations are dropped from
    every trace except `h_record`, which is returned in full.
    """
    res = {}
    for name, record in records.items():
        if name == 'h_record':
            res[name] = record[:num_rows * num_design].copy()
        elif num_burn is None:
            res[name] = record[:num_rows].copy()
        else:
            res[name] = record[num_burn + 1:num_rows].copy()
    return res


def estimate_var_sv(num_iter: int,
                    num_burn: int,
                    x: np.ndarray,
                    y: np.ndarray,
                    prior: Dict,
                    prior_type: int,
                    grp_id: Optional[np.ndarray] = None,
                    grp_mat: Optional[np.ndarray] = None,
                    include_mean: bool = True,
                    nthreads: int = 1,
                    abort_check: Optional[Callable[[], bool]] = None,
                    progress: Optional[Callable[[int, int], None]] = None,
                    rng: Union[None, int, np.random.Generator] = None,
                    verbose: bool = False) -> Dict[str, np.ndarray]:
    """
    Estimate a VAR-SV by Gibbs sampling.

    Parameters
    ----------
    num_iter : int
        Number of MCMC iterations.
    num_burn : int
        Number of burn-in iterations, 0 <= num_burn < num_iter.
    x : array
        Design matrix (T x kp [+1]).
    y : array
        Response matrix (T x k).
    prior : dict
        Hyperparameters. Keys depend on `prior_type`:
        - 1: 'prior_coef_mean' (d x k), 'prior_coef_prec' (d x d), 'prec_diag' (k x k)
        - 2: 'coef_spike', 'coef_slab', 'coef_slab_weight', 'coef_s1', 'coef_s2',
          'mean_non', 'sd_non', 'chol_spike', 'chol_slab', 'chol_slab_weight',
          'chol_s1', 'chol_s2'
        - 3: 'init_local', 'init_global', 'init_contem_local', 'init_contem_global'
        All types accept 'sv_shape', 'sv_scale' (inverse-gamma prior of
        sigma_h^2), 'sv_init_mean' and 'sv_init_prec' (normal prior of h_0).
    prior_type : int
        1 (Minnesota), 2 (SSVS) or 3 (Horseshoe).
    grp_id : array, optional
        Unique group ids. Defaults to the distinct values of `grp_mat`.
    grp_mat : array, optional
        Group assignment of each coefficient (d x k). Defaults to one group.
    include_mean : bool
        Whether the last column of `x` is a constant.
    nthreads : int
        Number of threads for the log-volatility draws.
    abort_check : callable, optional
        Polled before every iteration; returning True stops the sampler.
    progress : callable, optional
        Called with (iteration, num_iter) after every iteration.
    rng : int or Generator, optional
        Seed or random number generator.
    verbose : bool
        Whether to print progress when no `progress` hook is given.

    Returns
    -------
    dict
        Dictionary containing:
        - alpha_record: coefficient draws vec(A), (num_iter - num_burn) x k*d
        - h_record: log-volatilities of every iteration stacked by rows,
          ((num_iter + 1) * T) x k, burn-in NOT removed
        - a_record: contemporaneous coefficients (a21, a31, a32, ...)
        - h0_record: initial log-volatilities
        - sigh_record: variances of the log-volatility innovations
        - gamma_record (SSVS): inclusion dummies of the non-constant coefficients
        - lambda_record, tau_record, kappa_record (Horseshoe): local scales,
          group global scales and shrinkage factors
        If sampling is aborted, all populated rows are returned untrimmed.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.ndim != 2 or y.ndim != 2:
        raise InvalidDimension("'x' and 'y' must be matrices.")
    if x.shape[0] != y.shape[0]:
        raise InvalidDimension(f"'x' has {x.shape[0]} rows but 'y' has {y.shape[0]}.")
    if num_iter < 1 or not 0 <= num_burn < num_iter:
        raise InvalidParameter("Require num_iter >= 1 and 0 <= num_burn < num_iter.")
    if nthreads < 1:
        raise InvalidParameter("'nthreads' must be a positive integer.")

    dim = y.shape[1]
    dim_design = x.shape[1]
    num_design = y.shape[0]
    num_lowerchol = dim * (dim - 1) // 2
    num_coef = dim * dim_design
    if (dim_design - int(include_mean)) % dim != 0 or dim_design <= int(include_mean):
        raise InvalidDimension(f"Design with {dim_design} columns does not match a VAR in {dim} series.")

    rng = np.random.default_rng(rng)

    if grp_mat is None:
        grp_mat = np.ones((dim_design, dim), dtype=int)
    grp_id, grp_index = utils.check_group(grp_id, grp_mat, (dim_design, dim))
    num_grp = grp_id.size

    coef_prior, contem_prior = _build_priors(
        prior, prior_type, dim, dim_design, include_mean, grp_index, num_grp
    )

    # SUR in time-major order: row t*k + j is equation j at time t
    sur_order = utils.time_major_order(num_design, dim)
    response_vec = utils.vectorize(y)[sur_order]
    design_mat = utils.kronecker(np.eye(dim), x)[sur_order]

    # Stochastic volatility priors
    prior_sig_shp = utils.broadcast_vector(prior.get('sv_shape', 3.0), dim, 'sv_shape')
    prior_sig_scl = utils.broadcast_vector(prior.get('sv_scale', 0.01), dim, 'sv_scale')
    prior_init_mean = utils.broadcast_vector(prior.get('sv_init_mean', 1.0), dim, 'sv_init_mean')
    prior_init_prec = np.diag(utils.broadcast_vector(prior.get('sv_init_prec', 0.1), dim, 'sv_init_prec'))

    # OLS quantities
    chol_xtx = utils.cholesky_lower(x.T @ x, "x'x")
    coef_ols = cho_solve((chol_xtx, True), x.T @ y)

    # Storage arrays
    records = {
        'alpha_record': np.zeros((num_iter + 1, num_coef)),
        'h_record': np.zeros((num_design * (num_iter + 1), dim)),
        'a_record': np.zeros((num_iter + 1, num_lowerchol)),
        'h0_record': np.zeros((num_iter + 1, dim)),
        'sigh_record': np.zeros((num_iter + 1, dim)),
    }
    hyper_trace = {**coef_prior.trace(), **contem_prior.trace()}
    for name, value in hyper_trace.items():
        records[name] = np.zeros((num_iter + 1, np.size(value)))
        records[name][0] = value

    # Initial values
    records['alpha_record'][0] = utils.vectorize(coef_ols)
    records['h0_record'][0] = np.log(((y - x @ coef_ols) ** 2).mean(axis=0))
    records['h_record'][:num_design] = records['h0_record'][0]
    records['sigh_record'][0] = 0.1

    work = _Workspace(num_design, dim)

    with Parallel(n_jobs=nthreads, backend="threading") as parallel:
        for i in range(1, num_iter + 1):
            if abort_check is not None and abort_check():
                warnings.warn(f"Sampling aborted before iteration {i}; returning {i} untrimmed rows.", Aborted)
                return _collect(records, i, num_design)

            lvol_prev = records['h_record'][num_design * (i - 1):num_design * i]
            h0_prev = records['h0_record'][i - 1]
            sigh_prev = records['sigh_record'][i - 1]

            # Step 1: Sample coefficients
            chol_lower = utils.build_lower_from_vector(dim, records['a_record'][i - 1])
            prec_stack = work.fill_prec_stack(chol_lower, lvol_prev)
            prior_alpha_mean, prior_alpha_prec = coef_prior.build_prior()
            alpha_draw = helpers.varsv_regression(
                design_mat, response_vec,
                prior_alpha_mean, prior_alpha_prec,
                prec_stack, rng=rng
            )
            coef_prior.update(alpha_draw, rng)
            records['alpha_record'][i] = alpha_draw

            # Step 2: Sample log-volatilities, one series per task
            coef_mat = utils.unvectorize(alpha_draw, dim_design, dim)
            latent_innov = y - x @ coef_mat
            ortho_latent = np.log((latent_innov @ chol_lower.T) ** 2 + helpers.LOG_SQ_OFFSET)
            series_rng = rng.spawn(dim)
            lvol_draw = parallel(
                delayed(helpers.varsv_ht)(
                    lvol_prev[:, j], h0_prev[j], sigh_prev[j], ortho_latent[:, j], series_rng[j]
                )
                for j in range(dim)
            )
            lvol = np.column_stack(lvol_draw)
            records['h_record'][num_design * i:num_design * (i + 1)] = lvol

            # Step 3: Sample contemporaneous coefficients
            if num_lowerchol > 0:
                reginnov_stack = work.fill_reginnov_stack(latent_innov)
                innov_prec = work.fill_innov_prec(lvol)
                prior_chol_mean, prior_chol_prec = contem_prior.build_prior()
                contem_draw = helpers.varsv_regression(
                    reginnov_stack, latent_innov.ravel(),
                    prior_chol_mean, prior_chol_prec,
                    innov_prec, rng=rng
                )
                contem_prior.update(contem_draw, rng)
                records['a_record'][i] = contem_draw

            # Step 4: Sample sigma_h^2
            records['sigh_record'][i] = helpers.varsv_sigh(
                prior_sig_shp, prior_sig_scl, h0_prev, lvol, rng=rng
            )

            # Step 5: Sample h0
            records['h0_record'][i] = helpers.varsv_h0(
                prior_init_mean, prior_init_prec, lvol[0], records['sigh_record'][i], rng=rng
            )

            for name, value in {**coef_prior.trace(), **contem_prior.trace()}.items():
                records[name][i] = value

            if progress is not None:
                progress(i, num_iter)
            elif verbose and i % 1000 == 0:
                print(f"Iteration {i}/{num_iter}")

    return _collect(records, num_iter + 1, num_design, num_burn)
