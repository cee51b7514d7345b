"""
Main VAR-SV estimation module
"""

import numpy as np
import pandas as pd
from typing import Union, Dict, Optional
from scipy.linalg import solve_triangular
import warnings
from datetime import datetime

from . import utils
from . import helpers
from .gibbs import estimate_var_sv


PRIOR_CODES = {'MN': 1, 'SSVS': 2, 'HS': 3}

PRIOR_NAMES = {
    'MN': 'Minnesota prior (MN)',
    'SSVS': 'Stochastic Search Variable Selection prior (SSVS)',
    'HS': 'Horseshoe prior (HS)'
}


class VARSV:
    """
    Bayesian Vector Autoregression with Stochastic Volatility

    y_t = A^T x_t + eps_t with L eps_t ~ N(0, D_t), where L is unit lower
    triangular and D_t = diag(exp(h_t)) follows independent random walks.
    The coefficients can be estimated with one of the following priors:
    - Minnesota (MN)
    - Stochastic Search Variable Selection (SSVS)
    - Horseshoe (HS)

    Parameters
    ----------
    data : DataFrame or array
        Time series of size Traw x k, one column per variable.
    p : int, default=1
        Lag order.
    draws : int, default=1000
        Number of retained MCMC draws.
    burnin : int, default=1000
        Number of burn-in iterations.
    prior : str, default='MN'
        Prior specification: 'MN', 'SSVS' or 'HS'.
    include_mean : bool, default=True
        Whether to include a constant.
    hyperpara : dict, optional
        Dictionary of hyperparameters for the prior.
    group : str or array, default='none'
        Grouping of the coefficients for the SSVS and HS priors. Either one of
        'none', 'lag', 'equation', 'own_cross' or an integer matrix of size
        (kp [+1]) x k.
    expert : dict, optional
        Expert settings: 'nthreads', 'seed', 'abort_check', 'progress'.
    verbose : bool, default=True
        Whether to print progress messages.

    Attributes
    ----------
    args : dict
        Estimation arguments.
    x, y : array
        Design and response matrices.
    hyperpara : dict
        Hyperparameters used.
    records : dict
        Raw MCMC output of `estimate_var_sv`.

    Examples
    --------
    >>> import numpy as np
    >>> from pyVARSV import VARSV
    >>>
    >>> rng = np.random.default_rng(1)
    >>> data = rng.standard_normal((100, 2))
    >>> model = VARSV(data, p=1, draws=200, burnin=100, prior='HS', verbose=False)
    >>> model.coef().shape
    (3, 2)
    """

    def __init__(self,
                 data: Union[pd.DataFrame, np.ndarray],
                 p: int = 1,
                 draws: int = 1000,
                 burnin: int = 1000,
                 prior: str = 'MN',
                 include_mean: bool = True,
                 hyperpara: Optional[Dict] = None,
                 group: Union[str, np.ndarray] = 'none',
                 expert: Optional[Dict] = None,
                 verbose: bool = True):

        self.start_time = datetime.now()

        # Store all arguments
        self.args = {
            'data': data,
            'p': p,
            'draws': draws,
            'burnin': burnin,
            'prior': prior,
            'include_mean': include_mean,
            'hyperpara': hyperpara,
            'group': group,
            'expert': expert,
            'verbose': verbose
        }

        # Validate inputs
        self._validate_inputs()

        # Process data
        self._process_data()

        # Set hyperparameters
        self._set_hyperparameters()

        # Process expert settings
        self._process_expert_settings()

        # Print initialization message
        if verbose:
            self._print_init_message()

        # Estimate model
        self._estimate()

        if verbose:
            elapsed = (datetime.now() - self.start_time).total_seconds()
            print(f"\nTotal estimation time: {elapsed:.2f} seconds")

    def _validate_inputs(self):
        """Validate input arguments."""
        if not isinstance(self.args['data'], (pd.DataFrame, np.ndarray)):
            raise TypeError("'data' must be DataFrame or array.")

        if not isinstance(self.args['p'], (int, np.integer)) or self.args['p'] < 1:
            raise ValueError("'p' must be a positive integer.")

        if self.args['prior'] not in PRIOR_CODES:
            raise ValueError(f"'prior' must be one of {list(PRIOR_CODES)}.")

        if not isinstance(self.args['draws'], (int, np.integer)) or self.args['draws'] < 1:
            raise ValueError("'draws' must be a positive integer.")
        if not isinstance(self.args['burnin'], (int, np.integer)) or self.args['burnin'] < 0:
            raise ValueError("'burnin' must be a non-negative integer.")

        group = self.args['group']
        if not isinstance(group, (str, np.ndarray, pd.DataFrame)):
            raise TypeError("'group' must be str or integer matrix.")

    def _process_data(self):
        """Process and validate data."""
        data = self.args['data']
        if isinstance(data, pd.DataFrame):
            df = data
        else:
            data = np.asarray(data, dtype=float)
            if data.ndim == 1:
                data = data[:, np.newaxis]
            df = pd.DataFrame(data, columns=[f'var{i}' for i in range(data.shape[1])])

        if df.isna().any().any():
            raise ValueError("Data contains NaNs.")

        self.data = df
        self.var_names = list(df.columns)
        self.K = df.shape[1]
        self.args['Traw'] = df.shape[0]

        self.x, self.y, self.design_names = utils.build_design(
            df, self.args['p'], include_mean=self.args['include_mean']
        )
        if self.x.shape[0] <= self.x.shape[1]:
            raise ValueError(
                f"Need more observations than regressors: {self.x.shape[0]} <= {self.x.shape[1]}."
            )
        self.time_index = df.index[self.args['p']:]

        group = self.args['group']
        if isinstance(group, str):
            self.grp_mat = utils.build_group_matrix(
                self.K, self.args['p'], include_mean=self.args['include_mean'], by=group
            )
        else:
            self.grp_mat = np.asarray(group, dtype=int)

    def _set_hyperparameters(self):
        """Set default hyperparameters and override with user-specified values."""
        # Default hyperparameters
        default_hyperpara = {
            # Stochastic volatility
            'sv_shape': 3.0,
            'sv_scale': 0.01,
            'sv_init_mean': 1.0,
            'sv_init_prec': 0.1,
            # Minnesota
            'lambda': 0.1,
            'sigma': None,
            'delta': None,
            'eps': 1e-4,
            # SSVS
            'coef_spike': 0.1,
            'coef_slab': 5.0,
            'coef_slab_weight': 0.5,
            'coef_s1': 1.0,
            'coef_s2': 1.0,
            'mean_non': 0.0,
            'sd_non': 10.0,
            'chol_spike': 0.1,
            'chol_slab': 5.0,
            'chol_slab_weight': 0.5,
            'chol_s1': 1.0,
            'chol_s2': 1.0,
            # HS
            'init_local': 1.0,
            'init_global': 1.0,
            'init_contem_local': 1.0,
            'init_contem_global': 1.0
        }

        # Override with user-specified values
        user_hyperpara = self.args.get('hyperpara') or {}
        for key, value in user_hyperpara.items():
            if key in default_hyperpara:
                default_hyperpara[key] = value
            else:
                warnings.warn(f"Unknown hyperparameter: {key}. Ignoring.")

        self.hyperpara = default_hyperpara

    def _process_expert_settings(self):
        """Process expert settings."""
        expert = self.args.get('expert') or {}

        default_expert = {
            'nthreads': 1,
            'seed': None,
            'abort_check': None,
            'progress': None
        }

        for key, value in expert.items():
            if key in default_expert:
                default_expert[key] = value
            else:
                warnings.warn(f"Unknown expert setting: {key}. Ignoring.")

        self.expert = default_expert

    def _print_init_message(self):
        """Print initialization message."""
        print("\n" + "="*80)
        print("Start estimation of Vector Autoregression with Stochastic Volatility")
        print("="*80)
        print(f"Prior: {PRIOR_NAMES[self.args['prior']]}")
        print(f"Lag order: {self.args['p']}")
        print(f"Constant: {'included' if self.args['include_mean'] else 'excluded'}")
        print(f"Number of variables: {self.K}")
        print(f"Sample size: {self.args['Traw']}")
        print(f"Number of draws: {self.args['draws']}")
        print(f"Burn-in: {self.args['burnin']}")
        print(f"Threads: {self.expert['nthreads']}")
        print("="*80 + "\n")

    def _build_prior(self) -> Dict:
        """Collect the hyperparameters handed to the sampler."""
        prior = dict(self.hyperpara)
        if self.args['prior'] == 'MN':
            prior_coef_mean, prior_coef_prec, prec_diag = helpers.get_minnesota_moments(
                self.data.values,
                self.args['p'],
                sigma=self.hyperpara['sigma'],
                lambda_=self.hyperpara['lambda'],
                delta=self.hyperpara['delta'],
                eps=self.hyperpara['eps'],
                include_mean=self.args['include_mean']
            )
            prior['prior_coef_mean'] = prior_coef_mean
            prior['prior_coef_prec'] = prior_coef_prec
            prior['prec_diag'] = prec_diag
        return prior

    def _estimate(self):
        """Main estimation function."""
        num_iter = self.args['draws'] + self.args['burnin']

        if self.args['verbose']:
            print("Gibbs sampling starts...")

        self.records = estimate_var_sv(
            num_iter=num_iter,
            num_burn=self.args['burnin'],
            x=self.x,
            y=self.y,
            prior=self._build_prior(),
            prior_type=PRIOR_CODES[self.args['prior']],
            grp_mat=self.grp_mat,
            include_mean=self.args['include_mean'],
            nthreads=self.expert['nthreads'],
            abort_check=self.expert['abort_check'],
            progress=self.expert['progress'],
            rng=self.expert['seed'],
            verbose=self.args['verbose']
        )

        self.ndraws = self.records['alpha_record'].shape[0]
        self.aborted = self.records['h_record'].shape[0] != (num_iter + 1) * self.y.shape[0]

        if self.args['verbose']:
            if self.aborted:
                print(f"\nEstimation aborted. {self.ndraws} rows retained, burn-in not removed.")
            else:
                print(f"\nEstimation finished. {self.ndraws} posterior draws retained.")

    def _coef_draws(self) -> np.ndarray:
        """Coefficient draws as (draws x d x k)."""
        alpha = self.records['alpha_record']
        return alpha.reshape(alpha.shape[0], self.K, -1).transpose(0, 2, 1)

    def _lvol_draws(self) -> np.ndarray:
        """Log-volatility draws aligned with the coefficient draws, (draws x T x k)."""
        num_design = self.y.shape[0]
        h_record = self.records['h_record'][-self.ndraws * num_design:]
        return h_record.reshape(self.ndraws, num_design, self.K)

    def coef(self, quantile=0.50):
        """
        Extract model coefficients at specified quantiles.

        Parameters
        ----------
        quantile : float or array-like, default=0.50
            Quantile(s) to extract (between 0 and 1).

        Returns
        -------
        DataFrame or np.ndarray
            Coefficients of size d x k (rows are regressors, columns are
            equations), or an array (q, d, k) if multiple quantiles.
        """
        coef_draws = self._coef_draws()
        if isinstance(quantile, (list, tuple, np.ndarray)):
            return np.quantile(coef_draws, np.asarray(quantile), axis=0)
        return pd.DataFrame(
            np.quantile(coef_draws, quantile, axis=0),
            index=self.design_names,
            columns=self.var_names
        )

    def vcov(self, quantile=0.50):
        """
        Extract the time-varying variance-covariance matrices.

        Sigma_t = L^{-1} D_t L^{-T} is computed for every draw before taking
        the quantile.

        Parameters
        ----------
        quantile : float, default=0.50
            Quantile to extract (between 0 and 1).

        Returns
        -------
        np.ndarray
            Array of size T x k x k.
        """
        a_record = self.records['a_record']
        eye = np.eye(self.K)
        chol_inv = np.stack([
            solve_triangular(utils.build_lower_from_vector(self.K, a_draw), eye, lower=True)
            for a_draw in a_record
        ])
        sig_draws = np.einsum('nij,ntj,nkj->ntik', chol_inv, np.exp(self._lvol_draws()), chol_inv)
        return np.quantile(sig_draws, quantile, axis=0)

    def volatility(self, quantile=None):
        """
        Extract log-volatilities with the burn-in removed.

        Parameters
        ----------
        quantile : float, optional
            If given, the posterior quantile of h_t is returned.

        Returns
        -------
        np.ndarray or DataFrame
            Draws of size draws x T x k, or a T x k DataFrame at the quantile.
        """
        lvol = self._lvol_draws()
        if quantile is None:
            return lvol
        return pd.DataFrame(
            np.quantile(lvol, quantile, axis=0),
            index=self.time_index,
            columns=self.var_names
        )

    def fitted(self, quantile=0.50):
        """
        Extract fitted values at the coefficient quantile.

        Returns
        -------
        pd.DataFrame
            Fitted values.
        """
        fitted_vals = self.x @ self.coef(quantile).values
        return pd.DataFrame(fitted_vals, index=self.time_index, columns=self.var_names)

    def residuals(self, quantile=0.50):
        """
        Calculate residuals at the coefficient quantile.

        Returns
        -------
        pd.DataFrame
            Residuals.
        """
        resid = self.y - self.fitted(quantile).values
        return pd.DataFrame(resid, index=self.time_index, columns=self.var_names)

    def shrinkage(self):
        """
        Posterior shrinkage of the coefficients.

        SSVS: posterior inclusion probabilities of the non-constant
        coefficients. HS: posterior mean shrinkage factors kappa.

        Returns
        -------
        pd.DataFrame
            Rows are regressors, columns are equations.
        """
        prior = self.args['prior']
        if prior == 'SSVS':
            prob = self.records['gamma_record'].mean(axis=0)
            names = self.design_names[:self.K * self.args['p']]
            return pd.DataFrame(utils.unvectorize(prob, len(names), self.K), index=names, columns=self.var_names)
        if prior == 'HS':
            kappa = self.records['kappa_record'].mean(axis=0)
            return pd.DataFrame(
                utils.unvectorize(kappa, len(self.design_names), self.K),
                index=self.design_names,
                columns=self.var_names
            )
        raise ValueError("Shrinkage is only available for the 'SSVS' and 'HS' priors.")

    def summary(self):
        """
        Generate a summary of the VAR-SV model.

        Returns
        -------
        dict
            Dictionary containing posterior median coefficients, their 68%
            credible bounds and the average posterior median log-volatility.
        """
        coef_med = self.coef(0.50)
        coef_bounds = self.coef([0.16, 0.84])
        lvol_med = self.volatility(0.50).mean(axis=0)

        summary_dict = {
            'object': self,
            'coef': coef_med,
            'coef_lower': pd.DataFrame(coef_bounds[0], index=self.design_names, columns=self.var_names),
            'coef_upper': pd.DataFrame(coef_bounds[1], index=self.design_names, columns=self.var_names),
            'lvol': lvol_med
        }

        # Print summary
        print("-" * 75)
        print("Model Info:")
        print(f"Prior: {PRIOR_NAMES[self.args['prior']]}")
        print(f"Number of lags: {self.args['p']}")
        print(f"Number of posterior draws: {self.ndraws}")
        if self.aborted:
            print("Sampling was aborted; burn-in not removed.")
        print("-" * 75)
        print("Posterior median coefficients")
        print(coef_med.round(4))
        print("-" * 75)
        print("Average posterior median log-volatility")
        print(lvol_med.round(4))
        print("-" * 75)

        return summary_dict

    def __repr__(self):
        """String representation of the model."""
        return (f"VARSV Model\n"
                f"Prior: {PRIOR_NAMES[self.args['prior']]}\n"
                f"Lags: {self.args['p']}\n"
                f"Variables: {self.K}\n"
                f"Draws: {self.ndraws}")
