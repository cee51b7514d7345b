"""
Shrinkage priors for VAR-SV coefficients

Each prior is a strategy holding its own hyperparameter state:

- Minnesota (MN): fixed prior mean and precision
- Stochastic Search Variable Selection (SSVS): spike-and-slab mixture with
  group-wise slab weights
- Horseshoe (HS): local and group-wise global shrinkage

`build_prior()` returns the prior mean and precision of the next draw and
`update()` redraws the hyperparameters given that draw. The sampler holds
one strategy for the VAR coefficients and one for the contemporaneous
coefficients and never branches on the prior type itself.
"""

import numpy as np
from typing import Dict, Optional, Tuple
from scipy.special import expit
from scipy.stats import beta, invgamma, norm

from .errors import InvalidDimension, InvalidParameter


def build_ssvs_sd(spike_sd: np.ndarray, slab_sd: np.ndarray, mixture_dummy: np.ndarray) -> np.ndarray:
    """Prior SD of each coefficient: slab if its dummy is 1, spike otherwise."""
    return np.where(np.asarray(mixture_dummy) > 0.5, slab_sd, spike_sd)


def ssvs_dummy(param_obs: np.ndarray,
               sd_numer: np.ndarray,
               sd_denom: np.ndarray,
               slab_weight: np.ndarray,
               rng: np.random.Generator) -> np.ndarray:
    """
    Draw the SSVS inclusion dummies.

    P(gamma_j = 1) is proportional to p_j N(param_j; 0, slab_j^2) against
    (1 - p_j) N(param_j; 0, spike_j^2).

    Parameters
    ----------
    param_obs : array
        Current coefficients.
    sd_numer : array
        Slab SD.
    sd_denom : array
        Spike SD.
    slab_weight : array
        Prior inclusion probabilities p_j.
    rng : Generator
        Random number generator.

    Returns
    -------
    array
        Dummies in {0, 1}.
    """
    log_slab = np.log(slab_weight) + norm.logpdf(param_obs, 0, sd_numer)
    log_spike = np.log1p(-slab_weight) + norm.logpdf(param_obs, 0, sd_denom)
    prob_slab = expit(log_slab - log_spike)
    return (rng.random(np.size(param_obs)) < prob_slab).astype(float)


def ssvs_weight(param_obs: np.ndarray, prior_s1: float, prior_s2: float, rng: np.random.Generator) -> float:
    """Draw one slab weight shared by all `param_obs` dummies from its Beta posterior."""
    num_latent = np.size(param_obs)
    post_s1 = prior_s1 + np.sum(param_obs)
    post_s2 = prior_s2 + num_latent - np.sum(param_obs)
    return beta.rvs(post_s1, post_s2, random_state=rng)


def ssvs_group_weight(grp_index: np.ndarray,
                      num_grp: int,
                      param_obs: np.ndarray,
                      prior_s1: float,
                      prior_s2: float,
                      rng: np.random.Generator) -> np.ndarray:
    """
    Draw the slab weight of each group.

    p_g ~ Beta(s1 + #included in g, s2 + #excluded in g)
    """
    res = np.zeros(num_grp)
    for j in range(num_grp):
        res[j] = ssvs_weight(param_obs[grp_index == j], prior_s1, prior_s2, rng)
    return res


def build_shrink_mat(global_hyperparam: np.ndarray, local_hyperparam: np.ndarray) -> np.ndarray:
    """Horseshoe prior precision diag(1 / (tau^2 lambda^2))."""
    return np.diag(1 / (global_hyperparam * local_hyperparam) ** 2)


def shrinkage_factor(prior_prec: np.ndarray) -> np.ndarray:
    """kappa_j = 1 / (1 + prec_j), the share of coefficient j shrunk towards zero."""
    return 1 / (1 + np.diag(prior_prec))


def horseshoe_latent(hyperparam: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Auxiliary variables of the half-Cauchy scale mixture, IG(1, 1 + 1/hyperparam^2)."""
    hyperparam = np.atleast_1d(hyperparam)
    return invgamma.rvs(a=1, scale=1 + 1 / hyperparam ** 2, random_state=rng)


def horseshoe_local_sparsity(latent_local: np.ndarray,
                             global_hyperparam: np.ndarray,
                             coef_vec: np.ndarray,
                             prior_var: float,
                             rng: np.random.Generator) -> np.ndarray:
    """
    Draw local shrinkage scales.

    lambda_j^2 ~ IG(1, 1/nu_j + coef_j^2 / (2 prior_var tau_j^2))
    """
    invgam_scl = 1 / latent_local + coef_vec ** 2 / (2 * prior_var * global_hyperparam ** 2)
    return np.sqrt(invgamma.rvs(a=1, scale=invgam_scl, random_state=rng))


def horseshoe_global_sparsity(global_latent: float,
                              local_hyperparam: np.ndarray,
                              coef_vec: np.ndarray,
                              prior_var: float,
                              rng: np.random.Generator) -> float:
    """
    Draw one global shrinkage scale.

    tau^2 ~ IG((n + 1)/2, 1/xi + sum_j coef_j^2 / (2 prior_var lambda_j^2))
    """
    invgam_shp = (np.size(coef_vec) + 1) / 2
    invgam_scl = 1 / global_latent + np.sum(coef_vec ** 2 / local_hyperparam ** 2) / (2 * prior_var)
    return np.sqrt(invgamma.rvs(a=invgam_shp, scale=invgam_scl, random_state=rng))


def horseshoe_group_global_sparsity(grp_index: np.ndarray,
                                    global_latent: np.ndarray,
                                    local_hyperparam: np.ndarray,
                                    coef_vec: np.ndarray,
                                    prior_var: float,
                                    rng: np.random.Generator) -> np.ndarray:
    """Draw the global scale of every group from the coefficients assigned to it."""
    res = np.zeros(global_latent.size)
    for j in range(global_latent.size):
        member = grp_index == j
        res[j] = horseshoe_global_sparsity(
            global_latent[j], local_hyperparam[member], coef_vec[member], prior_var, rng
        )
    return res


class ShrinkagePrior:
    """
    Base class of the shrinkage strategies.

    Subclasses implement `build_prior` and may override `update` and `trace`.
    """

    name = None

    def build_prior(self) -> Tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError

    def update(self, draw: np.ndarray, rng: np.random.Generator) -> None:
        """Redraw hyperparameters given the newest coefficient draw."""
        return None

    def trace(self) -> Dict[str, np.ndarray]:
        """Hyperparameter state to be recorded after every iteration."""
        return {}


class MinnesotaPrior(ShrinkagePrior):
    """
    Fixed Gaussian prior.

    Parameters
    ----------
    prior_mean : array
        Prior mean vector.
    prior_prec : array
        Prior precision matrix.
    """

    name = 'MN'

    def __init__(self, prior_mean: np.ndarray, prior_prec: np.ndarray):
        self.prior_mean = np.asarray(prior_mean, dtype=float).ravel()
        self.prior_prec = np.asarray(prior_prec, dtype=float)
        if self.prior_prec.shape != (self.prior_mean.size, self.prior_mean.size):
            raise InvalidDimension(
                f"Prior precision of shape {self.prior_prec.shape} does not match prior mean of size {self.prior_mean.size}."
            )

    def build_prior(self):
        return self.prior_mean, self.prior_prec


class SSVSPrior(ShrinkagePrior):
    """
    Spike-and-slab prior with group-wise slab weights.

    Parameters
    ----------
    spike_sd, slab_sd : array
        SD of the spike and slab normals, one per shrunk coefficient.
    slab_weight : array
        Initial slab weight of each group.
    grp_index : array
        Group position of each shrunk coefficient.
    s1, s2 : float
        Beta prior of the slab weights.
    shrink_mask : array of bool, optional
        Which entries of the full coefficient vector are shrunk. Defaults to all.
    mean_non : array, optional
        Prior mean of the unshrunk entries.
    sd_non : float
        Prior SD of the unshrunk entries.
    record_name : str, optional
        Name under which the dummies are traced.
    """

    name = 'SSVS'

    def __init__(self,
                 spike_sd: np.ndarray,
                 slab_sd: np.ndarray,
                 slab_weight: np.ndarray,
                 grp_index: np.ndarray,
                 s1: float,
                 s2: float,
                 shrink_mask: Optional[np.ndarray] = None,
                 mean_non: Optional[np.ndarray] = None,
                 sd_non: float = 0.1,
                 num_grp: Optional[int] = None,
                 record_name: Optional[str] = None):
        self.grp_index = np.asarray(grp_index, dtype=int)
        num_shrunk = self.grp_index.size
        if shrink_mask is None:
            shrink_mask = np.ones(num_shrunk, dtype=bool)
        self.shrink_mask = np.asarray(shrink_mask, dtype=bool)
        if self.shrink_mask.sum() != num_shrunk:
            raise InvalidDimension("Number of shrunk coefficients does not match the group assignment.")

        self.spike_sd = np.broadcast_to(np.asarray(spike_sd, dtype=float), (num_shrunk,)).copy()
        self.slab_sd = np.broadcast_to(np.asarray(slab_sd, dtype=float), (num_shrunk,)).copy()
        if (self.spike_sd <= 0).any() or (self.slab_sd <= 0).any():
            raise InvalidParameter("Spike and slab SDs must be positive.")

        if num_grp is None:
            num_grp = int(self.grp_index.max()) + 1 if num_shrunk > 0 else 1
        self.num_grp = num_grp
        self.slab_weight = np.broadcast_to(np.asarray(slab_weight, dtype=float), (self.num_grp,)).copy()
        if ((self.slab_weight <= 0) | (self.slab_weight >= 1)).any():
            raise InvalidParameter("Slab weights must lie in (0, 1).")
        self.s1 = s1
        self.s2 = s2
        self.sd_non = sd_non
        self.record_name = record_name

        num_coef = self.shrink_mask.size
        self.prior_mean = np.zeros(num_coef)
        if mean_non is not None and (~self.shrink_mask).any():
            self.prior_mean[~self.shrink_mask] = mean_non
        self.dummy = np.ones(num_shrunk)

    def build_prior(self):
        prior_sd = np.full(self.shrink_mask.size, self.sd_non, dtype=float)
        prior_sd[self.shrink_mask] = build_ssvs_sd(self.spike_sd, self.slab_sd, self.dummy)
        return self.prior_mean, np.diag(1 / prior_sd ** 2)

    def update(self, draw, rng):
        coef = np.asarray(draw)[self.shrink_mask]
        self.dummy = ssvs_dummy(coef, self.slab_sd, self.spike_sd, self.slab_weight[self.grp_index], rng)
        self.slab_weight = np.atleast_1d(
            ssvs_group_weight(self.grp_index, self.num_grp, self.dummy, self.s1, self.s2, rng)
        )

    def trace(self):
        if self.record_name is None:
            return {}
        return {self.record_name: self.dummy}


class HorseshoePrior(ShrinkagePrior):
    """
    Horseshoe prior with one global scale per group.

    Parameters
    ----------
    init_local : array
        Initial local scales lambda_j.
    init_global : array
        Initial global scales tau_g.
    grp_index : array
        Group position of each coefficient.
    prior_var : float
        Common variance factor of the coefficients.
    record_names : dict, optional
        Trace names of 'local', 'global' and 'shrink'.
    """

    name = 'HS'

    def __init__(self,
                 init_local: np.ndarray,
                 init_global: np.ndarray,
                 grp_index: np.ndarray,
                 prior_var: float = 1.0,
                 num_grp: Optional[int] = None,
                 record_names: Optional[Dict[str, str]] = None):
        self.grp_index = np.asarray(grp_index, dtype=int)
        num_coef = self.grp_index.size
        if num_grp is None:
            num_grp = int(self.grp_index.max()) + 1 if num_coef > 0 else 1
        self.local = np.broadcast_to(np.asarray(init_local, dtype=float), (num_coef,)).copy()
        self.global_ = np.broadcast_to(np.asarray(init_global, dtype=float), (num_grp,)).copy()
        if (self.local <= 0).any() or (self.global_ <= 0).any():
            raise InvalidParameter("Horseshoe scales must be positive.")
        self.prior_var = prior_var
        self.prior_mean = np.zeros(num_coef)
        self.record_names = record_names or {}

    def build_prior(self):
        return self.prior_mean, build_shrink_mat(self.global_[self.grp_index], self.local)

    def update(self, draw, rng):
        coef = np.asarray(draw)
        latent_local = horseshoe_latent(self.local, rng)
        latent_global = horseshoe_latent(self.global_, rng)
        self.local = np.atleast_1d(horseshoe_local_sparsity(
            latent_local, self.global_[self.grp_index], coef, self.prior_var, rng
        ))
        self.global_ = horseshoe_group_global_sparsity(
            self.grp_index, np.atleast_1d(latent_global), self.local, coef, self.prior_var, rng
        )

    def trace(self):
        res = {}
        if 'local' in self.record_names:
            res[self.record_names['local']] = self.local
        if 'global' in self.record_names:
            res[self.record_names['global']] = self.global_
        if 'shrink' in self.record_names:
            res[self.record_names['shrink']] = shrinkage_factor(self.build_prior()[1])
        return res
