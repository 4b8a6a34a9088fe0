"""
Monte Carlo evidence lower bound for flow posteriors.

For an observed categorical distribution ``Q`` and a likelihood
``p(x | z)`` the ELBO of a flow ``q`` is

    E_q[ sum_c Q_c log p_c(zK) + log N(zK) - log q(zK) ]

with a standard normal prior on the latent variable. The expectation is
estimated from ``n_mc`` draws of the flow.
"""

from typing import Callable, Optional

import jax
import jax.numpy as jnp
from jax import random

from ..config import FitConfig
from ..core import (
    ConfigurationError,
    PROB_FLOOR,
    validate_pmf,
    validate_probability_vector,
)
from ..flows import FlowModel

# ------------------------------------------------------------------------------
# Estimator
# ------------------------------------------------------------------------------


def _elbo_estimate(
    flow: FlowModel,
    observed: jnp.ndarray,
    pxgivenz: Callable,
    rng_key,
    n_mc: int,
) -> jnp.ndarray:
    """Unvalidated ELBO estimate; traceable under ``jax.jit``."""
    sample = flow.sampleq(rng_key, n_mc)
    probs = jax.vmap(pxgivenz)(sample.zK)
    log_lik = jnp.sum(observed * jnp.log(jnp.maximum(probs, PROB_FLOOR)), -1)
    log_prior = flow.base_distribution.log_prob(sample.zK)
    return jnp.mean(log_lik + log_prior - sample.logq)


# ------------------------------------------------------------------------------


def elbo_flow(
    flow: FlowModel,
    observed,
    pxgivenz: Callable,
    rng_key: Optional[jax.Array] = None,
    n_mc: int = 256,
) -> float:
    """Estimate the ELBO of a flow posterior.

    Parameters
    ----------
    flow : FlowModel
        Variational posterior.
    observed : array_like
        Observed categorical distribution; must sum to one within ``1e-8``.
    pxgivenz : callable
        Maps a latent vector of shape ``(d,)`` to a pmf over the same
        categories as ``observed``. It is vectorised over the draws with
        ``jax.vmap`` and must be written with ``jax.numpy``.
    rng_key : jax.Array, optional
        PRNG key for the Monte Carlo draws. Defaults to
        ``PRNGKey(FitConfig().seed)``.
    n_mc : int, default=256
        Number of Monte Carlo draws.

    Returns
    -------
    float
        The ELBO estimate.

    Raises
    ------
    ConfigurationError
        If ``observed`` is not a probability vector, ``n_mc < 1`` or
        ``pxgivenz`` returns the wrong number of categories.

    Examples
    --------
    >>> flow = make_flow("planar", u=0.1, w=0.2, b=0.0)
    >>> px = lambda z: jnp.array([0.3, 0.4, 0.3])
    >>> elbo_flow(flow, [0.2, 0.5, 0.3], px, n_mc=100)
    """
    observed = validate_probability_vector(observed)
    if n_mc < 1:
        raise ConfigurationError(f"n_mc must be >= 1, got {n_mc}")
    validate_pmf(pxgivenz, flow.dim, observed.size)
    if rng_key is None:
        rng_key = random.PRNGKey(FitConfig().seed)
    return float(
        _elbo_estimate(flow, jnp.asarray(observed), pxgivenz, rng_key, n_mc)
    )
