"""Divergences and large-deviation bounds for categorical distributions."""

import jax.numpy as jnp
from jax import scipy as jsp

from ..core import ConfigurationError

# ==============================================================================
# KL Divergence
# ==============================================================================


def kl_div(Q, P):
    """
    Compute the Kullback-Leibler divergence D(Q || P) between two discrete
    distributions.

    Only categories with ``Q_i > 0`` contribute:

        D(Q || P) = sum_{i: Q_i > 0} Q_i log(Q_i / P_i)

    so the divergence is finite whenever ``P`` covers the support of ``Q``
    and infinite otherwise.

    Parameters
    ----------
    Q : array_like
        Observed (empirical) distribution.
    P : array_like
        Reference distribution.

    Returns
    -------
    jnp.ndarray
        Scalar KL divergence.
    """
    Q = jnp.asarray(Q)
    P = jnp.asarray(P)
    if Q.shape != P.shape:
        raise ConfigurationError(
            f"Q and P must have the same shape, got {Q.shape} and {P.shape}"
        )
    # rel_entr(q, p) = q log(q / p), with 0 where q == 0
    return jnp.sum(jsp.special.rel_entr(Q, P))


# ==============================================================================
# Sanov bound
# ==============================================================================


def sanov_prob(Q, P, n):
    """
    Sanov upper bound on the probability that the empirical distribution of
    ``n`` i.i.d. draws from ``P`` lands near ``Q``:

        P(Q_n ~ Q) <= exp(-n D(Q || P))
    """
    if n < 0:
        raise ConfigurationError(f"n must be non-negative, got {n}")
    return jnp.exp(-n * kl_div(Q, P))
