"""
Toy categorical likelihoods ``p(x | z)``.

These are example ``pxgivenz`` producers for
:func:`~rareflow.inference.fit_flow_variational`: each returns a function
mapping a latent vector to a pmf over three ordered categories. They are
written with ``jax.numpy`` so they can be vectorised over Monte Carlo
draws.
"""

import jax
import jax.numpy as jnp

from .core import PROB_FLOOR


def make_two_separator_likelihood(a: float):
    """Three ordered categories cut by two logistic separators.

    With ``eta = mean(z)`` the separators sit at ``eta - a`` and
    ``eta + a``:

        p(low)  = 1 - sigmoid(eta + a)
        p(mid)  = sigmoid(eta + a) - sigmoid(eta - a)
        p(high) = sigmoid(eta - a)

    The pmf is floored at ``1e-12`` and renormalised.

    Parameters
    ----------
    a : float
        Half-width of the middle category on the logit scale.

    Returns
    -------
    callable
        ``z -> pmf`` with ``pmf.shape == (3,)``.
    """

    def pxgivenz(z):
        eta = jnp.mean(jnp.asarray(z))
        upper = jax.nn.sigmoid(eta + a)
        lower = jax.nn.sigmoid(eta - a)
        p = jnp.stack([1.0 - upper, upper - lower, lower])
        p = jnp.maximum(p, PROB_FLOOR)
        return p / jnp.sum(p)

    return pxgivenz


def make_neuro_likelihood(a: float = 0.3):
    """Two-separator likelihood for coarse neural response states."""
    return make_two_separator_likelihood(a)


def make_bio_likelihood(a: float = 0.2):
    """Two-separator likelihood for biological switching states."""
    return make_two_separator_likelihood(a)
