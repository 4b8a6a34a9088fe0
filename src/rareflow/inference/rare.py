"""
Rare-event wrappers around :func:`fit_flow_variational`.

Both wrappers build a tilted likelihood and hand it to the generic fitter:

- ``fit_flow_girsanov`` reweights a base likelihood by a Girsanov
  change-of-measure weight ``exp(log dQ/dP)``.
- ``fit_flow_fw`` uses a Freidlin-Wentzell quasipotential ``V`` as an
  energy, ``p proportional to exp(-V / eps)``.

With a single path or a single target the tilt is one scalar, which
cancels when the pmf is renormalised. Per-category tilts are obtained by
passing one path (or one target point) per category.
"""

import logging
from typing import Callable, Optional

import numpy as np
import jax.numpy as jnp

from ..config import PathConfig
from ..core import (
    ConfigurationError,
    PROB_FLOOR,
    as_point,
    validate_probability_vector,
)
from ..paths import fw_quasipotential, quasipotential_landscape
from ..stats import girsanov_logratio
from .fit import FitResult, fit_flow_variational

logger = logging.getLogger(__name__)


def _tilt_weights(log_weights, n_categories: int) -> jnp.ndarray:
    log_weights = jnp.atleast_1d(log_weights)
    if log_weights.size == 1:
        log_weights = jnp.broadcast_to(log_weights.reshape(()), (n_categories,))
    elif log_weights.shape != (n_categories,):
        raise ConfigurationError(
            f"got {log_weights.shape[0]} tilts for {n_categories} categories"
        )
    # Shift by the maximum so that the exponent never overflows
    return jnp.exp(log_weights - jnp.max(log_weights))


# ------------------------------------------------------------------------------


def fit_flow_girsanov(
    observed,
    base_pxgivenz: Callable,
    theta_path,
    w_inc,
    dt: float,
    **fit_kwargs,
) -> FitResult:
    """Fit a flow posterior under a Girsanov-tilted likelihood.

    Parameters
    ----------
    observed : array_like
        Observed distribution over ``C`` categories.
    base_pxgivenz : callable
        Untilted likelihood ``z -> pmf``.
    theta_path, w_inc : array_like
        Drift tilts and Brownian increments, see
        :func:`~rareflow.stats.girsanov_logratio`. A 1-D path gives a single
        scalar weight; a ``(C, T)`` array gives one weight per category.
    dt : float
        Time step of the path.
    **fit_kwargs
        Forwarded to :func:`fit_flow_variational`.

    Returns
    -------
    FitResult
    """
    if not callable(base_pxgivenz):
        raise ConfigurationError("base_pxgivenz must be callable")
    n_categories = validate_probability_vector(observed).size
    weights = _tilt_weights(
        girsanov_logratio(theta_path, w_inc, dt), n_categories
    )

    def px_tilted(z):
        p = jnp.maximum(base_pxgivenz(z), PROB_FLOOR) * weights
        return p / jnp.sum(p)

    return fit_flow_variational(observed, px_tilted, **fit_kwargs)


# ------------------------------------------------------------------------------


def fit_flow_fw(
    observed,
    drift: Callable,
    x0,
    x1,
    eps: float = 0.1,
    path_config: Optional[PathConfig] = None,
    **fit_kwargs,
) -> FitResult:
    """Fit a flow posterior under a quasipotential likelihood.

    Parameters
    ----------
    observed : array_like
        Observed distribution over ``C`` categories.
    drift : callable
        Drift field ``b(x)`` of the small-noise diffusion.
    x0 : array_like
        Start point of length ``d``.
    x1 : array_like
        Either a single target point (also as a ``(1, d)`` row), which
        yields a uniform likelihood, or one target per category with shape
        ``(C, d)`` (a length-``C`` array when ``d == 1``).
    eps : float, default=0.1
        Noise strength, must be positive.
    path_config : PathConfig, optional
        Discretisation and descent budget of the action solver.
    **fit_kwargs
        Forwarded to :func:`fit_flow_variational`.

    Returns
    -------
    FitResult
    """
    if not eps > 0:
        raise ConfigurationError(f"eps must be positive, got {eps}")
    n_categories = validate_probability_vector(observed).size
    x0 = as_point(x0, "x0")
    targets = np.asarray(x1, dtype=np.float64)
    if targets.ndim == 2 and targets.shape[0] == 1:
        # One row is a single target
        targets = targets[0]

    if targets.ndim == 2 or (x0.shape[0] == 1 and targets.size > 1):
        actions = quasipotential_landscape(
            x0, targets, drift, config=path_config
        ).actions
        if actions.shape[0] != n_categories:
            raise ConfigurationError(
                f"got {actions.shape[0]} targets for {n_categories} categories"
            )
    else:
        actions = fw_quasipotential(x0, targets, drift, config=path_config).action
    logger.debug("quasipotential tilt from actions %s", actions)

    weights = _tilt_weights(-jnp.asarray(actions) / eps, n_categories)
    probs = weights / jnp.sum(weights)

    def pxgivenz(z):
        return probs

    return fit_flow_variational(observed, pxgivenz, **fit_kwargs)
