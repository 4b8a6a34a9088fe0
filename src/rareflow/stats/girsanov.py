"""Girsanov change-of-measure weights for drift-tilted diffusions."""

import jax.numpy as jnp

from ..core import ConfigurationError


def girsanov_logratio(theta_path, w_inc, dt):
    """
    Log Radon-Nikodym derivative of a drift-tilted diffusion.

    For ``dX = b(X) dt + dW`` tilted to ``dX = (b(X) + theta_t) dt + dW``,

        log dQ/dP = sum_t theta_t dW_t - 1/2 sum_t theta_t^2 dt

    Parameters
    ----------
    theta_path : array_like
        Drift tilts ``theta_t``. A 2-D array holds one path per row.
    w_inc : array_like
        Brownian increments ``dW_t``, same shape as ``theta_path``.
    dt : float
        Time step, must be positive.

    Returns
    -------
    jnp.ndarray
        Log-ratio, a scalar for 1-D inputs or one value per row.
    """
    theta_path = jnp.asarray(theta_path)
    w_inc = jnp.asarray(w_inc)
    if theta_path.shape != w_inc.shape:
        raise ConfigurationError(
            "theta_path and w_inc must have the same shape, got "
            f"{theta_path.shape} and {w_inc.shape}"
        )
    if not dt > 0:
        raise ConfigurationError(f"dt must be positive, got {dt}")
    drift_term = jnp.sum(theta_path * w_inc, axis=-1)
    quad_term = -0.5 * jnp.sum(theta_path**2, axis=-1) * dt
    return drift_term + quad_term
