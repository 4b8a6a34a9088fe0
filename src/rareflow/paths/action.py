"""
Freidlin-Wentzell action and minimum-action paths.

For a small-noise diffusion ``dX = b(X) dt + sqrt(eps) dW`` the probability
of following a path ``phi`` decays like ``exp(-I[phi] / eps)`` with the
action

    I[phi] = 1/2 int || phi'(t) - b(phi(t)) ||^2 dt

discretised on ``T`` points spaced ``dt`` apart as

    I ~ dt/2 sum_{t=1}^{T-1} || (phi_{t+1} - phi_t) / dt - b(phi_t) ||^2

The quasipotential between two states is estimated by descending this action
from the straight line joining them, for a fixed number of iterations with a
fixed step size. Each iteration moves every interior point by

    phi_t <- phi_t - step_size ((phi_{t+1} - phi_t) - (phi_t - phi_{t-1})
                                - b(phi_t))

and never touches the endpoints. The update omits the drift-Jacobian
transpose term of the exact Euler-Lagrange gradient, so it is only a true
descent direction for gradient (conservative) drifts. The returned action is
a local, approximate quasipotential: for multimodal drifts the descent can
settle on a stationary path that is not the global minimiser.

Drift functions map a point of shape ``(d,)`` to a vector of shape ``(d,)``
and must be written with ``jax.numpy``. A scalar output is broadcast to all
``d`` dimensions; any other length is rejected.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import jax
import jax.numpy as jnp

from ..config import PathConfig, build_config
from ..core import ConfigurationError, as_point

logger = logging.getLogger(__name__)

# ==============================================================================
# Result container
# ==============================================================================


@dataclass
class PathResult:
    """Minimum-action path estimate.

    Attributes
    ----------
    path : jnp.ndarray
        Optimised path of shape ``(T, d)`` with ``path[0] == x0`` and
        ``path[-1] == x1``.
    action : float
        Discrete Freidlin-Wentzell action of ``path``.
    """

    path: jnp.ndarray
    action: float


# ==============================================================================
# Input handling
# ==============================================================================


def as_drift(drift: Callable, dim: int, x_ref) -> Callable:
    """Validate a drift field once and return a ``(d,) -> (d,)`` function.

    Parameters
    ----------
    drift : callable
        Drift field ``b(x)``.
    dim : int
        State-space dimension.
    x_ref : jnp.ndarray
        Point at which the drift is evaluated for validation.

    Returns
    -------
    callable
        The drift with scalar outputs broadcast to ``(dim,)``.

    Raises
    ------
    ConfigurationError
        If ``drift`` is not callable or returns neither a scalar nor a
        vector of length ``dim``.
    """
    if not callable(drift):
        raise ConfigurationError("drift must be callable")
    out = jnp.asarray(drift(x_ref))
    if out.ndim > 1 or out.size not in (1, dim):
        raise ConfigurationError(
            f"drift returned shape {tuple(out.shape)}; expected a scalar "
            f"or a vector of length {dim}"
        )

    def b(x):
        val = jnp.asarray(drift(x))
        if val.size == 1:
            return jnp.broadcast_to(val.reshape(()), (dim,))
        return val.reshape(dim)

    return b


# ------------------------------------------------------------------------------


def _as_path(path) -> jnp.ndarray:
    phi = jnp.asarray(path)
    if not jnp.issubdtype(phi.dtype, jnp.floating):
        phi = phi.astype(jnp.result_type(float))
    if phi.ndim == 1:
        phi = phi[:, None]
    if phi.ndim != 2:
        raise ConfigurationError(
            f"path must be a (T, d) matrix, got shape {tuple(phi.shape)}"
        )
    return phi


# ==============================================================================
# Action functional
# ==============================================================================


def _action(phi, b, dt):
    velocity = jnp.diff(phi, axis=0) / dt
    drift_values = jax.vmap(b)(phi[:-1])
    return jnp.sum((velocity - drift_values) ** 2) * dt / 2


def fw_action(path, drift: Callable, dt: float) -> float:
    """Discrete Freidlin-Wentzell action of a path.

    Parameters
    ----------
    path : array_like
        Path of shape ``(T, d)``; a 1-D array is read as a single column.
    drift : callable
        Drift field ``b(x)``.
    dt : float
        Time step, must be positive.

    Returns
    -------
    float
        ``dt/2 sum_t ||(phi_{t+1} - phi_t)/dt - b(phi_t)||^2``.

    Examples
    --------
    >>> phi = jnp.linspace(-1.0, 1.0, 200)[:, None]
    >>> fw_action(phi, lambda x: x - x**3, dt=0.01)  # ~1.080835
    """
    if not dt > 0:
        raise ConfigurationError(f"dt must be positive, got {dt}")
    phi = _as_path(path)
    if phi.shape[0] < 2:
        raise ConfigurationError("path needs at least two points")
    b = as_drift(drift, phi.shape[1], phi[0])
    return float(_action(phi, b, dt))


# ==============================================================================
# Gradient descent on the action
# ==============================================================================


def straight_line(x0, x1, n_points: int) -> jnp.ndarray:
    """Linear interpolation with endpoints pinned exactly to ``x0``, ``x1``."""
    frac = jnp.arange(n_points) / (n_points - 1)
    phi = x0 + frac[:, None] * (x1 - x0)
    return phi.at[0].set(x0).at[-1].set(x1)


def _descent_step(phi, b, step_size):
    curvature = (phi[2:] - phi[1:-1]) - (phi[1:-1] - phi[:-2])
    grad = curvature - jax.vmap(b)(phi[1:-1])
    # Endpoints are carried over untouched
    return phi.at[1:-1].add(-step_size * grad)


def _descend(phi, b, step_size, n_iter):
    return jax.lax.fori_loop(
        0, n_iter, lambda _, p: _descent_step(p, b, step_size), phi
    )


def action_gradient_step(path, drift: Callable, step_size: float):
    """Apply one fixed-step update to the interior points of a path.

    Parameters
    ----------
    path : array_like
        Current path, shape ``(T, d)`` with ``T > 2``.
    drift : callable
        Drift field ``b(x)``.
    step_size : float
        Step size of the update.

    Returns
    -------
    jnp.ndarray
        Updated path; rows ``0`` and ``T-1`` are identical to the input.
    """
    phi = _as_path(path)
    if phi.shape[0] <= 2:
        raise ConfigurationError("path needs more than two points")
    b = as_drift(drift, phi.shape[1], phi[0])
    return _descent_step(phi, b, step_size)


# ------------------------------------------------------------------------------


def fw_quasipotential(
    x0,
    x1,
    drift: Callable,
    config: Optional[PathConfig] = None,
    n_points: Optional[int] = None,
    dt: Optional[float] = None,
    n_iter: Optional[int] = None,
    step_size: Optional[float] = None,
) -> PathResult:
    """Approximate the quasipotential between two states.

    Starts from the straight line between ``x0`` and ``x1`` and runs exactly
    ``n_iter`` gradient steps on the interior points. There is no line
    search and no convergence test; precision is controlled through
    ``n_iter`` and ``step_size``.

    Parameters
    ----------
    x0, x1 : array_like
        Start and end points, same length ``d``.
    drift : callable
        Drift field ``b(x)``.
    config : PathConfig, optional
        Discretisation and descent budget. Defaults to ``PathConfig()``.
    n_points, dt, n_iter, step_size : optional
        Overrides for the corresponding ``config`` fields.

    Returns
    -------
    PathResult
        Optimised path and its action.

    Raises
    ------
    ConfigurationError
        On mismatched endpoints, ``n_points <= 2``, ``dt <= 0`` or a drift
        of the wrong output length.
    """
    config = build_config(
        PathConfig,
        config,
        n_points=n_points,
        dt=dt,
        n_iter=n_iter,
        step_size=step_size,
    )
    x0 = as_point(x0, "x0")
    x1 = as_point(x1, "x1", dim=x0.shape[0])
    b = as_drift(drift, x0.shape[0], x0)

    phi = straight_line(x0, x1, config.n_points)
    phi = _descend(phi, b, config.step_size, config.n_iter)
    action = float(_action(phi, b, config.dt))
    logger.debug(
        "quasipotential after %d steps on %d points: %g",
        config.n_iter,
        config.n_points,
        action,
    )
    return PathResult(path=phi, action=action)
