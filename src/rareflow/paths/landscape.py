"""
Quasipotential landscapes.

Sweeps the fixed-budget action solver over many target points from a common
start. The targets are independent, so the sweep is vectorised with
``jax.vmap``; each entry equals what
:func:`~rareflow.paths.fw_quasipotential` returns for that target, to
floating tolerance.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import jax
import jax.numpy as jnp

from ..config import PathConfig, build_config
from ..core import as_batch, as_point, exact_float
from .action import _action, _descend, as_drift, straight_line

logger = logging.getLogger(__name__)


@dataclass
class LandscapeResult:
    """Quasipotential estimates from one start to many targets.

    Attributes
    ----------
    targets : jnp.ndarray
        Target points, shape ``(M, d)``.
    paths : jnp.ndarray
        Optimised paths, shape ``(M, T, d)``.
    actions : jnp.ndarray
        Action of each path, shape ``(M,)``.
    """

    targets: jnp.ndarray
    paths: jnp.ndarray
    actions: jnp.ndarray


def quasipotential_landscape(
    x0,
    targets,
    drift: Callable,
    config: Optional[PathConfig] = None,
    n_points: Optional[int] = None,
    dt: Optional[float] = None,
    n_iter: Optional[int] = None,
    step_size: Optional[float] = None,
) -> LandscapeResult:
    """Estimate the quasipotential from ``x0`` to every target point.

    Parameters
    ----------
    x0 : array_like
        Common start point of length ``d``.
    targets : array_like
        Target points, shape ``(M, d)``. For ``d == 1`` a 1-D array of ``M``
        targets is accepted.
    drift : callable
        Drift field ``b(x)``, written with ``jax.numpy``.
    config : PathConfig, optional
        Discretisation and descent budget shared by all targets.
    n_points, dt, n_iter, step_size : optional
        Overrides for the corresponding ``config`` fields.

    Returns
    -------
    LandscapeResult
        Targets, optimised paths and their actions.
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
    dim = x0.shape[0]
    targets = as_batch(exact_float(targets, "targets"), dim)
    b = as_drift(drift, dim, x0)

    def _solve_one(x1):
        phi = straight_line(x0, x1, config.n_points)
        phi = _descend(phi, b, config.step_size, config.n_iter)
        return phi, _action(phi, b, config.dt)

    paths, actions = jax.vmap(_solve_one)(targets)
    logger.debug("landscape over %d targets", targets.shape[0])
    return LandscapeResult(targets=targets, paths=paths, actions=actions)
