"""
Variational fitting of flow posteriors.

Planar and radial flows carry no trainable parameters, so fitting them is a
single ELBO evaluation. Autoregressive and spline flows are fitted by
minimising the negative Monte Carlo ELBO over their flat parameter vector
with a pluggable minimiser.
"""

import itertools
import logging
import warnings
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import numpy as np
import jax
import jax.numpy as jnp
from jax import random

from ..config import FitConfig, FlowSpec, FlowType, build_config, flow_spec
from ..core import validate_pmf, validate_probability_vector, validate_states
from ..flows import FlowModel, make_flow, flow_layout
from ..flows.base import check_theta
from .elbo import _elbo_estimate
from .minimize import Minimizer, ScipyMinimizer

logger = logging.getLogger(__name__)


@dataclass
class FitResult:
    """Fitted flow posterior.

    Attributes
    ----------
    flow : FlowModel
        The fitted flow.
    elbo : float
        ELBO at the returned parameters, as reported by the minimiser.
    theta : np.ndarray or None
        Optimised parameter vector; ``None`` for fixed variants.
    convergence : int
        Minimiser status code, ``0`` on convergence.
    states : tuple of str, optional
        Category names, when given.
    """

    flow: FlowModel
    elbo: float
    theta: Optional[np.ndarray]
    convergence: int
    states: Optional[tuple] = None


# ------------------------------------------------------------------------------


def fit_flow_variational(
    observed,
    pxgivenz: Callable,
    flow: Union[str, FlowType, FlowSpec] = FlowType.AUTOREGRESSIVE,
    init_theta=None,
    states: Optional[Sequence[str]] = None,
    config: Optional[FitConfig] = None,
    minimizer: Optional[Minimizer] = None,
    rng_key: Optional[jax.Array] = None,
    n_mc: Optional[int] = None,
    max_iter: Optional[int] = None,
    **flow_kwargs,
) -> FitResult:
    """Fit a flow posterior to an observed categorical distribution.

    Parameters
    ----------
    observed : array_like
        Observed distribution over ``C`` categories.
    pxgivenz : callable
        Likelihood ``z -> pmf`` over the ``C`` categories, written with
        ``jax.numpy``.
    flow : str, FlowType or FlowSpec, default="autoregressive"
        Flow variant or full specification.
    init_theta : array_like, optional
        Starting parameters. For trainable variants its length must match
        the layout; for fixed variants it replaces the three spec scalars.
    states : sequence of str, optional
        One name per category, carried on the result.
    config : FitConfig, optional
        Fitting options. ``n_mc`` and ``max_iter`` override its fields.
    minimizer : Minimizer, optional
        Defaults to ``ScipyMinimizer("BFGS")``.
    rng_key : jax.Array, optional
        Key for initialisation and Monte Carlo draws. Defaults to
        ``PRNGKey(config.seed)``.
    n_mc : int, optional
        Monte Carlo draws per ELBO evaluation.
    max_iter : int, optional
        Iteration limit passed to the minimiser as ``maxiter``.
    **flow_kwargs
        Spec fields such as ``dim``, ``n_steps`` or ``n_bins``.

    Returns
    -------
    FitResult
        The fitted flow, its ELBO, parameters and convergence code.

    Raises
    ------
    ConfigurationError
        On invalid ``observed``, ``states``, spec values, ``init_theta``
        length or a ``pxgivenz`` that does not match ``observed``.

    Warns
    -----
    RuntimeWarning
        When the minimiser reports a non-zero status.

    Notes
    -----
    Every objective evaluation draws fresh samples from
    ``fold_in(eval_key, evaluation_index)``, so the objective is stochastic
    and two evaluations at the same parameters may differ.
    """
    config = build_config(FitConfig, config, n_mc=n_mc, max_iter=max_iter)
    observed = validate_probability_vector(observed)
    states = validate_states(states, observed.size)
    spec = flow_spec(flow, **flow_kwargs)
    validate_pmf(pxgivenz, spec.dim, observed.size)
    logger.debug("fitting %r with %r", spec, config)

    if rng_key is None:
        rng_key = random.PRNGKey(config.seed)
    init_key, eval_key = random.split(rng_key)
    observed_arr = jnp.asarray(observed)

    # Fixed variants: evaluate once
    if not spec.flow_type.trainable:
        model = make_flow(spec, theta=init_theta)
        elbo = _elbo_estimate(
            model, observed_arr, pxgivenz, eval_key, config.n_mc
        )
        return FitResult(
            flow=model,
            elbo=float(elbo),
            theta=None,
            convergence=0,
            states=states,
        )

    layout = flow_layout(spec)
    if init_theta is None:
        theta0 = make_flow(spec, rng_key=init_key).theta
    else:
        theta0 = check_theta(init_theta, layout.size, spec.flow_type.value)

    @jax.jit
    def neg_elbo(theta, key):
        model = FlowModel(spec=spec, params=layout.unpack(theta))
        return -_elbo_estimate(model, observed_arr, pxgivenz, key, config.n_mc)

    counter = itertools.count()

    def objective(theta):
        key = random.fold_in(eval_key, next(counter))
        return float(neg_elbo(jnp.asarray(theta), key))

    options = {"maxiter": config.max_iter}
    options.update(config.optimizer_options or {})
    if config.progress:
        options["progress"] = True

    if minimizer is None:
        minimizer = ScipyMinimizer()
    result = minimizer(objective, np.asarray(theta0, dtype=np.float64), options)
    logger.debug("objective evaluated %d times", next(counter))

    if result.status != 0:
        warnings.warn(
            f"Minimizer did not converge (status {result.status}): "
            f"{result.message}",
            RuntimeWarning,
        )

    theta = np.asarray(result.params)
    return FitResult(
        flow=make_flow(spec, theta=theta),
        elbo=-float(result.value),
        theta=theta,
        convergence=int(result.status),
        states=states,
    )
