"""
Flow factory.

A unified constructor for every flow variant. Dispatches on the flow
specification and resolves the parameter vector exactly once:

- fixed variants (planar, radial) take their three scalars from the spec or
  from an explicit length-3 ``theta``;
- trainable variants (autoregressive, spline) take an explicit ``theta``
  validated against their layout, or draw one from ``N(0, init_scale^2)``.
"""

import logging
from typing import Any, Optional, Union

import numpy as np
import jax.numpy as jnp
from jax import random

from ..config import FlowSpec, FlowType, flow_spec
from .base import FlowModel, check_theta, flow_layout

logger = logging.getLogger(__name__)


def make_flow(
    spec: Union[str, FlowType, FlowSpec] = FlowType.AUTOREGRESSIVE,
    theta=None,
    rng_key: Optional[Any] = None,
    **spec_kwargs: Any,
) -> FlowModel:
    """Create a flow model.

    Parameters
    ----------
    spec : str, FlowType or FlowSpec
        Variant tag or full specification. Tags accept the aliases
        ``"maf"`` and ``"splinepwlin"``.
    theta : array_like, optional
        Parameter vector. Must match the variant's layout size exactly:
        3 for planar and radial, ``K (2d + d(d-1))`` for autoregressive and
        ``2 K d`` for spline.
    rng_key : jax.Array, optional
        Key for the random initialisation of trainable variants when
        ``theta`` is not given. Defaults to ``PRNGKey(0)``.
    **spec_kwargs
        Spec fields, e.g. ``dim=2, n_steps=3`` or ``u=0.1, w=0.5, b=0.0``.

    Returns
    -------
    FlowModel
        The constructed flow.

    Raises
    ------
    ConfigurationError
        On unknown flow types, invalid spec values or a theta length
        mismatch.

    Examples
    --------
    >>> planar = make_flow("planar", u=0.1, w=0.2, b=0.0)
    >>> maf = make_flow("maf", dim=2, n_steps=2, rng_key=random.PRNGKey(1))
    >>> spline = make_flow("spline", theta=jnp.zeros(2 * 8 * 2))
    """
    spec = flow_spec(spec, **spec_kwargs)
    layout = flow_layout(spec)

    if not spec.flow_type.trainable:
        if theta is not None:
            # Fixed variants are built eagerly; route the scalars through
            # the spec so the same range checks apply (alpha > 0).
            values = np.asarray(
                check_theta(theta, layout.size, spec.flow_type.value)
            )
            spec = flow_spec(
                spec.flow_type,
                **{k: float(v) for k, v in zip(layout.names, values)},
            )
        theta = jnp.asarray([getattr(spec, k) for k in layout.names])
        return FlowModel(spec=spec, params=layout.unpack(theta))

    if theta is None:
        key = rng_key if rng_key is not None else random.PRNGKey(0)
        theta = spec.init_scale * random.normal(key, (layout.size,))
        logger.debug(
            "initialised %s theta with %d entries",
            spec.flow_type.value,
            layout.size,
        )
    return FlowModel(spec=spec, params=layout.unpack(theta))
