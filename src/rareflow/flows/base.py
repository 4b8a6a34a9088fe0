"""
Base types for the flow family.

This module defines the immutable ``FlowModel`` value type and the two
dispatchers every variant registers against:

- ``flow_forward(params, z0) -> (zK, log_det)`` applies the forward map to a
  ``(n, d)`` batch of base samples and returns ``log|det(dzK/dz0)|`` per row.
- ``flow_layout(spec) -> layout`` returns the typed parameter layout for a
  flow specification. Layouts expose ``size``, ``unpack(theta)`` and
  ``pack(params)``.

Convention
----------
A flow pushes a standard Gaussian base sample ``z0`` forward to ``zK``. The
density of ``zK`` follows from the change of variables:

    log q(zK) = log N(z0) - log|det J(z0)|

Classes
-------
FlowModel
    Variant tag, structural spec and parameter struct of a single flow.
FlowSample
    Base draws, pushed-forward draws and their log-densities.
"""

from dataclasses import dataclass
from typing import Any, Tuple

import jax.numpy as jnp
import numpyro.distributions as dist
from flax import struct
from multipledispatch import Dispatcher

from ..config import FlowType
from ..core import ConfigurationError, as_batch

# ---------------------------------------------------------------------------
# Variant dispatch: parameter struct type -> forward map,
# spec type -> parameter layout
# ---------------------------------------------------------------------------

flow_forward = Dispatcher("flow_forward")
flow_layout = Dispatcher("flow_layout")


def check_theta(theta, size: int, name: str) -> jnp.ndarray:
    """Return ``theta`` as a 1-D array of exactly ``size`` entries.

    Only the static shape is inspected, so this is safe under ``jax.jit``.
    """
    theta = jnp.asarray(theta)
    if not jnp.issubdtype(theta.dtype, jnp.floating):
        theta = theta.astype(jnp.result_type(float))
    if theta.ndim != 1 or theta.shape[0] != size:
        raise ConfigurationError(
            f"{name} flow expects theta of length {size}, "
            f"got shape {tuple(theta.shape)}"
        )
    return theta


# ===========================================================================
# Samples
# ===========================================================================


@struct.dataclass
class FlowSample:
    """Draws from a flow.

    Attributes
    ----------
    z0 : jnp.ndarray
        Base samples, shape ``(n, d)``.
    zK : jnp.ndarray
        Transformed samples, shape ``(n, d)``.
    logq : jnp.ndarray
        Log-density of each transformed sample under the flow, shape
        ``(n,)``.
    """

    z0: jnp.ndarray
    zK: jnp.ndarray
    logq: jnp.ndarray


# ===========================================================================
# FlowModel
# ===========================================================================


@struct.dataclass
class FlowModel:
    """An invertible, density-tracking transform of a standard Gaussian.

    Instances are immutable pytrees: the specification is static metadata
    and the parameter struct holds the arrays. Fitting builds new instances
    rather than updating existing ones. Use
    :func:`~rareflow.flows.make_flow` to construct one.

    Parameters
    ----------
    spec : FlowSpec
        Structural specification (variant tag, dimension, number of
        steps or bins).
    params : Any
        Variant-specific parameter struct (``PlanarParams``,
        ``RadialParams``, ``AutoregressiveParams`` or ``SplineParams``).

    Examples
    --------
    >>> flow = make_flow("maf", dim=2, n_steps=2)
    >>> sample = flow.sampleq(jax.random.PRNGKey(0), 128)
    >>> zK, logq = flow.logq(sample.z0)
    """

    spec: Any = struct.field(pytree_node=False)
    params: Any

    # --------------------------------------------------------------------------

    @property
    def flow_type(self) -> FlowType:
        return self.spec.flow_type

    @property
    def dim(self) -> int:
        return self.spec.dim

    @property
    def trainable(self) -> bool:
        return self.flow_type.trainable

    @property
    def layout(self):
        return flow_layout(self.spec)

    @property
    def theta(self) -> jnp.ndarray:
        """Flat parameter vector in the layout's packing order."""
        return self.layout.pack(self.params)

    @property
    def base_distribution(self) -> dist.Distribution:
        """Standard normal base with ``dim`` event dimensions."""
        return dist.Normal(jnp.zeros(self.dim), 1.0).to_event(1)

    # --------------------------------------------------------------------------

    def applyflow(self, z0) -> jnp.ndarray:
        """Apply the forward map only.

        Parameters
        ----------
        z0 : array_like
            Base samples, shape ``(n, d)``.

        Returns
        -------
        jnp.ndarray
            Transformed samples, shape ``(n, d)``.
        """
        zK, _ = flow_forward(self.params, as_batch(z0, self.dim))
        return zK

    # --------------------------------------------------------------------------

    def logq(self, z0):
        """Push base samples forward and track their log-density.

        Parameters
        ----------
        z0 : array_like
            Base samples, shape ``(n, d)``.

        Returns
        -------
        zK : jnp.ndarray
            Transformed samples, shape ``(n, d)``.
        logq : jnp.ndarray
            ``log N(z0) - log|det J(z0)|``, shape ``(n,)``.
        """
        z0 = as_batch(z0, self.dim)
        zK, log_det = flow_forward(self.params, z0)
        return zK, self.base_distribution.log_prob(z0) - log_det

    # --------------------------------------------------------------------------

    def sampleq(self, rng_key, n: int = 1) -> FlowSample:
        """Draw ``n`` base samples and transform them.

        Parameters
        ----------
        rng_key : jax.Array
            PRNG key.
        n : int, default=1
            Number of draws.

        Returns
        -------
        FlowSample
            Base draws, transformed draws and their log-densities.
        """
        if n < 1:
            raise ConfigurationError(f"n must be >= 1, got {n}")
        z0 = self.base_distribution.sample(rng_key, (n,))
        zK, logq = self.logq(z0)
        return FlowSample(z0=z0, zK=zK, logq=logq)


# ===========================================================================
# Layout of fixed (non-trainable) variants
# ===========================================================================


@dataclass(frozen=True)
class ScalarLayout:
    """Layout of a fixed-variant flow: one named scalar per entry."""

    name: str
    names: Tuple[str, ...]
    params_cls: type

    @property
    def size(self) -> int:
        return len(self.names)

    def unpack(self, theta):
        theta = check_theta(theta, self.size, self.name)
        return self.params_cls(
            **{key: theta[i] for i, key in enumerate(self.names)}
        )

    def pack(self, params) -> jnp.ndarray:
        return jnp.stack([getattr(params, key) for key in self.names])
