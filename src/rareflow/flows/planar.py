"""
One-dimensional planar flow.

    zK = z0 + u tanh(w z0 + b)

The three scalars are fixed; the flow has no trainable parameters and is
used as a lightweight, analytically tractable posterior. The map is
invertible when ``u w > -1``.
"""

import jax.numpy as jnp
from flax import struct

from ..config import PlanarSpec
from .base import ScalarLayout, flow_forward, flow_layout


@struct.dataclass
class PlanarParams:
    u: jnp.ndarray
    w: jnp.ndarray
    b: jnp.ndarray


PLANAR_LAYOUT = ScalarLayout("planar", ("u", "w", "b"), PlanarParams)


@flow_layout.register(PlanarSpec)
def _planar_layout(spec):
    return PLANAR_LAYOUT


# ---------------------------------------------------------------------------


@flow_forward.register(PlanarParams, object)
def _planar_forward(params, z0):
    h = jnp.tanh(params.w * z0 + params.b)
    zK = z0 + params.u * h
    # d/dz tanh(w z + b) = w (1 - tanh^2)
    psi = (1.0 - h**2) * params.w
    log_det = jnp.log(jnp.abs(1.0 + params.u * psi))
    return zK, jnp.sum(log_det, axis=-1)
