"""
One-dimensional radial flow.

    zK = z0 + beta / (alpha + |z0 - z_ref|) (z0 - z_ref)

Contracts or expands the line around ``z_ref``. ``alpha > 0`` keeps the
denominator away from zero. Like the planar flow, the three scalars are
fixed.
"""

import jax.numpy as jnp
from flax import struct

from ..config import RadialSpec
from .base import ScalarLayout, flow_forward, flow_layout


@struct.dataclass
class RadialParams:
    z_ref: jnp.ndarray
    alpha: jnp.ndarray
    beta: jnp.ndarray


RADIAL_LAYOUT = ScalarLayout(
    "radial", ("z_ref", "alpha", "beta"), RadialParams
)


@flow_layout.register(RadialSpec)
def _radial_layout(spec):
    return RADIAL_LAYOUT


# ---------------------------------------------------------------------------


@flow_forward.register(RadialParams, object)
def _radial_forward(params, z0):
    diff = z0 - params.z_ref
    r = jnp.abs(diff)
    h = params.beta / (params.alpha + r)
    zK = z0 + h * diff
    # d/dz [h (z - z_ref)] = h + (z - z_ref) h',
    # h' = -beta sign(z - z_ref) / (alpha + r)^2
    deriv = 1.0 + h - r * params.beta / (params.alpha + r) ** 2
    log_det = jnp.log(jnp.abs(deriv))
    return zK, jnp.sum(log_det, axis=-1)
