"""
Monotone piecewise-linear spline flow.

Each dimension is transformed independently in sigmoid space:

    u  = sigmoid(z0)                  (clamped away from 0 and 1)
    y  = V_b + slope_b (u - U_b)      (piecewise-linear, K bins)
    zK = logit(y)

Bin widths and heights are softmax-normalised per dimension, so the knots
``U`` and ``V`` partition ``[0, 1]`` and every slope is positive. The
log-determinant of each dimension is

    log(slope_b) + log(u (1 - u)) - log(y (1 - y))

Parameter packing (per dimension, repeated ``d`` times)::

    [ width logits (K) | height logits (K) ]
"""

from dataclasses import dataclass
from typing import Dict

import jax
import jax.numpy as jnp
from flax import struct

from ..config import SplineSpec
from .base import check_theta, flow_forward, flow_layout

# Lower bound on the distance between the sigmoid input and {0, 1}; widened
# to the dtype's machine epsilon in single precision.
SPLINE_CLAMP = 1e-8


@struct.dataclass
class SplineParams:
    """Unnormalised bin widths and heights, each of shape ``(d, K)``."""

    width_logits: jnp.ndarray
    height_logits: jnp.ndarray


# ===========================================================================
# Layout
# ===========================================================================


@dataclass(frozen=True)
class SplineLayout:
    """Packing of per-dimension spline logits in a flat parameter vector."""

    dim: int
    n_bins: int

    @property
    def per_dim(self) -> int:
        return 2 * self.n_bins

    @property
    def size(self) -> int:
        return self.dim * self.per_dim

    @property
    def dim_slices(self) -> Dict[str, slice]:
        """Named slices into one dimension's block of ``2K`` entries."""
        K = self.n_bins
        return {
            "width_logits": slice(0, K),
            "height_logits": slice(K, 2 * K),
        }

    def unpack(self, theta) -> SplineParams:
        theta = check_theta(theta, self.size, "spline")
        blocks = theta.reshape(self.dim, self.per_dim)
        sl = self.dim_slices
        return SplineParams(
            width_logits=blocks[:, sl["width_logits"]],
            height_logits=blocks[:, sl["height_logits"]],
        )

    def pack(self, params: SplineParams) -> jnp.ndarray:
        return jnp.concatenate(
            [params.width_logits, params.height_logits], axis=-1
        ).reshape(-1)


@flow_layout.register(SplineSpec)
def _spline_layout(spec):
    return SplineLayout(dim=spec.dim, n_bins=spec.n_bins)


# ===========================================================================
# Forward map
# ===========================================================================


def _knots(logits: jnp.ndarray) -> jnp.ndarray:
    """Cumulative knot positions ``[0, c_1, ..., c_K]`` of shape (d, K+1)."""
    sizes = jax.nn.softmax(logits, axis=-1)
    zeros = jnp.zeros(sizes.shape[:-1] + (1,), dtype=sizes.dtype)
    return jnp.concatenate([zeros, jnp.cumsum(sizes, axis=-1)], axis=-1)


def _gather(arr, idx):
    """Gather along last axis using idx."""
    return jnp.take_along_axis(arr, idx[..., None], axis=-1).squeeze(-1)


def spline_map(u, width_logits, height_logits):
    """Monotone piecewise-linear map of ``[0, 1]`` onto itself.

    Parameters
    ----------
    u : jnp.ndarray
        Inputs in ``(0, 1)``, shape ``(n, d)``.
    width_logits, height_logits : jnp.ndarray
        Unnormalised bin sizes, shape ``(d, K)``.

    Returns
    -------
    y : jnp.ndarray
        Mapped values, shape ``(n, d)``.
    slope : jnp.ndarray
        Slope of the active bin for each entry, shape ``(n, d)``.
    """
    knots_u = _knots(width_logits)
    knots_v = _knots(height_logits)
    n_bins = width_logits.shape[-1]

    # Bin lookup: number of knots <= u, minus one; the last knot may sit
    # slightly below 1 after the cumulative sum, so clip into range.
    bin_idx = jnp.sum(u[..., None] >= knots_u, axis=-1) - 1
    bin_idx = jnp.clip(bin_idx, 0, n_bins - 1)

    shape = u.shape + (n_bins + 1,)
    knots_u = jnp.broadcast_to(knots_u, shape)
    knots_v = jnp.broadcast_to(knots_v, shape)
    u_lo = _gather(knots_u, bin_idx)
    u_hi = _gather(knots_u, bin_idx + 1)
    v_lo = _gather(knots_v, bin_idx)
    v_hi = _gather(knots_v, bin_idx + 1)

    slope = (v_hi - v_lo) / (u_hi - u_lo)
    y = v_lo + slope * (u - u_lo)
    return y, slope


@flow_forward.register(SplineParams, object)
def _spline_forward(params, z0):
    eps = max(SPLINE_CLAMP, float(jnp.finfo(z0.dtype).eps))
    u = jnp.clip(jax.nn.sigmoid(z0), eps, 1.0 - eps)
    y, slope = spline_map(u, params.width_logits, params.height_logits)
    zK = jnp.log(y) - jnp.log1p(-y)
    log_deriv = (
        jnp.log(slope) + jnp.log(u) + jnp.log1p(-u) - jnp.log(y) - jnp.log1p(-y)
    )
    return zK, jnp.sum(log_deriv, axis=-1)
