"""
Autoregressive affine flow.

Each of the ``K`` sequential steps transforms the dimensions in order,

    s_i = tanh(bs_i + sum_{j<i} Ls_ij y_j)
    t_i = bt_i + sum_{j<i} Lt_ij y_j
    y_i = exp(s_i) x_i + t_i

where ``y_{<i}`` are the already-transformed preceding dimensions of the
same step. The scale and shift of dimension ``i`` therefore depend only on
dimensions ``1..i-1``, so the Jacobian of every step is lower triangular
and its log-determinant is ``sum_i s_i``. The strictly lower triangular
weight matrices play the role of the binary masks in MADE-style
conditioners: an upper-triangular entry would silently break the density.

Parameter packing (per step, repeated ``K`` times)::

    [ bs (d) | Ls (d(d-1)/2) | bt (d) | Lt (d(d-1)/2) ]

with the lower-triangular entries stored row-major, i.e. in the order of
``numpy.tril_indices(d, -1)``.

References
----------
Papamakarios et al., "Masked Autoregressive Flow for Density Estimation",
    NeurIPS 2017.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
import jax.numpy as jnp
from flax import struct

from ..config import AutoregressiveSpec
from .base import check_theta, flow_forward, flow_layout


@struct.dataclass
class AutoregressiveParams:
    """Per-step conditioner weights, stacked along the leading axis.

    Attributes
    ----------
    scale_bias, shift_bias : jnp.ndarray
        Shape ``(K, d)``.
    scale_weights, shift_weights : jnp.ndarray
        Shape ``(K, d, d)``, zero on and above the diagonal.
    """

    scale_bias: jnp.ndarray
    scale_weights: jnp.ndarray
    shift_bias: jnp.ndarray
    shift_weights: jnp.ndarray


# ===========================================================================
# Layout
# ===========================================================================


@dataclass(frozen=True)
class AutoregressiveLayout:
    """Packing of ``K`` autoregressive steps in a flat parameter vector."""

    dim: int
    n_steps: int

    @property
    def n_lower(self) -> int:
        """Number of strictly lower-triangular entries of a d x d matrix."""
        return self.dim * (self.dim - 1) // 2

    @property
    def per_step(self) -> int:
        return 2 * self.dim + 2 * self.n_lower

    @property
    def size(self) -> int:
        return self.n_steps * self.per_step

    @property
    def step_slices(self) -> Dict[str, slice]:
        """Named slices into one step's block of ``per_step`` entries."""
        d, L = self.dim, self.n_lower
        return {
            "scale_bias": slice(0, d),
            "scale_weights": slice(d, d + L),
            "shift_bias": slice(d + L, 2 * d + L),
            "shift_weights": slice(2 * d + L, 2 * d + 2 * L),
        }

    def _lower_indices(self) -> Tuple[np.ndarray, np.ndarray]:
        return np.tril_indices(self.dim, -1)

    # --------------------------------------------------------------------------

    def unpack(self, theta) -> AutoregressiveParams:
        theta = check_theta(theta, self.size, "autoregressive")
        blocks = theta.reshape(self.n_steps, self.per_step)
        sl = self.step_slices
        rows, cols = self._lower_indices()

        def _lower(entries):
            mat = jnp.zeros(
                (self.n_steps, self.dim, self.dim), dtype=theta.dtype
            )
            return mat.at[:, rows, cols].set(entries)

        return AutoregressiveParams(
            scale_bias=blocks[:, sl["scale_bias"]],
            scale_weights=_lower(blocks[:, sl["scale_weights"]]),
            shift_bias=blocks[:, sl["shift_bias"]],
            shift_weights=_lower(blocks[:, sl["shift_weights"]]),
        )

    def pack(self, params: AutoregressiveParams) -> jnp.ndarray:
        rows, cols = self._lower_indices()
        blocks = jnp.concatenate(
            [
                params.scale_bias,
                params.scale_weights[:, rows, cols],
                params.shift_bias,
                params.shift_weights[:, rows, cols],
            ],
            axis=-1,
        )
        return blocks.reshape(-1)


@flow_layout.register(AutoregressiveSpec)
def _autoregressive_layout(spec):
    return AutoregressiveLayout(dim=spec.dim, n_steps=spec.n_steps)


# ===========================================================================
# Forward map
# ===========================================================================


def _step_forward(x, scale_bias, scale_weights, shift_bias, shift_weights):
    """Apply one autoregressive step to a ``(n, d)`` batch."""
    y = x
    log_det = jnp.zeros(x.shape[:-1], dtype=x.dtype)
    for i in range(x.shape[-1]):
        # Only the already-updated dimensions j < i condition dimension i
        prev = y[..., :i]
        s = jnp.tanh(scale_bias[i] + prev @ scale_weights[i, :i])
        t = shift_bias[i] + prev @ shift_weights[i, :i]
        y = y.at[..., i].set(jnp.exp(s) * y[..., i] + t)
        log_det = log_det + s
    return y, log_det


@flow_forward.register(AutoregressiveParams, object)
def _autoregressive_forward(params, z0):
    z = z0
    total_log_det = jnp.zeros(z0.shape[:-1], dtype=z0.dtype)
    for k in range(params.scale_bias.shape[0]):
        z, log_det = _step_forward(
            z,
            params.scale_bias[k],
            params.scale_weights[k],
            params.shift_bias[k],
            params.shift_weights[k],
        )
        total_log_det = total_log_det + log_det
    return z, total_log_det
