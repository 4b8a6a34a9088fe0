"""
Normalizing flows for rareflow.

Small, hand-differentiated flows that push a standard Gaussian forward while
tracking the exact log-density of the result. Each variant is a parameter
struct plus a forward map registered on the ``flow_forward`` dispatcher.

Flow Types
----------
Planar
    1-D ``z + u tanh(w z + b)``; fixed scalars.
Radial
    1-D contraction/expansion around a reference point; fixed scalars.
Autoregressive
    K triangular affine steps in d dimensions; trainable.
Spline
    Per-dimension monotone piecewise-linear spline in sigmoid space;
    trainable.

Examples
--------
>>> from rareflow.flows import make_flow
>>> import jax
>>>
>>> flow = make_flow("spline", dim=2, n_bins=8)
>>> sample = flow.sampleq(jax.random.PRNGKey(0), 256)
>>> zK, logq = flow.logq(sample.z0)
"""

# Value types and variant dispatchers.
from .base import FlowModel, FlowSample, ScalarLayout, flow_forward, flow_layout

# Variants; importing registers their forward maps and layouts.
from .planar import PlanarParams, PLANAR_LAYOUT
from .radial import RadialParams, RADIAL_LAYOUT
from .autoregressive import AutoregressiveParams, AutoregressiveLayout
from .spline import SplineParams, SplineLayout, spline_map

# Unified constructor.
from .factory import make_flow

__all__ = [
    "FlowModel",
    "FlowSample",
    "make_flow",
    # Dispatchers
    "flow_forward",
    "flow_layout",
    # Parameter structs
    "PlanarParams",
    "RadialParams",
    "AutoregressiveParams",
    "SplineParams",
    # Layouts
    "ScalarLayout",
    "PLANAR_LAYOUT",
    "RADIAL_LAYOUT",
    "AutoregressiveLayout",
    "SplineLayout",
    # Spline primitive
    "spline_map",
]
