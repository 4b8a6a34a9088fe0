"""
Freidlin-Wentzell action solver.

Discrete action functional, fixed-budget gradient descent towards a
minimum-action path, and vectorised quasipotential landscapes.
"""

from .action import (
    PathResult,
    fw_action,
    fw_quasipotential,
    action_gradient_step,
    straight_line,
    as_drift,
)
from .landscape import LandscapeResult, quasipotential_landscape

__all__ = [
    "PathResult",
    "fw_action",
    "fw_quasipotential",
    "action_gradient_step",
    "straight_line",
    "as_drift",
    "LandscapeResult",
    "quasipotential_landscape",
]
