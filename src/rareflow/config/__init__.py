"""
Configuration system for rareflow.

Uses Pydantic for validation and enums for type safety. All configs are
immutable.
"""

from .enums import FlowType
from .groups import (
    PlanarSpec,
    RadialSpec,
    AutoregressiveSpec,
    SplineSpec,
    FlowSpec,
    FitConfig,
    PathConfig,
    build_config,
    flow_spec,
)

__all__ = [
    "FlowType",
    # Flow specifications
    "PlanarSpec",
    "RadialSpec",
    "AutoregressiveSpec",
    "SplineSpec",
    "FlowSpec",
    # Run configuration
    "FitConfig",
    "PathConfig",
    # Builders
    "build_config",
    "flow_spec",
]
