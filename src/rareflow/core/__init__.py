"""
Core shared components for rareflow.

Validation helpers and the error type used across flows, variational
fitting and path optimisation.
"""

from .validation import (
    ConfigurationError,
    OBSERVED_TOLERANCE,
    PMF_TOLERANCE,
    PROB_FLOOR,
    validate_probability_vector,
    validate_pmf,
    validate_states,
    as_batch,
    as_point,
    exact_float,
)

__all__ = [
    "ConfigurationError",
    "OBSERVED_TOLERANCE",
    "PMF_TOLERANCE",
    "PROB_FLOOR",
    "validate_probability_vector",
    "validate_pmf",
    "validate_states",
    "as_batch",
    "as_point",
    "exact_float",
]
