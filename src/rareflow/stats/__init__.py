"""Closed-form statistics for rare-event analysis."""

# Divergence functions
from .divergences import kl_div, sanov_prob

# Change of measure
from .girsanov import girsanov_logratio

__all__ = [
    # Divergences
    "kl_div",
    "sanov_prob",
    # Girsanov
    "girsanov_logratio",
]
