"""
Enums for flow configuration.

``FlowType`` is the variant tag of the flow family. The trainable variants
are also accepted under their short names ``"maf"`` and ``"splinepwlin"``,
and matching is case-insensitive.
"""

from enum import Enum

# ==============================================================================
# Enums for flow configuration
# ==============================================================================


class FlowType(str, Enum):
    """Supported flow variants."""

    PLANAR = "planar"
    RADIAL = "radial"
    AUTOREGRESSIVE = "autoregressive"
    SPLINE = "spline"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.lower()
            aliases = {
                "maf": cls.AUTOREGRESSIVE,
                "splinepwlin": cls.SPLINE,
            }
            if key in aliases:
                return aliases[key]
            for member in cls:
                if member.value == key:
                    return member
        return None

    @property
    def trainable(self) -> bool:
        """Whether the variant carries optimisable parameters."""
        return self in (FlowType.AUTOREGRESSIVE, FlowType.SPLINE)
