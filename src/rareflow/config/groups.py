"""
Configuration groups for flows, variational fitting and path optimisation.

Every record is a frozen pydantic model: defaults are documented on the field
and resolved once when the record is built, and unknown keys are rejected.
Use :func:`build_config` to merge keyword overrides into a record; it turns
pydantic's ``ValidationError`` into :class:`~rareflow.core.ConfigurationError`
so callers see a single error kind for bad settings.
"""

from typing import Any, Dict, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core import ConfigurationError
from .enums import FlowType

# ==============================================================================
# Flow specifications
# ==============================================================================


class PlanarSpec(BaseModel):
    """Fixed scalars of the 1-D planar flow ``z + u tanh(w z + b)``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    flow_type: Literal[FlowType.PLANAR] = FlowType.PLANAR
    u: float = Field(0.05, description="Deformation magnitude")
    w: float = Field(0.05, description="Activation slope")
    b: float = Field(0.0, description="Activation bias")

    @property
    def dim(self) -> int:
        return 1


# ------------------------------------------------------------------------------


class RadialSpec(BaseModel):
    """Fixed scalars of the 1-D radial flow around ``z_ref``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    flow_type: Literal[FlowType.RADIAL] = FlowType.RADIAL
    z_ref: float = Field(0.0, description="Reference point")
    alpha: float = Field(1.0, gt=0, description="Denominator offset")
    beta: float = Field(0.05, description="Deformation strength")

    @property
    def dim(self) -> int:
        return 1


# ------------------------------------------------------------------------------


class AutoregressiveSpec(BaseModel):
    """Structure of the triangular affine autoregressive flow."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    flow_type: Literal[FlowType.AUTOREGRESSIVE] = FlowType.AUTOREGRESSIVE
    dim: int = Field(3, ge=1, description="Latent dimension d")
    n_steps: int = Field(2, ge=1, description="Number of sequential steps K")
    init_scale: float = Field(
        0.05, gt=0, description="Std. dev. of random theta initialisation"
    )


# ------------------------------------------------------------------------------


class SplineSpec(BaseModel):
    """Structure of the per-dimension piecewise-linear spline flow."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    flow_type: Literal[FlowType.SPLINE] = FlowType.SPLINE
    dim: int = Field(2, ge=1, description="Latent dimension d")
    n_bins: int = Field(8, ge=1, description="Number of bins K per dimension")
    init_scale: float = Field(
        0.05, gt=0, description="Std. dev. of random theta initialisation"
    )


FlowSpec = Union[PlanarSpec, RadialSpec, AutoregressiveSpec, SplineSpec]

_SPEC_CLASSES: Dict[FlowType, Type[BaseModel]] = {
    FlowType.PLANAR: PlanarSpec,
    FlowType.RADIAL: RadialSpec,
    FlowType.AUTOREGRESSIVE: AutoregressiveSpec,
    FlowType.SPLINE: SplineSpec,
}


# ==============================================================================
# Variational fitting configuration
# ==============================================================================


class FitConfig(BaseModel):
    """Settings for :func:`~rareflow.inference.fit_flow_variational`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    n_mc: int = Field(
        256, gt=0, description="Monte Carlo draws per ELBO estimate"
    )
    max_iter: int = Field(
        300, gt=0, description="Iteration cap handed to the minimizer"
    )
    seed: int = Field(42, description="Seed used when no rng_key is given")
    optimizer_options: Optional[Dict[str, Any]] = Field(
        None, description="Extra options forwarded to the minimizer"
    )
    progress: bool = Field(
        False, description="Show a progress bar while minimizing"
    )


# ==============================================================================
# Path optimisation configuration
# ==============================================================================


class PathConfig(BaseModel):
    """Discretisation and descent budget for the action solver."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    n_points: int = Field(
        200, gt=2, description="Number of path points T (endpoints included)"
    )
    dt: float = Field(0.01, gt=0, description="Time step between points")
    n_iter: int = Field(
        200, ge=0, description="Number of gradient-descent iterations"
    )
    step_size: float = Field(0.1, description="Gradient-descent step size")


# ==============================================================================
# Builders
# ==============================================================================

_Config = TypeVar("_Config", bound=BaseModel)


def build_config(
    cls: Type[_Config],
    base: Optional[_Config] = None,
    **overrides: Any,
) -> _Config:
    """Build a validated config record from a base and keyword overrides.

    Overrides whose value is ``None`` are ignored, so callers can forward
    optional keyword arguments unchanged.

    Parameters
    ----------
    cls : type
        Config class to build.
    base : BaseModel, optional
        Existing record whose values are used where no override is given.
    **overrides
        Field values taking precedence over ``base``.

    Returns
    -------
    BaseModel
        A new, validated instance of ``cls``.

    Raises
    ------
    ConfigurationError
        If the merged values fail validation.
    """
    values: Dict[str, Any] = base.model_dump() if base is not None else {}
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return cls(**values)
    except ValidationError as e:
        raise ConfigurationError(
            f"invalid {cls.__name__}: {e}"
        ) from e


# ------------------------------------------------------------------------------


def flow_spec(
    flow_type: Union[str, FlowType, FlowSpec] = FlowType.AUTOREGRESSIVE,
    **kwargs: Any,
) -> FlowSpec:
    """Resolve a flow specification from a variant tag and structure kwargs.

    Parameters
    ----------
    flow_type : str, FlowType or FlowSpec
        Variant tag (``"planar"``, ``"radial"``, ``"autoregressive"`` /
        ``"maf"``, ``"spline"`` / ``"splinepwlin"``) or an existing spec.
        An existing spec is returned updated with ``kwargs``.
    **kwargs
        Spec fields, e.g. ``dim=2, n_steps=3`` or ``u=0.1``. ``None``
        values fall back to the documented defaults.

    Returns
    -------
    FlowSpec
        The validated specification.

    Examples
    --------
    >>> spec = flow_spec("maf", dim=2)
    >>> spec.n_steps
    2
    """
    if isinstance(flow_type, BaseModel):
        if all(v is None for v in kwargs.values()):
            return flow_type
        return build_config(type(flow_type), flow_type, **kwargs)
    try:
        tag = FlowType(flow_type)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown flow type '{flow_type}'. "
            f"Choose from: {[t.value for t in FlowType]}"
        ) from e
    return build_config(_SPEC_CLASSES[tag], **kwargs)
