"""
rareflow: rare-event inference with normalizing flows.

Flow-based variational posteriors for observed categorical distributions,
Sanov and Girsanov tilts, and Freidlin-Wentzell minimum-action paths for
small-noise diffusions.
"""

from .core import ConfigurationError
from .config import FlowType, FitConfig, PathConfig, flow_spec

from .flows import FlowModel, FlowSample, make_flow
from .inference import (
    FitResult,
    MinimizeResult,
    ScipyMinimizer,
    elbo_flow,
    fit_flow_variational,
    fit_flow_girsanov,
    fit_flow_fw,
)
from .paths import (
    PathResult,
    LandscapeResult,
    fw_action,
    fw_quasipotential,
    action_gradient_step,
    quasipotential_landscape,
)
from .stats import kl_div, sanov_prob, girsanov_logratio
from .likelihoods import (
    make_two_separator_likelihood,
    make_neuro_likelihood,
    make_bio_likelihood,
)

from . import flows, inference, paths, stats

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    # Configuration
    "FlowType",
    "FitConfig",
    "PathConfig",
    "flow_spec",
    # Flows
    "FlowModel",
    "FlowSample",
    "make_flow",
    # Variational fitting
    "FitResult",
    "MinimizeResult",
    "ScipyMinimizer",
    "elbo_flow",
    "fit_flow_variational",
    "fit_flow_girsanov",
    "fit_flow_fw",
    # Action paths
    "PathResult",
    "LandscapeResult",
    "fw_action",
    "fw_quasipotential",
    "action_gradient_step",
    "quasipotential_landscape",
    # Statistics
    "kl_div",
    "sanov_prob",
    "girsanov_logratio",
    # Likelihoods
    "make_two_separator_likelihood",
    "make_neuro_likelihood",
    "make_bio_likelihood",
    # Submodules
    "flows",
    "inference",
    "paths",
    "stats",
]
