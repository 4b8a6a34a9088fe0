"""
Variational inference with flow posteriors.

Monte Carlo ELBO estimation, pluggable minimisers, the generic fitter and
its rare-event wrappers.
"""

from .elbo import elbo_flow
from .minimize import MinimizeResult, Minimizer, ScipyMinimizer
from .fit import FitResult, fit_flow_variational
from .rare import fit_flow_girsanov, fit_flow_fw

__all__ = [
    # ELBO
    "elbo_flow",
    # Minimisers
    "MinimizeResult",
    "Minimizer",
    "ScipyMinimizer",
    # Fitting
    "FitResult",
    "fit_flow_variational",
    # Rare-event wrappers
    "fit_flow_girsanov",
    "fit_flow_fw",
]
