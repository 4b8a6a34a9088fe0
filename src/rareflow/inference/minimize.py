"""
Pluggable minimisers for the variational fitter.

The fitter only needs a black box that minimises a scalar function of a flat
parameter vector and reports a status code. ``ScipyMinimizer`` provides one
on top of :func:`scipy.optimize.minimize`, with gradients obtained by finite
differences. Any callable with the same signature can be passed instead,
e.g. a stub in tests.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import numpy as np
from rich.progress import (
    Progress,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeRemainingColumn,
    MofNCompleteColumn,
)
from scipy.optimize import minimize

logger = logging.getLogger(__name__)


@dataclass
class MinimizeResult:
    """Outcome of a minimiser run.

    Attributes
    ----------
    params : np.ndarray
        Final parameter vector.
    value : float
        Objective value at ``params``.
    status : int
        Convergence code; ``0`` means converged. Any other value is
        backend-specific and reported unchanged.
    message : str
        Human-readable termination reason.
    n_iterations : int
        Number of iterations performed.
    """

    params: np.ndarray
    value: float
    status: int
    message: str = ""
    n_iterations: int = 0


class Minimizer(Protocol):
    """Interface expected by :func:`~rareflow.inference.fit_flow_variational`."""

    def __call__(
        self,
        objective: Callable[[np.ndarray], float],
        initial: np.ndarray,
        options: Dict[str, Any],
    ) -> MinimizeResult: ...


# ------------------------------------------------------------------------------


class ScipyMinimizer:
    """Wrap :func:`scipy.optimize.minimize` with finite-difference gradients.

    Parameters
    ----------
    method : str, default="BFGS"
        Any gradient-free or quasi-Newton method accepted by scipy.

    Notes
    -----
    ``options`` is forwarded to scipy except for the ``progress`` key, which
    toggles a rich progress bar advanced once per iteration. The returned
    ``status`` is scipy's, unchanged: for BFGS ``1`` means the iteration
    limit was reached and ``2`` a loss of precision, which is common with
    noisy Monte Carlo objectives.
    """

    def __init__(self, method: str = "BFGS"):
        self.method = method

    def __call__(
        self,
        objective: Callable[[np.ndarray], float],
        initial: np.ndarray,
        options: Optional[Dict[str, Any]] = None,
    ) -> MinimizeResult:
        options = dict(options or {})
        progress = bool(options.pop("progress", False))

        progress_ctx = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            TextColumn("{task.fields[loss_info]}"),
            disable=not progress,
        )

        with progress_ctx as pbar:
            task = pbar.add_task(
                f"{self.method} optimization",
                total=options.get("maxiter"),
                loss_info="",
            )

            def callback(intermediate_result):
                pbar.update(
                    task,
                    advance=1,
                    loss_info=f"loss: {intermediate_result.fun:.4e}",
                )

            result = minimize(
                fun=lambda x: float(objective(x)),
                x0=np.asarray(initial, dtype=np.float64),
                method=self.method,
                callback=callback,
                options=options,
            )

        logger.debug(
            "%s finished after %s iterations with status %s",
            self.method,
            getattr(result, "nit", "?"),
            result.status,
        )
        return MinimizeResult(
            params=np.asarray(result.x),
            value=float(result.fun),
            status=int(result.status),
            message=str(result.message),
            n_iterations=int(getattr(result, "nit", 0)),
        )
