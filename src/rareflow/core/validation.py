"""
Input validation shared by the flow, inference and path modules.

All checks here run eagerly on concrete values at the public entry points.
Code that runs inside ``jax.jit`` only relies on static shapes and never
calls these helpers on traced values.
"""

from typing import Optional, Sequence

import numpy as np
import jax.numpy as jnp

# Tolerance on the total mass of caller-supplied observed distributions.
OBSERVED_TOLERANCE = 1e-8
# Looser tolerance for pmfs produced by likelihood callables, which may be
# computed in single precision.
PMF_TOLERANCE = 1e-6
# Floor applied to categorical probabilities before taking logarithms.
PROB_FLOOR = 1e-12

# ==============================================================================
# Error type
# ==============================================================================


class ConfigurationError(ValueError):
    """Raised when inputs or configuration values are invalid.

    Covers malformed probability vectors, parameter and dimension length
    mismatches, and out-of-range structural settings such as a non-positive
    time step. Subclasses ``ValueError`` so generic handlers keep working.
    """


# ==============================================================================
# Probability vectors
# ==============================================================================


def validate_probability_vector(
    values,
    name: str = "observed",
    tol: float = OBSERVED_TOLERANCE,
) -> np.ndarray:
    """Check that ``values`` is a finite, non-negative vector summing to one.

    Parameters
    ----------
    values : array_like
        Candidate probability vector.
    name : str, default="observed"
        Name used in error messages.
    tol : float, default=1e-8
        Allowed deviation of the total mass from one.

    Returns
    -------
    np.ndarray
        The vector as a float64 NumPy array.

    Raises
    ------
    ConfigurationError
        If the vector is not one-dimensional, is empty, holds negative or
        non-finite entries, or does not sum to one within ``tol``.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise ConfigurationError(
            f"{name} must be a non-empty 1-D probability vector, "
            f"got shape {arr.shape}"
        )
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} contains non-finite entries")
    if np.any(arr < 0):
        raise ConfigurationError(f"{name} contains negative entries")
    total = float(arr.sum())
    if abs(total - 1.0) > tol:
        raise ConfigurationError(
            f"{name} must sum to 1 (within {tol:g}), got {total!r}"
        )
    return arr


# ------------------------------------------------------------------------------


def validate_pmf(
    pxgivenz,
    dim: int,
    n_categories: int,
) -> None:
    """Evaluate a likelihood callable once at the origin of the latent space.

    Parameters
    ----------
    pxgivenz : callable
        Maps a latent vector of shape ``(dim,)`` to a categorical pmf.
    dim : int
        Latent dimensionality.
    n_categories : int
        Number of categories in the observed distribution.

    Raises
    ------
    ConfigurationError
        If ``pxgivenz`` is not callable, returns the wrong number of
        categories, or does not return a probability vector.
    """
    if not callable(pxgivenz):
        raise ConfigurationError("pxgivenz must be callable")
    pmf = np.asarray(pxgivenz(jnp.zeros(dim)), dtype=np.float64)
    pmf = np.atleast_1d(pmf)
    if pmf.shape != (n_categories,):
        raise ConfigurationError(
            f"pxgivenz returned shape {pmf.shape} but observed has "
            f"{n_categories} categories"
        )
    validate_probability_vector(pmf, name="pxgivenz(z)", tol=PMF_TOLERANCE)


# ==============================================================================
# Array shapes
# ==============================================================================


def as_batch(z0, dim: int) -> jnp.ndarray:
    """Coerce base samples to a ``(n, dim)`` batch.

    A 1-D input is read as ``n`` scalar samples when ``dim == 1`` and as a
    single sample otherwise.
    """
    z = jnp.asarray(z0)
    if not jnp.issubdtype(z.dtype, jnp.floating):
        z = z.astype(jnp.result_type(float))
    if z.ndim == 0:
        z = z.reshape(1, 1)
    elif z.ndim == 1:
        z = z.reshape(-1, 1) if dim == 1 else z.reshape(1, -1)
    if z.ndim != 2 or z.shape[-1] != dim:
        raise ConfigurationError(
            f"expected samples with trailing dimension {dim}, "
            f"got shape {tuple(z.shape)}"
        )
    return z


# ------------------------------------------------------------------------------


def exact_float(values, name: str) -> np.ndarray:
    """Cast ``values`` to the active JAX float dtype without rounding.

    Without ``jax_enable_x64`` JAX stores floats in single precision, which
    would silently move a point such as ``0.1``. Path endpoints are pinned
    exactly, so a lossy cast is rejected instead.

    Raises
    ------
    ConfigurationError
        If some entry is not exactly representable in the active dtype.
    """
    arr = np.asarray(values, dtype=np.float64)
    dtype = jnp.result_type(float)
    cast = arr.astype(dtype)
    if not np.array_equal(cast.astype(np.float64), arr, equal_nan=True):
        raise ConfigurationError(
            f"{name} is not exactly representable in "
            f"{np.dtype(dtype).name}; enable jax_enable_x64 for "
            f"double-precision points"
        )
    return cast


# ------------------------------------------------------------------------------


def as_point(x, name: str, dim: Optional[int] = None) -> jnp.ndarray:
    """Coerce a state-space point to a finite 1-D array."""
    arr = np.atleast_1d(np.asarray(x, dtype=np.float64))
    if arr.ndim != 1:
        raise ConfigurationError(
            f"{name} must be a point (1-D), got shape {arr.shape}"
        )
    if dim is not None and arr.shape[0] != dim:
        raise ConfigurationError(
            f"{name} has length {arr.shape[0]}, expected {dim}"
        )
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} contains non-finite entries")
    return jnp.asarray(exact_float(arr, name))


# ------------------------------------------------------------------------------


def validate_states(
    states: Optional[Sequence[str]], n_categories: int
) -> Optional[tuple]:
    """Check optional category names against the number of categories."""
    if states is None:
        return None
    states = tuple(states)
    if len(states) != n_categories:
        raise ConfigurationError(
            f"got {len(states)} state names for {n_categories} categories"
        )
    return states
