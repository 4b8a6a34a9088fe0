"""
Shared test fixtures and configuration for rareflow tests.
"""

import os

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--device",
        default="cpu",
        choices=["cpu", "gpu"],
        help="Device to run tests on: cpu or gpu",
    )


def pytest_configure(config):
    """Configure JAX device and precision before any imports happen."""
    device = config.getoption("--device")
    if device == "cpu":
        os.environ["JAX_PLATFORM_NAME"] = "cpu"
    else:
        # Remove the environment variable to allow JAX to use GPU
        if "JAX_PLATFORM_NAME" in os.environ:
            del os.environ["JAX_PLATFORM_NAME"]

    # Known values and Jacobian identities are checked in double precision
    import jax

    jax.config.update("jax_enable_x64", True)


@pytest.fixture(scope="session")
def device_type(request):
    return request.config.getoption("--device")


@pytest.fixture(scope="session")
def rng_key():
    """Provide a consistent random key for tests."""
    # Import JAX here to ensure environment is configured first
    from jax import random

    return random.PRNGKey(42)

