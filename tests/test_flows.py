"""
Tests for the normalizing flows module.

Tests cover:
- Change-of-variables identity against ``jax.jacfwd`` Jacobians
- Consistency between ``sampleq`` and ``logq``
- Normalisation (quadrature in 1-D, importance sampling in d-D)
- Parameter layouts and theta length validation
- Autoregressive triangularity
- Spline clamping at extreme inputs
"""

import pytest
import numpy as np
import numpy.testing as npt
import jax
import jax.numpy as jnp

from rareflow.core import ConfigurationError
from rareflow.config import FlowType, AutoregressiveSpec
from rareflow.flows import (
    FlowModel,
    FlowSample,
    make_flow,
    flow_layout,
    AutoregressiveLayout,
    SplineLayout,
    AutoregressiveParams,
    SplineParams,
    spline_map,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rng():
    return jax.random.PRNGKey(42)


def _random_theta(key, size, scale=0.5):
    return scale * jax.random.normal(key, (size,))


@pytest.fixture(scope="session")
def flows(rng):
    """One representative flow per variant with non-trivial parameters."""
    k1, k2 = jax.random.split(rng)
    maf_size = flow_layout(AutoregressiveSpec(dim=3, n_steps=2)).size
    return {
        "planar": make_flow("planar", u=0.7, w=1.3, b=-0.2),
        "radial": make_flow("radial", z_ref=0.4, alpha=0.8, beta=0.6),
        "autoregressive": make_flow(
            "autoregressive",
            dim=3,
            n_steps=2,
            theta=_random_theta(k1, maf_size),
        ),
        "spline": make_flow(
            "spline", dim=2, n_bins=6, theta=_random_theta(k2, 2 * 6 * 2)
        ),
    }


def _jacobian_log_det(flow, z0):
    """log|det J| of the forward map at each row of ``z0`` via jacfwd."""

    def single(z):
        return flow.applyflow(z[None, :])[0]

    jac = jax.vmap(jax.jacfwd(single))(z0)
    _, log_det = jnp.linalg.slogdet(jac)
    return log_det


# ---------------------------------------------------------------------------
# Change of variables
# ---------------------------------------------------------------------------


class TestChangeOfVariables:
    """logq = log N(z0) - log|det J(z0)| for every variant."""

    @pytest.mark.parametrize(
        "name", ["planar", "radial", "autoregressive", "spline"]
    )
    def test_log_det_matches_jacfwd(self, flows, name):
        flow = flows[name]
        z0 = jax.random.normal(jax.random.PRNGKey(3), (32, flow.dim))
        _, logq = flow.logq(z0)
        implied = flow.base_distribution.log_prob(z0) - logq
        npt.assert_allclose(implied, _jacobian_log_det(flow, z0), atol=1e-8)

    @pytest.mark.parametrize(
        "name", ["planar", "radial", "autoregressive", "spline"]
    )
    def test_sampleq_matches_logq(self, flows, name):
        flow = flows[name]
        sample = flow.sampleq(jax.random.PRNGKey(7), 64)
        assert isinstance(sample, FlowSample)
        assert sample.z0.shape == (64, flow.dim)
        assert sample.zK.shape == (64, flow.dim)
        assert sample.logq.shape == (64,)
        zK, logq = flow.logq(sample.z0)
        npt.assert_allclose(zK, sample.zK)
        npt.assert_allclose(logq, sample.logq)

    def test_applyflow_matches_logq(self, flows):
        flow = flows["autoregressive"]
        z0 = jax.random.normal(jax.random.PRNGKey(1), (5, 3))
        npt.assert_allclose(flow.applyflow(z0), flow.logq(z0)[0])

    def test_base_log_density_is_standard_normal(self, flows):
        flow = flows["spline"]
        z0 = jnp.array([[0.3, -1.2]])
        expected = -jnp.log(2 * jnp.pi) - 0.5 * jnp.sum(z0**2)
        npt.assert_allclose(
            flow.base_distribution.log_prob(z0), [expected], rtol=1e-12
        )


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


class TestNormalisation:
    """exp(logq) integrates to one over the support."""

    @pytest.mark.parametrize("name", ["planar", "radial"])
    def test_one_dimensional_quadrature(self, flows, name):
        flow = flows[name]
        z0 = jnp.linspace(-10.0, 10.0, 20001)
        zK, logq = flow.logq(z0)
        zK = zK[:, 0]
        density = jnp.exp(logq)
        # Trapezoid rule on the (non-uniform) grid of transformed points
        mass = jnp.sum(0.5 * (density[1:] + density[:-1]) * jnp.diff(zK))
        assert float(mass) == pytest.approx(1.0, abs=1e-6)

    def test_one_dimensional_spline_quadrature(self):
        flow = make_flow(
            "spline",
            dim=1,
            n_bins=5,
            theta=_random_theta(jax.random.PRNGKey(11), 10),
        )
        z0 = jnp.linspace(-10.0, 10.0, 40001)
        zK, logq = flow.logq(z0)
        zK = zK[:, 0]
        density = jnp.exp(logq)
        mass = jnp.sum(0.5 * (density[1:] + density[:-1]) * jnp.diff(zK))
        assert float(mass) == pytest.approx(1.0, abs=1e-3)

    @pytest.mark.parametrize("name", ["autoregressive", "spline"])
    def test_importance_sampling(self, name):
        # E_q[N(zK) / q(zK)] = 1 only if q is a normalised density
        spec_kwargs = (
            {"dim": 3, "n_steps": 2} if name == "autoregressive"
            else {"dim": 2, "n_bins": 6}
        )
        flow = make_flow(
            name, rng_key=jax.random.PRNGKey(5), init_scale=0.1, **spec_kwargs
        )
        sample = flow.sampleq(jax.random.PRNGKey(9), 100_000)
        log_w = flow.base_distribution.log_prob(sample.zK) - sample.logq
        assert float(jnp.mean(jnp.exp(log_w))) == pytest.approx(1.0, abs=0.02)


# ---------------------------------------------------------------------------
# Autoregressive structure
# ---------------------------------------------------------------------------


class TestAutoregressive:
    """Triangular Jacobian and parameter layout."""

    def test_jacobian_is_lower_triangular(self, flows):
        flow = flows["autoregressive"]
        z = jnp.array([0.3, -0.8, 1.1])
        jac = jax.jacfwd(lambda x: flow.applyflow(x[None, :])[0])(z)
        npt.assert_array_equal(jnp.triu(jac, k=1), 0.0)

    def test_perturbing_later_dims_leaves_earlier_unchanged(self, flows):
        flow = flows["autoregressive"]
        z = jnp.array([[0.3, -0.8, 1.1]])
        bumped = z.at[0, 2].add(5.0)
        npt.assert_array_equal(
            flow.applyflow(z)[0, :2], flow.applyflow(bumped)[0, :2]
        )

    def test_layout_size(self):
        layout = AutoregressiveLayout(dim=3, n_steps=2)
        assert layout.n_lower == 3
        assert layout.per_step == 12
        assert layout.size == 2 * (2 * 3 + 3 * 2)

    def test_unpack_lower_triangular_row_major(self):
        layout = AutoregressiveLayout(dim=3, n_steps=1)
        theta = jnp.arange(layout.size, dtype=float)
        params = layout.unpack(theta)
        assert isinstance(params, AutoregressiveParams)
        # [bs(3) | Ls(3) | bt(3) | Lt(3)]
        npt.assert_array_equal(params.scale_bias[0], [0.0, 1.0, 2.0])
        expected_ls = jnp.array(
            [[0.0, 0.0, 0.0], [3.0, 0.0, 0.0], [4.0, 5.0, 0.0]]
        )
        npt.assert_array_equal(params.scale_weights[0], expected_ls)
        npt.assert_array_equal(params.shift_bias[0], [6.0, 7.0, 8.0])
        npt.assert_array_equal(layout.pack(params), theta)

    def test_zero_theta_is_identity(self):
        flow = make_flow("maf", dim=2, n_steps=3, theta=jnp.zeros(3 * 6))
        z0 = jax.random.normal(jax.random.PRNGKey(0), (10, 2))
        zK, logq = flow.logq(z0)
        npt.assert_allclose(zK, z0)
        npt.assert_allclose(logq, flow.base_distribution.log_prob(z0))

    def test_single_dimension(self):
        # d = 1 has no conditioning weights: [bs, bt] per step
        theta = jnp.array([0.5, 0.1, -0.3, 0.2])
        flow = make_flow("maf", dim=1, n_steps=2, theta=theta)
        z0 = jnp.array([0.0, 1.0, -2.0])
        zK = flow.applyflow(z0)
        assert zK.shape == (3, 1)


# ---------------------------------------------------------------------------
# Spline structure
# ---------------------------------------------------------------------------


class TestSpline:
    """Piecewise-linear spline primitive and clamping."""

    def test_uniform_bins_are_identity_on_unit_interval(self):
        u = jnp.array([[0.05, 0.5], [0.9, 0.33]])
        zeros = jnp.zeros((2, 4))
        y, slope = spline_map(u, zeros, zeros)
        npt.assert_allclose(y, u, atol=1e-12)
        npt.assert_allclose(slope, 1.0)

    def test_map_is_monotone(self):
        key_w, key_h = jax.random.split(jax.random.PRNGKey(2))
        wl = jax.random.normal(key_w, (1, 8))
        hl = jax.random.normal(key_h, (1, 8))
        u = jnp.linspace(1e-6, 1 - 1e-6, 1000)[:, None]
        y, slope = spline_map(u, wl, hl)
        assert jnp.all(jnp.diff(y[:, 0]) > 0)
        assert jnp.all(slope > 0)

    @pytest.mark.parametrize("value", [-60.0, 60.0, -1e4, 1e4])
    def test_extreme_inputs_stay_finite(self, flows, value):
        flow = flows["spline"]
        zK, logq = flow.logq(jnp.full((1, 2), value))
        assert jnp.all(jnp.isfinite(zK))
        assert jnp.all(jnp.isfinite(logq))

    def test_layout(self):
        layout = SplineLayout(dim=2, n_bins=3)
        assert layout.size == 12
        theta = jnp.arange(12, dtype=float)
        params = layout.unpack(theta)
        assert isinstance(params, SplineParams)
        npt.assert_array_equal(params.width_logits[1], [6.0, 7.0, 8.0])
        npt.assert_array_equal(params.height_logits[0], [3.0, 4.0, 5.0])
        npt.assert_array_equal(layout.pack(params), theta)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestMakeFlow:
    """Factory, aliases and validation."""

    def test_aliases(self):
        assert make_flow("maf").flow_type is FlowType.AUTOREGRESSIVE
        assert make_flow("SplinePWLin").flow_type is FlowType.SPLINE

    def test_defaults(self):
        maf = make_flow("maf")
        assert maf.dim == 3
        assert maf.theta.shape == (24,)
        spline = make_flow("spline")
        assert spline.dim == 2
        assert spline.theta.shape == (32,)

    def test_fixed_variants_use_spec_scalars(self):
        flow = make_flow("planar", u=0.1, w=0.2, b=0.3)
        assert not flow.trainable
        npt.assert_allclose(flow.theta, [0.1, 0.2, 0.3])

    def test_fixed_variant_theta(self):
        flow = make_flow("radial", theta=[0.0, 2.0, 0.1])
        assert flow.spec.alpha == 2.0
        npt.assert_allclose(flow.theta, [0.0, 2.0, 0.1])

    def test_default_initialisation_is_reproducible(self):
        a = make_flow("maf", dim=2, n_steps=1)
        b = make_flow("maf", dim=2, n_steps=1)
        npt.assert_array_equal(a.theta, b.theta)
        c = make_flow("maf", dim=2, n_steps=1, rng_key=jax.random.PRNGKey(1))
        assert not np.allclose(a.theta, c.theta)

    @pytest.mark.parametrize(
        "flow_type, kwargs, size",
        [
            ("planar", {}, 4),
            ("radial", {}, 2),
            ("maf", {"dim": 2, "n_steps": 1}, 5),
            ("spline", {"dim": 2, "n_bins": 3}, 13),
        ],
    )
    def test_theta_length_mismatch(self, flow_type, kwargs, size):
        with pytest.raises(ConfigurationError):
            make_flow(flow_type, theta=jnp.zeros(size), **kwargs)

    def test_non_positive_alpha(self):
        with pytest.raises(ConfigurationError):
            make_flow("radial", alpha=0.0)
        with pytest.raises(ConfigurationError):
            make_flow("radial", theta=[0.0, -1.0, 0.05])

    def test_unknown_flow_type(self):
        with pytest.raises(ConfigurationError, match="Unknown flow type"):
            make_flow("glow")

    def test_wrong_sample_dimension(self, flows):
        with pytest.raises(ConfigurationError):
            flows["spline"].logq(jnp.zeros((4, 3)))

    def test_sampleq_requires_positive_n(self, flows):
        with pytest.raises(ConfigurationError):
            flows["planar"].sampleq(jax.random.PRNGKey(0), 0)

    def test_flows_are_immutable(self, flows):
        flow = flows["planar"]
        with pytest.raises(Exception):
            flow.params = None

    def test_make_flow_under_jit(self):
        layout = AutoregressiveLayout(dim=2, n_steps=1)

        @jax.jit
        def push(theta, z0):
            return make_flow("maf", dim=2, n_steps=1, theta=theta).applyflow(z0)

        theta = 0.1 * jnp.ones(layout.size)
        z0 = jnp.ones((3, 2))
        expected = make_flow("maf", dim=2, n_steps=1, theta=theta).applyflow(z0)
        npt.assert_allclose(push(theta, z0), expected)

    def test_flow_model_is_pytree(self, flows):
        leaves = jax.tree_util.tree_leaves(flows["spline"])
        assert len(leaves) == 2
        assert isinstance(flows["spline"], FlowModel)
