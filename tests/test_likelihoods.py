"""
Tests for the toy categorical likelihoods.
"""

import pytest
import numpy.testing as npt
import jax
import jax.numpy as jnp

from rareflow.core import validate_pmf
from rareflow.likelihoods import (
    make_two_separator_likelihood,
    make_neuro_likelihood,
    make_bio_likelihood,
)


class TestTwoSeparator:
    @pytest.mark.parametrize("a", [0.0, 0.2, 0.3, 2.0])
    @pytest.mark.parametrize("eta", [-30.0, -1.0, 0.0, 0.5, 30.0])
    def test_is_a_pmf(self, a, eta):
        p = make_two_separator_likelihood(a)(jnp.array([eta, eta]))
        assert p.shape == (3,)
        assert jnp.all(p > 0)
        assert float(jnp.sum(p)) == pytest.approx(1.0, abs=1e-12)

    def test_known_values_at_origin(self):
        a = 0.3
        p = make_two_separator_likelihood(a)(jnp.zeros(3))
        upper = jax.nn.sigmoid(a)
        lower = jax.nn.sigmoid(-a)
        npt.assert_allclose(p, [1 - upper, upper - lower, lower], rtol=1e-12)

    def test_depends_on_mean(self):
        px = make_two_separator_likelihood(0.3)
        npt.assert_allclose(px(jnp.array([1.0, -1.0])), px(jnp.zeros(2)))

    def test_large_mean_favours_high_category(self):
        px = make_two_separator_likelihood(0.3)
        assert jnp.argmax(px(jnp.array([5.0]))) == 2
        assert jnp.argmax(px(jnp.array([-5.0]))) == 0

    def test_outer_categories_follow_ordered_logistic(self):
        a, eta = 0.3, 0.8
        p = make_two_separator_likelihood(a)(jnp.array([eta]))
        npt.assert_allclose(p[0], 1 - jax.nn.sigmoid(eta + a), rtol=1e-12)
        npt.assert_allclose(p[2], jax.nn.sigmoid(eta - a), rtol=1e-12)
        etas = jnp.linspace(-3.0, 3.0, 13)[:, None]
        out = jax.vmap(make_two_separator_likelihood(a))(etas)
        assert jnp.all(jnp.diff(out[:, 0]) < 0)
        assert jnp.all(jnp.diff(out[:, 2]) > 0)

    def test_vectorises_over_draws(self):
        px = make_neuro_likelihood()
        z = jax.random.normal(jax.random.PRNGKey(0), (7, 2))
        out = jax.vmap(px)(z)
        assert out.shape == (7, 3)
        npt.assert_allclose(out.sum(-1), 1.0)

    def test_presets_pass_pmf_check(self):
        validate_pmf(make_neuro_likelihood(), dim=3, n_categories=3)
        validate_pmf(make_bio_likelihood(), dim=1, n_categories=3)

    def test_presets(self):
        z = jnp.array([0.4])
        npt.assert_allclose(
            make_neuro_likelihood()(z), make_two_separator_likelihood(0.3)(z)
        )
        npt.assert_allclose(
            make_bio_likelihood()(z), make_two_separator_likelihood(0.2)(z)
        )
