"""Tests for Stan code and data generation."""

import numpy as np
import pytest

from mono_effects.config import ModelConfig
from mono_effects.stan_code import make_stancode, make_standata


def test_stancode_declares_monotonic_parameters():
    code = make_stancode('ls ~ age + mo(income)')

    assert 'real mono_effect(vector scale, int i)' in code
    assert 'simplex[Jmo[1] - 1] simplex_1;  // income' in code
    assert 'vector[Kmo] bmo;' in code
    assert 'real Intercept;' in code
    assert 'simplex_1 ~ dirichlet(con_simplex_1);' in code
    assert 'mu[n] += bmo[1] * mono_effect(simplex_1, Xmo_1[n]);' in code
    assert 'generated quantities' in code


def test_stancode_blocks_in_order():
    code = make_stancode('y ~ mo(a) + mo(b)')
    positions = [code.index(block) for block in
                 ('functions {', 'data {', 'parameters {', 'model {', 'generated quantities {')]
    assert positions == sorted(positions)
    assert 'Xmo_2' in code and 'simplex_2' in code


def test_stancode_without_intercept():
    code = make_stancode('y ~ 0 + mo(x)')
    assert 'Intercept' not in code
    assert 'vector[N] mu = X * b;' in code


def test_stancode_uses_prior_scales():
    code = make_stancode('y ~ mo(x)', ModelConfig(sd_prior_bmo=2.5))
    assert 'bmo ~ normal(0, 2.5);' in code


def test_standata_matches_program(prepared):
    standata = make_standata(prepared)

    assert list(standata) == ['N', 'Y', 'K', 'X', 'Kmo', 'Jmo',
                              'Xmo_1', 'con_simplex_1', 'prior_only']
    assert standata['N'] == prepared['n_observations']
    assert standata['K'] == 1
    assert standata['Kmo'] == 1
    assert standata['Jmo'] == [4]
    np.testing.assert_array_equal(standata['Xmo_1'], prepared['ranks']['income'])
    np.testing.assert_array_equal(standata['con_simplex_1'], np.ones(3))
    assert standata['prior_only'] == 0


def test_standata_custom_dirichlet(prepared):
    config = ModelConfig(dirichlet={'income': [3, 2, 1]})
    standata = make_standata(prepared, config, prior_only=True)
    np.testing.assert_array_equal(standata['con_simplex_1'], [3.0, 2.0, 1.0])
    assert standata['prior_only'] == 1


def test_standata_rejects_bad_dirichlet(prepared):
    with pytest.raises(ValueError, match="length 3"):
        make_standata(prepared, ModelConfig(dirichlet={'income': [1, 1]}))


def test_standata_requires_response(prepared):
    data = dict(prepared, y=None)
    with pytest.raises(ValueError, match="response"):
        make_standata(data)
