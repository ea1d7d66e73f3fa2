"""Tests for the PyMC model and inference."""

import numpy as np
import pandas as pd
import pytest

from mono_effects.config import ModelConfig
from mono_effects.data_utils import prepare_monotonic_data
from mono_effects.monotonic_model import build_model, describe_effects, parse_levels, run_inference
from mono_effects.synthetic_validation import generate_synthetic_data


def test_model_variables(prepared):
    model = build_model(prepared)

    free = {rv.name for rv in model.free_RVs}
    assert free == {'b_Intercept', 'b_age', 'b_income', 'simplex_income', 'sigma'}
    assert [rv.name for rv in model.observed_RVs] == ['obs']


def test_model_log_probability_is_finite(prepared):
    model = build_model(prepared)
    logp = model.compile_logp()(model.initial_point())
    assert np.isfinite(logp)


def test_model_without_intercept(prepared):
    data = prepare_monotonic_data(pd.DataFrame({
        'y': [1.0, 2.0, 3.0, 3.5],
        'stage': [1, 2, 3, 3],
    }), 'y ~ 0 + mo(stage)')
    model = build_model(data)
    assert {rv.name for rv in model.free_RVs} == {'b_stage', 'simplex_stage', 'sigma'}


def test_two_categories_use_fixed_simplex():
    data = prepare_monotonic_data(pd.DataFrame({
        'y': [1.0, 2.0, 1.5, 2.5],
        'treated': [1, 2, 1, 2],
    }), 'y ~ mo(treated)')
    model = build_model(data)

    assert 'simplex_treated' not in {rv.name for rv in model.free_RVs}
    assert 'simplex_treated' in {var.name for var in model.deterministics}


def test_custom_dirichlet_prior_is_validated(prepared):
    with pytest.raises(ValueError, match="length 3"):
        build_model(prepared, ModelConfig(dirichlet={'income': [1.0]}))


def test_model_requires_response(prepared):
    with pytest.raises(ValueError, match="Response"):
        build_model(dict(prepared, y=None))


def test_invalid_prior_scale():
    with pytest.raises(ValueError, match="sd_prior_b must be positive"):
        ModelConfig(sd_prior_b=0)


def test_parse_levels():
    assert parse_levels(['income=low, mid,high']) == {'income': ['low', 'mid', 'high']}
    with pytest.raises(ValueError, match="name=a,b,c"):
        parse_levels(['income'])


@pytest.mark.slow
def test_run_inference_recovers_monotonic_effect():
    df = generate_synthetic_data(n_obs=150, seed=7)
    data = prepare_monotonic_data(df, 'ls ~ age + mo(income)')

    fit = run_inference(data, n_samples=300, n_tune=300, chains=2,
                        random_seed=7, progressbar=False)

    assert fit.nsamples() == 600
    assert fit.nchains() == 2
    assert fit.fixef().loc['income', 'Estimate'] == pytest.approx(10.0, abs=2.0)

    effects = describe_effects(fit)
    assert effects.loc[0, 'direction'] == 'increasing'
    assert len(effects.loc[0, 'simplex_mean']) == 3
    assert sum(effects.loc[0, 'simplex_mean']) == pytest.approx(1.0)

    prior = fit.prior_samples()
    assert len(prior) == 300
    assert prior['b_income'].std() > fit.draws['b_income'].std()
