"""Shared fixtures: synthetic income data and a fit built from known draws."""

import numpy as np
import pytest

from mono_effects.data_utils import prepare_monotonic_data
from mono_effects.posterior import MonotonicFit
from mono_effects.synthetic_validation import INCOME_LEVELS, generate_synthetic_data


FORMULA = 'ls ~ age + mo(income)'


@pytest.fixture
def income_levels():
    return list(INCOME_LEVELS)


@pytest.fixture
def income_df():
    return generate_synthetic_data(n_obs=60, seed=1)


@pytest.fixture
def prepared(income_df):
    return prepare_monotonic_data(income_df, FORMULA)


def make_draws(n_draws=100, seed=0, b_center=10.0):
    """Draws resembling a posterior for FORMULA, two chains stacked."""
    rng = np.random.default_rng(seed)
    return {
        'b_Intercept': 30 + 0.2 * rng.standard_normal(n_draws),
        'b_age': 0.5 + 0.02 * rng.standard_normal(n_draws),
        'b_income': b_center + 0.3 * rng.standard_normal(n_draws),
        'simplex_income': rng.dirichlet([70, 20, 10], size=n_draws),
        'sigma': 1 + 0.05 * np.abs(rng.standard_normal(n_draws)),
    }


def make_prior_draws(n_draws=400, seed=0):
    """Draws from the default ModelConfig priors for FORMULA."""
    rng = np.random.default_rng(seed)
    return {
        'b_Intercept': 100 * rng.standard_normal(n_draws),
        'b_age': 10 * rng.standard_normal(n_draws),
        'b_income': 10 * rng.standard_normal(n_draws),
        'simplex_income': rng.dirichlet([1, 1, 1], size=n_draws),
        'sigma': 10 * np.abs(rng.standard_normal(n_draws)),
    }


@pytest.fixture
def fake_fit(prepared):
    return MonotonicFit.from_arrays(prepared, make_draws(), n_chains=2)


@pytest.fixture
def fit_with_prior(prepared):
    return MonotonicFit.from_arrays(prepared, make_draws(), n_chains=2, prior=make_prior_draws())
