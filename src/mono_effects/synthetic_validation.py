"""
Synthetic validation of the monotonic effects model.

This script validates that the inference method recovers known parameters
of a monotonic effect. The income example uses four ordered categories:

    below_20 < 20_to_40 < 40_to_100 < greater_100

The validation:
1. Generates synthetic data with known b and simplex values
2. Runs Bayesian inference to recover parameters
3. Checks if true values fall within 95% credible intervals
"""

import numpy as np
import pandas as pd

from mono_effects.data_utils import prepare_monotonic_data
from mono_effects.monotonic_model import run_inference
from mono_effects.simplex import check_simplex, monotonic_contribution


INCOME_LEVELS = ['below_20', '20_to_40', '40_to_100', 'greater_100']


def generate_synthetic_data(n_obs=200, true_b=10.0, true_zeta=(0.7, 0.2, 0.1),
                            intercept=30.0, age_slope=0.5, noise_std=1.0,
                            levels=INCOME_LEVELS, seed=42):
    """
    Generate synthetic data with a known monotonic effect.

    Simulates ls = intercept + age_slope*age + b * sum(zeta[1..income]) + noise

    Args:
        n_obs: Number of observations
        true_b: True scale of the monotonic effect
        true_zeta: True simplex (length = number of levels - 1)
        intercept: True intercept
        age_slope: True coefficient of the centred age covariate
        noise_std: Observation noise standard deviation
        levels: Ordered income labels
        seed: Random seed

    Returns:
        DataFrame with columns ls, age and income (ordered categorical)
    """
    true_zeta = check_simplex(true_zeta)
    if len(true_zeta) != len(levels) - 1:
        raise ValueError(f"Need {len(levels) - 1} simplex elements for {len(levels)} levels")

    rng = np.random.default_rng(seed)
    ranks = rng.integers(1, len(levels) + 1, size=n_obs)
    age = rng.normal(0, 10, size=n_obs)

    mu = intercept + age_slope * age + monotonic_contribution(true_b, true_zeta, ranks)
    ls = mu + rng.normal(0, noise_std, size=n_obs)

    return pd.DataFrame({
        'ls': ls,
        'age': age,
        'income': pd.Categorical.from_codes(ranks - 1, categories=list(levels), ordered=True),
    })


def run_validation(n_samples=1000, n_tune=1000, seed=42):
    """
    Run the full synthetic validation.

    Returns:
        Dictionary with validation results
    """
    TRUE_B = 10.0
    TRUE_ZETA = np.array([0.7, 0.2, 0.1])

    print(f"Generating synthetic data with b={TRUE_B}, zeta={tuple(TRUE_ZETA)}")
    df = generate_synthetic_data(true_b=TRUE_B, true_zeta=TRUE_ZETA, seed=seed)
    data = prepare_monotonic_data(df, 'ls ~ age + mo(income)')
    print(f"  {data['n_observations']} data points for inference")

    print("\nRunning Bayesian inference...")
    fit = run_inference(data, n_samples=n_samples, n_tune=n_tune, random_seed=seed)

    b_samples = fit.draws['b_income'].to_numpy()
    zeta_samples = fit.simplex_draws('income')

    b_mean, b_std = np.mean(b_samples), np.std(b_samples)
    b_ci = np.percentile(b_samples, [2.5, 97.5])
    zeta_ci = np.percentile(zeta_samples, [2.5, 97.5], axis=0)

    b_in_ci = b_ci[0] <= TRUE_B <= b_ci[1]
    zeta_in_ci = (zeta_ci[0] <= TRUE_ZETA) & (TRUE_ZETA <= zeta_ci[1])

    print("\n" + "="*60)
    print("SYNTHETIC VALIDATION RESULTS")
    print("="*60)
    print(f"\nTrue parameters:")
    print(f"  b    = {TRUE_B}")
    print(f"  zeta = {tuple(TRUE_ZETA)}")
    print(f"\nRecovered parameters:")
    print(f"  b    = {b_mean:.3f} +/- {b_std:.3f}")
    print(f"  zeta = ({', '.join(f'{z:.3f}' for z in zeta_samples.mean(axis=0))})")
    print(f"\n95% Credible Intervals:")
    print(f"  b: [{b_ci[0]:.3f}, {b_ci[1]:.3f}] - True value {'INSIDE' if b_in_ci else 'OUTSIDE'}")
    for i, inside in enumerate(zeta_in_ci):
        print(f"  zeta[{i + 1}]: [{zeta_ci[0, i]:.3f}, {zeta_ci[1, i]:.3f}] - "
              f"True value {'INSIDE' if inside else 'OUTSIDE'}")

    if b_in_ci and zeta_in_ci.all():
        print("\n" + "="*60)
        print("VALIDATION PASSED: Method successfully recovers known parameters!")
        print("="*60)
    else:
        print("\n" + "="*60)
        print("VALIDATION WARNING: True values outside credible intervals")
        print("="*60)

    return {
        'true_b': TRUE_B,
        'true_zeta': TRUE_ZETA.tolist(),
        'estimated_b': b_mean,
        'b_std': b_std,
        'b_ci': b_ci.tolist(),
        'zeta_ci': zeta_ci.T.tolist(),
        'b_in_ci': bool(b_in_ci),
        'zeta_in_ci': zeta_in_ci.tolist(),
    }


if __name__ == "__main__":
    results = run_validation()
