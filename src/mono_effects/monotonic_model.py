"""
Bayesian regression with monotonic effects of ordinal predictors.

Model: y = Intercept + X*beta + sum_k b_k * sum(zeta_k[1..x_k]) + noise

Where:
- x_k = rank of monotonic predictor k (1..C_k)
- b_k = scale of the monotonic effect (total effect across the categories)
- zeta_k = simplex of length C_k - 1, the share of the effect per step
- noise ~ Normal(0, sigma)

Interpretation:
- b > 0: response increases (never decreases) with the category
- b < 0: response decreases (never increases) with the category
- zeta_k[i]: fraction of the total effect gained at step i
"""

import numpy as np
import pandas as pd
import pymc as pm
import pytensor.tensor as pt

from mono_effects.config import ModelConfig
from mono_effects.data_utils import load_data, prepare_monotonic_data
from mono_effects.posterior import MonotonicFit
from mono_effects.simplex import cumulative_index


def build_model(data, config=None):
    """
    Build the PyMC model for prepared data.

    Args:
        data: Dictionary from prepare_monotonic_data (with a response)
        config: ModelConfig with prior scales

    Returns:
        pm.Model with free variables b_Intercept, b_<name>, simplex_<mono>, sigma
    """
    config = config or ModelConfig()
    formula = data['formula']
    if data['y'] is None:
        raise ValueError(f"Response '{formula.response}' is required to build the model")

    with pm.Model() as model:
        mu = 0.0

        # Priors
        if formula.intercept:
            mu = mu + pm.Normal('b_Intercept', mu=0, sigma=config.sd_prior_intercept)

        for j, name in enumerate(data['linear_names']):
            beta = pm.Normal(f'b_{name}', mu=0, sigma=config.sd_prior_b)
            mu = mu + beta * data['X'][:, j]

        for name in formula.monotonic:
            n_categories = data['n_categories'][name]
            concentration = config.concentration(name, n_categories)

            b = pm.Normal(f'b_{name}', mu=0, sigma=config.sd_prior_bmo)
            if n_categories > 2:
                zeta = pm.Dirichlet(f'simplex_{name}', a=concentration)
            else:
                # a single gap leaves nothing to estimate
                zeta = pm.Deterministic(f'simplex_{name}', pt.ones(1))

            idx = cumulative_index(data['ranks'][name], n_categories)
            mu = mu + b * pt.cumsum(zeta)[idx]

        sigma = pm.HalfNormal('sigma', sigma=config.sd_prior_sigma)

        # Likelihood
        pm.Normal('obs', mu=mu, sigma=sigma, observed=data['y'])

    return model


def run_inference(data, n_samples=2000, n_tune=1000, chains=2, cores=1,
                  random_seed=None, config=None, progressbar=True, sample_prior=True):
    """
    Run Bayesian inference for the monotonic regression.

    Args:
        data: Dictionary from prepare_monotonic_data
        n_samples: Number of posterior samples per chain
        n_tune: Number of tuning samples
        chains: Number of chains
        cores: Number of chains run in parallel
        random_seed: Seed for reproducible sampling
        config: ModelConfig with prior scales
        progressbar: Show PyMC's progress bar
        sample_prior: Also draw n_samples values from the prior (used by
            prior_samples and point hypotheses)

    Returns:
        MonotonicFit with the posterior samples
    """
    config = config or ModelConfig()
    model = build_model(data, config)

    with model:
        trace = pm.sample(n_samples, tune=n_tune, chains=chains, cores=cores,
                          random_seed=random_seed, progressbar=progressbar,
                          return_inferencedata=True)
        if sample_prior:
            trace.extend(pm.sample_prior_predictive(n_samples, random_seed=random_seed))

    return MonotonicFit.from_inference_data(trace, data, config=config)


def describe_effects(fit, prob=0.95):
    """
    Collect posterior statistics for each monotonic effect.

    Returns:
        DataFrame with one row per monotonic predictor: b mean, sd, credible
        interval, direction and the posterior mean of each simplex element
    """
    lower_q, upper_q = (1 - prob) / 2, (1 + prob) / 2
    results = []

    for name in fit.formula.monotonic:
        b_samples = fit.draws[f'b_{name}'].to_numpy()
        b_ci = np.quantile(b_samples, [lower_q, upper_q])

        # Credible interval excludes zero
        if b_ci[0] > 0:
            direction = 'increasing'
        elif b_ci[1] < 0:
            direction = 'decreasing'
        else:
            direction = 'unclear'

        results.append({
            'predictor': name,
            'n_categories': fit.encoders[name].n_categories,
            'b_mean': b_samples.mean(), 'b_std': b_samples.std(),
            'b_ci_low': b_ci[0], 'b_ci_high': b_ci[1],
            'direction': direction,
            'simplex_mean': fit.simplex_draws(name).mean(axis=0).tolist(),
        })

    return pd.DataFrame(results)


def analyze(df, formula, n_samples=2000, n_tune=1000, chains=2, random_seed=None, config=None):
    """
    Fit a monotonic regression and print a report.

    Args:
        df: DataFrame with the response and predictors
        formula: Formula string, e.g. 'ls ~ age + mo(income)'

    Returns:
        Tuple of (MonotonicFit, DataFrame from describe_effects)
    """
    data = prepare_monotonic_data(df, formula)

    print(f"\n{'='*60}")
    print("Monotonic Effects Model")
    print(f"Model: {data['formula']}")
    print(f"{'='*60}")
    print(f"  {data['n_observations']} observations ({data['n_dropped']} dropped with missing values)")
    for name, encoder in data['encoders'].items():
        labels = ' < '.join(str(c) for c in encoder.categories)
        print(f"  mo({name}): {encoder.n_categories} categories: {labels}")

    fit = run_inference(data, n_samples=n_samples, n_tune=n_tune, chains=chains,
                        random_seed=random_seed, config=config)

    print(f"\n{'-'*40}")
    print("Population-level effects:")
    print(fit.summary().round(3).to_string())

    effects = describe_effects(fit)
    print(f"\n{'-'*40}")
    for _, row in effects.iterrows():
        print(f"  b_{row['predictor']} = {row['b_mean']:.4f} +/- {row['b_std']:.4f} "
              f"[{row['b_ci_low']:.4f}, {row['b_ci_high']:.4f}] - {row['direction']}")
        steps = ', '.join(f"{z:.3f}" for z in row['simplex_mean'])
        print(f"    simplex_{row['predictor']} = ({steps})")

    return fit, effects


def main(data_path, formula, levels=None, output_path=None, n_samples=2000, n_tune=1000):
    """
    Run the monotonic regression on a CSV file.

    Args:
        data_path: Path to the CSV file
        formula: Formula string
        levels: Optional dict of column -> ordered labels
        output_path: Optional path to save the coefficient summary CSV
    """
    print("Loading data...")
    df = load_data(data_path, levels=levels)

    fit, effects = analyze(df, formula, n_samples=n_samples, n_tune=n_tune)

    if output_path:
        fit.summary().to_csv(output_path)
        print(f"\nResults saved to: {output_path}")

    return fit, effects


def parse_levels(specs):
    """Parse 'name=a,b,c' strings into a dict of ordered labels."""
    levels = {}
    for spec in specs or []:
        name, sep, labels = spec.partition('=')
        if not sep or not name or not labels:
            raise ValueError(f"Levels must look like 'name=a,b,c', got {spec!r}")
        levels[name.strip()] = [label.strip() for label in labels.split(',')]
    return levels


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Fit a regression with monotonic effects')
    parser.add_argument('data_path', type=str, help='Path to the CSV file')
    parser.add_argument('formula', type=str, help="Model formula, e.g. 'ls ~ age + mo(income)'")
    parser.add_argument('--levels', action='append', default=[],
                        help="Ordered levels of a column, e.g. income=low,mid,high")
    parser.add_argument('--output', type=str, help='Output CSV path', default=None)

    args = parser.parse_args()
    main(args.data_path, args.formula, parse_levels(args.levels), args.output)
