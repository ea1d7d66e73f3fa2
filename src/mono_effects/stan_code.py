"""
Stan code and data for monotonic regression models.

The generated program mirrors the PyMC model in monotonic_model.py: one scale
`bmo[k]` and one simplex `simplex_k` of length Jmo[k] - 1 per monotonic
predictor, combined through the cumulative simplex sum `mono_effect`.
Predictor k is reported as `b_<name>` and `simplex_<name>[i]`.
"""

import numpy as np

from mono_effects.config import ModelConfig
from mono_effects.formula import parse_formula


_FUNCTIONS = """\
functions {
  /* cumulative simplex sum for rank i
   * ranks above rows(scale) receive the full sum
   */
  real mono_effect(vector scale, int i) {
    return sum(scale[1:min(i, rows(scale))]);
  }
}"""


def _mu_lines(formula, indent):
    pad = " " * indent
    base = "Intercept + X * b" if formula.intercept else "X * b"
    lines = [f"{pad}vector[N] mu = {base};", f"{pad}for (n in 1:N) {{"]
    for k, _ in enumerate(formula.monotonic, start=1):
        lines.append(f"{pad}  mu[n] += bmo[{k}] * mono_effect(simplex_{k}, Xmo_{k}[n]);")
    lines.append(f"{pad}}}")
    return lines


def make_stancode(formula, config=None):
    """
    Generate the Stan program for a monotonic regression.

    Args:
        formula: Formula string or MonotonicFormula
        config: ModelConfig with prior scales (defaults if None)

    Returns:
        Stan program as a string
    """
    formula = parse_formula(formula)
    config = config or ModelConfig()

    data = [
        "data {",
        "  int<lower=1> N;  // number of observations",
        "  vector[N] Y;  // response variable",
        "  int<lower=0> K;  // number of linear predictors",
        "  matrix[N, K] X;  // linear design matrix",
        "  int<lower=1> Kmo;  // number of monotonic predictors",
        "  array[Kmo] int<lower=2> Jmo;  // categories per monotonic predictor",
    ]
    for k, name in enumerate(formula.monotonic, start=1):
        data.append(f"  array[N] int<lower=1, upper=Jmo[{k}]> Xmo_{k};  // ranks of {name}")
        data.append(f"  vector<lower=0>[Jmo[{k}] - 1] con_simplex_{k};  // Dirichlet prior of {name}")
    data += ["  int prior_only;  // ignore the likelihood", "}"]

    parameters = ["parameters {"]
    if formula.intercept:
        parameters.append("  real Intercept;")
    parameters += ["  vector[K] b;  // linear coefficients",
                   "  vector[Kmo] bmo;  // monotonic scales"]
    for k, name in enumerate(formula.monotonic, start=1):
        parameters.append(f"  simplex[Jmo[{k}] - 1] simplex_{k};  // {name}")
    parameters += ["  real<lower=0> sigma;  // residual sd", "}"]

    model = ["model {"] + _mu_lines(formula, 2)
    model.append("  // priors")
    if formula.intercept:
        model.append(f"  Intercept ~ normal(0, {config.sd_prior_intercept});")
    model += [f"  b ~ normal(0, {config.sd_prior_b});",
              f"  bmo ~ normal(0, {config.sd_prior_bmo});"]
    for k, _ in enumerate(formula.monotonic, start=1):
        model.append(f"  simplex_{k} ~ dirichlet(con_simplex_{k});")
    model += [f"  sigma ~ normal(0, {config.sd_prior_sigma});",
              "  // likelihood",
              "  if (!prior_only) {",
              "    Y ~ normal(mu, sigma);",
              "  }",
              "}"]

    generated = ["generated quantities {", "  vector[N] log_lik;", "  {"]
    generated += _mu_lines(formula, 4)
    generated += ["    for (n in 1:N) {",
                  "      log_lik[n] = normal_lpdf(Y[n] | mu[n], sigma);",
                  "    }",
                  "  }",
                  "}"]

    header = f"// generated by mono_effects for: {formula}"
    blocks = [header, _FUNCTIONS] + ["\n".join(block) for block in (data, parameters, model, generated)]
    return "\n".join(blocks) + "\n"


def make_standata(data, config=None, prior_only=False):
    """
    Build the data dictionary for the program from make_stancode.

    Args:
        data: Dictionary from prepare_monotonic_data (with a response)
        config: ModelConfig providing Dirichlet concentrations
        prior_only: Sample from the prior only

    Returns:
        Dictionary with N, Y, K, X, Kmo, Jmo, Xmo_k, con_simplex_k, prior_only
    """
    config = config or ModelConfig()
    formula = data['formula']
    if data['y'] is None:
        raise ValueError("Stan data requires the response variable")

    standata = {
        'N': int(data['n_observations']),
        'Y': np.asarray(data['y'], dtype=float),
        'K': len(data['linear_names']),
        'X': np.asarray(data['X'], dtype=float),
        'Kmo': len(formula.monotonic),
        'Jmo': [int(data['n_categories'][name]) for name in formula.monotonic],
    }
    for k, name in enumerate(formula.monotonic, start=1):
        standata[f'Xmo_{k}'] = np.asarray(data['ranks'][name], dtype=int)
    for k, name in enumerate(formula.monotonic, start=1):
        standata[f'con_simplex_{k}'] = config.concentration(name, data['n_categories'][name])
    standata['prior_only'] = int(prior_only)
    return standata
