"""
Monotonic Effects for Bayesian Regression

This package implements regression models in which ordinal predictors enter
through monotonic effects: a scale b and a simplex of per-step shares, so the
effect of each category step is estimated while the cumulative effect moves
in one direction only.

Modules:
- encoding: Category-to-rank encoding of ordinal predictors
- simplex: Simplex checks and the monotonic contribution b*sum(zeta[1..x])
- formula: 'y ~ x + mo(z)' formula parsing
- data_utils: Data loading and preprocessing
- monotonic_model: PyMC model, inference and report
- posterior: Posterior draws and summaries (fitted, predict, loo, ...)
- stan_code: Stan program and data generation
- synthetic_validation: Method validation on synthetic data
"""

from mono_effects.encoding import MonotonicEncoder, PredictorKind, encode_monotonic, infer_kind
from mono_effects.errors import DegenerateCategory, InvalidPredictorKind, UnknownCategory
from mono_effects.formula import MonotonicFormula, parse_formula
from mono_effects.simplex import check_simplex, monotonic_contribution

__version__ = "1.0.0"

__all__ = [
    "MonotonicEncoder",
    "PredictorKind",
    "encode_monotonic",
    "infer_kind",
    "InvalidPredictorKind",
    "DegenerateCategory",
    "UnknownCategory",
    "MonotonicFormula",
    "parse_formula",
    "check_simplex",
    "monotonic_contribution",
]
