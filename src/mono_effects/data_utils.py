"""
Data loading and processing utilities for monotonic regression.

This module provides common functions for loading tabular data, declaring
ordinal columns and turning a DataFrame into the arrays used by the PyMC
model and the Stan data block.
"""

import numpy as np
import pandas as pd

from mono_effects.encoding import MonotonicEncoder
from mono_effects.formula import parse_formula


def load_data(data_path, levels=None):
    """
    Load a CSV file and declare its ordinal columns.

    Args:
        data_path: Path to a CSV file
        levels: Optional dict mapping column name -> ordered list of labels

    Returns:
        DataFrame with the listed columns converted to ordered categoricals
    """
    df = pd.read_csv(data_path)
    for column, column_levels in (levels or {}).items():
        df = declare_ordered(df, column, column_levels)
    return df


def declare_ordered(df, column, levels):
    """
    Convert a column to an ordered categorical with the given level order.

    Values are matched as strings when the column was read as text, so
    '1', '2', ... in a CSV line up with levels given on the command line.

    Args:
        df: DataFrame
        column: Column name
        levels: Ordered sequence of labels, lowest first

    Returns:
        Copy of df with the converted column
    """
    if column not in df.columns:
        raise KeyError(f"Column '{column}' not found in data")

    values = df[column]
    if pd.api.types.is_float_dtype(values) and (values.dropna() % 1 == 0).all():
        # integer column read as float because of missing values
        values = values.astype('Int64')
    if values.dtype == object or all(isinstance(level, str) for level in levels):
        values = values.astype(object).map(lambda v: v if pd.isna(v) else str(v))
        levels = [str(level) for level in levels]

    unknown = set(values.dropna().unique()) - set(levels)
    if unknown:
        raise ValueError(f"Column '{column}' has values outside the declared levels: {sorted(map(str, unknown))}")

    df = df.copy()
    df[column] = pd.Categorical(values, categories=list(levels), ordered=True)
    return df


def prepare_monotonic_data(df, formula, encoders=None, drop_missing=True):
    """
    Prepare model arrays for a monotonic regression.

    Model: y = Intercept + X * beta + sum_k b_k * sum(zeta_k[1..x_k]) + noise

    With `encoders=None` the category tables are fitted on `df` (training
    data). Passing the encoders of a fitted model encodes new data against
    the original tables instead.

    Args:
        df: DataFrame with the response and all predictors
        formula: Formula string or MonotonicFormula
        encoders: Optional dict of predictor name -> MonotonicEncoder
        drop_missing: Drop rows with missing model values (training data);
            when False, missing values raise

    Returns:
        Dictionary with y, X, linear_names, ranks, n_categories, encoders,
        formula, n_observations, n_dropped and frame (the rows and columns
        that entered the model)
    """
    formula = parse_formula(formula)
    training = encoders is None
    has_response = formula.response in df.columns

    if training and not has_response:
        raise KeyError(f"Response '{formula.response}' not found in data")

    missing = [name for name in formula.predictors if name not in df.columns]
    if missing:
        raise KeyError(f"Predictors not found in data: {missing}")

    columns = list(formula.predictors) + ([formula.response] if has_response else [])
    n_rows = len(df)
    if drop_missing:
        df = df.dropna(subset=columns)

    if training:
        encoders = {
            name: MonotonicEncoder.fit(name, df[name])
            for name in formula.monotonic
        }

    X = np.empty((len(df), len(formula.linear)))
    for j, name in enumerate(formula.linear):
        if not pd.api.types.is_numeric_dtype(df[name]) or pd.api.types.is_bool_dtype(df[name]):
            raise ValueError(f"Linear predictor '{name}' must be numeric")
        X[:, j] = df[name].to_numpy(dtype=float)
    if np.any(np.isnan(X)):
        raise ValueError("Linear predictors contain missing values")

    ranks = {name: encoders[name].encode(df[name]) for name in formula.monotonic}

    y = df[formula.response].to_numpy(dtype=float) if has_response else None

    return {
        'formula': formula,
        'y': y,
        'X': X,
        'linear_names': list(formula.linear),
        'ranks': ranks,
        'n_categories': {name: encoders[name].n_categories for name in formula.monotonic},
        'encoders': encoders,
        'n_observations': len(df),
        'n_dropped': n_rows - len(df),
        'frame': df[columns].reset_index(drop=True),
    }
