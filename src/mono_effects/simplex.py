"""
Simplex parameters and the monotonic contribution to the linear predictor.

For a predictor with C categories the effect is parameterised by a scale b
and a simplex zeta of length C - 1. An observation with rank x contributes

    b * sum(zeta[1..min(x, C - 1)])

Partial sums of a non-negative vector never decrease, so the contribution is
non-decreasing in x when b >= 0 and non-increasing when b <= 0.
"""

import numpy as np


SIMPLEX_ATOL = 1e-8


def check_simplex(zeta, atol=SIMPLEX_ATOL):
    """
    Validate one simplex or a matrix of simplex draws (one per row).

    Args:
        zeta: Array of shape (C-1,) or (n_draws, C-1)
        atol: Tolerance on the sum

    Returns:
        The input as a float array

    Raises:
        ValueError: if any element lies outside [0, 1] or a row does not
            sum to 1 within atol
    """
    zeta = np.asarray(zeta, dtype=float)
    if zeta.ndim not in (1, 2) or zeta.shape[-1] == 0:
        raise ValueError(f"Simplex must be a non-empty vector or matrix, got shape {zeta.shape}")

    if np.any(zeta < 0) or np.any(zeta > 1):
        raise ValueError("Simplex elements must lie in [0, 1]")

    errors = np.atleast_1d(np.abs(zeta.sum(axis=-1) - 1.0))
    if not np.all(errors <= atol):
        worst = np.atleast_1d(zeta.sum(axis=-1))[np.argmax(errors)]
        raise ValueError(f"Simplex must sum to 1 (tolerance {atol}), got {worst:.10f}")

    return zeta


def dirichlet_concentration(n_categories, concentration=None):
    """
    Dirichlet prior concentration for the simplex of a C-category predictor.

    Args:
        n_categories: Number of categories C (>= 2)
        concentration: Optional vector of length C - 1; defaults to all ones
            (uniform over the simplex)

    Returns:
        Float array of length C - 1
    """
    n_gaps = int(n_categories) - 1
    if n_gaps < 1:
        raise ValueError(f"A monotonic effect needs at least 2 categories, got {n_categories}")

    if concentration is None:
        return np.ones(n_gaps)

    concentration = np.asarray(concentration, dtype=float).ravel()
    if concentration.shape[0] != n_gaps:
        raise ValueError(
            f"Dirichlet concentration must have length {n_gaps}, got {concentration.shape[0]}"
        )
    if not np.all(np.isfinite(concentration)) or np.any(concentration <= 0):
        raise ValueError("Dirichlet concentration must be positive and finite")
    return concentration


def cumulative_index(ranks, n_categories):
    """0-based position in cumsum(zeta) used by each rank: min(rank, C-1) - 1."""
    ranks = np.asarray(ranks, dtype=int)
    if ranks.size and (ranks.min() < 1 or ranks.max() > n_categories):
        raise ValueError(f"Ranks must lie in [1, {n_categories}]")
    return np.minimum(ranks, n_categories - 1) - 1


def monotonic_contribution(b, zeta, ranks):
    """
    Contribution of a monotonic predictor to the linear predictor.

    Args:
        b: Scale, a scalar or an array of n_draws values
        zeta: Simplex of shape (C-1,) or (n_draws, C-1)
        ranks: Integer ranks in [1, C], shape (N,)

    Returns:
        Array of shape (N,) for a single draw, (n_draws, N) otherwise
    """
    zeta = np.asarray(zeta, dtype=float)
    b = np.asarray(b, dtype=float)
    idx = cumulative_index(ranks, zeta.shape[-1] + 1)

    cumulative = np.cumsum(zeta, axis=-1)[..., idx]
    if b.ndim == 0:
        return b * cumulative
    if cumulative.ndim == 1:
        cumulative = cumulative[np.newaxis, :]
    return b[:, np.newaxis] * cumulative
