"""
Encoding of ordinal predictors for monotonic effects.

A monotonic predictor is either an ordered categorical (e.g. income bands)
or a column of integers >= 1. The encoder fixes an ordered category table
once, from the training data, and maps every value to its integer rank in
[1, C]. The same encoder is reused for new data, so held-out observations
get the ranks of the original levels.

Example:
    >>> income = pd.Categorical(['20_to_40', 'below_20'],
    ...                         categories=['below_20', '20_to_40'],
    ...                         ordered=True)
    >>> enc = MonotonicEncoder.fit('income', income)
    >>> enc.encode(income)
    array([2, 1])
"""

import enum
from dataclasses import dataclass, field
from types import MappingProxyType

import numpy as np
import pandas as pd

from mono_effects.errors import DegenerateCategory, InvalidPredictorKind, UnknownCategory


# Largest integer value that gets an implicit 1..max table; pass `categories`
# explicitly for wider ranges.
MAX_INTEGER_CATEGORIES = 1000


class PredictorKind(enum.Enum):
    """Kind of a predictor column, decided once when the encoder is fitted."""

    ORDERED = "ordered"
    UNORDERED = "unordered"
    CONTINUOUS = "continuous"


def infer_kind(values):
    """
    Classify a column as ordered, unordered or continuous.

    Ordered categoricals and integer-valued numbers are ORDERED. Unordered
    categoricals, booleans and strings are UNORDERED. Other numbers are
    CONTINUOUS.

    Args:
        values: Sequence, numpy array, pandas Series or Categorical

    Returns:
        PredictorKind
    """
    series = pd.Series(values)

    if isinstance(series.dtype, pd.CategoricalDtype):
        return PredictorKind.ORDERED if series.cat.ordered else PredictorKind.UNORDERED
    if pd.api.types.is_bool_dtype(series):
        return PredictorKind.UNORDERED
    if pd.api.types.is_numeric_dtype(series):
        observed = series.dropna().to_numpy(dtype=float)
        if np.all(np.mod(observed, 1) == 0):
            return PredictorKind.ORDERED
        return PredictorKind.CONTINUOUS
    return PredictorKind.UNORDERED


@dataclass(frozen=True)
class MonotonicEncoder:
    """
    Fixed category-to-rank table for one monotonic predictor.

    Attributes:
        name: Predictor name, used in error messages and parameter names
        categories: Ordered category labels; label i has rank i + 1
        kind: Kind the predictor was validated as (always ORDERED)
    """
    name: str
    categories: tuple
    kind: PredictorKind = PredictorKind.ORDERED
    _lookup: MappingProxyType = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(set(self.categories)) != len(self.categories):
            raise ValueError(f"Monotonic predictor '{self.name}': duplicated categories")
        if len(self.categories) < 2:
            raise DegenerateCategory(
                self.name,
                f"at least 2 categories are required, got {len(self.categories)}"
            )
        lookup = {label: rank for rank, label in enumerate(self.categories, start=1)}
        object.__setattr__(self, '_lookup', MappingProxyType(lookup))

    @classmethod
    def fit(cls, name, values, categories=None, kind=None):
        """
        Build the encoder from training values.

        Args:
            name: Predictor name
            values: Training column (ordered categorical or integers >= 1)
            categories: Optional explicit ordered category table; for plain
                (non-categorical) labels it also declares their order
            kind: Optional PredictorKind; inferred from values when omitted

        Returns:
            MonotonicEncoder whose table covers every training value

        Raises:
            InvalidPredictorKind: unordered or continuous values, or integers < 1
            DegenerateCategory: fewer than two categories
            UnknownCategory: a training value is missing from `categories`
        """
        series = pd.Series(values)
        if kind is None:
            kind = infer_kind(series)
            if (categories is not None and kind is PredictorKind.UNORDERED
                    and not isinstance(series.dtype, pd.CategoricalDtype)
                    and not pd.api.types.is_bool_dtype(series)):
                kind = PredictorKind.ORDERED
        else:
            kind = PredictorKind(kind)

        if kind is not PredictorKind.ORDERED:
            raise InvalidPredictorKind(
                name,
                f"expected an ordered factor or integers >= 1, got {kind.value} values"
            )

        if categories is None:
            categories = cls._default_categories(name, series)

        encoder = cls(name, tuple(categories), kind)
        encoder.encode(series)
        return encoder

    @staticmethod
    def _default_categories(name, series):
        if isinstance(series.dtype, pd.CategoricalDtype):
            return tuple(series.cat.categories)

        if not pd.api.types.is_numeric_dtype(series):
            raise InvalidPredictorKind(
                name, "string labels need an explicit category order"
            )

        observed = series.dropna()
        if len(observed) > 0 and observed.min() < 1:
            raise InvalidPredictorKind(
                name, f"integer values must be >= 1, got minimum {observed.min()}"
            )
        top = int(observed.max()) if len(observed) > 0 else 0
        if top > MAX_INTEGER_CATEGORIES:
            raise InvalidPredictorKind(
                name,
                f"integer values above {MAX_INTEGER_CATEGORIES} need an explicit "
                f"category table, got maximum {top}"
            )
        return tuple(range(1, top + 1))

    @property
    def n_categories(self):
        """Number of categories C."""
        return len(self.categories)

    @property
    def n_gaps(self):
        """Length of the simplex, C - 1."""
        return len(self.categories) - 1

    def encode(self, values):
        """
        Map values to ranks in [1, C].

        Raises:
            UnknownCategory: if any value (including a missing one) is not in
                the category table; nothing is returned for the column
        """
        labels = pd.Series(values).astype(object).tolist()
        ranks = [self._lookup.get(label) if not _is_missing(label) else None
                 for label in labels]

        unknown = [label for label, rank in zip(labels, ranks) if rank is None]
        if unknown:
            raise UnknownCategory(self.name, _unique(unknown))

        return np.asarray(ranks, dtype=int)

    def decode(self, ranks):
        """Map ranks back to an ordered Categorical of labels."""
        ranks = np.asarray(ranks)
        if ranks.size and (np.any(np.mod(ranks, 1) != 0)
                           or ranks.min() < 1 or ranks.max() > self.n_categories):
            raise ValueError(
                f"Monotonic predictor '{self.name}': ranks must be integers "
                f"in [1, {self.n_categories}]"
            )
        labels = [self.categories[int(r) - 1] for r in ranks.ravel()]
        return pd.Categorical(labels, categories=list(self.categories), ordered=True)


def encode_monotonic(name, values, categories=None):
    """
    Encode a column in one call.

    `categories` fixes the ordered table; plain labels need it.

    Returns:
        Tuple of (ranks, n_categories)
    """
    encoder = MonotonicEncoder.fit(name, values, categories=categories)
    return encoder.encode(values), encoder.n_categories


def _is_missing(value):
    return value is None or value is pd.NA or (isinstance(value, float) and np.isnan(value))


def _unique(values):
    seen = []
    for value in values:
        if not any(value is v or value == v for v in seen):
            seen.append(value)
    return seen
