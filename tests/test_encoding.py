"""Tests for the monotonic predictor encoder.

Covers:
- Rank assignment for ordered factors and positive integers
- Encoding new data against the training table
- Error taxonomy (InvalidPredictorKind, DegenerateCategory, UnknownCategory)
"""

import numpy as np
import pandas as pd
import pytest

from mono_effects.encoding import (
    MAX_INTEGER_CATEGORIES, MonotonicEncoder, PredictorKind, encode_monotonic, infer_kind,
)
from mono_effects.errors import DegenerateCategory, InvalidPredictorKind, UnknownCategory


def ordered(values, categories):
    return pd.Categorical(values, categories=categories, ordered=True)


class TestInferKind:
    """Tests for predictor kind inference."""

    def test_ordered_categorical(self):
        assert infer_kind(ordered(['a', 'b'], ['a', 'b'])) is PredictorKind.ORDERED

    def test_unordered_categorical(self):
        assert infer_kind(pd.Categorical(['a', 'b'])) is PredictorKind.UNORDERED

    def test_strings_are_unordered(self):
        assert infer_kind(['low', 'high']) is PredictorKind.UNORDERED

    def test_booleans_are_unordered(self):
        assert infer_kind([True, False, True]) is PredictorKind.UNORDERED

    def test_integers_are_ordered(self):
        assert infer_kind([1, 2, 3]) is PredictorKind.ORDERED
        assert infer_kind(np.array([1.0, 4.0])) is PredictorKind.ORDERED

    def test_non_integer_numbers_are_continuous(self):
        assert infer_kind([0.5, 1.7]) is PredictorKind.CONTINUOUS


class TestMonotonicEncoder:
    """Tests for MonotonicEncoder."""

    def test_round_trip_income_levels(self, income_levels):
        values = ordered(income_levels, income_levels)
        enc = MonotonicEncoder.fit('income', values)

        ranks = enc.encode(values)
        assert ranks.tolist() == [1, 2, 3, 4]
        assert enc.n_categories == 4
        assert enc.n_gaps == 3
        assert list(enc.decode(ranks)) == income_levels

    def test_round_trip_shuffled_sequence(self, income_levels):
        labels = ['40_to_100', 'below_20', 'greater_100', 'below_20', '20_to_40']
        enc = MonotonicEncoder.fit('income', ordered(labels, income_levels))

        ranks = enc.encode(labels)
        assert ranks.tolist() == [3, 1, 4, 1, 2]
        assert list(enc.decode(ranks)) == labels

    def test_decoded_labels_are_ordered(self, income_levels):
        enc = MonotonicEncoder.fit('income', ordered(income_levels, income_levels))
        decoded = enc.decode([1, 4])
        assert decoded.ordered
        assert decoded[0] < decoded[1]

    def test_declared_unobserved_levels_count(self, income_levels):
        enc = MonotonicEncoder.fit('income', ordered(['below_20', '20_to_40'], income_levels))
        assert enc.n_categories == 4

    def test_integer_predictor(self):
        enc = MonotonicEncoder.fit('visits', [1, 3, 2, 3])
        assert enc.categories == (1, 2, 3)
        assert enc.encode([3, 1]).tolist() == [3, 1]

    def test_integer_predictor_with_gaps_uses_full_range(self):
        enc = MonotonicEncoder.fit('visits', [1, 5])
        assert enc.n_categories == 5
        assert enc.encode([4]).tolist() == [4]

    def test_integer_valued_floats(self):
        enc = MonotonicEncoder.fit('visits', [1.0, 2.0, 3.0])
        assert enc.encode([2.0, 3]).tolist() == [2, 3]

    def test_explicit_categories_for_strings(self):
        enc = MonotonicEncoder.fit('size', ['s', 'l', 'm'], categories=['s', 'm', 'l'],
                                   kind=PredictorKind.ORDERED)
        assert enc.encode(['s', 'm', 'l']).tolist() == [1, 2, 3]

    def test_explicit_categories_declare_label_order(self, income_levels):
        enc = MonotonicEncoder.fit('income', ['40_to_100', 'below_20'], categories=income_levels)
        assert enc.kind is PredictorKind.ORDERED
        assert enc.n_categories == 4

    def test_encode_monotonic_with_label_table(self, income_levels):
        ranks, n_categories = encode_monotonic('income', ['40_to_100', 'below_20'],
                                               categories=income_levels)
        assert ranks.tolist() == [3, 1]
        assert n_categories == 4

    def test_integer_table_up_to_limit(self):
        enc = MonotonicEncoder.fit('visits', [1, MAX_INTEGER_CATEGORIES])
        assert enc.n_categories == MAX_INTEGER_CATEGORIES

    def test_encode_monotonic_helper(self, income_levels):
        ranks, n_categories = encode_monotonic('income', ordered(income_levels[::-1], income_levels))
        assert ranks.tolist() == [4, 3, 2, 1]
        assert n_categories == 4

    def test_encoder_is_immutable(self):
        enc = MonotonicEncoder.fit('visits', [1, 2])
        with pytest.raises(AttributeError):
            enc.categories = (1, 2, 3)


class TestEncodingErrors:
    """Tests for the encoding error taxonomy."""

    def test_unknown_category_in_new_data(self, income_levels):
        enc = MonotonicEncoder.fit('income', ordered(income_levels, income_levels))
        with pytest.raises(UnknownCategory, match="income"):
            enc.encode(['below_20', 'above_1000'])

    def test_unknown_category_lists_values(self, income_levels):
        enc = MonotonicEncoder.fit('income', ordered(income_levels, income_levels))
        with pytest.raises(UnknownCategory) as excinfo:
            enc.encode(['x', 'y', 'x'])
        assert excinfo.value.values == ['x', 'y']
        assert excinfo.value.predictor == 'income'

    def test_integer_out_of_range(self):
        enc = MonotonicEncoder.fit('visits', [1, 2, 3])
        with pytest.raises(UnknownCategory):
            enc.encode([4])

    def test_missing_value_is_unknown(self, income_levels):
        with pytest.raises(UnknownCategory):
            MonotonicEncoder.fit('income', ordered(['below_20', None], income_levels))

    def test_single_category_is_degenerate(self):
        with pytest.raises(DegenerateCategory, match="at least 2"):
            MonotonicEncoder.fit('group', ordered(['a', 'a'], ['a']))

    def test_single_integer_is_degenerate(self):
        with pytest.raises(DegenerateCategory):
            MonotonicEncoder.fit('visits', [1, 1, 1])

    def test_unordered_factor_rejected(self):
        with pytest.raises(InvalidPredictorKind, match="unordered"):
            MonotonicEncoder.fit('colour', pd.Categorical(['red', 'blue']))

    def test_strings_rejected(self):
        with pytest.raises(InvalidPredictorKind):
            MonotonicEncoder.fit('colour', ['red', 'blue'])

    def test_continuous_rejected(self):
        with pytest.raises(InvalidPredictorKind, match="continuous"):
            MonotonicEncoder.fit('dose', [0.1, 0.25, 1.5])

    def test_non_positive_integers_rejected(self):
        with pytest.raises(InvalidPredictorKind, match=">= 1"):
            MonotonicEncoder.fit('visits', [0, 1, 2])

    def test_large_integers_need_explicit_table(self):
        with pytest.raises(InvalidPredictorKind, match="explicit category table"):
            MonotonicEncoder.fit('visits', [1, 10**9])

    def test_large_integers_with_explicit_table(self):
        enc = MonotonicEncoder.fit('visits', [1, 10**9], categories=[1, 10**9])
        assert enc.encode([10**9, 1]).tolist() == [2, 1]

    def test_unordered_factor_rejected_despite_categories(self):
        with pytest.raises(InvalidPredictorKind, match="unordered"):
            MonotonicEncoder.fit('colour', pd.Categorical(['red', 'blue']),
                                 categories=['red', 'blue'])

    def test_explicit_unordered_kind_rejected(self):
        with pytest.raises(InvalidPredictorKind):
            MonotonicEncoder.fit('visits', [1, 2], kind=PredictorKind.UNORDERED)

    def test_decode_out_of_range(self):
        enc = MonotonicEncoder.fit('visits', [1, 2, 3])
        with pytest.raises(ValueError, match="ranks must be integers"):
            enc.decode([0, 2])

    def test_duplicated_categories(self):
        with pytest.raises(ValueError, match="duplicated"):
            MonotonicEncoder('x', ('a', 'a', 'b'))

    def test_errors_are_value_errors(self):
        for error in (InvalidPredictorKind, DegenerateCategory, UnknownCategory):
            assert issubclass(error, ValueError)
