"""
Errors raised while encoding monotonic predictors.

All of them subclass ValueError and name the offending predictor, so callers
can catch the whole family or a single case.
"""


class MonotonicEncodingError(ValueError):
    """Base class for monotonic predictor encoding failures."""

    def __init__(self, predictor, message):
        self.predictor = predictor
        super().__init__(f"Monotonic predictor '{predictor}': {message}")


class InvalidPredictorKind(MonotonicEncodingError):
    """Predictor is unordered-categorical or continuous."""


class DegenerateCategory(MonotonicEncodingError):
    """Predictor has fewer than two categories."""


class UnknownCategory(MonotonicEncodingError):
    """Value is not part of the category table fixed at training time."""

    def __init__(self, predictor, values):
        self.values = list(values)
        shown = ", ".join(repr(v) for v in self.values[:5])
        if len(self.values) > 5:
            shown += ", ..."
        super().__init__(predictor, f"unknown categories {shown}")
