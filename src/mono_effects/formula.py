"""
Formula parsing for monotonic regression models.

Supported syntax:

    ls ~ age + mo(income)
    ls ~ 0 + mo(income) + monotonic(education)
    ls ~ mo(income) - 1

`mo(x)` and `monotonic(x)` mark monotonic predictors, every other term is a
linear predictor. Interactions, transformations and group-level terms are
not supported.
"""

import re
from dataclasses import dataclass


_MONO_TERM = re.compile(r'^(?:mo|monotonic)\(\s*([^()\s]+)\s*\)$')
_NAME = re.compile(r'^[A-Za-z_.][A-Za-z0-9_.]*$')


@dataclass(frozen=True)
class MonotonicFormula:
    """Response, linear terms and monotonic terms of a model formula."""
    response: str
    linear: tuple = ()
    monotonic: tuple = ()
    intercept: bool = True

    @property
    def predictors(self):
        return self.linear + self.monotonic

    def __str__(self):
        terms = list(self.linear) + [f"mo({name})" for name in self.monotonic]
        if not self.intercept:
            terms.insert(0, "0")
        return f"{self.response} ~ {' + '.join(terms)}"


def parse_formula(formula):
    """
    Parse a formula string into a MonotonicFormula.

    Args:
        formula: String such as 'ls ~ age + mo(income)' or an existing
            MonotonicFormula (returned unchanged)

    Returns:
        MonotonicFormula

    Raises:
        ValueError: on malformed formulas, duplicated terms, or formulas
            without any monotonic term
    """
    if isinstance(formula, MonotonicFormula):
        return formula

    if not isinstance(formula, str) or formula.count('~') != 1:
        raise ValueError(f"Formula must have the form 'response ~ terms', got {formula!r}")

    lhs, rhs = (side.strip() for side in formula.split('~'))
    if not _NAME.match(lhs):
        raise ValueError(f"Invalid response in formula: {lhs!r}")

    intercept = True
    rhs = rhs.replace(' ', '')
    if rhs.endswith('-1'):
        intercept = False
        rhs = rhs[:-2]

    linear, monotonic = [], []
    for term in filter(None, rhs.split('+')):
        if term == '0':
            intercept = False
            continue
        if term == '1':
            continue

        match = _MONO_TERM.match(term)
        name = match.group(1) if match else term
        if not _NAME.match(name):
            raise ValueError(f"Unsupported term in formula: {term!r}")
        if name in linear or name in monotonic or name == lhs:
            raise ValueError(f"Term '{name}' appears more than once in formula")

        (monotonic if match else linear).append(name)

    if not monotonic:
        raise ValueError("Formula must contain at least one monotonic term, e.g. mo(x)")

    return MonotonicFormula(lhs, tuple(linear), tuple(monotonic), intercept)
