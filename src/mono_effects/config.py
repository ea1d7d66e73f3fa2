"""Prior configuration shared by the PyMC model and the Stan code generator."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Sequence

from mono_effects.simplex import dirichlet_concentration


@dataclass(frozen=True)
class ModelConfig:
    """
    Prior hyperparameters.

    Coefficients get zero-centred Normal priors with the standard deviations
    below, the residual sd a HalfNormal prior. Every simplex gets a Dirichlet
    prior, uniform unless a concentration vector of length C - 1 is given
    for that predictor in `dirichlet`.
    """
    sd_prior_intercept: float = 100.0
    sd_prior_b: float = 10.0  # linear coefficients
    sd_prior_bmo: float = 10.0  # monotonic scales
    sd_prior_sigma: float = 10.0
    dirichlet: Mapping[str, Sequence[float]] = field(default_factory=dict)

    def __post_init__(self):
        for name in ('sd_prior_intercept', 'sd_prior_b', 'sd_prior_bmo', 'sd_prior_sigma'):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        object.__setattr__(self, 'dirichlet', MappingProxyType(dict(self.dirichlet)))

    def concentration(self, name: str, n_categories: int):
        """Dirichlet concentration vector for predictor `name`."""
        return dirichlet_concentration(n_categories, self.dirichlet.get(name))
