"""
Posterior draws of a monotonic regression and their summaries.

MonotonicFit holds the prepared training data, the prior configuration and a
table of posterior draws (one row per draw, `chain` and `draw` columns plus
one column per reported parameter), optionally with prior draws in the same
layout. Everything else in this module is a read-only projection over those
tables: coefficient summaries and diagnostics, fitted values, posterior and
leave-one-out predictions, pointwise log-likelihoods, LOO/WAIC, hypothesis
tests and marginal effects of the monotonic predictors. update() refits.

Parameter names:
    b_Intercept, b_<linear>, b_<monotonic>, simplex_<monotonic>[i], sigma
"""

import re
from dataclasses import dataclass, field

import arviz as az
import numpy as np
import pandas as pd
import scipy.stats as sps

from mono_effects.config import ModelConfig
from mono_effects.data_utils import prepare_monotonic_data
from mono_effects.simplex import check_simplex, monotonic_contribution
from mono_effects.stan_code import make_stancode, make_standata


DEFAULT_PROBS = (0.025, 0.975)

_HYPOTHESIS = re.compile(r'^(?P<left>[^<>=]+?)\s*(?P<op>=|<|>)\s*(?P<right>[^<>=]+)$')
_TOKEN = re.compile(r"(?<![\w.])[A-Za-z_][A-Za-z0-9_.:]*(?:\[\d+\])?")


def _quantile_label(p):
    return f"{100 * p:g}%ile"


def summarise_draws(draws, probs=DEFAULT_PROBS, index=None):
    """
    Summarise draws column-wise.

    Args:
        draws: Array of shape (n_draws, n)
        probs: Quantiles to report
        index: Optional row labels

    Returns:
        DataFrame with Estimate, Est.Error and one column per quantile
    """
    draws = np.asarray(draws, dtype=float)
    table = {
        'Estimate': draws.mean(axis=0),
        'Est.Error': draws.std(axis=0, ddof=1),
    }
    for p in probs:
        table[_quantile_label(p)] = np.quantile(draws, p, axis=0)
    return pd.DataFrame(table, index=index)


def parameter_names(formula, n_categories):
    """Reported parameter names, in model order."""
    names = ['b_Intercept'] if formula.intercept else []
    names += [f'b_{name}' for name in formula.linear]
    names += [f'b_{name}' for name in formula.monotonic]
    for name in formula.monotonic:
        names += [f'simplex_{name}[{i}]' for i in range(1, n_categories[name])]
    names.append('sigma')
    return names


@dataclass(frozen=True, eq=False)
class MonotonicFit:
    """
    Immutable posterior of a monotonic regression.

    Attributes:
        data: Prepared training data (see prepare_monotonic_data)
        draws: DataFrame with chain, draw and one column per parameter
        config: Prior configuration the model was built with
        prior: Optional draws from the prior, same layout as `draws`
    """
    data: dict
    draws: pd.DataFrame
    config: ModelConfig = field(default_factory=ModelConfig)
    prior: pd.DataFrame = None

    def __post_init__(self):
        for label, table in (('Draws', self.draws), ('Prior draws', self.prior)):
            if table is None:
                continue
            missing = [name for name in self.parnames() if name not in table.columns]
            if missing:
                raise ValueError(f"{label} are missing parameters: {missing}")
        for name in self.formula.monotonic:
            check_simplex(self.simplex_draws(name))

    @classmethod
    def from_inference_data(cls, trace, data, config=None):
        """
        Build a fit from PyMC InferenceData.

        Args:
            trace: InferenceData returned by pm.sample, optionally extended
                with a `prior` group from pm.sample_prior_predictive
            data: Prepared data the model was built from
            config: ModelConfig used for the priors

        Returns:
            MonotonicFit
        """
        formula = data['formula']
        posterior, n_chains = cls._stack_group(trace.posterior, formula)
        prior = None
        if 'prior' in trace.groups():
            prior, _ = cls._stack_group(trace.prior, formula)
        return cls.from_arrays(data, posterior, n_chains=n_chains, config=config, prior=prior)

    @classmethod
    def _stack_group(cls, group, formula):
        n_chains, n_draws = group.sizes['chain'], group.sizes['draw']
        params = {}
        for name in cls._variable_names(formula):
            values = np.asarray(group[name].values)
            params[name] = values.reshape(n_chains * n_draws, *values.shape[2:])
        return params, n_chains

    @classmethod
    def from_arrays(cls, data, params, n_chains=1, config=None, prior=None):
        """
        Build a fit from arrays of draws stacked chain by chain.

        Args:
            data: Prepared data
            params: Dict of model variable -> array with one row per draw;
                `simplex_<name>` arrays have shape (n_draws, C - 1)
            n_chains: Number of chains the rows are split into
            config: ModelConfig used for the priors
            prior: Optional dict of prior draws in the layout of `params`
        """
        formula = data['formula']
        draws = cls._draws_table(formula, params, n_chains)
        if prior is not None:
            prior = cls._draws_table(formula, prior, 1)
        return cls(data=data, draws=draws, config=config or ModelConfig(), prior=prior)

    @classmethod
    def _draws_table(cls, formula, params, n_chains):
        n_total = len(np.asarray(params['sigma']))
        if n_total % n_chains:
            raise ValueError(f"{n_total} draws cannot be split into {n_chains} chains")

        n_draws = n_total // n_chains
        columns = {
            'chain': np.repeat(np.arange(n_chains), n_draws),
            'draw': np.tile(np.arange(n_draws), n_chains),
        }
        for name in cls._variable_names(formula):
            values = np.asarray(params[name], dtype=float)
            if name.startswith('simplex_'):
                values = values.reshape(n_total, -1)
                for i in range(values.shape[1]):
                    columns[f'{name}[{i + 1}]'] = values[:, i]
            else:
                columns[name] = values.reshape(n_total)
        return pd.DataFrame(columns)

    @staticmethod
    def _variable_names(formula):
        names = ['b_Intercept'] if formula.intercept else []
        names += [f'b_{name}' for name in formula.predictors]
        names += [f'simplex_{name}' for name in formula.monotonic]
        return names + ['sigma']

    # ------------------------------------------------------------------
    # Basic accessors

    @property
    def formula(self):
        return self.data['formula']

    @property
    def encoders(self):
        return self.data['encoders']

    def parnames(self):
        return parameter_names(self.formula, self.data['n_categories'])

    def nsamples(self):
        return len(self.draws)

    def nchains(self):
        return int(self.draws['chain'].nunique())

    def nobs(self):
        return int(self.data['n_observations'])

    def posterior_samples(self, pars=None):
        """
        Posterior draws as a DataFrame.

        Args:
            pars: Optional regular expression or list of them; a column is
                kept if any pattern matches it (re.search)
        """
        return self._select(self.draws, pars)

    def prior_samples(self, pars=None):
        """Prior draws as a DataFrame; `pars` as in posterior_samples()."""
        if self.prior is None:
            raise ValueError("No prior samples were stored with this fit")
        return self._select(self.prior, pars)

    def _select(self, table, pars):
        names = self.parnames()
        if pars is not None:
            patterns = [pars] if isinstance(pars, str) else list(pars)
            names = [n for n in names if any(re.search(p, n) for p in patterns)]
            if not names:
                raise ValueError(f"No parameters match {patterns}")
        return table[names].reset_index(drop=True)

    def as_matrix(self):
        return self.draws[self.parnames()].to_numpy()

    def simplex_draws(self, name):
        """Simplex draws of a monotonic predictor, shape (n_draws, C - 1)."""
        if name not in self.formula.monotonic:
            raise KeyError(f"'{name}' is not a monotonic predictor")
        n_gaps = self.data['n_categories'][name] - 1
        columns = [f'simplex_{name}[{i}]' for i in range(1, n_gaps + 1)]
        return self.draws[columns].to_numpy()

    # ------------------------------------------------------------------
    # Coefficient summaries

    def fixef(self, probs=DEFAULT_PROBS):
        """Population-level coefficients (intercept, linear and monotonic scales)."""
        names = [n for n in self.parnames() if n.startswith('b_')]
        index = [n[len('b_'):] for n in names]
        return summarise_draws(self.draws[names].to_numpy(), probs, index=index)

    def summary(self, prob=0.95):
        """
        Summary of all parameters with effective sample size and R-hat.

        Columns: Estimate, Est.Error, l-95% CI, u-95% CI, Eff.Sample, Rhat
        (the CI labels follow `prob`).
        """
        if not 0 < prob < 1:
            raise ValueError("Argument 'prob' must be a single value in (0,1)")

        lower, upper = (1 - prob) / 2, (1 + prob) / 2
        names = self.parnames()
        table = summarise_draws(self.draws[names].to_numpy(), (lower, upper), index=names)
        label = f"{100 * prob:g}%"
        table.columns = ['Estimate', 'Est.Error', f'l-{label} CI', f'u-{label} CI']
        table['Eff.Sample'] = self._ess().to_numpy()
        table['Rhat'] = self.rhat().to_numpy()
        table.index = [n[len('b_'):] if n.startswith('b_') else n for n in names]
        return table

    def coef(self):
        """Posterior means of the coefficients and simplex elements."""
        names = [n for n in self.parnames() if n != 'sigma']
        means = self.draws[names].mean()
        means.index = [n[len('b_'):] if n.startswith('b_') else n for n in names]
        return means

    def vcov(self, correlation=False):
        """Posterior covariance (or correlation) matrix of the coefficients."""
        names = [n for n in self.parnames() if n.startswith('b_')]
        draws = self.draws[names]
        table = draws.corr() if correlation else draws.cov()
        labels = [n[len('b_'):] for n in names]
        table.index, table.columns = labels, labels
        return table

    def _by_chain(self, name):
        return self.draws[name].to_numpy().reshape(self.nchains(), -1)

    def _ess(self):
        return pd.Series({name: float(az.ess(self._by_chain(name))) for name in self.parnames()})

    def rhat(self):
        """Potential scale reduction factor per parameter."""
        return pd.Series({name: float(az.rhat(self._by_chain(name))) for name in self.parnames()})

    def neff_ratio(self):
        """Effective sample size per parameter divided by the number of draws."""
        return self._ess() / self.nsamples()

    def prior_summary(self):
        """
        Priors of all parameter classes.

        Returns:
            DataFrame with columns prior, class and coef
        """
        config = self.config
        rows = []
        if self.formula.intercept:
            rows.append((f"normal(0, {config.sd_prior_intercept:g})", 'Intercept', ''))
        for name in self.formula.linear:
            rows.append((f"normal(0, {config.sd_prior_b:g})", 'b', name))
        for name in self.formula.monotonic:
            rows.append((f"normal(0, {config.sd_prior_bmo:g})", 'bmo', name))
        for name in self.formula.monotonic:
            n_categories = self.data['n_categories'][name]
            if n_categories > 2:
                alpha = ', '.join(f"{a:g}" for a in config.concentration(name, n_categories))
                rows.append((f"dirichlet({alpha})", 'simplex', name))
            else:
                rows.append(("constant(1)", 'simplex', name))
        rows.append((f"half_normal(0, {config.sd_prior_sigma:g})", 'sigma', ''))
        return pd.DataFrame(rows, columns=['prior', 'class', 'coef'])

    # ------------------------------------------------------------------
    # Predictions

    def _prepared(self, newdata):
        if newdata is None:
            return self.data
        return prepare_monotonic_data(newdata, self.formula, encoders=self.encoders,
                                      drop_missing=False)

    def linear_predictor(self, newdata=None):
        """Draws of the linear predictor, shape (n_draws, n_obs)."""
        return self._linear_predictor(self._prepared(newdata))

    def _linear_predictor(self, prepared):
        n_obs = prepared['n_observations']
        mu = np.zeros((self.nsamples(), n_obs))

        if self.formula.intercept:
            mu += self.draws['b_Intercept'].to_numpy()[:, np.newaxis]
        if self.formula.linear:
            beta = self.draws[[f'b_{n}' for n in self.formula.linear]].to_numpy()
            mu += beta @ prepared['X'].T
        for name in self.formula.monotonic:
            mu += monotonic_contribution(self.draws[f'b_{name}'].to_numpy(),
                                         self.simplex_draws(name),
                                         prepared['ranks'][name])
        return mu

    def fitted(self, newdata=None, summary=True, probs=DEFAULT_PROBS):
        """Expected response; (n_obs, 4) summary or (n_draws, n_obs) draws."""
        mu = self.linear_predictor(newdata)
        return summarise_draws(mu, probs) if summary else mu

    def posterior_predict(self, newdata=None, seed=None):
        """Draws from the posterior predictive distribution, (n_draws, n_obs)."""
        rng = np.random.default_rng(seed)
        mu = self.linear_predictor(newdata)
        sigma = self.draws['sigma'].to_numpy()[:, np.newaxis]
        return mu + sigma * rng.standard_normal(mu.shape)

    def predict(self, newdata=None, probs=DEFAULT_PROBS, seed=None):
        """Summary of the posterior predictive distribution per observation."""
        return summarise_draws(self.posterior_predict(newdata, seed=seed), probs)

    def _response(self, newdata):
        y = self._prepared(newdata)['y']
        if y is None:
            raise ValueError(f"Response '{self.formula.response}' is required")
        return y

    def predictive_error(self, newdata=None, seed=None):
        """Draws of y minus posterior predictive draws, (n_draws, n_obs)."""
        return self._response(newdata)[np.newaxis, :] - self.posterior_predict(newdata, seed=seed)

    def residuals(self, newdata=None, type='ordinary', probs=DEFAULT_PROBS):
        """
        Residual summary per observation.

        Args:
            type: 'ordinary' (y - mu) or 'pearson' ((y - mu) / sigma)
        """
        if type not in ('ordinary', 'pearson'):
            raise ValueError(f"Invalid residual type '{type}'")
        res = self._response(newdata)[np.newaxis, :] - self.linear_predictor(newdata)
        if type == 'pearson':
            res = res / self.draws['sigma'].to_numpy()[:, np.newaxis]
        return summarise_draws(res, probs)

    # ------------------------------------------------------------------
    # Information criteria

    def log_lik(self, newdata=None):
        """Pointwise log-likelihood, shape (n_draws, n_obs)."""
        y = self._response(newdata)
        mu = self.linear_predictor(newdata)
        sigma = self.draws['sigma'].to_numpy()[:, np.newaxis]
        return sps.norm.logpdf(y[np.newaxis, :], loc=mu, scale=sigma)

    def to_inference_data(self):
        """ArviZ InferenceData with posterior and log_likelihood groups."""
        n_chains = self.nchains()
        posterior = {
            name: self.draws[name].to_numpy().reshape(n_chains, -1)
            for name in self.parnames()
        }
        log_lik = self.log_lik().reshape(n_chains, -1, self.nobs())
        return az.from_dict(posterior=posterior, log_likelihood={'obs': log_lik})

    def loo(self, pointwise=False):
        """
        PSIS leave-one-out cross-validation.

        Returns:
            Dictionary with elpd_loo, se_elpd_loo, p_loo, looic, se_looic and,
            if requested, the pointwise elpd values
        """
        result = az.loo(self.to_inference_data(), pointwise=True, scale='log')
        return _ic_dict('loo', 'looic', result, result['loo_i'], pointwise)

    def waic(self, pointwise=False):
        """Widely applicable information criterion, same layout as loo()."""
        result = az.waic(self.to_inference_data(), pointwise=True, scale='log')
        return _ic_dict('waic', 'waic', result, result['waic_i'], pointwise)

    def _loo_weights(self):
        """Normalised PSIS weights, shape (n_draws, n_obs)."""
        log_weights, _ = az.psislw(-self.log_lik().T)
        return np.exp(np.asarray(log_weights)).T

    def loo_linpred(self):
        """Leave-one-out expected response per observation, shape (n_obs,)."""
        return np.sum(self._loo_weights() * self.linear_predictor(), axis=0)

    def loo_predict(self, seed=None):
        """Leave-one-out mean of the posterior predictive draws, shape (n_obs,)."""
        return np.sum(self._loo_weights() * self.posterior_predict(seed=seed), axis=0)

    # ------------------------------------------------------------------
    # Hypotheses and marginal effects

    def hypothesis(self, hypotheses, alpha=0.05):
        """
        Test linear hypotheses about parameters.

        Each hypothesis has the form 'left (= OR < OR >) right', e.g.
        'Intercept > age' or 'b_income = 0'. Names without the 'b_' prefix
        are resolved to coefficients.

        Returns:
            DataFrame with Hypothesis, Estimate, Est.Error, CI.Lower,
            CI.Upper, Evid.Ratio and Star
        """
        if isinstance(hypotheses, str):
            hypotheses = [hypotheses]
        if not isinstance(hypotheses, (list, tuple)) or not all(isinstance(h, str) for h in hypotheses):
            raise ValueError("Argument 'hypothesis' must be a character vector")
        if not isinstance(alpha, (int, float)) or not 0 <= alpha <= 1:
            raise ValueError("Argument 'alpha' must be a single value in [0,1]")

        samples = self.posterior_samples()
        rows = []
        for hyp in hypotheses:
            match = _HYPOTHESIS.match(hyp.strip())
            if match is None:
                raise ValueError("Every hypothesis must be of the form 'left (= OR < OR >) right'")
            left = self._resolve(match.group('left'), samples)
            right = self._resolve(match.group('right'), samples)
            op = match.group('op')

            expr = f"({left}) - ({right})"
            values = np.asarray(samples.eval(expr), dtype=float) * np.ones(len(samples))

            if op == '=':
                lower, upper = np.quantile(values, [alpha / 2, 1 - alpha / 2])
                evid_ratio = self._density_ratio(expr, values)
                star = not lower <= 0 <= upper
            elif op == '>':
                lower, upper = np.quantile(values, alpha), np.inf
                evid_ratio = _odds(np.mean(values > 0))
                star = lower > 0
            else:
                lower, upper = -np.inf, np.quantile(values, 1 - alpha)
                evid_ratio = _odds(np.mean(values < 0))
                star = upper < 0

            rows.append({
                'Hypothesis': f"({match.group('left').strip()})-({match.group('right').strip()}) {op} 0",
                'Estimate': values.mean(),
                'Est.Error': values.std(ddof=1),
                'CI.Lower': lower,
                'CI.Upper': upper,
                'Evid.Ratio': evid_ratio,
                'Star': '*' if star else '',
            })
        return pd.DataFrame(rows)

    def _density_ratio(self, expr, values):
        """Savage-Dickey ratio of posterior to prior density at zero."""
        if self.prior is None:
            return np.nan
        prior_samples = self.prior_samples()
        prior_values = np.asarray(prior_samples.eval(expr), dtype=float) * np.ones(len(prior_samples))
        if np.ptp(values) == 0 or np.ptp(prior_values) == 0:
            return np.nan
        posterior_density = sps.gaussian_kde(values)(0.0)[0]
        prior_density = sps.gaussian_kde(prior_values)(0.0)[0]
        return posterior_density / prior_density if prior_density > 0 else np.inf

    @staticmethod
    def _resolve(expression, samples):
        """Quote parameter names in an expression for DataFrame.eval."""
        unknown = []

        def replace(match):
            token = match.group(0)
            for candidate in (token, f'b_{token}'):
                if candidate in samples.columns:
                    return f'`{candidate}`'
            unknown.append(f'b_{token}')
            return token

        resolved = _TOKEN.sub(replace, expression.strip())
        if unknown:
            raise ValueError("Some parameters cannot be found in the model: \n"
                             + ", ".join(f"'{u}'" for u in unknown))
        return resolved

    def marginal_effects(self, effects=None, probs=DEFAULT_PROBS):
        """
        Expected response across the categories of monotonic predictors.

        Linear predictors are held at their training means and the other
        monotonic predictors at their lowest category.

        Args:
            effects: Monotonic predictor name or list of names; all by default

        Returns:
            Dict of predictor -> DataFrame with one row per category and
            columns <predictor>, estimate__, se__, lower__, upper__
        """
        if effects is None:
            effects = list(self.formula.monotonic)
        elif isinstance(effects, str):
            effects = [effects]

        valid = [e for e in effects if e in self.formula.monotonic]
        if not valid:
            raise ValueError("All specified effects are invalid for this model")

        x_mean = self.data['X'].mean(axis=0) if self.nobs() else np.zeros(len(self.formula.linear))
        result = {}
        for effect in valid:
            encoder = self.encoders[effect]
            ranks = np.arange(1, encoder.n_categories + 1)
            grid = {
                'formula': self.formula,
                'n_observations': len(ranks),
                'X': np.tile(x_mean, (len(ranks), 1)),
                'ranks': {name: (ranks if name == effect else np.ones(len(ranks), dtype=int))
                          for name in self.formula.monotonic},
            }
            mu = self._linear_predictor(grid)
            lower, upper = np.quantile(mu, [probs[0], probs[-1]], axis=0)
            result[effect] = pd.DataFrame({
                effect: encoder.decode(ranks),
                'estimate__': mu.mean(axis=0),
                'se__': mu.std(axis=0, ddof=1),
                'lower__': lower,
                'upper__': upper,
            })
        return result

    # ------------------------------------------------------------------
    # Stan export

    def stancode(self):
        return make_stancode(self.formula, self.config)

    def standata(self, prior_only=False):
        return make_standata(self.data, self.config, prior_only=prior_only)

    # ------------------------------------------------------------------
    # Refitting

    def update(self, formula=None, newdata=None, config=None, **sample_kwargs):
        """
        Refit with a changed formula, data or prior configuration.

        Unchanged arguments are taken from this fit; the data default to the
        model frame it was fitted on. Category tables are refitted on the
        data. The fit itself is not modified.

        Args:
            formula: New formula string or MonotonicFormula
            newdata: New training DataFrame
            config: New ModelConfig
            **sample_kwargs: Passed to run_inference (n_samples, n_tune,
                chains, random_seed, ...)

        Returns:
            New MonotonicFit
        """
        from mono_effects.monotonic_model import run_inference

        formula = self.formula if formula is None else formula
        frame = self.data['frame'] if newdata is None else newdata
        data = prepare_monotonic_data(frame, formula)

        sample_kwargs.setdefault('chains', self.nchains())
        sample_kwargs.setdefault('n_samples', self.nsamples() // sample_kwargs['chains'])
        return run_inference(data, config=config or self.config, **sample_kwargs)


def _odds(p):
    return np.inf if p >= 1 else p / (1 - p)


def _ic_dict(criterion, ic_name, result, values, pointwise):
    # ELPDData starts with elpd, se, p; the first label depends on the arviz version
    elpd, se, p = (float(v) for v in result.iloc[:3])
    out = {
        f'elpd_{criterion}': elpd,
        f'se_elpd_{criterion}': se,
        f'p_{criterion}': p,
        ic_name: -2 * elpd,
        f'se_{ic_name}': 2 * se,
    }
    if pointwise:
        out['pointwise'] = np.asarray(values)
    return out


def compare_ic(*fits, names=None, criterion='loo'):
    """
    Compare models by LOOIC or WAIC.

    Args:
        *fits: Two or more MonotonicFit objects fitted to the same data
        names: Optional model names (default fit1, fit2, ...)
        criterion: 'loo' or 'waic'

    Returns:
        Dictionary with 'ic' (one row per model) and 'ic_diffs' (one row per
        pair, with the difference and its standard error)
    """
    if len(fits) < 2:
        raise ValueError("At least two models are required for a comparison")
    if criterion not in ('loo', 'waic'):
        raise ValueError(f"Unknown criterion '{criterion}'")
    names = list(names) if names is not None else [f"fit{i}" for i in range(1, len(fits) + 1)]
    if len(names) != len(fits):
        raise ValueError("Number of names must match the number of models")
    if len({fit.nobs() for fit in fits}) > 1:
        raise ValueError("Model comparisons require the same number of observations")

    ic_name = 'looic' if criterion == 'loo' else 'waic'
    results = [getattr(fit, criterion)(pointwise=True) for fit in fits]

    ic = pd.DataFrame({
        ic_name.upper(): [r[ic_name] for r in results],
        'SE': [r[f'se_{ic_name}'] for r in results],
    }, index=names)

    diffs, labels = [], []
    for i in range(len(fits)):
        for j in range(i + 1, len(fits)):
            pointwise = -2 * (results[i]['pointwise'] - results[j]['pointwise'])
            diffs.append((pointwise.sum(), np.sqrt(len(pointwise)) * pointwise.std(ddof=1)))
            labels.append(f"{names[i]} - {names[j]}")

    ic_diffs = pd.DataFrame(diffs, columns=[ic_name.upper(), 'SE'], index=labels)
    return {'ic': ic, 'ic_diffs': ic_diffs}
