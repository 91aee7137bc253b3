"""Maximum-likelihood fit of a doubly interval-censored incubation period.

Exposure is assumed uniform within its window and independent of the
incubation period. With ``F`` the incubation CDF, ``f`` its density and
``G`` the integrated CDF (see ``incubpy.distributions``), a case contributes:

- type 0, both windows proper intervals:
  ``[G(SR-EL) - G(SR-ER) - G(SL-EL) + G(SL-ER)] / (ER-EL)``
- type 1, symptom onset known exactly at ``S``:
  ``[F(S-EL) - F(S-ER)] / (ER-EL)``
- type 2, exposure known exactly at ``E``:
  ``F(SR-E) - F(SL-E)``
- type 3, both known exactly: ``f(S-E)``
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from scipy.optimize import minimize

from .cohort import Cohort
from .config import get_config
from .distributions import Distribution, get_distribution
from .errors import FitDidNotConverge, InsufficientData
from .records import TYPE_EXACT, TYPE_EXPOSURE_POINT, TYPE_INTERVAL, TYPE_SYMPTOM_POINT
from .types import Family

logger = logging.getLogger(__name__)

_TINY = 1e-300


@dataclass(frozen=True)
class PointFit:
    """Point estimates from a single likelihood maximisation."""

    cohort: str
    family: Family
    params: tuple[float, float]
    log_likelihood: float
    n: int
    iterations: int

    @property
    def distribution(self) -> Distribution:
        return get_distribution(self.family)

    @property
    def param_dict(self) -> dict[str, float]:
        return dict(zip(self.distribution.param_names, self.params, strict=True))


def case_types(el: np.ndarray, er: np.ndarray, sl: np.ndarray, sr: np.ndarray) -> np.ndarray:
    exposure_point = el == er
    symptom_point = sl == sr
    types = np.full(el.shape, TYPE_INTERVAL, dtype=int)
    types[symptom_point] = TYPE_SYMPTOM_POINT
    types[exposure_point] = TYPE_EXPOSURE_POINT
    types[exposure_point & symptom_point] = TYPE_EXACT
    return types


def case_likelihoods(
    params: tuple[float, float],
    el: np.ndarray,
    er: np.ndarray,
    sl: np.ndarray,
    sr: np.ndarray,
    dist: Distribution,
) -> np.ndarray:
    """Per-case likelihood contributions."""
    types = case_types(el, er, sl, sr)
    lik = np.empty(el.shape, dtype=float)

    mask = types == TYPE_INTERVAL
    if mask.any():
        a, b, c, d = el[mask], er[mask], sl[mask], sr[mask]
        g = dist.integrated_cdf
        lik[mask] = (
            g(d - a, params) - g(d - b, params) - g(c - a, params) + g(c - b, params)
        ) / (b - a)

    mask = types == TYPE_SYMPTOM_POINT
    if mask.any():
        a, b, s = el[mask], er[mask], sr[mask]
        lik[mask] = (dist.cdf(s - a, params) - dist.cdf(s - b, params)) / (b - a)

    mask = types == TYPE_EXPOSURE_POINT
    if mask.any():
        e, c, d = el[mask], sl[mask], sr[mask]
        lik[mask] = dist.cdf(d - e, params) - dist.cdf(c - e, params)

    mask = types == TYPE_EXACT
    if mask.any():
        lik[mask] = dist.pdf(sr[mask] - el[mask], params)
    return lik


def log_likelihood(
    params: tuple[float, float],
    el: np.ndarray,
    er: np.ndarray,
    sl: np.ndarray,
    sr: np.ndarray,
    dist: Distribution,
) -> float:
    """Total log-likelihood of a cohort's bounds under ``params``."""
    lik = case_likelihoods(params, el, er, sl, sr, dist)
    return float(np.sum(np.log(np.clip(lik, _TINY, None))))


def _initial_params(
    el: np.ndarray, er: np.ndarray, sl: np.ndarray, sr: np.ndarray, dist: Distribution
) -> tuple[float, float]:
    midpoints = (sl + sr) / 2 - (el + er) / 2
    return dist.initial_params(np.maximum(midpoints, 0.1))


def fit_interval_censored(
    cohort: Cohort,
    family: Family | None = None,
    *,
    max_iter: int | None = None,
    min_cases: int | None = None,
    start: tuple[float, float] | None = None,
) -> PointFit:
    """Fit an incubation-period distribution to a cohort by maximum likelihood.

    Args:
        cohort: Cohort of derived intervals.
        family: "lognormal", "gamma" or "weibull". Defaults to global config.
        max_iter: Optimiser iteration budget. Defaults to global config.
        min_cases: Smallest cohort accepted. Defaults to global config.
        start: Starting parameters on the natural scale. Defaults to values
            computed from the midpoint durations.

    Returns:
        PointFit with the maximum-likelihood parameters.

    Raises:
        InsufficientData: If the cohort has fewer than ``min_cases`` cases.
        FitDidNotConverge: If Nelder-Mead stops before converging.
    """
    el, er, sl, sr = cohort.arrays()
    return fit_bounds(
        el,
        er,
        sl,
        sr,
        family,
        name=cohort.name,
        max_iter=max_iter,
        min_cases=min_cases,
        start=start,
    )


def fit_bounds(
    el: np.ndarray,
    er: np.ndarray,
    sl: np.ndarray,
    sr: np.ndarray,
    family: Family | None = None,
    *,
    name: str = "",
    max_iter: int | None = None,
    min_cases: int | None = None,
    start: tuple[float, float] | None = None,
) -> PointFit:
    """Array form of ``fit_interval_censored``; ``name`` labels errors and logs."""
    config = get_config()
    family = family or config.family
    max_iter = max_iter if max_iter is not None else config.max_iter
    min_cases = min_cases if min_cases is not None else config.min_cases
    dist = get_distribution(family)

    n = len(el)
    if n < min_cases:
        raise InsufficientData(name, n, min_cases)

    x0 = dist.to_unconstrained(start or _initial_params(el, er, sl, sr, dist))

    def objective(theta: np.ndarray) -> float:
        params = dist.from_unconstrained(theta)
        with np.errstate(all="ignore"):
            value = -log_likelihood(params, el, er, sl, sr, dist)
        return value if np.isfinite(value) else np.inf

    res = minimize(
        objective,
        x0=x0,
        method="Nelder-Mead",
        options={"maxiter": max_iter, "xatol": 1e-6, "fatol": 1e-8},
    )
    if not res.success or not np.isfinite(res.fun):
        raise FitDidNotConverge(name, str(res.message))

    params = dist.from_unconstrained(res.x)
    fit = PointFit(
        cohort=name,
        family=family,
        params=params,
        log_likelihood=-float(res.fun),
        n=n,
        iterations=int(res.nit),
    )
    logger.debug("Fitted %s to cohort %s: %s", family, name, fit.param_dict)
    return fit


ARITH_MEAN_LABEL = "arith_mean"


def quantile_label(p: float) -> str:
    """Label a requested probability; ``0`` is the geometric-mean sentinel."""
    if p == 0:
        return "mean"
    return f"p{100 * p:g}"


def horizon_label(days: float) -> str:
    return f"P>{days:g}d"


def quantiles(fit: PointFit, probs: Sequence[float]) -> dict[str, float]:
    """Quantiles of the fitted distribution keyed by label.

    A probability of ``0`` reports the geometric mean (``exp(mu)`` for the
    log-normal) under the label ``"mean"``.
    """
    dist = fit.distribution
    out: dict[str, float] = {}
    for p in probs:
        if not 0 <= p < 1:
            raise ValueError(f"Quantile probabilities must lie in [0, 1): {p}")
        if p == 0:
            out[quantile_label(p)] = dist.geometric_mean(fit.params)
        else:
            out[quantile_label(p)] = float(dist.ppf(p, fit.params))
    return out


def tail_probabilities(fit: PointFit, horizons: Sequence[float]) -> dict[str, float]:
    """Share of cases still without symptoms ``days`` after exposure."""
    dist = fit.distribution
    return {horizon_label(h): float(1.0 - dist.cdf(h, fit.params)) for h in horizons}


def summarize(
    fit: PointFit, probs: Sequence[float], horizons: Sequence[float] = ()
) -> dict[str, float]:
    """Parameters, arithmetic mean, quantiles and tail probabilities of a fit.

    The arithmetic mean is reported as ``"arith_mean"`` so it is never
    confused with the geometric ``"mean"`` quantile sentinel.
    """
    return {
        **fit.param_dict,
        ARITH_MEAN_LABEL: fit.distribution.mean(fit.params),
        **quantiles(fit, probs),
        **tail_probabilities(fit, horizons),
    }
