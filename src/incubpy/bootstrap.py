"""Non-parametric bootstrap confidence intervals for incubation-period fits.

Whole cases are resampled with replacement and refitted. Replicate ``b``
draws from its own generator seeded by ``SeedSequence(seed).spawn(n_boot)[b]``,
so the output does not depend on how replicates are spread across workers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
from joblib import Parallel, delayed

from .cohort import Cohort
from .config import get_config
from .errors import FitDidNotConverge
from .estimate import PointFit, fit_bounds, fit_interval_censored, summarize
from .types import Family

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Estimate:
    """Point estimate with its percentile confidence interval."""

    estimate: float
    ci_low: float
    ci_high: float


@dataclass(frozen=True)
class FitResult:
    """Point fit plus bootstrap intervals for one cohort.

    Attributes:
        cohort: Cohort name.
        family: Distribution family.
        n: Number of cases fitted.
        n_boot: Replicates requested.
        n_discarded: Replicates whose fit did not converge.
        ci_width: Interval width in percent.
        seed: Seed of the resampling stream.
        unreliable: True when the discard rate exceeded the threshold.
        point: Fit on the original cohort.
        estimates: Label -> Estimate for parameters, quantiles and tail
            probabilities.
    """

    cohort: str
    family: Family
    n: int
    n_boot: int
    n_discarded: int
    ci_width: float
    seed: int
    unreliable: bool
    point: PointFit
    estimates: Mapping[str, Estimate]

    @property
    def n_used(self) -> int:
        return self.n_boot - self.n_discarded

    def __getitem__(self, label: str) -> Estimate:
        return self.estimates[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self.estimates)


def percentile_interval(values: np.ndarray, width: float) -> tuple[np.ndarray, np.ndarray]:
    """Empirical percentile bounds of ``values`` (replicates along axis 0)."""
    if not 0 < width < 100:
        raise ValueError(f"Interval width must lie in (0, 100): {width}")
    tail = (100.0 - width) / 2
    low, high = np.percentile(values, [tail, 100.0 - tail], axis=0)
    return low, high


def _replicate(
    bounds: tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray],
    seed: np.random.SeedSequence,
    family: Family,
    probs: Sequence[float],
    horizons: Sequence[float],
    max_iter: int,
    start: tuple[float, float],
    name: str,
) -> dict[str, float] | None:
    rng = np.random.default_rng(seed)
    el, er, sl, sr = bounds
    n = len(el)
    idx = rng.integers(0, n, size=n)
    try:
        fit = fit_bounds(
            el[idx],
            er[idx],
            sl[idx],
            sr[idx],
            family,
            name=name,
            max_iter=max_iter,
            min_cases=1,
            start=start,
        )
    except FitDidNotConverge:
        return None
    return summarize(fit, probs, horizons)


def bootstrap_fit(
    cohort: Cohort,
    family: Family | None = None,
    *,
    probs: Sequence[float] | None = None,
    horizons: Sequence[float] | None = None,
    n_boot: int | None = None,
    seed: int | None = None,
    ci_width: float | None = None,
    n_jobs: int | None = None,
    discard_threshold: float | None = None,
    max_iter: int | None = None,
    min_cases: int | None = None,
) -> FitResult:
    """Fit a cohort and attach bootstrap percentile confidence intervals.

    Point estimates come from the fit on the original cohort; only the
    interval bounds come from the replicates. Every argument left as
    ``None`` falls back to the global configuration.

    Args:
        cohort: Cohort of derived intervals.
        family: Distribution family.
        probs: Quantile probabilities (``0`` requests the geometric mean).
        horizons: Days after exposure for tail probabilities.
        n_boot: Number of replicates.
        seed: Seed for the resampling stream.
        ci_width: Interval width in percent.
        n_jobs: Parallel workers (joblib semantics, ``-1`` uses all cores).
        discard_threshold: Discard rate above which the result is flagged.
        max_iter: Optimiser iteration budget per fit.
        min_cases: Smallest cohort accepted for the original fit.

    Returns:
        FitResult for the cohort.

    Raises:
        InsufficientData: If the cohort is too small.
        FitDidNotConverge: If the original fit fails, or every replicate does.

    Example:
        >>> import incubpy as ib
        >>> result = ib.bootstrap_fit(cohort, n_boot=200, seed=1)
        >>> result["p50"].estimate, result["p50"].ci_low, result["p50"].ci_high
    """
    config = get_config()
    family = family or config.family
    probs = tuple(probs if probs is not None else config.probs)
    horizons = tuple(horizons if horizons is not None else config.horizons)
    n_boot = n_boot if n_boot is not None else config.n_boot
    seed = seed if seed is not None else config.seed
    ci_width = ci_width if ci_width is not None else config.ci_width
    n_jobs = n_jobs if n_jobs is not None else config.n_jobs
    threshold = discard_threshold if discard_threshold is not None else config.discard_threshold
    max_iter = max_iter if max_iter is not None else config.max_iter
    if n_boot < 1:
        raise ValueError(f"n_boot must be positive: {n_boot}")

    point = fit_interval_censored(cohort, family, max_iter=max_iter, min_cases=min_cases)
    headline = summarize(point, probs, horizons)
    labels = list(headline)

    bounds = cohort.arrays()
    children = np.random.SeedSequence(seed).spawn(n_boot)
    replicates = Parallel(n_jobs=n_jobs)(
        delayed(_replicate)(
            bounds, child, family, probs, horizons, max_iter, point.params, cohort.name
        )
        for child in children
    )

    kept = [values for values in replicates if values is not None]
    n_discarded = n_boot - len(kept)
    if not kept:
        raise FitDidNotConverge(cohort.name, f"all {n_boot} bootstrap replicates failed")

    samples = np.array([[values[label] for label in labels] for values in kept], dtype=float)
    low, high = percentile_interval(samples, ci_width)

    unreliable = n_discarded / n_boot > threshold
    if n_discarded:
        logger.warning(
            "Cohort %s: %d of %d bootstrap replicates did not converge",
            cohort.name,
            n_discarded,
            n_boot,
        )
    if unreliable:
        logger.warning(
            "Cohort %s: discard rate %.1f%% exceeds %.1f%%; intervals flagged unreliable",
            cohort.name,
            100 * n_discarded / n_boot,
            100 * threshold,
        )

    estimates = {
        label: Estimate(headline[label], float(low[i]), float(high[i]))
        for i, label in enumerate(labels)
    }
    result = FitResult(
        cohort=cohort.name,
        family=family,
        n=len(cohort),
        n_boot=n_boot,
        n_discarded=n_discarded,
        ci_width=ci_width,
        seed=seed,
        unreliable=unreliable,
        point=point,
        estimates=MappingProxyType(estimates),
    )
    if "p50" in estimates:
        median = estimates["p50"]
        logger.info(
            "Cohort %s (n=%d): median %.2f days (%.2f-%.2f)",
            cohort.name,
            result.n,
            median.estimate,
            median.ci_low,
            median.ci_high,
        )
    return result
