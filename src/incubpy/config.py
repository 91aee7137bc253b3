"""Configuration management for incubpy.

This module provides a global configuration system for controlling package behavior.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from platformdirs import user_cache_dir

from .types import Family, ReturnType, ZeroWidthPolicy


def _default_cache_dir() -> Path:
    override = os.getenv("INCUBPY_CACHE_DIR")
    if override:
        return Path(override).expanduser()
    return Path(user_cache_dir("incubpy"))


@dataclass(frozen=True)
class Config:
    """Global configuration for incubpy package.

    Attributes:
        return_type: Default frame flavour returned by table functions.
        cache_dir: Directory for caching downloaded line lists.
        user_agent: User-Agent header for HTTP requests.
        timeout_seconds: Timeout for HTTP requests in seconds.
        reference_epoch: Day zero for the numeric interval bounds.
        min_exposure_left: Earliest possible exposure date.
        origin_label: Origin value excluded by the ``non_origin`` cohort.
        family: Distribution family fitted by default.
        probs: Quantile probabilities reported; ``0`` requests the geometric mean.
        horizons: Monitoring periods (days) for tail probabilities.
        n_boot: Number of bootstrap replicates.
        seed: Seed for the bootstrap resampling stream.
        ci_width: Width (percent) of the percentile confidence intervals.
        max_iter: Optimiser iteration budget for a single fit.
        min_cases: Smallest cohort that can be fitted.
        discard_threshold: Share of failed replicates above which a
            bootstrap is flagged unreliable.
        n_jobs: Parallel workers for bootstrap replicates.
        min_reviews: Reviews required before a case enters a cohort.
        zero_width: Policy for zero-width exposure or symptom bounds.
        nudge: Days added outward to a zero-width bound under ``"nudge"``.
    """

    return_type: ReturnType = "polars"
    cache_dir: Path = field(default_factory=_default_cache_dir)
    user_agent: str = "incubpy/0.1.0"
    timeout_seconds: float = 30.0
    reference_epoch: datetime = datetime(2019, 12, 31)
    min_exposure_left: datetime = datetime(2019, 12, 1)
    origin_label: str = "Wuhan"
    family: Family = "lognormal"
    probs: tuple[float, ...] = (0.0, 0.025, 0.05, 0.25, 0.5, 0.75, 0.95, 0.975, 0.99)
    horizons: tuple[float, ...] = (14.0,)
    n_boot: int = 1000
    seed: int = 2020
    ci_width: float = 95.0
    max_iter: int = 2000
    min_cases: int = 2
    discard_threshold: float = 0.05
    n_jobs: int = 1
    min_reviews: int = 2
    zero_width: ZeroWidthPolicy = "drop"
    nudge: float = 0.001


_CONFIG = Config()


def get_config() -> Config:
    """Get the current global configuration.

    Returns:
        The current Config instance.
    """
    return _CONFIG


def configure(**kwargs: object) -> Config:
    """Update the global configuration.

    Args:
        **kwargs: Configuration parameters to update (see Config attributes).

    Returns:
        The updated Config instance.

    Example:
        >>> import incubpy as ib
        >>> ib.configure(n_boot=200, n_jobs=4)
    """
    global _CONFIG  # noqa: PLW0603
    _CONFIG = replace(_CONFIG, **kwargs)  # type: ignore[arg-type]
    return _CONFIG
