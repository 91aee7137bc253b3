from __future__ import annotations

from .aggregate import cohort_summary, compare_with_published, results_table, write_table
from .bootstrap import Estimate, FitResult, bootstrap_fit
from .cohort import Cohort, CohortSpec, FilterPolicy, build_cohort, build_cohorts, standard_cohorts
from .config import Config, configure, get_config
from .datasets import load_published_estimates
from .errors import (
    FitDidNotConverge,
    IncubationError,
    Incomplete,
    InsufficientData,
    InvalidInterval,
)
from .estimate import PointFit, fit_interval_censored, quantiles, tail_probabilities
from .io import CaseSchema, read_cases, to_records
from .normalize import DEFAULT_RULES, DefaultRule, NormalizationPolicy, normalize_case
from .pipeline import AnalysisOutput, run_analysis
from .records import CaseRecord, DerivedInterval
from .simulate import simulate_cohort
from .types import AnyFrame, Family, ReturnType, ZeroWidthPolicy

__all__ = [
    "DEFAULT_RULES",
    "AnalysisOutput",
    "AnyFrame",
    "CaseRecord",
    "CaseSchema",
    "Cohort",
    "CohortSpec",
    "Config",
    "DefaultRule",
    "DerivedInterval",
    "Estimate",
    "Family",
    "FilterPolicy",
    "FitDidNotConverge",
    "FitResult",
    "IncubationError",
    "Incomplete",
    "InsufficientData",
    "InvalidInterval",
    "NormalizationPolicy",
    "PointFit",
    "ReturnType",
    "ZeroWidthPolicy",
    "bootstrap_fit",
    "build_cohort",
    "build_cohorts",
    "cohort_summary",
    "compare_with_published",
    "configure",
    "fit_interval_censored",
    "get_config",
    "load_published_estimates",
    "normalize_case",
    "quantiles",
    "read_cases",
    "results_table",
    "run_analysis",
    "simulate_cohort",
    "standard_cohorts",
    "tail_probabilities",
    "to_records",
    "write_table",
]

__version__ = "0.1.0"
