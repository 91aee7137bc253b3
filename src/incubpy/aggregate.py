"""Reshaping fit results into tidy tables for reporting.

Nothing here computes new estimates; the functions only collect, stack and
write what the estimator and bootstrap produced.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

import polars as pl

from .bootstrap import FitResult
from .cohort import Cohort
from .estimate import ARITH_MEAN_LABEL
from .records import CaseRecord
from .types import AnyFrame, ReturnType
from .utils import resolve_return_type, to_pandas, to_polars

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "cohort",
    "family",
    "kind",
    "label",
    "estimate",
    "ci_low",
    "ci_high",
    "ci_width",
    "n",
    "n_boot_used",
    "unreliable",
]


def _label_kind(label: str, param_names: Sequence[str]) -> str:
    if label in param_names:
        return "parameter"
    if label == ARITH_MEAN_LABEL:
        return "moment"
    if label.startswith("P>"):
        return "tail"
    return "quantile"


def results_table(
    results: Iterable[FitResult] | Mapping[str, FitResult],
    *,
    return_type: ReturnType | None = None,
) -> AnyFrame:
    """Stack fit results into one long table keyed by (cohort, label).

    Args:
        results: FitResult objects, or a mapping of cohort name to FitResult.
        return_type: "polars" or "pandas". Defaults to global config.

    Returns:
        DataFrame with columns cohort, family, kind ("parameter", "moment",
        "quantile" or "tail"), label, estimate, ci_low, ci_high, ci_width, n,
        n_boot_used and unreliable.
    """
    items = results.values() if isinstance(results, Mapping) else results
    rows: list[dict[str, object]] = []
    for result in items:
        param_names = result.point.distribution.param_names
        for label, value in result.estimates.items():
            rows.append(
                {
                    "cohort": result.cohort,
                    "family": result.family,
                    "kind": _label_kind(label, param_names),
                    "label": label,
                    "estimate": value.estimate,
                    "ci_low": value.ci_low,
                    "ci_high": value.ci_high,
                    "ci_width": result.ci_width,
                    "n": result.n,
                    "n_boot_used": result.n_used,
                    "unreliable": result.unreliable,
                }
            )
    df = pl.DataFrame(
        rows,
        schema={
            "cohort": pl.String,
            "family": pl.String,
            "kind": pl.String,
            "label": pl.String,
            "estimate": pl.Float64,
            "ci_low": pl.Float64,
            "ci_high": pl.Float64,
            "ci_width": pl.Float64,
            "n": pl.Int64,
            "n_boot_used": pl.Int64,
            "unreliable": pl.Boolean,
        },
    )
    if resolve_return_type(return_type) == "pandas":
        return to_pandas(df)
    return df


def compare_with_published(
    table: AnyFrame,
    published: AnyFrame,
    *,
    cohort: str = "all",
    source_label: str = "This analysis",
    return_type: ReturnType | None = None,
) -> AnyFrame:
    """Stack one cohort's estimates with published estimates for the same labels.

    Rows are matched on label only, so published arithmetic means must be
    labelled ``"arith_mean"``; ``"mean"`` is the geometric mean here.

    Args:
        table: Output of ``results_table``.
        published: Published estimates (see ``load_published_estimates``).
        cohort: Cohort whose estimates are compared.
        source_label: Value of the ``source`` column for this analysis' rows.
        return_type: "polars" or "pandas". Defaults to global config.

    Returns:
        DataFrame with columns source, label, estimate, ci_low, ci_high.
    """
    ours = to_polars(table)
    theirs = to_polars(published)
    labels = theirs.get_column("label").unique().to_list()

    ours = ours.filter((pl.col("cohort") == cohort) & pl.col("label").is_in(labels)).select(
        pl.lit(source_label).alias("source"), "label", "estimate", "ci_low", "ci_high"
    )
    if ours.height == 0:
        logger.warning("No estimates for cohort %s match the published labels %s", cohort, labels)
    theirs = theirs.select(
        pl.col("study").alias("source"), "label", "estimate", "ci_low", "ci_high"
    )
    df = pl.concat([ours, theirs], how="vertical_relaxed").sort(["label", "source"])
    if resolve_return_type(return_type) == "pandas":
        return to_pandas(df)
    return df


def cohort_summary(
    cohorts: Mapping[str, Cohort],
    records: Sequence[CaseRecord],
    *,
    return_type: ReturnType | None = None,
) -> AnyFrame:
    """Per-cohort case counts and demographics.

    Returns:
        DataFrame with columns cohort, n, n_incomplete, n_invalid,
        n_exposure_point, n_symptom_point, median_age, share_female.
    """
    by_id = {record.case_id: record for record in records}
    rows: list[dict[str, object]] = []
    for name, cohort in cohorts.items():
        members = [by_id[case.case_id] for case in cohort.intervals if case.case_id in by_id]
        ages = pl.Series([r.age for r in members if r.age is not None], dtype=pl.Float64)
        sexes = [r.sex.lower() for r in members if r.sex]
        rows.append(
            {
                "cohort": name,
                "n": len(cohort),
                "n_incomplete": cohort.n_incomplete,
                "n_invalid": cohort.n_invalid,
                "n_exposure_point": sum(1 for case in cohort.intervals if case.el == case.er),
                "n_symptom_point": sum(1 for case in cohort.intervals if case.sl == case.sr),
                "median_age": ages.median() if ages.len() else None,
                "share_female": (
                    sum(1 for s in sexes if s in {"f", "female"}) / len(sexes) if sexes else None
                ),
            }
        )
    df = pl.DataFrame(
        rows,
        schema={
            "cohort": pl.String,
            "n": pl.Int64,
            "n_incomplete": pl.Int64,
            "n_invalid": pl.Int64,
            "n_exposure_point": pl.Int64,
            "n_symptom_point": pl.Int64,
            "median_age": pl.Float64,
            "share_female": pl.Float64,
        },
    )
    if resolve_return_type(return_type) == "pandas":
        return to_pandas(df)
    return df


def write_table(df: AnyFrame, path: Path) -> Path:
    """Write a table as CSV or parquet depending on the file suffix."""
    frame = to_polars(df)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame.write_csv(path)
    elif suffix == ".parquet":
        frame.write_parquet(path)
    else:
        raise ValueError(f"Unsupported output format: {path.suffix}")
    logger.info("Wrote %s (%d rows)", path, frame.height)
    return path
