"""End-to-end analysis: line list in, result tables and manifest out."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from pathlib import Path
from typing import Any

import polars as pl

from ._internal.validation import validate_interval_order
from .aggregate import cohort_summary, compare_with_published, results_table, write_table
from .bootstrap import FitResult, bootstrap_fit
from .cohort import Cohort, CohortSpec, build_cohorts, standard_cohorts
from .config import Config, get_config
from .datasets import load_published_estimates
from .io import CaseSchema, read_cases, to_records
from .manifest import MANIFEST_NAME, build_manifest
from .utils import file_sha256, is_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOutput:
    """Everything produced by ``run_analysis``."""

    cohorts: dict[str, Cohort]
    results: dict[str, FitResult]
    table: pl.DataFrame
    summary: pl.DataFrame
    comparison: pl.DataFrame
    files: list[Path]


def _resolve_version() -> str:
    try:
        return package_version("incubpy")
    except PackageNotFoundError:
        return "unknown"


def _run_parameters(source: str | Path, config: Config) -> dict[str, Any]:
    params = {
        key: value
        for key, value in asdict(config).items()
        if key not in {"cache_dir", "user_agent", "timeout_seconds", "return_type"}
    }
    params["input"] = str(source)
    params["input_sha256"] = None if is_url(source) else file_sha256(Path(source))
    return params


def fit_cohorts(cohorts: dict[str, Cohort], config: Config | None = None) -> dict[str, FitResult]:
    """Fit and bootstrap every cohort with the same settings."""
    config = config or get_config()
    results: dict[str, FitResult] = {}
    for name, cohort in cohorts.items():
        results[name] = bootstrap_fit(
            cohort,
            config.family,
            probs=config.probs,
            horizons=config.horizons,
            n_boot=config.n_boot,
            seed=config.seed,
            ci_width=config.ci_width,
            n_jobs=config.n_jobs,
            discard_threshold=config.discard_threshold,
            max_iter=config.max_iter,
            min_cases=config.min_cases,
        )
    return results


def run_analysis(
    source: str | Path,
    out_dir: Path | None = None,
    *,
    config: Config | None = None,
    schema: CaseSchema | None = None,
    specs: Sequence[CohortSpec] | None = None,
    published: str | Path | None = None,
) -> AnalysisOutput:
    """Run the full incubation-period analysis.

    Args:
        source: Line list path or URL.
        out_dir: Directory for output tables and the manifest. Nothing is
            written when omitted.
        config: Analysis settings. Defaults to the global configuration.
        schema: Line list column mapping.
        specs: Cohorts to fit. Defaults to ``standard_cohorts(config)``.
        published: CSV of published estimates. Defaults to the bundled table.

    Returns:
        AnalysisOutput with cohorts, fit results and the derived tables.

    Example:
        >>> import incubpy as ib
        >>> out = ib.run_analysis("data/traveler_cases.csv", Path("results"))
        >>> out.table.filter(pl.col("label") == "p50")
    """
    config = config or get_config()
    records = to_records(read_cases(source, schema=schema, return_type="polars"))
    cohorts = build_cohorts(records, specs if specs is not None else standard_cohorts(config))
    results = fit_cohorts(cohorts, config)

    table = results_table(results, return_type="polars")
    summary = cohort_summary(cohorts, records, return_type="polars")
    comparison = compare_with_published(
        table, load_published_estimates(published, return_type="polars"), return_type="polars"
    )
    unreliable = [name for name, result in results.items() if result.unreliable]
    if unreliable:
        logger.warning("Unreliable bootstrap intervals for cohorts: %s", ", ".join(unreliable))

    files: list[Path] = []
    if out_dir is not None:
        intervals = pl.concat(
            [cohort.to_frame(return_type="polars") for cohort in cohorts.values()],
            how="vertical",
        )
        validate_interval_order(intervals)
        files = [
            write_table(table, out_dir / "results.csv"),
            write_table(table, out_dir / "results.parquet"),
            write_table(summary, out_dir / "cohorts.csv"),
            write_table(intervals, out_dir / "intervals.csv"),
            write_table(comparison, out_dir / "comparison.csv"),
        ]
        build_manifest(
            files,
            _run_parameters(source, config),
            _resolve_version(),
            out_dir / MANIFEST_NAME,
        )
        logger.info("Analysis artifacts written to %s", out_dir)

    return AnalysisOutput(
        cohorts=cohorts,
        results=results,
        table=table,
        summary=summary,
        comparison=comparison,
        files=files,
    )
