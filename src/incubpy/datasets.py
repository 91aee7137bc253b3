from __future__ import annotations

from importlib import resources
from pathlib import Path

import polars as pl

from .types import AnyFrame, ReturnType
from .utils import resolve_return_type, to_pandas

_DATASETS = {
    "published_estimates": "published_estimates.csv",
}

_ESTIMATE_SCHEMA = {
    "study": pl.String,
    "citation": pl.String,
    "label": pl.String,
    "estimate": pl.Float64,
    "ci_low": pl.Float64,
    "ci_high": pl.Float64,
}


def _data_path(name: str) -> Path:
    try:
        filename = _DATASETS[name]
    except KeyError as exc:
        raise ValueError(f"Unknown dataset: {name}") from exc
    return Path(str(resources.files("incubpy.data").joinpath(filename)))


def load_published_estimates(
    path: str | Path | None = None,
    *,
    return_type: ReturnType | None = None,
) -> AnyFrame:
    """
    Load published incubation-period estimates used for comparison.

    Args:
        path: Optional CSV with columns study, citation, label, estimate,
              ci_low, ci_high. Defaults to the bundled table.
    """
    source = Path(path) if path is not None else _data_path("published_estimates")
    df = pl.read_csv(source, infer_schema_length=0)
    missing = [col for col in _ESTIMATE_SCHEMA if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")
    df = df.select(
        [pl.col(name).cast(dtype, strict=False) for name, dtype in _ESTIMATE_SCHEMA.items()]
    )
    if resolve_return_type(return_type) == "pandas":
        return to_pandas(df)
    return df
