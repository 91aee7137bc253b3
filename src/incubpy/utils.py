from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path

import pandas as pd
import polars as pl

from .config import get_config
from .types import AnyFrame, ReturnType

_SECONDS_PER_DAY = 86400.0


def resolve_return_type(return_type: ReturnType | None) -> ReturnType:
    if return_type is not None:
        return return_type
    return get_config().return_type


def to_polars(df: AnyFrame) -> pl.DataFrame:
    if isinstance(df, pl.DataFrame):
        return df
    if isinstance(df, pd.DataFrame):
        return pl.from_pandas(df)
    raise TypeError(f"Unsupported frame type: {type(df)!r}")


def to_pandas(df: pl.DataFrame) -> pd.DataFrame:
    return df.to_pandas()


def is_url(source: str | Path) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def file_sha256(path: Path) -> str:
    """Return the SHA-256 checksum of a file, read in 1 MiB chunks."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def days_since(moment: datetime, epoch: datetime) -> float:
    """Fractional days from ``epoch`` to ``moment``; sub-day precision is kept."""
    return (moment - epoch).total_seconds() / _SECONDS_PER_DAY
