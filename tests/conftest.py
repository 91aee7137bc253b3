from __future__ import annotations

from datetime import datetime
from pathlib import Path

import polars as pl
import pytest

from incubpy.simulate import simulate_cohort, to_line_list

EPOCH = datetime(2019, 12, 31)


@pytest.fixture
def line_list_path(tmp_path: Path) -> Path:
    """Simulated line list with fever bounds on half the cases and two origins."""
    cohort = simulate_cohort(60, (1.6, 0.4), seed=4)
    df = to_line_list(cohort, EPOCH, return_type="polars")
    even = pl.int_range(pl.len()) % 2 == 0
    df = df.with_columns(
        pl.when(even).then(pl.col("SL")).otherwise(None).alias("SL_fever"),
        pl.when(even).then(pl.col("SR")).otherwise(None).alias("SR_fever"),
        pl.when(even).then(pl.lit("Wuhan")).otherwise(pl.lit("Shanghai")).alias("ORIGIN"),
    )
    path = tmp_path / "cases.csv"
    df.write_csv(path)
    return path
