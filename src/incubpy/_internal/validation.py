"""Validation utilities for data quality checks.

This module provides functions for validating line-list schemas, detecting
duplicate case identifiers and checking the ordering of derived bounds.
"""

from __future__ import annotations

import polars as pl


def validate_schema(df: pl.DataFrame, required_columns: list[str]) -> None:
    """Validate that a DataFrame has the required schema.

    Args:
        df: DataFrame to validate.
        required_columns: List of required column names.

    Raises:
        ValueError: If required columns are missing.
    """
    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def validate_no_duplicates(df: pl.DataFrame, keys: list[str]) -> None:
    """Validate that there are no duplicate records based on key columns.

    Args:
        df: DataFrame to validate.
        keys: List of column names that define uniqueness.

    Raises:
        ValueError: If duplicate records are found.
    """
    dups = df.group_by(keys).agg(pl.len().alias("count")).filter(pl.col("count") > 1)

    if dups.height > 0:
        raise ValueError(
            f"Found {dups.height} duplicate records. First few duplicates:\n{dups.head(5)}"
        )


def validate_interval_order(df: pl.DataFrame) -> None:
    """Validate that every row satisfies EL <= ER <= SR and EL <= SL <= SR.

    Args:
        df: Frame with ``el``, ``er``, ``sl`` and ``sr`` columns.

    Raises:
        ValueError: If any row violates the ordering.
    """
    validate_schema(df, ["el", "er", "sl", "sr"])
    bad = df.filter(
        (pl.col("el") > pl.col("er"))
        | (pl.col("sl") > pl.col("sr"))
        | (pl.col("er") > pl.col("sr"))
        | (pl.col("sl") < pl.col("el"))
    )
    if bad.height > 0:
        raise ValueError(f"Found {bad.height} rows with mis-ordered bounds:\n{bad.head(5)}")
