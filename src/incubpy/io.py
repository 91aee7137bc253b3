"""Reading line-list files into standardized case tables.

This module handles loading the hand-curated case line list from a local
CSV/parquet file or a remote URL, renaming the source columns to the
package's canonical names and parsing the free-form date-time strings.

Key functions:
    - read_cases(): Read a line list into a standardized DataFrame
    - to_records(): Convert a standardized frame into CaseRecord objects
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path

import polars as pl

from ._internal.validation import validate_no_duplicates, validate_schema
from .config import get_config
from .http import cached_get
from .records import CaseRecord
from .types import AnyFrame, ReturnType
from .utils import is_url, resolve_return_type, to_pandas, to_polars

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = (
    "exposure_left",
    "exposure_right",
    "symptom_left",
    "symptom_right",
    "fever_left",
    "fever_right",
    "presented",
    "published",
)
REQUIRED_FIELDS = ["case_id", "exposure_left", "exposure_right", "symptom_left", "symptom_right"]

# Tried in order; the first format that parses a cell wins.
_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%m/%d/%Y %H:%M",
)
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d %b %Y")

_REVIEWER_TOKEN = r"[^;,/&\s]+"
_REVIEWER_CONNECTOR = r"(?i)\band\b"


@dataclass(frozen=True)
class CaseSchema:
    """Mapping from canonical field names to the line list's column names.

    The defaults follow the traveller line list layout: two-letter bound
    columns, fever-specific symptom bounds, the clinic presentation and
    publication dates, and a reviewer column holding initials.
    """

    case_id: str = "ID"
    exposure_left: str = "EL"
    exposure_right: str = "ER"
    symptom_left: str = "SL"
    symptom_right: str = "SR"
    fever_left: str = "SL_fever"
    fever_right: str = "SR_fever"
    presented: str = "PS"
    published: str = "PUB"
    review_count: str = "REVIEWERS"
    origin: str = "ORIGIN"
    age: str = "AGE"
    sex: str = "SEX"

    def rename_map(self, columns: list[str]) -> dict[str, str]:
        mapping = asdict(self)
        return {source: canonical for canonical, source in mapping.items() if source in columns}


def _read_raw(path: Path) -> pl.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pl.read_parquet(path)
    if suffix in {".csv", ".txt", ""}:
        return pl.read_csv(path, infer_schema_length=0, null_values=["", "NA", "N/A"])
    raise ValueError(f"Unsupported line list format: {path.suffix}")


def _parse_timestamp(name: str, dtype: pl.DataType) -> pl.Expr:
    col = pl.col(name)
    if dtype == pl.Datetime:
        return col.cast(pl.Datetime("us"))
    if dtype == pl.Date:
        return col.cast(pl.Datetime("us"))
    if dtype == pl.Null:
        return col.cast(pl.Datetime("us"))
    text = col.cast(pl.String).str.strip_chars()
    candidates = [
        text.str.to_datetime(fmt, time_unit="us", strict=False) for fmt in _DATETIME_FORMATS
    ]
    candidates += [
        text.str.to_date(fmt, strict=False).cast(pl.Datetime("us")) for fmt in _DATE_FORMATS
    ]
    return pl.coalesce(candidates)


def _review_count(name: str, dtype: pl.DataType) -> pl.Expr:
    col = pl.col(name)
    if dtype.is_numeric():
        return col.cast(pl.Int64).fill_null(0)
    text = col.cast(pl.String).str.strip_chars()
    numeric = text.cast(pl.Int64, strict=False)
    names = text.str.replace_all(_REVIEWER_CONNECTOR, ";")
    tokens = names.str.extract_all(_REVIEWER_TOKEN).list.len().cast(pl.Int64)
    return pl.coalesce([numeric, tokens, pl.lit(0, dtype=pl.Int64)])


def standardize_cases(df: AnyFrame, schema: CaseSchema | None = None) -> pl.DataFrame:
    """Rename and type a raw line-list frame into the canonical case layout.

    Args:
        df: Raw line list with the columns named in ``schema``.
        schema: Column mapping. Defaults to ``CaseSchema()``.

    Returns:
        Polars frame with one column per CaseRecord field. Optional fields
        absent from the source are added as null columns.

    Raises:
        ValueError: If required columns are missing or case ids repeat.
    """
    schema = schema or CaseSchema()
    frame = to_polars(df)
    frame = frame.rename(schema.rename_map(frame.columns))
    validate_schema(frame, REQUIRED_FIELDS)

    missing_optional = [
        name for name in asdict(schema) if name not in frame.columns
    ]
    if missing_optional:
        logger.debug("Line list lacks optional columns: %s", ", ".join(missing_optional))
        frame = frame.with_columns([pl.lit(None).alias(name) for name in missing_optional])

    dtypes = dict(frame.schema)
    frame = frame.with_columns(
        [pl.col("case_id").cast(pl.String).str.strip_chars()]
        + [_parse_timestamp(name, dtypes[name]).alias(name) for name in TIMESTAMP_FIELDS]
        + [
            _review_count("review_count", dtypes["review_count"]).alias("review_count"),
            pl.col("origin").cast(pl.String).str.strip_chars(),
            pl.col("age").cast(pl.Float64, strict=False),
            pl.col("sex").cast(pl.String).str.strip_chars(),
        ]
    )
    frame = frame.filter(pl.col("case_id").is_not_null())
    validate_no_duplicates(frame, keys=["case_id"])
    return frame.select(list(asdict(schema)))


def read_cases(
    source: str | Path,
    *,
    schema: CaseSchema | None = None,
    return_type: ReturnType | None = None,
) -> AnyFrame:
    """Read a case line list from a local file or an http(s) URL.

    Remote files are cached on disk and revalidated on later reads.

    Args:
        source: Local path or URL of a CSV or parquet line list.
        schema: Column mapping. Defaults to ``CaseSchema()``.
        return_type: "polars" or "pandas". Defaults to global config.

    Returns:
        Standardized case table (see ``standardize_cases``).

    Example:
        >>> import incubpy as ib
        >>> cases = ib.read_cases("data/traveler_cases.csv")
    """
    if is_url(source):
        path = cached_get(str(source), get_config())
    else:
        path = Path(source)
    raw = _read_raw(path)
    df = standardize_cases(raw, schema)
    logger.info("Read %d cases from %s", df.height, source)
    if resolve_return_type(return_type) == "pandas":
        return to_pandas(df)
    return df


def to_records(df: AnyFrame) -> list[CaseRecord]:
    """Convert a standardized case table into CaseRecord objects."""
    frame = to_polars(df)
    records: list[CaseRecord] = []
    for row in frame.iter_rows(named=True):
        records.append(
            CaseRecord(
                case_id=str(row["case_id"]),
                exposure_left=row["exposure_left"],
                exposure_right=row["exposure_right"],
                symptom_left=row["symptom_left"],
                symptom_right=row["symptom_right"],
                fever_left=row["fever_left"],
                fever_right=row["fever_right"],
                presented=row["presented"],
                published=row["published"],
                review_count=int(row["review_count"] or 0),
                origin=row["origin"],
                age=row["age"],
                sex=row["sex"],
            )
        )
    return records
