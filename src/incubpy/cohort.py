"""Cohort derivation: normalization, validity filtering and sub-cohorts.

Every cohort (the full analysis set and each sensitivity subset) comes out
of the same ``build_cohort`` pipeline; the subsets differ only in the
``CohortSpec`` they pass in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

import numpy as np
import polars as pl

from .config import Config, get_config
from .errors import Incomplete, InvalidInterval
from .normalize import NormalizationPolicy, normalize_case
from .records import CaseRecord, DerivedInterval, DroppedCase
from .types import AnyFrame, ReturnType, ZeroWidthPolicy
from .utils import resolve_return_type, to_pandas

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterPolicy:
    """Validity predicates applied to derived intervals.

    Attributes:
        min_width: Exposure and symptom widths must exceed this. A nudged
            window counts with width ``nudge``; point bounds kept under
            "keep" are exempt.
        zero_width: How zero-width bounds are handled ("drop", "nudge", "keep").
        nudge: Days added to a zero-width bound under the "nudge" policy.
        min_reviews: Minimum number of independent reviews.
    """

    min_width: float = 0.0
    zero_width: ZeroWidthPolicy = "drop"
    nudge: float = 0.001
    min_reviews: int = 2


def check_interval(
    interval: DerivedInterval, review_count: int, policy: FilterPolicy
) -> DerivedInterval:
    """Validate a derived interval, returning it (nudged if configured).

    Raises:
        InvalidInterval: If the case fails a review, ordering or width check.
    """
    case_id = interval.case_id
    if review_count < policy.min_reviews:
        raise InvalidInterval(case_id, f"{review_count} review(s), {policy.min_reviews} required")
    if interval.el > interval.er:
        raise InvalidInterval(case_id, "exposure window ends before it starts")
    if interval.sl > interval.sr:
        raise InvalidInterval(case_id, "symptom window ends before it starts")
    if interval.er > interval.sr:
        raise InvalidInterval(case_id, "exposure window ends after symptom window")
    if interval.sl < interval.el:
        raise InvalidInterval(case_id, "symptom window starts before exposure window")

    widths = (("exposure", interval.exposure_width), ("symptom", interval.symptom_width))
    for label, width in widths:
        if width == 0:
            if policy.zero_width == "drop":
                raise InvalidInterval(case_id, f"zero-width {label} window")
            if policy.zero_width == "keep":
                continue
            width = policy.nudge
        if width <= policy.min_width:
            raise InvalidInterval(case_id, f"{label} window narrower than {policy.min_width} days")

    if policy.zero_width == "nudge":
        # Widen away from the other window so the ordering constraints still hold.
        if interval.exposure_width == 0:
            interval = replace(interval, el=interval.el - policy.nudge)
        if interval.symptom_width == 0:
            interval = replace(interval, sr=interval.sr + policy.nudge)
    return interval


@dataclass(frozen=True)
class Cohort:
    """A named, immutable set of derived intervals."""

    name: str
    intervals: tuple[DerivedInterval, ...]
    dropped: tuple[DroppedCase, ...] = ()

    def __len__(self) -> int:
        return len(self.intervals)

    @property
    def n_incomplete(self) -> int:
        return sum(1 for case in self.dropped if case.stage == "incomplete")

    @property
    def n_invalid(self) -> int:
        return sum(1 for case in self.dropped if case.stage == "invalid")

    def arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Return the EL, ER, SL and SR columns as float arrays."""
        bounds = np.array(
            [(case.el, case.er, case.sl, case.sr) for case in self.intervals], dtype=float
        ).reshape(-1, 4)
        return bounds[:, 0], bounds[:, 1], bounds[:, 2], bounds[:, 3]

    def to_frame(self, *, return_type: ReturnType | None = None) -> AnyFrame:
        df = pl.DataFrame(
            {
                "case_id": [case.case_id for case in self.intervals],
                "el": [case.el for case in self.intervals],
                "er": [case.er for case in self.intervals],
                "sl": [case.sl for case in self.intervals],
                "sr": [case.sr for case in self.intervals],
                "type": [case.type for case in self.intervals],
            },
            schema={
                "case_id": pl.String,
                "el": pl.Float64,
                "er": pl.Float64,
                "sl": pl.Float64,
                "sr": pl.Float64,
                "type": pl.Int64,
            },
        ).with_columns(pl.lit(self.name).alias("cohort"))
        if resolve_return_type(return_type) == "pandas":
            return to_pandas(df)
        return df


@dataclass(frozen=True)
class CohortSpec:
    """Parameters distinguishing one cohort derivation from another.

    Attributes:
        name: Cohort label used in result tables.
        policy: Normalization policy (epoch, exposure floor, fever switch).
        filter: Validity predicates.
        origin_exclude: Drop cases whose origin contains this text; cases
            with no recorded origin are dropped as well.
        require_fever: Keep only cases with at least one fever bound.
    """

    name: str
    policy: NormalizationPolicy
    filter: FilterPolicy
    origin_exclude: str | None = None
    require_fever: bool = False

    def selects(self, record: CaseRecord) -> bool:
        if self.require_fever and not record.has_fever:
            return False
        if self.origin_exclude is not None:
            if record.origin is None:
                return False
            if self.origin_exclude.lower() in record.origin.lower():
                return False
        return True


def build_cohort(records: Iterable[CaseRecord], spec: CohortSpec) -> Cohort:
    """Derive a cohort from raw records.

    Records that ``spec`` does not select are skipped silently; records that
    are selected but cannot be resolved or fail validation are kept in
    ``Cohort.dropped`` with the reason.

    Args:
        records: Raw cases.
        spec: Cohort parameters.

    Returns:
        The accepted intervals and the dropped cases.
    """
    accepted: list[DerivedInterval] = []
    dropped: list[DroppedCase] = []
    for record in records:
        if not spec.selects(record):
            continue
        try:
            interval = normalize_case(record, spec.policy)
        except Incomplete as exc:
            logger.debug("Cohort %s: dropping incomplete case: %s", spec.name, exc)
            dropped.append(DroppedCase(record.case_id, "incomplete", f"missing {exc.field}"))
            continue
        try:
            interval = check_interval(interval, record.review_count, spec.filter)
        except InvalidInterval as exc:
            logger.debug("Cohort %s: dropping invalid case: %s", spec.name, exc)
            dropped.append(DroppedCase(record.case_id, "invalid", exc.reason))
            continue
        accepted.append(interval)

    cohort = Cohort(name=spec.name, intervals=tuple(accepted), dropped=tuple(dropped))
    logger.info(
        "Cohort %s: %d accepted, %d incomplete, %d invalid",
        spec.name,
        len(cohort),
        cohort.n_incomplete,
        cohort.n_invalid,
    )
    return cohort


def standard_cohorts(config: Config | None = None) -> list[CohortSpec]:
    """Return the specs for the main analysis and its sensitivity cohorts.

    - ``all``: every reviewed case.
    - ``fever``: symptom bounds taken from fever onset.
    - ``non_origin``: cases not exposed at the outbreak origin.
    - ``alternate_origin_date``: earliest exposure one calendar year earlier.
    """
    config = config or get_config()
    base = NormalizationPolicy(
        reference_epoch=config.reference_epoch,
        min_exposure_left=config.min_exposure_left,
    )
    checks = FilterPolicy(
        zero_width=config.zero_width,
        nudge=config.nudge,
        min_reviews=config.min_reviews,
    )
    return [
        CohortSpec("all", base, checks),
        CohortSpec("fever", replace(base, use_fever=True), checks, require_fever=True),
        CohortSpec("non_origin", base, checks, origin_exclude=config.origin_label),
        CohortSpec("alternate_origin_date", base.with_earlier_origin(1), checks),
    ]


def build_cohorts(
    records: Sequence[CaseRecord], specs: Sequence[CohortSpec] | None = None
) -> dict[str, Cohort]:
    """Build one cohort per spec (defaults to ``standard_cohorts()``)."""
    specs = specs if specs is not None else standard_cohorts()
    names = [spec.name for spec in specs]
    if len(set(names)) != len(names):
        raise ValueError(f"Cohort names must be unique: {names}")
    return {spec.name: build_cohort(records, spec) for spec in specs}
