"""Per-case containers shared by the normalizer, cohort filter and estimator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

TYPE_INTERVAL = 0
TYPE_SYMPTOM_POINT = 1
TYPE_EXPOSURE_POINT = 2
TYPE_EXACT = 3


@dataclass(frozen=True)
class CaseRecord:
    """One reported case as read from the line list.

    Every timestamp is optional; missingness is resolved by the normalizer.
    """

    case_id: str
    exposure_left: datetime | None = None
    exposure_right: datetime | None = None
    symptom_left: datetime | None = None
    symptom_right: datetime | None = None
    fever_left: datetime | None = None
    fever_right: datetime | None = None
    presented: datetime | None = None
    published: datetime | None = None
    review_count: int = 0
    origin: str | None = None
    age: float | None = None
    sex: str | None = None

    @property
    def has_fever(self) -> bool:
        return self.fever_left is not None or self.fever_right is not None


@dataclass(frozen=True)
class DerivedInterval:
    """Exposure and symptom-onset bounds in days since the reference epoch."""

    case_id: str
    el: float
    er: float
    sl: float
    sr: float

    @property
    def type(self) -> int:
        exposure_point = self.el == self.er
        symptom_point = self.sl == self.sr
        if exposure_point and symptom_point:
            return TYPE_EXACT
        if exposure_point:
            return TYPE_EXPOSURE_POINT
        if symptom_point:
            return TYPE_SYMPTOM_POINT
        return TYPE_INTERVAL

    @property
    def exposure_width(self) -> float:
        return self.er - self.el

    @property
    def symptom_width(self) -> float:
        return self.sr - self.sl


@dataclass(frozen=True)
class DroppedCase:
    """A case excluded from a cohort, with the reason for transparency."""

    case_id: str
    stage: str
    reason: str
