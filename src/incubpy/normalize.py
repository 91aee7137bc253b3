"""Resolution of raw case timestamps into numeric interval bounds.

Missing bounds are filled by an ordered table of default rules. Each rule
names the bound it resolves, where the substitute value comes from and
whether it only applies when deriving fever-specific symptom bounds. The
rules run in table order, so a later rule sees the values produced by the
earlier ones (``exposure_right`` falls back to an already-defaulted
``symptom_right``, and so on).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Literal

from .errors import Incomplete
from .records import CaseRecord, DerivedInterval
from .utils import days_since

logger = logging.getLogger(__name__)

RuleMode = Literal["fill", "floor"]


@dataclass(frozen=True)
class NormalizationPolicy:
    """Policy values used when resolving a case's bounds.

    Attributes:
        reference_epoch: Day zero for the numeric bounds.
        min_exposure_left: Earliest date an exposure can have happened.
        use_fever: Take the symptom bounds from the fever-specific columns.
    """

    reference_epoch: datetime
    min_exposure_left: datetime
    use_fever: bool = False

    def with_earlier_origin(self, years: int = 1) -> NormalizationPolicy:
        """Return a copy whose earliest exposure is ``years`` calendar years earlier."""
        floor = self.min_exposure_left
        try:
            shifted = floor.replace(year=floor.year - years)
        except ValueError:
            # 29 February
            shifted = floor.replace(year=floor.year - years, day=28)
        return replace(self, min_exposure_left=shifted)


@dataclass(frozen=True)
class DefaultRule:
    """A single "if missing, use X" substitution.

    Attributes:
        name: Identifier used in logs and tests.
        target: Bound the rule resolves.
        source: Case field or policy attribute supplying the substitute.
        mode: ``"fill"`` substitutes only when the target is absent;
            ``"floor"`` also raises a present value up to the source.
        fever_only: Only applied when deriving fever-specific bounds.
        requires: Case field that must be present for the rule to apply.
    """

    name: str
    target: str
    source: str
    mode: RuleMode = "fill"
    fever_only: bool = False
    requires: str | None = None


DEFAULT_RULES: tuple[DefaultRule, ...] = (
    DefaultRule("exposure_left_floor", "exposure_left", "min_exposure_left", mode="floor"),
    DefaultRule("symptom_right_from_presentation", "symptom_right", "presented"),
    DefaultRule("exposure_right_from_symptom_right", "exposure_right", "symptom_right"),
    DefaultRule("symptom_left_from_exposure_left", "symptom_left", "exposure_left"),
    DefaultRule(
        "fever_left_from_symptom_left",
        "fever_left",
        "symptom_left",
        fever_only=True,
        requires="fever_right",
    ),
)

_POLICY_FIELDS = {f.name for f in fields(NormalizationPolicy)}


def _source_value(
    rule: DefaultRule, values: dict[str, datetime | None], policy: NormalizationPolicy
) -> datetime | None:
    if rule.source in _POLICY_FIELDS:
        return getattr(policy, rule.source)  # type: ignore[no-any-return]
    return values[rule.source]


def apply_rule(
    rule: DefaultRule, values: dict[str, datetime | None], policy: NormalizationPolicy
) -> dict[str, datetime | None]:
    """Apply one rule to a mapping of bound values, returning a new mapping."""
    if rule.fever_only and not policy.use_fever:
        return values
    if rule.requires is not None and values.get(rule.requires) is None:
        return values

    current = values[rule.target]
    substitute = _source_value(rule, values, policy)
    if current is None:
        resolved = substitute
    elif rule.mode == "floor" and substitute is not None and current < substitute:
        resolved = substitute
    else:
        return values
    return {**values, rule.target: resolved}


def resolve_bounds(
    record: CaseRecord,
    policy: NormalizationPolicy,
    rules: tuple[DefaultRule, ...] = DEFAULT_RULES,
) -> dict[str, datetime | None]:
    """Run the default rules over a record's timestamps in table order."""
    values: dict[str, datetime | None] = {
        "exposure_left": record.exposure_left,
        "exposure_right": record.exposure_right,
        "symptom_left": record.symptom_left,
        "symptom_right": record.symptom_right,
        "fever_left": record.fever_left,
        "fever_right": record.fever_right,
        "presented": record.presented,
        "published": record.published,
    }
    for rule in rules:
        values = apply_rule(rule, values, policy)
    return values


def normalize_case(
    record: CaseRecord,
    policy: NormalizationPolicy,
    rules: tuple[DefaultRule, ...] = DEFAULT_RULES,
) -> DerivedInterval:
    """Resolve a case into exposure and symptom-onset bounds.

    Args:
        record: Raw case.
        policy: Epoch, exposure floor and fever switch.
        rules: Ordered default rules. Defaults to ``DEFAULT_RULES``.

    Returns:
        DerivedInterval in days since ``policy.reference_epoch``.

    Raises:
        Incomplete: If a bound is still missing once every rule has run.
    """
    values = resolve_bounds(record, policy, rules)
    if policy.use_fever:
        bound_fields = ("exposure_left", "exposure_right", "fever_left", "fever_right")
    else:
        bound_fields = ("exposure_left", "exposure_right", "symptom_left", "symptom_right")

    resolved: list[datetime] = []
    for name in bound_fields:
        value = values[name]
        if value is None:
            raise Incomplete(record.case_id, name)
        resolved.append(value)

    el, er, sl, sr = (days_since(value, policy.reference_epoch) for value in resolved)
    return DerivedInterval(case_id=record.case_id, el=el, er=er, sl=sl, sr=sr)
