"""Tests for the default-substitution rules and bound normalization."""

from __future__ import annotations

from datetime import datetime

import pytest

from incubpy.errors import Incomplete
from incubpy.normalize import (
    DEFAULT_RULES,
    NormalizationPolicy,
    apply_rule,
    normalize_case,
    resolve_bounds,
)
from incubpy.records import CaseRecord

EPOCH = datetime(2019, 12, 31)
FLOOR = datetime(2019, 12, 1)
POLICY = NormalizationPolicy(reference_epoch=EPOCH, min_exposure_left=FLOOR)
FEVER_POLICY = NormalizationPolicy(reference_epoch=EPOCH, min_exposure_left=FLOOR, use_fever=True)


def _rule(name: str):  # type: ignore[no-untyped-def]
    return next(rule for rule in DEFAULT_RULES if rule.name == name)


def _full_record(**overrides: object) -> CaseRecord:
    values: dict[str, object] = {
        "case_id": "c1",
        "exposure_left": datetime(2020, 1, 10),
        "exposure_right": datetime(2020, 1, 12, 6),
        "symptom_left": datetime(2020, 1, 15),
        "symptom_right": datetime(2020, 1, 16, 18),
        "review_count": 2,
    }
    values.update(overrides)
    return CaseRecord(**values)  # type: ignore[arg-type]


def test_rule_order() -> None:
    assert [rule.name for rule in DEFAULT_RULES] == [
        "exposure_left_floor",
        "symptom_right_from_presentation",
        "exposure_right_from_symptom_right",
        "symptom_left_from_exposure_left",
        "fever_left_from_symptom_left",
    ]


def test_fully_specified_record_is_not_altered() -> None:
    interval = normalize_case(_full_record(), POLICY)
    assert interval.el == 10.0
    assert interval.er == 12.25
    assert interval.sl == 15.0
    assert interval.sr == 16.75
    assert interval.type == 0


def test_normalize_is_idempotent() -> None:
    record = _full_record()
    assert normalize_case(record, POLICY) == normalize_case(record, POLICY)


def test_exposure_left_filled_from_floor() -> None:
    values = resolve_bounds(_full_record(exposure_left=None), POLICY)
    assert values["exposure_left"] == FLOOR


def test_exposure_left_clamped_up_to_floor() -> None:
    values = resolve_bounds(_full_record(exposure_left=datetime(2019, 11, 2)), POLICY)
    assert values["exposure_left"] == FLOOR


def test_exposure_left_after_floor_is_kept() -> None:
    rule = _rule("exposure_left_floor")
    values = {"exposure_left": datetime(2020, 1, 3)}
    assert apply_rule(rule, values, POLICY) == values  # type: ignore[arg-type]


def test_symptom_right_from_presentation() -> None:
    record = _full_record(symptom_right=None, presented=datetime(2020, 1, 18))
    values = resolve_bounds(record, POLICY)
    assert values["symptom_right"] == datetime(2020, 1, 18)


def test_symptom_right_missing_everywhere_is_incomplete() -> None:
    record = _full_record(symptom_right=None, presented=None)
    with pytest.raises(Incomplete) as excinfo:
        normalize_case(record, POLICY)
    assert excinfo.value.case_id == "c1"
    assert excinfo.value.field == "symptom_right"


def test_exposure_right_uses_defaulted_symptom_right() -> None:
    """Later rules see values produced by earlier rules."""
    record = _full_record(
        exposure_right=None, symptom_right=None, presented=datetime(2020, 1, 20)
    )
    values = resolve_bounds(record, POLICY)
    assert values["exposure_right"] == datetime(2020, 1, 20)


def test_symptom_left_uses_defaulted_exposure_left() -> None:
    record = _full_record(exposure_left=None, symptom_left=None)
    interval = normalize_case(record, POLICY)
    assert interval.sl == interval.el == -30.0


def test_fever_rule_only_applies_to_fever_derivation() -> None:
    record = _full_record(fever_right=datetime(2020, 1, 17))
    assert resolve_bounds(record, POLICY)["fever_left"] is None
    assert resolve_bounds(record, FEVER_POLICY)["fever_left"] == datetime(2020, 1, 15)


def test_fever_rule_requires_fever_right() -> None:
    record = _full_record()
    assert resolve_bounds(record, FEVER_POLICY)["fever_left"] is None


def test_fever_derivation_uses_fever_bounds() -> None:
    record = _full_record(fever_left=datetime(2020, 1, 16), fever_right=datetime(2020, 1, 17))
    interval = normalize_case(record, FEVER_POLICY)
    assert interval.sl == 16.0
    assert interval.sr == 17.0


def test_fever_derivation_without_fever_right_is_incomplete() -> None:
    record = _full_record(fever_left=datetime(2020, 1, 16))
    with pytest.raises(Incomplete, match="fever_right"):
        normalize_case(record, FEVER_POLICY)


def test_sub_day_precision_is_kept() -> None:
    record = _full_record(exposure_left=datetime(2020, 1, 10, 12, 0))
    assert normalize_case(record, POLICY).el == 10.5


def test_earlier_origin_policy() -> None:
    shifted = POLICY.with_earlier_origin(1)
    assert shifted.min_exposure_left == datetime(2018, 12, 1)
    assert shifted.reference_epoch == EPOCH
    leap = NormalizationPolicy(EPOCH, datetime(2020, 2, 29)).with_earlier_origin(1)
    assert leap.min_exposure_left == datetime(2019, 2, 28)
