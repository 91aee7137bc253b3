"""Tests for bootstrap confidence intervals."""

from __future__ import annotations

import numpy as np
import pytest

import incubpy.bootstrap as bootstrap_module
from incubpy.bootstrap import bootstrap_fit, percentile_interval
from incubpy.cohort import Cohort
from incubpy.errors import FitDidNotConverge
from incubpy.estimate import fit_interval_censored, quantiles
from incubpy.simulate import simulate_cohort

PROBS = (0.0, 0.025, 0.5, 0.975)


@pytest.fixture(scope="module")
def cohort() -> Cohort:
    return simulate_cohort(60, (1.6, 0.4), seed=21, name="all")


def test_same_seed_gives_identical_results(cohort: Cohort) -> None:
    first = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=20, seed=7, n_jobs=1)
    second = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=20, seed=7, n_jobs=1)
    assert first.estimates == second.estimates


def test_different_seed_changes_intervals(cohort: Cohort) -> None:
    first = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=20, seed=7, n_jobs=1)
    second = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=20, seed=8, n_jobs=1)
    assert first["p50"].estimate == second["p50"].estimate
    assert first["p50"].ci_low != second["p50"].ci_low


def test_worker_count_does_not_change_results(cohort: Cohort) -> None:
    serial = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=16, seed=3, n_jobs=1)
    parallel = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=16, seed=3, n_jobs=2)
    assert serial.estimates == parallel.estimates


def test_point_estimates_come_from_original_fit(cohort: Cohort) -> None:
    result = bootstrap_fit(cohort, "lognormal", probs=PROBS, horizons=(14.0,), n_boot=20, seed=1)
    point = fit_interval_censored(cohort, "lognormal")

    assert result.point.params == point.params
    for label, value in quantiles(point, PROBS).items():
        assert result[label].estimate == value
    assert result["mu"].estimate == point.params[0]
    assert "P>14d" in result
    for label in result:
        estimate = result[label]
        assert estimate.ci_low <= estimate.ci_high

    assert result.cohort == "all"
    assert result.n == 60
    assert result.n_boot == 20
    assert result.n_discarded == 0
    assert result.n_used == 20
    assert not result.unreliable


def test_failed_replicates_flag_result(
    cohort: Cohort, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    real_fit = bootstrap_module.fit_bounds
    calls = {"n": 0}

    def flaky_fit(*args: object, **kwargs: object):  # type: ignore[no-untyped-def]
        calls["n"] += 1
        if calls["n"] % 2 == 0:
            raise FitDidNotConverge("all", "forced")
        return real_fit(*args, **kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(bootstrap_module, "fit_bounds", flaky_fit)
    result = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=20, seed=5, n_jobs=1)

    assert result.n_discarded == 10
    assert result.n_used == 10
    assert result.unreliable
    assert "flagged unreliable" in caplog.text


def test_low_discard_rate_is_not_flagged(
    cohort: Cohort, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_fit = bootstrap_module.fit_bounds
    calls = {"n": 0}

    def fail_once(*args: object, **kwargs: object):  # type: ignore[no-untyped-def]
        calls["n"] += 1
        if calls["n"] == 1:
            raise FitDidNotConverge("all", "forced")
        return real_fit(*args, **kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(bootstrap_module, "fit_bounds", fail_once)
    result = bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=40, seed=5, n_jobs=1)

    assert result.n_discarded == 1
    assert not result.unreliable


def test_all_replicates_failing_raises(cohort: Cohort, monkeypatch: pytest.MonkeyPatch) -> None:
    def always_fail(*args: object, **kwargs: object):  # type: ignore[no-untyped-def]
        raise FitDidNotConverge("all", "forced")

    monkeypatch.setattr(bootstrap_module, "fit_bounds", always_fail)
    with pytest.raises(FitDidNotConverge, match="all 5 bootstrap replicates failed"):
        bootstrap_fit(cohort, "lognormal", probs=PROBS, n_boot=5, seed=5, n_jobs=1)


def test_n_boot_must_be_positive(cohort: Cohort) -> None:
    with pytest.raises(ValueError, match="n_boot"):
        bootstrap_fit(cohort, "lognormal", n_boot=0)


def test_percentile_interval() -> None:
    values = np.arange(101, dtype=float).reshape(-1, 1)
    low, high = percentile_interval(values, 90)
    assert low[0] == pytest.approx(5.0)
    assert high[0] == pytest.approx(95.0)
    with pytest.raises(ValueError, match="width"):
        percentile_interval(values, 100)
    with pytest.raises(ValueError, match="width"):
        percentile_interval(values, 0)


@pytest.mark.slow
def test_interval_coverage_of_true_median() -> None:
    true_params = (1.6, 0.4)
    true_median = float(np.exp(true_params[0]))
    trials = 120
    covered = 0
    for trial in range(trials):
        sample = simulate_cohort(80, true_params, seed=1000 + trial)
        result = bootstrap_fit(sample, "lognormal", probs=(0.5,), n_boot=200, seed=trial)
        if result["p50"].ci_low <= true_median <= result["p50"].ci_high:
            covered += 1
    assert covered / trials >= 0.85
