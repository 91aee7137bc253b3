"""Tests for the interval-censored likelihood and maximum-likelihood fit."""

from __future__ import annotations

import numpy as np
import pytest
from scipy import integrate, stats
from scipy.optimize import minimize

from incubpy.cohort import Cohort
from incubpy.distributions import get_distribution
from incubpy.errors import FitDidNotConverge, InsufficientData
from incubpy.estimate import (
    case_likelihoods,
    case_types,
    fit_interval_censored,
    log_likelihood,
    quantiles,
    summarize,
    tail_probabilities,
)
from incubpy.records import DerivedInterval
from incubpy.simulate import simulate_cohort

TRUE_MU = 1.6
TRUE_SIGMA = 0.4


@pytest.fixture(scope="module")
def simulated() -> Cohort:
    return simulate_cohort(400, (TRUE_MU, TRUE_SIGMA), seed=11)


def _arrays(*rows: tuple[float, float, float, float]) -> list[np.ndarray]:
    return [np.array(column, dtype=float) for column in zip(*rows, strict=True)]


def test_case_types() -> None:
    el, er, sl, sr = _arrays((0, 1, 3, 4), (0, 1, 4, 4), (1, 1, 3, 4), (1, 1, 4, 4))
    assert case_types(el, er, sl, sr).tolist() == [0, 1, 2, 3]


def test_interval_likelihood_matches_quadrature() -> None:
    dist = get_distribution("lognormal")
    params = (1.5, 0.5)
    el, er, sl, sr = 0.0, 2.0, 4.0, 5.5

    def inner(e: float) -> float:
        return float(dist.cdf(sr - e, params) - dist.cdf(sl - e, params))

    expected, _ = integrate.quad(inner, el, er)
    expected /= er - el
    lik = case_likelihoods(params, *_arrays((el, er, sl, sr)), dist)
    assert lik[0] == pytest.approx(expected, rel=1e-7)


def test_point_likelihoods() -> None:
    dist = get_distribution("lognormal")
    params = (1.5, 0.5)
    ref = stats.lognorm(s=0.5, scale=np.exp(1.5))
    el, er, sl, sr = _arrays((0, 2, 5, 5), (1, 1, 4, 6), (1, 1, 5, 5))
    lik = case_likelihoods(params, el, er, sl, sr, dist)

    assert lik[0] == pytest.approx((ref.cdf(5) - ref.cdf(3)) / 2)
    assert lik[1] == pytest.approx(ref.cdf(5) - ref.cdf(3))
    assert lik[2] == pytest.approx(ref.pdf(4))


def test_recovers_simulated_parameters(simulated: Cohort) -> None:
    fit = fit_interval_censored(simulated, "lognormal")
    mu, sigma = fit.params
    assert mu == pytest.approx(TRUE_MU, abs=0.1)
    assert sigma == pytest.approx(TRUE_SIGMA, abs=0.1)
    assert fit.n == 400
    assert fit.cohort == "simulated"
    assert fit.param_dict == {"mu": mu, "sigma": sigma}


def test_recovers_five_day_median_from_small_cohort() -> None:
    cohort = simulate_cohort(100, (np.log(5.0), 0.5), seed=2020)
    assert set(case_types(*cohort.arrays()).tolist()) == {0}
    fit = fit_interval_censored(cohort, "lognormal")
    mu, sigma = fit.params
    assert mu == pytest.approx(np.log(5.0), abs=0.1)
    assert sigma == pytest.approx(0.5, abs=0.1)


@pytest.mark.parametrize(("family", "params"), [("gamma", (4.0, 1.3)), ("weibull", (2.2, 6.0))])
def test_other_families_recover_median(family: str, params: tuple[float, float]) -> None:
    cohort = simulate_cohort(400, params, family, seed=5)  # type: ignore[arg-type]
    fit = fit_interval_censored(cohort, family)  # type: ignore[arg-type]
    true_median = float(get_distribution(family).ppf(0.5, params))
    assert quantiles(fit, [0.5])["p50"] == pytest.approx(true_median, rel=0.1)


def test_exposure_point_cohort_matches_independent_fit() -> None:
    """With exact exposures the likelihood reduces to ordinary interval censoring."""
    cohort = simulate_cohort(150, (TRUE_MU, TRUE_SIGMA), exposure_width=0, seed=3)
    fit = fit_interval_censored(cohort, "lognormal")
    el, _, sl, sr = cohort.arrays()
    lower, upper = sl - el, sr - el

    def negloglik(theta: np.ndarray) -> float:
        ref = stats.lognorm(s=np.exp(theta[1]), scale=np.exp(theta[0]))
        return -float(np.sum(np.log(ref.cdf(upper) - ref.cdf(lower))))

    ref_fit = minimize(
        negloglik,
        x0=np.array([1.0, np.log(0.8)]),
        method="Nelder-Mead",
        options={"xatol": 1e-8, "fatol": 1e-10, "maxiter": 5000},
    )
    assert fit.params[0] == pytest.approx(ref_fit.x[0], abs=1e-3)
    assert fit.params[1] == pytest.approx(np.exp(ref_fit.x[1]), abs=1e-3)
    assert fit.log_likelihood == pytest.approx(-ref_fit.fun, abs=1e-6)
    assert log_likelihood(fit.params, *cohort.arrays(), get_distribution("lognormal")) == (
        pytest.approx(-negloglik(np.array([fit.params[0], np.log(fit.params[1])])))
    )


def test_quantiles_and_tail(simulated: Cohort) -> None:
    fit = fit_interval_censored(simulated, "lognormal")
    probs = [0.0, 0.025, 0.05, 0.25, 0.5, 0.75, 0.95, 0.975, 0.99]
    values = quantiles(fit, probs)

    assert list(values) == ["mean", "p2.5", "p5", "p25", "p50", "p75", "p95", "p97.5", "p99"]
    assert values["mean"] == pytest.approx(np.exp(fit.params[0]))
    ordered = [values[label] for label in list(values)[1:]]
    assert ordered == sorted(ordered)

    tail = tail_probabilities(fit, [14.0])
    assert list(tail) == ["P>14d"]
    assert 0.0 < tail["P>14d"] < 0.05

    summary = summarize(fit, [0.5], [14.0])
    assert set(summary) == {"mu", "sigma", "arith_mean", "p50", "P>14d"}
    assert summary["arith_mean"] == pytest.approx(np.exp(fit.params[0] + fit.params[1] ** 2 / 2))
    assert summary["arith_mean"] > values["mean"]


def test_quantile_probability_out_of_range(simulated: Cohort) -> None:
    fit = fit_interval_censored(simulated, "lognormal")
    with pytest.raises(ValueError, match=r"\[0, 1\)"):
        quantiles(fit, [1.0])


def test_insufficient_data() -> None:
    cohort = Cohort("tiny", (DerivedInterval("a", 0.0, 1.0, 4.0, 5.0),))
    with pytest.raises(InsufficientData) as excinfo:
        fit_interval_censored(cohort, "lognormal", min_cases=2)
    assert excinfo.value.n == 1
    assert excinfo.value.cohort == "tiny"


def test_iteration_budget_exhausted(simulated: Cohort) -> None:
    with pytest.raises(FitDidNotConverge, match="simulated"):
        fit_interval_censored(simulated, "lognormal", max_iter=1)
