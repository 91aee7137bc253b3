"""Parametric incubation-period families.

Besides the usual CDF, density and quantile function, each family exposes
the integrated CDF

    G(x) = integral_0^x F(u) du = x F(x) - M(x),

where ``M(x) = integral_0^x u f(u) du`` is the partial first moment. With a
uniform exposure time inside its window, the doubly interval-censored
likelihood is a second difference of ``G``, so all three families get an
exact closed form without numerical quadrature.

Parameters are optimised on an unconstrained scale; ``from_unconstrained``
and ``to_unconstrained`` map between the two.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from scipy import special, stats

from .types import Family


def _split_positive(x: np.ndarray | float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    arr = np.asarray(x, dtype=float)
    positive = arr > 0
    safe = np.where(positive, arr, 1.0)
    return arr, positive, safe


class Distribution(ABC):
    name: Family
    param_names: tuple[str, str]

    @abstractmethod
    def from_unconstrained(self, theta: np.ndarray) -> tuple[float, float]: ...

    @abstractmethod
    def to_unconstrained(self, params: tuple[float, float]) -> np.ndarray: ...

    @abstractmethod
    def cdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray: ...

    @abstractmethod
    def pdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray: ...

    @abstractmethod
    def partial_moment(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        """Return ``integral_0^x u f(u) du`` (zero for ``x <= 0``)."""

    @abstractmethod
    def ppf(self, p: np.ndarray | float, params: tuple[float, float]) -> np.ndarray: ...

    @abstractmethod
    def mean(self, params: tuple[float, float]) -> float:
        """Return the arithmetic mean ``E[X]``."""

    @abstractmethod
    def geometric_mean(self, params: tuple[float, float]) -> float:
        """Return ``exp(E[log X])``."""

    @abstractmethod
    def initial_params(self, durations: np.ndarray) -> tuple[float, float]:
        """Starting values from approximate (midpoint) durations."""

    def integrated_cdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        _, positive, safe = _split_positive(x)
        value = safe * self.cdf(safe, params) - self.partial_moment(safe, params)
        return np.where(positive, value, 0.0)


class LogNormal(Distribution):
    """Log-normal with log-scale location ``mu`` and scale ``sigma``."""

    name: Family = "lognormal"
    param_names = ("mu", "sigma")

    def from_unconstrained(self, theta: np.ndarray) -> tuple[float, float]:
        return float(theta[0]), float(np.exp(theta[1]))

    def to_unconstrained(self, params: tuple[float, float]) -> np.ndarray:
        return np.array([params[0], np.log(params[1])], dtype=float)

    def cdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        mu, sigma = params
        _, positive, safe = _split_positive(x)
        return np.where(positive, special.ndtr((np.log(safe) - mu) / sigma), 0.0)

    def pdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        mu, sigma = params
        _, positive, safe = _split_positive(x)
        return np.where(positive, stats.lognorm.pdf(safe, s=sigma, scale=np.exp(mu)), 0.0)

    def partial_moment(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        mu, sigma = params
        _, positive, safe = _split_positive(x)
        z = (np.log(safe) - mu - sigma**2) / sigma
        return np.where(positive, np.exp(mu + sigma**2 / 2) * special.ndtr(z), 0.0)

    def ppf(self, p: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        mu, sigma = params
        return np.exp(mu + sigma * special.ndtri(np.asarray(p, dtype=float)))

    def mean(self, params: tuple[float, float]) -> float:
        mu, sigma = params
        return float(np.exp(mu + sigma**2 / 2))

    def geometric_mean(self, params: tuple[float, float]) -> float:
        return float(np.exp(params[0]))

    def initial_params(self, durations: np.ndarray) -> tuple[float, float]:
        logs = np.log(durations)
        sigma = float(np.std(logs)) if len(logs) > 1 else 0.5
        return float(np.mean(logs)), max(sigma, 0.1)


class Gamma(Distribution):
    """Gamma with ``shape`` and ``scale``."""

    name: Family = "gamma"
    param_names = ("shape", "scale")

    def from_unconstrained(self, theta: np.ndarray) -> tuple[float, float]:
        return float(np.exp(theta[0])), float(np.exp(theta[1]))

    def to_unconstrained(self, params: tuple[float, float]) -> np.ndarray:
        return np.log(np.asarray(params, dtype=float))

    def cdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        _, positive, safe = _split_positive(x)
        return np.where(positive, special.gammainc(shape, safe / scale), 0.0)

    def pdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        _, positive, safe = _split_positive(x)
        return np.where(positive, stats.gamma.pdf(safe, shape, scale=scale), 0.0)

    def partial_moment(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        _, positive, safe = _split_positive(x)
        return np.where(positive, shape * scale * special.gammainc(shape + 1, safe / scale), 0.0)

    def ppf(self, p: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        return scale * special.gammaincinv(shape, np.asarray(p, dtype=float))

    def mean(self, params: tuple[float, float]) -> float:
        shape, scale = params
        return float(shape * scale)

    def geometric_mean(self, params: tuple[float, float]) -> float:
        shape, scale = params
        return float(scale * np.exp(special.digamma(shape)))

    def initial_params(self, durations: np.ndarray) -> tuple[float, float]:
        mean = float(np.mean(durations))
        var = float(np.var(durations)) if len(durations) > 1 else mean
        var = max(var, 1e-2)
        return mean**2 / var, var / mean


class Weibull(Distribution):
    """Weibull with ``shape`` and ``scale``."""

    name: Family = "weibull"
    param_names = ("shape", "scale")

    def from_unconstrained(self, theta: np.ndarray) -> tuple[float, float]:
        return float(np.exp(theta[0])), float(np.exp(theta[1]))

    def to_unconstrained(self, params: tuple[float, float]) -> np.ndarray:
        return np.log(np.asarray(params, dtype=float))

    def cdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        _, positive, safe = _split_positive(x)
        return np.where(positive, -np.expm1(-((safe / scale) ** shape)), 0.0)

    def pdf(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        _, positive, safe = _split_positive(x)
        return np.where(positive, stats.weibull_min.pdf(safe, shape, scale=scale), 0.0)

    def partial_moment(self, x: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        _, positive, safe = _split_positive(x)
        a = 1.0 + 1.0 / shape
        value = scale * special.gamma(a) * special.gammainc(a, (safe / scale) ** shape)
        return np.where(positive, value, 0.0)

    def ppf(self, p: np.ndarray | float, params: tuple[float, float]) -> np.ndarray:
        shape, scale = params
        return scale * (-np.log1p(-np.asarray(p, dtype=float))) ** (1.0 / shape)

    def mean(self, params: tuple[float, float]) -> float:
        shape, scale = params
        return float(scale * special.gamma(1.0 + 1.0 / shape))

    def geometric_mean(self, params: tuple[float, float]) -> float:
        shape, scale = params
        return float(scale * np.exp(-np.euler_gamma / shape))

    def initial_params(self, durations: np.ndarray) -> tuple[float, float]:
        mean = float(np.mean(durations))
        sd = float(np.std(durations)) if len(durations) > 1 else mean / 2
        cv = max(sd / mean, 0.05)
        shape = cv**-1.086
        return shape, mean / float(special.gamma(1.0 + 1.0 / shape))


_FAMILIES: dict[str, Distribution] = {
    "lognormal": LogNormal(),
    "gamma": Gamma(),
    "weibull": Weibull(),
}


def get_distribution(family: Family | str) -> Distribution:
    try:
        return _FAMILIES[family]
    except KeyError as exc:
        raise ValueError(f"Unknown distribution family: {family}") from exc
