"""Exceptions raised while deriving cohorts and fitting incubation periods."""

from __future__ import annotations


class IncubationError(Exception):
    """Base class for incubpy errors."""


class Incomplete(IncubationError):
    """Raised when a case cannot be resolved to all four interval bounds."""

    def __init__(self, case_id: str, field: str) -> None:
        self.case_id = case_id
        self.field = field
        super().__init__(f"Case {case_id}: cannot resolve '{field}'")


class InvalidInterval(IncubationError):
    """Raised when resolved bounds violate an ordering or width constraint."""

    def __init__(self, case_id: str, reason: str) -> None:
        self.case_id = case_id
        self.reason = reason
        super().__init__(f"Case {case_id}: {reason}")


class FitDidNotConverge(IncubationError):
    """Raised when the likelihood optimiser fails within its iteration budget."""

    def __init__(self, cohort: str, message: str) -> None:
        self.cohort = cohort
        super().__init__(f"Fit for cohort '{cohort}' did not converge: {message}")


class InsufficientData(IncubationError):
    """Raised when a cohort is too small to be fitted."""

    def __init__(self, cohort: str, n: int, minimum: int) -> None:
        self.cohort = cohort
        self.n = n
        self.minimum = minimum
        super().__init__(f"Cohort '{cohort}' has {n} cases; at least {minimum} required")
