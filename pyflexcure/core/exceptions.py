"""
Exception hierarchy for pyflexcure.

All exceptions inherit from PyFlexCureError so callers can catch any
library-specific error with one clause. Domain modules raise the most
specific class that applies.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages state the offending value and what was expected
    - Numerical trouble inside the likelihood is floored, not raised;
      these classes are for conditions that abort a fit
"""


class PyFlexCureError(Exception):
    """Base exception for all pyflexcure errors."""
    pass


class ValidationError(PyFlexCureError):
    """
    Input validation failed.

    Raised for bad user input and unsupported model options
    (unknown link, unknown cure type, unsupported response kind).
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised e.g. when the background hazard does not have one value per
    retained observation.
    """
    pass


class NumericalError(PyFlexCureError):
    """Base class for errors arising from numerical issues during fitting."""
    pass


class InfeasibleStartError(NumericalError):
    """
    No starting value gives a finite objective.

    Attributes:
        n_candidates: Number of candidate start vectors that were evaluated
        values: Objective value of each candidate
    """

    def __init__(
        self,
        message: str,
        n_candidates: int = 0,
        values: tuple[float, ...] = (),
    ):
        super().__init__(message)
        self.n_candidates = n_candidates
        self.values = values


class ConvergenceError(PyFlexCureError):
    """
    Iterative algorithm failed to converge.

    Raised when the penalty escalation loop cannot reach a non-negative
    hazard within the allowed number of escalations.

    Attributes:
        iterations: Number of iterations (escalations) completed
        final_change: Final constraint violation or objective change
        reason: Why convergence failed (e.g. 'max_escalations')
        threshold: The bound that was exceeded
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold
