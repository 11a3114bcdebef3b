"""
Generic result container for pyflexcure computations.

Every fit returns its domain payload inside a Result envelope, so timing,
warnings and optimizer metadata travel with the estimates in one place.

Design decisions:
    - Generic over parameter payload P
    - info dict for optimizer metadata (method, status, escalations)
    - timing is optional so unit tests can build results by hand
    - Immutable (frozen=True): a fitted model never changes after creation
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope.

    Attributes:
        params: Domain-specific payload (coefficients, covariance, ...)
        info: Structured metadata (method, convergence status, kappa trace)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the code path that produced the result
        warnings: Non-fatal issues encountered during fitting

    Examples:
        >>> Result(
        ...     params=CureParams(...),
        ...     info={'method': 'Nelder-Mead', 'status': 0, 'kappa': 1.0},
        ...     timing={'total_seconds': 1.2, 'optimization': 1.1},
        ...     backend_name='cpu_penalized_mle',
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
