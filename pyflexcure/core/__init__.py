"""
Core infrastructure for pyflexcure.

Key components:
    datasource: Column container for tabular input
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing utilities
"""

from pyflexcure.core.datasource import DataSource
from pyflexcure.core.result import Result
from pyflexcure.core.exceptions import (
    PyFlexCureError,
    ValidationError,
    DimensionError,
    NumericalError,
    InfeasibleStartError,
    ConvergenceError,
)

__all__ = [
    "DataSource",
    "Result",
    "PyFlexCureError",
    "ValidationError",
    "DimensionError",
    "NumericalError",
    "InfeasibleStartError",
    "ConvergenceError",
]
