"""
Solution wrapper for flexible cure model results.

CureSolution wraps a Result[CureParams] and exposes the estimates as
read-only properties.
"""

from __future__ import annotations

import numpy as np

from pyflexcure.core.result import Result
from pyflexcure.cure._common import CureParams


class CureSolution:
    """Fitted flexible mixture or non-mixture cure model.

    Properties mirror the fields of R's cuRe::GenFlexCureModel() object.
    """

    __slots__ = ('_result',)

    def __init__(self, _result: Result[CureParams]) -> None:
        self._result = _result

    # -- Coefficients --

    @property
    def coefficients_cure(self):
        """γ: coefficients of the cure-rate linear predictor."""
        return self._result.params.coefficients_cure

    @property
    def coefficients_spline(self):
        """β: coefficients of the uncured survival linear predictor."""
        return self._result.params.coefficients_spline

    @property
    def coefficients(self):
        """θ = (γ, β)."""
        return np.concatenate([self.coefficients_cure, self.coefficients_spline])

    @property
    def cure_names(self) -> tuple[str, ...]:
        return self._result.params.cure_names

    @property
    def spline_names(self) -> tuple[str, ...]:
        return self._result.params.spline_names

    @property
    def coefficient_names(self) -> tuple[str, ...]:
        return self.cure_names + self.spline_names

    # -- Inference --

    @property
    def covariance(self):
        """Inverse Hessian of the negative log-likelihood, or None."""
        return self._result.params.covariance

    @property
    def standard_errors(self):
        """Square roots of the covariance diagonal, or None."""
        cov = self.covariance
        if cov is None:
            return None
        with np.errstate(invalid='ignore'):
            return np.sqrt(np.diag(cov))

    # -- Likelihood --

    @property
    def neg_loglik(self) -> float:
        return self._result.params.neg_loglik

    @property
    def loglik(self) -> float:
        return -self._result.params.neg_loglik

    @property
    def neg_logliks(self):
        """Final objective value of every candidate start that was run."""
        return self._result.params.neg_logliks

    # -- Model description --

    @property
    def type(self) -> str:
        return self._result.params.type

    @property
    def link_type(self) -> str:
        return self._result.params.link_type

    @property
    def link_type_cr(self) -> str:
        return self._result.params.link_type_cr

    @property
    def excess(self) -> bool:
        return self._result.params.excess

    @property
    def design_builder(self):
        """Rebuilds rows of X for new times and covariate values."""
        return self._result.params.design_builder

    @property
    def cure_builder(self):
        """Rebuilds rows of X_cr for new covariate values."""
        return self._result.params.cure_builder

    @property
    def n_observations(self) -> int:
        return self._result.params.n_observations

    @property
    def n_events(self) -> int:
        return self._result.params.n_events

    # -- Diagnostics --

    @property
    def converged(self) -> bool:
        return self._result.params.converged

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def info(self) -> dict:
        return self._result.info

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    def __repr__(self) -> str:
        return (
            f"CureSolution(type={self.type!r}, link_type={self.link_type!r}, "
            f"n={self.n_observations}, events={self.n_events}, "
            f"loglik={self.loglik:.4f})"
        )
