"""
Tests for the Result[P] envelope.
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from pyflexcure.core.result import Result


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


def _result(**kwargs):
    defaults = dict(params=FakeParams(value=1.0), info={}, timing=None,
                    backend_name="cpu_penalized_mle")
    defaults.update(kwargs)
    return Result(**defaults)


class TestResultConstruction:

    def test_basic_creation(self):
        result = _result(info={"method": "Nelder-Mead", "kappa": 10.0},
                         timing={"total_seconds": 0.5, "optimization": 0.4})
        assert result.params.value == 1.0
        assert result.info["kappa"] == 10.0
        assert result.timing["optimization"] == 0.4
        assert result.backend_name == "cpu_penalized_mle"

    def test_warnings_default_empty(self):
        result = _result()
        assert result.warnings == ()

    def test_has_warning(self):
        result = _result(warnings=("Convergence not reached: maxiter",
                                   "Hessian is numerically singular"))
        assert result.has_warning("Hessian")
        assert result.has_warning("Convergence")
        assert not result.has_warning("bhazard")


class TestImmutability:

    def test_cannot_set_params(self):
        result = _result()
        with pytest.raises(FrozenInstanceError):
            result.params = FakeParams(value=2.0)

    def test_cannot_set_warnings(self):
        result = _result()
        with pytest.raises(FrozenInstanceError):
            result.warnings = ("new",)
