"""
Cure-type strategies: how π and the uncured survival combine.

Mixture:
    S(t)  = π + (1 - π) S_u(t)
    h(t)  = -(1 - π) S_u'(t) / S(t)

Non-mixture (promotion time):
    S(t)  = π^(1 - S_u(t))
    h(t)  = log(π) S_u'(t)

S_u'(t) is the time derivative of the uncured survival, supplied by the
survival link as survival_gradient(η, η').

π = 0 is a degenerate input for the non-mixture model: log π = -∞ and
the hazard becomes the indeterminate product -∞ · S_u'. The non-mixture
strategy evaluates log π with π floored at the smallest positive double,
so this boundary yields a very small survival and a very large but finite
hazard instead of NaN.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import numpy as np
from numpy.typing import NDArray

from pyflexcure.core.exceptions import ValidationError

_TINY = np.finfo(np.float64).tiny


class CureType(ABC):
    """Relates π and S_u to the relative survival and excess hazard."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def relative_survival(self, pi: NDArray, surv: NDArray) -> NDArray:
        ...

    @abstractmethod
    def excess_hazard(self, pi: NDArray, grad_surv: NDArray,
                      rsurv: NDArray) -> NDArray:
        ...

    def excess_density(self, pi: NDArray, grad_surv: NDArray,
                       rsurv: NDArray) -> NDArray:
        """f(t) = h(t) S(t)."""
        return self.excess_hazard(pi, grad_surv, rsurv) * rsurv

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class Mixture(CureType):

    @property
    def name(self) -> str:
        return 'mixture'

    def relative_survival(self, pi, surv):
        return pi + (1.0 - pi) * surv

    def excess_hazard(self, pi, grad_surv, rsurv):
        return -(1.0 - pi) * grad_surv / rsurv


class NonMixture(CureType):

    @property
    def name(self) -> str:
        return 'nmixture'

    def relative_survival(self, pi, surv):
        return np.exp((1.0 - surv) * _log_pi(pi))

    def excess_hazard(self, pi, grad_surv, rsurv):
        return _log_pi(pi) * grad_surv


def _log_pi(pi: NDArray) -> NDArray:
    pi = np.asarray(pi, dtype=np.float64)
    # negative π stays NaN so the objective reports it as infeasible
    return np.log(np.where((pi >= 0) & (pi < _TINY), _TINY, pi))


CURE_TYPES: dict[str, type[CureType]] = {
    'mixture': Mixture,
    'nmixture': NonMixture,
}


def resolve_cure_type(cure_type: str | CureType) -> CureType:
    """Resolve a cure-type tag ('mixture' or 'nmixture') to an instance."""
    if isinstance(cure_type, CureType):
        return cure_type
    cls = CURE_TYPES.get(cure_type)
    if cls is None:
        raise ValidationError(
            f"Wrong specification of type: {cure_type!r}, "
            f"must be either 'mixture' or 'nmixture'"
        )
    return cls()
