"""
Penalized negative log-likelihood of the flexible cure model.

For θ = (γ, β), with γ the cure-rate coefficients (first X_cr.shape[1]
entries) and β the spline coefficients:

    π      = g_cr⁻¹(X_cr γ)
    η, η'  = X β, XD β
    S      = cure_type.relative_survival(π, g⁻¹(η))
    ℓ_i    = log S_i
             - log S_i(entry)                     delayed entry only
             + log(λ*_i + h_i)                    events only
    h      = cure_type.excess_hazard(π, dS_u/dt, S)

    objective(θ; κ) = -Σ ℓ_i + κ/2 Σ min(h_enf, 0)²

h_enf is the hazard of the uncured from the link alone when the
constraint targets the uncured population, otherwise λ* + h at the event
times. κ = 0 gives the plain negative log-likelihood.

A total hazard ≤ 0 is replaced by machine epsilon before taking the log,
and a relative survival that underflows to exactly 0 by the smallest
positive double, so the objective stays finite at the edge of the
feasible region. Values that are undefined (e.g. π outside [0, 1] under
the identity link) propagate as NaN and are handled by the caller.

References:
    Jakobsen, L. H., Andersson, T. M.-L., Biard, L., & Bøgsted, M. (2020).
        Flexible parametric cure models for relative survival.
        Statistics in Medicine.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, NamedTuple

import numpy as np
from numpy.typing import NDArray

from pyflexcure.cure._cure_types import CureType
from pyflexcure.cure._links import CureRateLink, SurvivalLink
from pyflexcure.cure.design import CureDesign, CureDesignMatrices, EntryMap

HAZARD_FLOOR = np.finfo(np.float64).eps
_TINY = np.finfo(np.float64).tiny


class _State(NamedTuple):
    pi: NDArray
    eta: NDArray
    eta_d: NDArray
    rsurv: NDArray
    total_hazard: NDArray     # background + excess, event subjects only


def _floor_boundary(rsurv: NDArray) -> NDArray:
    return np.where((rsurv >= 0) & (rsurv < _TINY), _TINY, rsurv)


def constraint_violation(hazard: NDArray) -> float:
    """Σ min(h, 0)²."""
    negative = np.minimum(np.asarray(hazard, dtype=np.float64), 0.0)
    return float(np.sum(negative * negative))


@dataclass(frozen=True)
class CureLikelihood:
    """Likelihood of a flexible cure model on fixed design matrices."""
    event: NDArray
    X: NDArray
    XD: NDArray
    X_cr: NDArray
    entry: EntryMap
    bhazard: NDArray
    link: SurvivalLink
    cure_link: CureRateLink
    cure_type: CureType
    constraint: bool = True

    @classmethod
    def from_design(
        cls,
        design: CureDesign,
        matrices: CureDesignMatrices,
        link: SurvivalLink,
        cure_link: CureRateLink,
        cure_type: CureType,
        constraint: bool = True,
    ) -> CureLikelihood:
        return cls(
            event=np.asarray(design.event, dtype=bool),
            X=matrices.X,
            XD=matrices.XD,
            X_cr=matrices.X_cr,
            entry=matrices.entry,
            bhazard=design.bhazard,
            link=link,
            cure_link=cure_link,
            cure_type=cure_type,
            constraint=constraint,
        )

    @property
    def n_cure(self) -> int:
        return self.X_cr.shape[1]

    @property
    def n_params(self) -> int:
        return self.X_cr.shape[1] + self.X.shape[1]

    def split(self, theta: NDArray) -> tuple[NDArray, NDArray]:
        """θ → (γ, β)."""
        theta = np.asarray(theta, dtype=np.float64)
        return theta[:self.n_cure], theta[self.n_cure:]

    def _evaluate(self, theta: NDArray) -> _State:
        gamma, beta = self.split(theta)
        pi = self.cure_link.inverse_link(self.X_cr @ gamma)
        eta = self.X @ beta
        eta_d = self.XD @ beta
        rsurv = _floor_boundary(
            self.cure_type.relative_survival(pi, self.link.inverse_link(eta))
        )
        ev = self.event
        grad_surv = self.link.survival_gradient(eta[ev], eta_d[ev])
        ehaz = self.cure_type.excess_hazard(pi[ev], grad_surv, rsurv[ev])
        return _State(pi, eta, eta_d, rsurv, self.bhazard[ev] + ehaz)

    def loglik_terms(self, theta: NDArray) -> NDArray:
        """Per-subject log-likelihood contributions."""
        with np.errstate(all='ignore'):
            state = self._evaluate(theta)
            terms = np.log(state.rsurv)

            if len(self.entry):
                _, beta = self.split(theta)
                idx = self.entry.subject_index
                surv0 = self.link.inverse_link(self.entry.X0 @ beta)
                rsurv0 = _floor_boundary(
                    self.cure_type.relative_survival(state.pi[idx], surv0)
                )
                terms[idx] -= np.log(rsurv0)

            haz = state.total_hazard
            haz = np.where(haz <= 0, HAZARD_FLOOR, haz)
            terms[self.event] += np.log(haz)
        return terms

    def enforced_hazard(self, theta: NDArray) -> NDArray:
        """Hazard that must be non-negative at a valid solution."""
        with np.errstate(all='ignore'):
            state = self._evaluate(theta)
            if self.constraint:
                return self.link.hazard(state.eta, state.eta_d)
            return state.total_hazard

    def negloglik(self, theta: NDArray, kappa: float = 0.0) -> float:
        """Penalized negative log-likelihood; κ = 0 disables the penalty."""
        value = -float(np.sum(self.loglik_terms(theta)))
        if kappa:
            value += kappa / 2.0 * constraint_violation(self.enforced_hazard(theta))
        return value

    def objective(self, kappa: float = 0.0) -> Callable[[NDArray], float]:
        """Objective closure for one penalty weight."""
        return partial(self.negloglik, kappa=kappa)
