"""
Penalized optimization with escalating penalty weight.

For every feasible starting value:

    κ = 1
    repeat:
        θ̂ = argmin objective(θ; κ), started from the candidate
        if min(h_enf(θ̂)) >= 0: stop
        κ = 10 κ

Each restart begins from the candidate start, not from the previous θ̂.
The number of escalations is capped; exceeding the cap raises
ConvergenceError. The candidate with the smallest final objective value
is selected, ties going to the earliest candidate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import OptimizeResult, minimize

from pyflexcure.core.exceptions import ConvergenceError, InfeasibleStartError
from pyflexcure.cure._likelihood import CureLikelihood, constraint_violation

KAPPA_START = 1.0
KAPPA_FACTOR = 10.0
DEFAULT_MAX_ESCALATIONS = 25
DEFAULT_CONTROL = {'maxiter': 10000}


@dataclass(frozen=True)
class CandidateFit:
    """Outcome of the escalation loop for one starting value.

    Attributes:
        theta: Parameter estimate of the last run.
        value: Objective value of the last run (at the final κ).
        kappa: Penalty weight of the last run.
        n_escalations: Number of times κ was increased.
        violation: Σ min(h_enf, 0)² at theta.
        success, status, message, n_iter: From scipy's OptimizeResult.
    """
    theta: NDArray
    value: float
    kappa: float
    n_escalations: int
    violation: float
    success: bool
    status: int
    message: str
    n_iter: int


def feasible_starts(
    likelihood: CureLikelihood,
    starts: Sequence[NDArray],
) -> list[int]:
    """Indices of starts with a finite unpenalized objective.

    Raises:
        InfeasibleStartError: If no start is feasible.
    """
    values = tuple(_evaluate(likelihood, theta) for theta in starts)
    keep = [i for i, value in enumerate(values) if np.isfinite(value)]
    if not keep:
        raise InfeasibleStartError(
            "Initial values are outside feasible region",
            n_candidates=len(values),
            values=values,
        )
    return keep


def _evaluate(likelihood: CureLikelihood, theta: NDArray) -> float:
    theta = np.asarray(theta, dtype=np.float64)
    if theta.shape != (likelihood.n_params,) or not np.all(np.isfinite(theta)):
        return np.nan
    return likelihood.negloglik(theta)


def minimize_penalized(
    likelihood: CureLikelihood,
    theta0: NDArray,
    kappa: float,
    method: str = 'Nelder-Mead',
    control: dict[str, Any] | None = None,
) -> OptimizeResult:
    """One scipy run of the objective at a fixed κ.

    Non-finite objective values are reported to the optimizer as +inf.
    """
    objective = likelihood.objective(kappa)

    def fun(theta):
        value = objective(theta)
        return value if np.isfinite(value) else np.inf

    options = dict(DEFAULT_CONTROL if control is None else control)
    return minimize(fun, np.asarray(theta0, dtype=np.float64),
                    method=method, options=options)


def fit_candidate(
    likelihood: CureLikelihood,
    theta0: NDArray,
    *,
    method: str = 'Nelder-Mead',
    control: dict[str, Any] | None = None,
    max_escalations: int = DEFAULT_MAX_ESCALATIONS,
) -> CandidateFit:
    """Run the escalation loop from one starting value.

    Raises:
        ConvergenceError: If the enforced hazard is still negative after
            max_escalations increases of κ.
    """
    kappa = KAPPA_START
    n_escalations = 0
    while True:
        res = minimize_penalized(likelihood, theta0, kappa, method, control)
        hazard = likelihood.enforced_hazard(res.x)
        violation = constraint_violation(hazard)
        if not np.any(hazard < 0):
            break
        if n_escalations >= max_escalations:
            raise ConvergenceError(
                f"Hazard still negative after {n_escalations} penalty "
                f"escalations (kappa={kappa:g})",
                iterations=n_escalations,
                final_change=violation,
                reason='max_escalations',
                threshold=float(max_escalations),
            )
        kappa *= KAPPA_FACTOR
        n_escalations += 1

    return CandidateFit(
        theta=np.asarray(res.x, dtype=np.float64),
        value=float(res.fun),
        kappa=kappa,
        n_escalations=n_escalations,
        violation=violation,
        success=bool(res.success),
        status=int(res.status),
        message=str(res.message),
        n_iter=int(getattr(res, 'nit', 0) or 0),
    )


def select_best(fits: Sequence[CandidateFit]) -> int:
    """Index of the smallest final value; the first one wins ties."""
    values = np.array([fit.value for fit in fits], dtype=np.float64)
    return int(np.argmin(values))
