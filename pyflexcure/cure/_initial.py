"""
Initial values for the flexible cure model.

Each method fits a simpler auxiliary model, predicts the cure fraction π̂
and the survival of the uncured Ŝ_u for every subject, and maps them onto
the parameter space of the full model by least squares:

    γ₀ = argmin ‖g_cr(π̂) - X_cr γ‖²
    β₀ = argmin ‖g(Ŝ_u) - X β‖²       (rows with a finite g(Ŝ_u) only)

Methods:
    'cure'      Weibull cure model of the same type: logit link for π on
                the cure covariates, Weibull scale on the uncured
                covariates, constant shape.
    'flexpara'  Royston-Parmar proportional hazards relative survival
                model with a df=3 spline of log time on the union of all
                covariates. π̂ is its prediction just past the last
                follow-up time and Ŝ_u is solved from the cure type.

Both auxiliary fits are evaluated with CureLikelihood: the Weibull model
is the PH link with columns [covariates, log t], the Royston-Parmar model
is a mixture model with π fixed at 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import minimize
from scipy.special import logit

from pyflexcure.core.exceptions import ValidationError
from pyflexcure.cure._cure_types import CureType, Mixture
from pyflexcure.cure._km import survival_at
from pyflexcure.cure._likelihood import CureLikelihood
from pyflexcure.cure._links import (
    CureRateLink, IdentityCureLink, LogitCureLink, PHLink, SurvivalLink,
)
from pyflexcure.cure.design import (
    CureDesign, CureDesignMatrices, DesignMatrixBuilder, EntryMap, build_model_spec,
)

INITIAL_METHODS = ('cure', 'flexpara')

LOGH_FLOOR = -18.0
PI_GAP = 0.01
FLEXPARA_DF = 3
_AUX_OPTIONS = {'maxiter': 10000}


@dataclass(frozen=True)
class StartingValues:
    """One candidate start, labelled by design column."""
    method: str
    theta: NDArray
    names: tuple[str, ...]

    @property
    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.theta)))


def initial_values(
    method: str,
    design: CureDesign,
    matrices: CureDesignMatrices,
    *,
    covariates=(),
    cure_covariates=(),
    link: SurvivalLink,
    cure_link: CureRateLink,
    cure_type: CureType,
) -> StartingValues:
    """Compute one candidate start with the named method.

    Raises
    ------
    ValidationError
        If method is not one of INITIAL_METHODS.
    """
    fitter = _METHODS.get(method)
    if fitter is None:
        raise ValidationError(
            f"Argument method should be one of {INITIAL_METHODS}, got {method!r}"
        )
    pi_hat, su_hat = fitter(design, tuple(covariates), tuple(cure_covariates),
                            matrices, cure_type)
    return _regress_start(method, pi_hat, su_hat, matrices, link, cure_link)


def _regress_start(
    method: str,
    pi_hat: NDArray,
    su_hat: NDArray,
    matrices: CureDesignMatrices,
    link: SurvivalLink,
    cure_link: CureRateLink,
) -> StartingValues:
    with np.errstate(all='ignore'):
        g_pi = cure_link.link(pi_hat)
        g_su = link.link(su_hat)
    gamma = _finite_lstsq(matrices.X_cr, g_pi)
    beta = _finite_lstsq(matrices.X, g_su)
    return StartingValues(
        method=method,
        theta=np.concatenate([gamma, beta]),
        names=matrices.cure_column_names + matrices.column_names,
    )


def _finite_lstsq(X: NDArray, y: NDArray) -> NDArray:
    """Least squares without intercept on the rows where y is finite."""
    keep = np.isfinite(y)
    if not np.any(keep):
        return np.full(X.shape[1], np.nan)
    coef, *_ = np.linalg.lstsq(X[keep], y[keep], rcond=None)
    return coef


def _fit_auxiliary(likelihood: CureLikelihood, start: NDArray) -> NDArray:
    objective = likelihood.objective(0.0)

    def fun(theta):
        value = objective(theta)
        return value if np.isfinite(value) else np.inf

    return minimize(fun, start, method='Nelder-Mead', options=_AUX_OPTIONS).x


def _covariate_matrix(design: CureDesign, names) -> NDArray:
    blocks = [np.ones(design.n)] + [design.columns[name] for name in names]
    return np.column_stack(blocks)


def _entry_rows(design: CureDesign, rows: Callable[[NDArray, NDArray], NDArray]) -> EntryMap:
    """EntryMap whose X0 rows are rows(subject_index, entry_time)."""
    if not design.delayed:
        return EntryMap(np.empty(0, dtype=np.intp), np.empty((0, 0)))
    index = np.flatnonzero(design.entry > 0)
    return EntryMap(subject_index=index, X0=rows(index, design.entry[index]))


# =====================================================================
# Methods
# =====================================================================

def _cure_start(design, covariates, cure_covariates, matrices, cure_type):
    """Weibull cure model: S_u = exp(-exp(X_k b + k log t))."""
    X_k = _covariate_matrix(design, covariates)
    log_t = np.log(design.time)
    X = np.column_stack([X_k, log_t])
    XD = np.column_stack([np.zeros_like(X_k), 1.0 / design.time])
    entry = _entry_rows(
        design, lambda idx, t0: np.column_stack([X_k[idx], np.log(t0)]),
    )

    likelihood = CureLikelihood(
        event=design.event,
        X=X,
        XD=XD,
        X_cr=matrices.X_cr,
        entry=entry,
        bhazard=design.bhazard,
        link=PHLink(),
        cure_link=LogitCureLink(),
        cure_type=cure_type,
        constraint=False,
    )

    # π from the tail of the product-limit curve, exponential uncured hazard
    tail = survival_at(design.time, design.event, [np.max(design.time)], design.entry)
    exposure = np.sum(design.time - (design.entry if design.entry is not None else 0.0))
    start = np.zeros(likelihood.n_params)
    start[0] = logit(np.clip(tail[0], 0.05, 0.95))
    start[likelihood.n_cure] = np.log(max(design.n_events, 1) / exposure)
    start[-1] = 1.0

    theta = _fit_auxiliary(likelihood, start)
    gamma, beta = likelihood.split(theta)
    pi_hat = LogitCureLink().inverse_link(matrices.X_cr @ gamma)
    su_hat = PHLink().inverse_link(X @ beta)
    return pi_hat, su_hat


def _flexpara_start(design, covariates, cure_covariates, matrices, cure_type):
    """Royston-Parmar PH relative survival model, df=3."""
    union = tuple(dict.fromkeys(covariates + cure_covariates))
    spec = build_model_spec(union, df=FLEXPARA_DF)
    builder = DesignMatrixBuilder.fit(
        spec, design.time_name, np.log(design.time[design.event]),
    )
    X = builder.matrix(design.columns, design.time)
    XD = builder.derivative(design.columns, design.time)
    entry = _entry_rows(
        design,
        lambda idx, t0: builder.matrix(
            {name: values[idx] for name, values in design.columns.items()}, t0,
        ),
    )

    likelihood = CureLikelihood(
        event=design.event,
        X=X,
        XD=XD,
        X_cr=np.zeros((design.n, 0)),
        entry=entry,
        bhazard=design.bhazard,
        link=PHLink(),
        cure_link=IdentityCureLink(),
        cure_type=Mixture(),
        constraint=False,
    )

    # log cumulative hazard of the product-limit curve at the event times
    ev = design.event
    surv = survival_at(design.time, ev, design.time[ev], design.entry)
    with np.errstate(divide='ignore', invalid='ignore'):
        log_h = np.maximum(np.log(-np.log(surv)), LOGH_FLOOR)
    start = _finite_lstsq(X[ev], log_h)
    if not np.all(np.isfinite(start)):
        start = np.zeros(X.shape[1])

    beta = _fit_auxiliary(likelihood, start)
    link = PHLink()
    shat = link.inverse_link(X @ beta)
    beyond = np.full(design.n, np.max(design.time) + 0.1)
    pi_hat = link.inverse_link(builder.matrix(design.columns, beyond) @ beta)
    return cure_targets(shat, pi_hat, cure_type)


def cure_targets(shat: NDArray, pi_hat: NDArray, cure_type: CureType):
    """Split a fitted survival curve into cure fraction and uncured survival.

    shat is nudged below 1 and pi_hat below shat by PI_GAP, so that the
    uncured survival stays inside (0, 1).
    """
    shat = np.where(shat == 1.0, shat - PI_GAP, shat)
    pi_hat = np.where(pi_hat >= shat, shat - PI_GAP, pi_hat)

    with np.errstate(divide='ignore', invalid='ignore'):
        if cure_type.name == 'mixture':
            su_hat = (shat - pi_hat) / (1.0 - pi_hat)
        else:
            su_hat = 1.0 - np.log(shat) / np.log(pi_hat)
    return pi_hat, su_hat


_METHODS = {
    'cure': _cure_start,
    'flexpara': _flexpara_start,
}
