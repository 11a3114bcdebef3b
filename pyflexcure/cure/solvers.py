"""
Public API for flexible cure models.

    fit_cure_model(data, time=..., event=...) → CureSolution

Validates options, builds a CureDesign and its design matrices, computes
candidate starting values, runs the penalized optimizer from each and
wraps the selected fit in a CureSolution.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from typing import Any, Literal, Sequence

import numpy as np
from numpy.typing import NDArray

from pyflexcure.core.compute.timing import Timer
from pyflexcure.core.exceptions import ConvergenceError, DimensionError, ValidationError
from pyflexcure.core.result import Result
from pyflexcure.core.validation import check_array, check_choice
from pyflexcure.cure._common import CureParams
from pyflexcure.cure._covariance import invert_hessian, numerical_hessian
from pyflexcure.cure._cure_types import resolve_cure_type
from pyflexcure.cure._initial import StartingValues, initial_values
from pyflexcure.cure._likelihood import CureLikelihood
from pyflexcure.cure._links import resolve_cure_rate_link, resolve_survival_link
from pyflexcure.cure._optimizer import (
    DEFAULT_CONTROL, DEFAULT_MAX_ESCALATIONS, feasible_starts, fit_candidate, select_best,
)
from pyflexcure.cure.design import (
    CureDesign, build_cure_spec, build_design_matrices, build_model_spec,
)
from pyflexcure.cure.solution import CureSolution

FIT_LINKS = ('PH', 'PO', 'probit')


def fit_cure_model(
    data,
    *,
    time: str,
    event: str,
    entry: str | None = None,
    response: Literal["right", "counting"] = "right",
    covariates: Sequence[str] = (),
    cure_covariates: Sequence[str] = (),
    tvc: Mapping[str, int] | None = None,
    df: int = 3,
    baseoff: bool = False,
    bhazard: str | NDArray | None = None,
    type: Literal["mixture", "nmixture"] = "mixture",
    link_type: Literal["PH", "PO", "probit"] = "PH",
    link_type_cr: Literal["logit", "loglog", "identity", "probit"] = "logit",
    constraint: bool = True,
    init=None,
    ini_types: Sequence[str] = ("cure", "flexpara"),
    method: str = "Nelder-Mead",
    control: dict[str, Any] | None = None,
    max_escalations: int = DEFAULT_MAX_ESCALATIONS,
    covariance: bool = True,
    verbose: bool = False,
) -> CureSolution:
    """Fit a flexible parametric mixture or non-mixture cure model.

    Matches R's cuRe::GenFlexCureModel(). The survival of the uncured is
    modelled as g(S_u(t)) = X(t) β with a natural spline of log time, the
    cure fraction as g_cr(π) = X_cr γ.

    Parameters
    ----------
    data : DataFrame, DataSource, str or mapping
        Observations; see DataSource.build.
    time, event : str
        Column names of follow-up time and event indicator.
    entry : str or None
        Column of entry (left-truncation) times.
    response : str
        "right" or "counting". Interval, left and multi-state responses
        are rejected.
    covariates : sequence of str
        Linear effects on the uncured survival.
    cure_covariates : sequence of str
        Linear effects on the cure fraction.
    tvc : mapping or None
        Covariate name → df of its time-varying spline effect.
    df : int
        Degrees of freedom of the baseline spline of log time.
    baseoff : bool
        Drop the baseline spline; requires tvc.
    bhazard : str, array-like or None
        Background hazard at follow-up time (column name or vector).
        None fits an all-cause model.
    type : str
        "mixture" or "nmixture".
    link_type : str
        Survival link of the uncured: "PH", "PO" or "probit".
    link_type_cr : str
        Cure-rate link: "logit", "loglog", "identity" or "probit".
    constraint : bool
        If True, the hazard of the uncured is kept non-negative for every
        subject; otherwise the total hazard at the event times.
    init : array-like or None
        One start vector, or a sequence of them, replacing ini_types.
    ini_types : sequence of str
        Initial-value methods to run: "cure", "flexpara".
    method : str
        scipy.optimize.minimize method.
    control : dict or None
        Options passed to the minimizer (default {'maxiter': 10000}).
    max_escalations : int
        Maximum number of penalty increases per start.
    covariance : bool
        Compute the covariance from a numerical Hessian.
    verbose : bool
        Print progress.

    Returns
    -------
    CureSolution
    """
    cure_type = resolve_cure_type(type)
    link = resolve_survival_link(link_type)
    if link.name not in FIT_LINKS:
        raise ValidationError(
            f"link_type: {link.name!r} is not supported for cure models, "
            f"use one of {FIT_LINKS}"
        )
    cure_link = resolve_cure_rate_link(link_type_cr)
    if int(max_escalations) != max_escalations or max_escalations < 0:
        raise ValidationError(
            f"max_escalations: must be a non-negative integer, got {max_escalations!r}"
        )
    if init is None:
        for name in ini_types:
            check_choice(name, ("cure", "flexpara"), 'ini_types')

    covariates = tuple(covariates)
    cure_covariates = tuple(cure_covariates)
    tvc = dict(tvc or {})

    timer = Timer()
    timer.start()

    with timer.section('design'):
        design = CureDesign.for_cure_model(
            data,
            time=time,
            event=event,
            entry=entry,
            response=response,
            covariates=tuple(dict.fromkeys(covariates + cure_covariates + tuple(tvc))),
            bhazard=bhazard,
        )
        spec = build_model_spec(covariates, df=df, tvc=tvc, baseoff=baseoff)
        cure_spec = build_cure_spec(cure_covariates)
        matrices, builder, cure_builder = build_design_matrices(design, spec, cure_spec)
        likelihood = CureLikelihood.from_design(
            design, matrices, link, cure_link, cure_type, constraint=constraint,
        )

    if verbose:
        print(f"Cure model ({cure_type.name}, {link.name}/{cure_link.name}): "
              f"{design.n} observations, {design.n_events} events, "
              f"{likelihood.n_params} parameters")

    with timer.section('initial_values'):
        if init is None:
            if verbose:
                print("Finding initial values...")
            starts = [
                initial_values(
                    name, design, matrices,
                    covariates=covariates,
                    cure_covariates=cure_covariates,
                    link=link,
                    cure_link=cure_link,
                    cure_type=cure_type,
                )
                for name in ini_types
            ]
        else:
            if verbose:
                print("Initial values provided by the user")
            starts = _user_starts(init, matrices.cure_column_names + matrices.column_names)

    with timer.section('optimization'):
        run = feasible_starts(likelihood, [s.theta for s in starts])
        if verbose:
            print(f"Fitting the model from {len(run)} starting value(s)...")
        fits, fitted, failed = [], [], []
        for i in run:
            try:
                fit = fit_candidate(
                    likelihood, starts[i].theta,
                    method=method, control=control, max_escalations=max_escalations,
                )
            except ConvergenceError as e:
                if verbose:
                    print(f"Start {i} ({starts[i].method}) dropped: {e}")
                failed.append((i, e))
                continue
            fits.append(fit)
            fitted.append(i)
        if not fits:
            raise failed[-1][1]
        best_index = select_best(fits)
        best = fits[best_index]

    warnings_list = list(design.warnings)
    for i, e in failed:
        message = f"Start {i} ({starts[i].method}) dropped: {e}"
        warnings.warn(message, RuntimeWarning, stacklevel=2)
        warnings_list.append(message)
    if not best.success:
        message = f"Convergence not reached: {best.message}"
        warnings.warn(message, RuntimeWarning, stacklevel=2)
        warnings_list.append(message)

    cov = None
    if covariance:
        with timer.section('covariance'):
            hessian = numerical_hessian(likelihood.objective(0.0), best.theta)
            cov, cov_warnings = invert_hessian(hessian)
        for message in cov_warnings:
            warnings.warn(message, RuntimeWarning, stacklevel=2)
        warnings_list.extend(cov_warnings)

    timer.stop()

    gamma, beta = likelihood.split(best.theta)
    params = CureParams(
        coefficients_cure=gamma,
        coefficients_spline=beta,
        cure_names=matrices.cure_column_names,
        spline_names=matrices.column_names,
        covariance=cov,
        neg_loglik=best.value,
        neg_logliks=np.array([fit.value for fit in fits]),
        type=cure_type.name,
        link_type=link.name,
        link_type_cr=cure_link.name,
        excess=design.excess,
        design_builder=builder,
        cure_builder=cure_builder,
        n_observations=design.n,
        n_events=design.n_events,
        converged=best.success,
    )

    result = Result(
        params=params,
        info={
            "method": method,
            "control": dict(DEFAULT_CONTROL if control is None else control),
            "constraint": constraint,
            "starts": tuple(starts[i].method for i in fitted),
            "selected": starts[fitted[best_index]].method,
            "failed": tuple(starts[i].method for i, _ in failed),
            "kappa": best.kappa,
            "kappas": tuple(fit.kappa for fit in fits),
            "n_escalations": best.n_escalations,
            "status": best.status,
            "message": best.message,
            "n_iter": best.n_iter,
            "delayed": design.delayed,
            "n_dropped": design.n_dropped,
        },
        timing=timer.result(),
        backend_name="cpu_penalized_mle",
        warnings=tuple(warnings_list),
    )

    if verbose:
        print(f"Completed: neg. log-likelihood {best.value:.4f} "
              f"(kappa={best.kappa:g}, converged={best.success})")

    return CureSolution(_result=result)


def _user_starts(init, names: tuple[str, ...]) -> list[StartingValues]:
    """Normalize a user-supplied start vector or sequence of vectors."""
    array = check_array(init, 'init')
    rows = array[None, :] if array.ndim == 1 else array
    if rows.ndim != 2 or rows.shape[1] != len(names):
        raise DimensionError(
            f"init: each start vector must have {len(names)} values "
            f"({', '.join(names)}), got shape {array.shape}"
        )
    return [StartingValues(method='user', theta=row.copy(), names=names) for row in rows]
