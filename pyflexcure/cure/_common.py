"""
Parameter payload for flexible cure model results.

A frozen payload carried inside a Result[P] envelope.
"""

from __future__ import annotations

from dataclasses import dataclass

from numpy.typing import NDArray

from pyflexcure.cure.design import DesignMatrixBuilder


@dataclass(frozen=True)
class CureParams:
    """Flexible cure model estimates.

    Matches the fitted-object fields of R's cuRe::GenFlexCureModel().
    """

    coefficients_cure: NDArray         # (q,) γ, cure-rate linear predictor
    coefficients_spline: NDArray       # (p,) β, uncured survival linear predictor
    cure_names: tuple[str, ...]        # column names of X_cr
    spline_names: tuple[str, ...]      # column names of X
    covariance: NDArray | None         # (q+p, q+p) inverse Hessian, or None
    neg_loglik: float                  # objective of the selected candidate
    neg_logliks: NDArray               # final objective of every candidate run
    type: str                          # 'mixture' or 'nmixture'
    link_type: str                     # survival link tag
    link_type_cr: str                  # cure-rate link tag
    excess: bool                       # background hazard present
    design_builder: DesignMatrixBuilder
    cure_builder: DesignMatrixBuilder
    n_observations: int
    n_events: int
    converged: bool
