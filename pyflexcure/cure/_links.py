"""
Link families for the survival of the uncured and for the cure rate.

A SurvivalLink g maps the uncured survival S_u(t) to the linear predictor
η(t) = g(S_u(t)). Given η and its time derivative η', each family has
closed forms for the survival, its derivative, the hazard and the
cumulative hazard:

    PH      g(S) = log(-log S)     S = exp(-e^η)      h = η' e^η
    PO      g(S) = log((1-S)/S)    S = 1/(1 + e^η)    h = η' e^η / (1 + e^η)
    probit  g(S) = -Φ⁻¹(S)         S = Φ(-η)          h = η' φ(η) / Φ(-η)
    AH      g(S) = -log S          S = exp(-η)        h = η'

A CureRateLink maps the cure probability π to its linear predictor:
logit, loglog (π = exp(-e^η)), identity, probit.

Both are stateless. A link object is resolved once from its tag and then
passed by reference through the likelihood.

References:
    Royston, P., & Parmar, M. K. B. (2002). Flexible parametric
        proportional-hazards and proportional-odds models for censored
        survival data. Statistics in Medicine, 21(15), 2175-2197.
    Clements, M. rstpm2: link.PH, link.PO, link.probit, link.AH
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import numpy as np
from numpy.typing import NDArray
from scipy.special import expit, logit
from scipy.stats import norm

from pyflexcure.core.exceptions import ValidationError


def _scale(factor: NDArray, D: NDArray) -> NDArray:
    """Multiply a per-subject factor into a vector or the rows of a matrix."""
    D = np.asarray(D)
    return factor[:, None] * D if D.ndim == 2 else factor * D


def _mills(eta: NDArray) -> NDArray:
    """φ(η) / Φ(-η), evaluated on the log scale."""
    return np.exp(norm.logpdf(eta) - norm.logsf(eta))


# =====================================================================
# Survival links
# =====================================================================

class SurvivalLink(ABC):
    """Link between the uncured survival and its linear predictor."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def link(self, surv: NDArray) -> NDArray:
        """g(S) → η."""
        ...

    @abstractmethod
    def inverse_link(self, eta: NDArray) -> NDArray:
        """g⁻¹(η) → S."""
        ...

    @abstractmethod
    def dsurv_deta(self, eta: NDArray) -> NDArray:
        """dS/dη."""
        ...

    @abstractmethod
    def hazard(self, eta: NDArray, eta_d: NDArray) -> NDArray:
        """h(t) given η and dη/dt."""
        ...

    @abstractmethod
    def cumulative_hazard(self, eta: NDArray) -> NDArray:
        """H(t) = -log S(t)."""
        ...

    @abstractmethod
    def hazard_gradient(self, eta: NDArray, eta_d: NDArray,
                        X: NDArray, XD: NDArray) -> NDArray:
        """∂h/∂β, shape (n, p)."""
        ...

    @abstractmethod
    def cumulative_hazard_gradient(self, eta: NDArray, X: NDArray) -> NDArray:
        """∂H/∂β, shape (n, p)."""
        ...

    def survival_gradient(self, eta: NDArray, D: NDArray) -> NDArray:
        """dS/dη · D.

        With D = η' this is dS/dt; with D = X it is ∂S/∂β.
        """
        return _scale(self.dsurv_deta(np.asarray(eta, dtype=np.float64)), D)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class PHLink(SurvivalLink):
    """Proportional hazards: η is the log cumulative hazard."""

    @property
    def name(self) -> str:
        return 'PH'

    def link(self, surv: NDArray) -> NDArray:
        with np.errstate(divide='ignore', invalid='ignore'):
            return np.log(-np.log(surv))

    def inverse_link(self, eta: NDArray) -> NDArray:
        return np.exp(-np.exp(eta))

    def dsurv_deta(self, eta: NDArray) -> NDArray:
        return -np.exp(eta - np.exp(eta))

    def hazard(self, eta: NDArray, eta_d: NDArray) -> NDArray:
        return eta_d * np.exp(eta)

    def cumulative_hazard(self, eta: NDArray) -> NDArray:
        return np.exp(eta)

    def hazard_gradient(self, eta, eta_d, X, XD):
        e = np.exp(eta)
        return _scale(e, XD) + _scale(eta_d * e, X)

    def cumulative_hazard_gradient(self, eta, X):
        return _scale(np.exp(eta), X)


class POLink(SurvivalLink):
    """Proportional odds: η is the log odds of failure."""

    @property
    def name(self) -> str:
        return 'PO'

    def link(self, surv: NDArray) -> NDArray:
        return -logit(surv)

    def inverse_link(self, eta: NDArray) -> NDArray:
        return expit(-eta)

    def dsurv_deta(self, eta: NDArray) -> NDArray:
        return -expit(eta) * expit(-eta)

    def hazard(self, eta: NDArray, eta_d: NDArray) -> NDArray:
        return eta_d * expit(eta)

    def cumulative_hazard(self, eta: NDArray) -> NDArray:
        return np.logaddexp(0.0, eta)

    def hazard_gradient(self, eta, eta_d, X, XD):
        p = expit(eta)
        return _scale(p, XD) + _scale(eta_d * p * (1.0 - p), X)

    def cumulative_hazard_gradient(self, eta, X):
        return _scale(expit(eta), X)


class ProbitLink(SurvivalLink):
    """Probit: S = Φ(-η)."""

    @property
    def name(self) -> str:
        return 'probit'

    def link(self, surv: NDArray) -> NDArray:
        return -norm.ppf(surv)

    def inverse_link(self, eta: NDArray) -> NDArray:
        return norm.sf(eta)

    def dsurv_deta(self, eta: NDArray) -> NDArray:
        return -norm.pdf(eta)

    def hazard(self, eta: NDArray, eta_d: NDArray) -> NDArray:
        return _mills(eta) * eta_d

    def cumulative_hazard(self, eta: NDArray) -> NDArray:
        return -norm.logsf(eta)

    def hazard_gradient(self, eta, eta_d, X, XD):
        m = _mills(eta)
        return _scale(eta_d * (m * m - eta * m), X) + _scale(m, XD)

    def cumulative_hazard_gradient(self, eta, X):
        return _scale(_mills(eta), X)


class AHLink(SurvivalLink):
    """Additive hazards: η is the cumulative hazard itself."""

    @property
    def name(self) -> str:
        return 'AH'

    def link(self, surv: NDArray) -> NDArray:
        with np.errstate(divide='ignore'):
            return -np.log(surv)

    def inverse_link(self, eta: NDArray) -> NDArray:
        return np.exp(-eta)

    def dsurv_deta(self, eta: NDArray) -> NDArray:
        return -np.exp(-eta)

    def hazard(self, eta: NDArray, eta_d: NDArray) -> NDArray:
        return np.asarray(eta_d, dtype=np.float64)

    def cumulative_hazard(self, eta: NDArray) -> NDArray:
        return np.asarray(eta, dtype=np.float64)

    def hazard_gradient(self, eta, eta_d, X, XD):
        return np.asarray(XD, dtype=np.float64)

    def cumulative_hazard_gradient(self, eta, X):
        return np.asarray(X, dtype=np.float64)


# =====================================================================
# Cure-rate links
# =====================================================================

class CureRateLink(ABC):
    """Link between the cure probability π and its linear predictor."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def link(self, pi: NDArray) -> NDArray:
        """π → η."""
        ...

    @abstractmethod
    def inverse_link(self, eta: NDArray) -> NDArray:
        """η → π."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class LogitCureLink(CureRateLink):

    @property
    def name(self) -> str:
        return 'logit'

    def link(self, pi: NDArray) -> NDArray:
        return logit(pi)

    def inverse_link(self, eta: NDArray) -> NDArray:
        return expit(eta)


class LogLogCureLink(CureRateLink):
    """π = exp(-exp(η))."""

    @property
    def name(self) -> str:
        return 'loglog'

    def link(self, pi: NDArray) -> NDArray:
        with np.errstate(divide='ignore', invalid='ignore'):
            return np.log(-np.log(pi))

    def inverse_link(self, eta: NDArray) -> NDArray:
        return np.exp(-np.exp(eta))


class IdentityCureLink(CureRateLink):

    @property
    def name(self) -> str:
        return 'identity'

    def link(self, pi: NDArray) -> NDArray:
        return np.array(pi, dtype=np.float64)

    def inverse_link(self, eta: NDArray) -> NDArray:
        return np.array(eta, dtype=np.float64)


class ProbitCureLink(CureRateLink):

    @property
    def name(self) -> str:
        return 'probit'

    def link(self, pi: NDArray) -> NDArray:
        return norm.ppf(pi)

    def inverse_link(self, eta: NDArray) -> NDArray:
        return norm.cdf(eta)


# =====================================================================
# Tag → class mapping
# =====================================================================

SURVIVAL_LINKS: dict[str, type[SurvivalLink]] = {
    'PH': PHLink,
    'PO': POLink,
    'probit': ProbitLink,
    'AH': AHLink,
}

CURE_RATE_LINKS: dict[str, type[CureRateLink]] = {
    'logit': LogitCureLink,
    'loglog': LogLogCureLink,
    'identity': IdentityCureLink,
    'probit': ProbitCureLink,
}


def resolve_survival_link(link: str | SurvivalLink) -> SurvivalLink:
    """Resolve a survival link tag to an instance."""
    if isinstance(link, SurvivalLink):
        return link
    cls = SURVIVAL_LINKS.get(link)
    if cls is None:
        valid = ', '.join(SURVIVAL_LINKS)
        raise ValidationError(f"Unknown link: {link!r}. Valid links: {valid}")
    return cls()


def resolve_cure_rate_link(link: str | CureRateLink) -> CureRateLink:
    """Resolve a cure-rate link tag to an instance."""
    if isinstance(link, CureRateLink):
        return link
    cls = CURE_RATE_LINKS.get(link)
    if cls is None:
        valid = ', '.join(CURE_RATE_LINKS)
        raise ValidationError(
            f"Unknown cure-rate link: {link!r}. Valid links: {valid}"
        )
    return cls()
