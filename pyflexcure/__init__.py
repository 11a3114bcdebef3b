"""
PyFlexCure: flexible parametric cure models for Python.

Mixture and non-mixture cure models for relative (or all-cause) survival,
with the survival of the uncured modelled by a natural spline of log time
under a proportional hazards, proportional odds or probit link.

Submodules:
    core: Data ingestion, result envelope, exceptions, validation, timing
    cure: Design matrices, likelihood, optimizer and fit_cure_model
"""

__version__ = "0.1.0"

from pyflexcure import core
from pyflexcure import cure
from pyflexcure.cure import CureSolution, fit_cure_model

__all__ = [
    "__version__",
    "core",
    "cure",
    "fit_cure_model",
    "CureSolution",
]
