"""
Flexible parametric cure models.

Public API:
    fit_cure_model(...) -> CureSolution
"""

from pyflexcure.cure.solvers import fit_cure_model
from pyflexcure.cure.solution import CureSolution
from pyflexcure.cure.design import CureDesign, DesignMatrixBuilder

__all__ = [
    "fit_cure_model",
    "CureSolution",
    "CureDesign",
    "DesignMatrixBuilder",
]
