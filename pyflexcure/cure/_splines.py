"""
Natural cubic spline basis and finite-difference time derivative.

The basis matches R's splines::ns() (and rstpm2::nsx() with default
arguments) without an intercept column:

    1. Cubic B-spline basis on the augmented knot vector
       (boundary knots repeated 4 times, interior knots in between).
    2. Drop the first B-spline (no intercept).
    3. Project out the two natural boundary constraints (zero second
       derivative at each boundary knot) with a QR decomposition of the
       constraint matrix, keeping the complement columns.
    4. Beyond the boundary knots the basis is extended linearly from the
       value and first derivative at the nearest boundary knot.

With df degrees of freedom there are df - 1 interior knots placed at
equally spaced quantiles of the data, and df basis columns.

References:
    Hastie, T. J. (1992). Generalized additive models. In Statistical
        Models in S, ch. 7.
    R Core Team. splines::ns, splines::splineDesign
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy.interpolate import BSpline

from pyflexcure.core.exceptions import ValidationError

_ORDER = 4
_EPS = np.finfo(np.float64).eps


@dataclass(frozen=True)
class NaturalSplineBasis:
    """Natural cubic spline basis with fixed knots.

    Attributes:
        interior_knots: Interior knot locations (df - 1,).
        boundary_knots: (lower, upper) boundary knots.
    """
    interior_knots: NDArray
    boundary_knots: tuple[float, float]

    @classmethod
    def from_data(cls, x: NDArray, df: int) -> NaturalSplineBasis:
        """Place knots at quantiles of x, boundary knots at its range."""
        if int(df) != df or df < 1:
            raise ValidationError(f"df: must be a positive integer, got {df!r}")
        x = np.asarray(x, dtype=np.float64)
        x = x[np.isfinite(x)]
        if len(x) == 0:
            raise ValidationError("spline basis: no finite values to place knots")
        lower, upper = float(np.min(x)), float(np.max(x))
        if not upper > lower:
            raise ValidationError(
                f"spline basis: data must span an interval to place knots, "
                f"all values equal {lower}"
            )
        n_interior = int(df) - 1
        probs = np.linspace(0.0, 1.0, n_interior + 2)[1:-1]
        knots = np.quantile(x, probs) if n_interior > 0 else np.empty(0)
        return cls(interior_knots=np.asarray(knots, dtype=np.float64),
                   boundary_knots=(lower, upper))

    @property
    def df(self) -> int:
        return len(self.interior_knots) + 1

    @property
    def _all_knots(self) -> NDArray:
        lower, upper = self.boundary_knots
        return np.concatenate([
            np.repeat(lower, _ORDER), self.interior_knots, np.repeat(upper, _ORDER),
        ])

    def _bspline(self) -> BSpline:
        t = self._all_knots
        n_basis = len(t) - _ORDER
        return BSpline(t, np.eye(n_basis), _ORDER - 1, extrapolate=True)

    def _projection(self, spline: BSpline) -> NDArray:
        """Columns spanning the null space of the boundary constraints."""
        second = spline.derivative(2)(np.asarray(self.boundary_knots))
        const = second[:, 1:]
        q, _ = np.linalg.qr(const.T, mode='complete')
        return q[:, 2:]

    def _raw(self, x: NDArray, nu: int) -> NDArray:
        """B-spline basis (without the first column) or its derivative,
        linearly extended outside the boundary knots."""
        spline = self._bspline()
        lower, upper = self.boundary_knots
        n_basis = spline.c.shape[1]
        out = np.zeros((len(x), n_basis - 1))

        inside = (x >= lower) & (x <= upper)
        if np.any(inside):
            out[inside] = (spline(x[inside]) if nu == 0
                           else spline.derivative(nu)(x[inside]))[:, 1:]

        d1 = spline.derivative(1)
        for pivot, mask in ((lower, x < lower), (upper, x > upper)):
            if not np.any(mask):
                continue
            slope = d1(np.array([pivot]))[0, 1:]
            if nu == 0:
                value = spline(np.array([pivot]))[0, 1:]
                out[mask] = value + np.outer(x[mask] - pivot, slope)
            elif nu == 1:
                out[mask] = slope
        return out

    def __call__(self, x) -> NDArray:
        """Evaluate the basis, shape (len(x), df)."""
        x = np.atleast_1d(np.asarray(x, dtype=np.float64))
        return self._raw(x, 0) @ self._projection(self._bspline())

    def derivative(self, x) -> NDArray:
        """First derivative of the basis with respect to x, shape (len(x), df)."""
        x = np.atleast_1d(np.asarray(x, dtype=np.float64))
        return self._raw(x, 1) @ self._projection(self._bspline())


def central_difference(
    func: Callable[[NDArray], NDArray],
    x: NDArray,
) -> NDArray:
    """Row-wise derivative of a matrix-valued function by central differences.

    Row i of func(x) must depend on x[i] only. The step for each row is
    h_i = eps^(1/3) * max(1, |x_i|), rounded so that x_i + h_i and
    x_i - h_i are exactly representable:

        d/dx_i func(x)[i, :] = (func(x + h_hi) - func(x - h_lo)) / (h_hi + h_lo)

    Args:
        func: Maps an (n,) vector to an (n, p) matrix.
        x: Points of evaluation, shape (n,).

    Returns:
        (n, p) matrix of derivatives.
    """
    x = np.asarray(x, dtype=np.float64)
    h = _EPS ** (1.0 / 3.0) * np.maximum(np.abs(x), 1.0)
    h_hi = (x + h) - x
    h_lo = x - (x - h)
    upper = np.asarray(func(x + h_hi), dtype=np.float64)
    lower = np.asarray(func(x - h_lo), dtype=np.float64)
    return (upper - lower) / (h_hi + h_lo)[:, None]
