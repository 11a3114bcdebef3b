"""
Covariance of the estimates from a numerical Hessian.

The Hessian of the unpenalized negative log-likelihood at θ̂ is built by
central differences with step h_j = eps * max(|θ_j|, 1):

    H_jj = (f(θ + h_j e_j) - 2 f(θ) + f(θ - h_j e_j)) / h_j²
    H_jl = (f(++) - f(+-) - f(-+) + f(--)) / (4 h_j h_l)

Cov(θ̂) = H⁻¹. Inversion problems are reported as warnings rather than
raised, since the point estimates remain usable without a covariance.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
from numpy.typing import NDArray

_EPS = np.finfo(np.float64).eps


def numerical_hessian(
    func: Callable[[NDArray], float],
    x: NDArray,
    eps: float = 1e-4,
) -> NDArray:
    """Central-difference Hessian of a scalar function."""
    x = np.asarray(x, dtype=np.float64)
    n_params = len(x)
    h = eps * np.maximum(np.abs(x), 1.0)

    f0 = func(x)

    f_plus = np.zeros(n_params)
    f_minus = np.zeros(n_params)
    for j in range(n_params):
        xp = x.copy()
        xp[j] += h[j]
        f_plus[j] = func(xp)

        xm = x.copy()
        xm[j] -= h[j]
        f_minus[j] = func(xm)

    H = np.zeros((n_params, n_params), dtype=np.float64)
    for j in range(n_params):
        H[j, j] = (f_plus[j] - 2.0 * f0 + f_minus[j]) / (h[j] ** 2)

    for j in range(n_params):
        for l in range(j + 1, n_params):
            def perturbed(dj, dl):
                xp = x.copy()
                xp[j] += dj
                xp[l] += dl
                return func(xp)

            f_pp = perturbed(h[j], h[l])
            f_pm = perturbed(h[j], -h[l])
            f_mp = perturbed(-h[j], h[l])
            f_mm = perturbed(-h[j], -h[l])

            H[j, l] = (f_pp - f_pm - f_mp + f_mm) / (4.0 * h[j] * h[l])
            H[l, j] = H[j, l]

    return H


def invert_hessian(hessian: NDArray) -> tuple[NDArray | None, list[str]]:
    """Invert the Hessian of the negative log-likelihood.

    Returns
    -------
    (covariance, warnings)
        covariance is None when the Hessian is singular or numerically
        singular. A covariance with non-finite entries is returned
        together with a warning.
    """
    messages = []
    if not np.all(np.isfinite(hessian)):
        messages.append("Hessian has non-finite entries and is not invertible")
        return None, messages

    cond = np.linalg.cond(hessian)
    if not np.isfinite(cond) or cond > 1.0 / _EPS:
        messages.append(
            f"Hessian is numerically singular (condition number {cond:.3g}); "
            f"covariance not available"
        )
        return None, messages

    try:
        cov = np.linalg.inv(hessian)
    except np.linalg.LinAlgError:
        messages.append("Hessian is singular; covariance not available")
        return None, messages

    if not np.all(np.isfinite(cov)):
        messages.append("Hessian is not invertible: covariance has non-finite entries")
    return cov, messages
