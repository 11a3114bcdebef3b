"""
Kaplan-Meier product-limit estimator, used to seed auxiliary fits.

S(t) = ∏_{t_j <= t} (1 - d_j / n_j) over the distinct event times t_j,
with the risk set n_j = #{i : entry_i < t_j <= time_i}.

References:
    Kaplan, E. L., & Meier, P. (1958). Nonparametric estimation from
        incomplete observations. JASA, 53(282), 457-481.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


def product_limit(
    time: NDArray,
    event: NDArray,
    entry: NDArray | None = None,
) -> tuple[NDArray, NDArray]:
    """Survival estimate at the distinct event times.

    Parameters
    ----------
    time : NDArray
        (n,) follow-up time.
    event : NDArray
        (n,) boolean event indicator.
    entry : NDArray or None
        (n,) entry time for left-truncated data.

    Returns
    -------
    (event_times, survival)
    """
    time = np.asarray(time, dtype=np.float64)
    event = np.asarray(event, dtype=bool)

    event_times, n_events = np.unique(time[event], return_counts=True)
    if len(event_times) == 0:
        return event_times, np.empty(0)

    sorted_time = np.sort(time)
    n_risk = len(time) - np.searchsorted(sorted_time, event_times, side='left')
    if entry is not None:
        # subjects not yet under observation at t_j
        sorted_entry = np.sort(np.asarray(entry, dtype=np.float64))
        n_risk -= len(sorted_entry) - np.searchsorted(
            sorted_entry, event_times, side='left'
        )

    with np.errstate(divide='ignore', invalid='ignore'):
        factor = np.where(n_risk > 0, 1.0 - n_events / n_risk, 1.0)
    return event_times, np.cumprod(factor)


def survival_at(
    time: NDArray,
    event: NDArray,
    at: NDArray,
    entry: NDArray | None = None,
) -> NDArray:
    """Right-continuous step function of the product-limit estimate at `at`."""
    event_times, survival = product_limit(time, event, entry)
    at = np.asarray(at, dtype=np.float64)
    idx = np.searchsorted(event_times, at, side='right') - 1
    out = np.ones(len(at))
    seen = idx >= 0
    out[seen] = survival[idx[seen]]
    return out
