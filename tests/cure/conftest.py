"""
Simulated cure data shared by the cure model tests.

Subjects are cured with probability pi; the uncured have exponential
event times; everyone is censored at a uniform follow-up time.
"""

import numpy as np
import pytest


def simulate_cure(rng, n=1000, pi=0.3, rate=0.1, follow_up=(30.0, 70.0)):
    cured = rng.random(n) < pi
    t_event = rng.exponential(1.0 / rate, n)
    t_event[cured] = np.inf
    censor = rng.uniform(follow_up[0], follow_up[1], n)
    time = np.maximum(np.minimum(t_event, censor), 1e-3)
    event = (t_event <= censor).astype(np.float64)
    return {
        'time': time,
        'event': event,
        'x': rng.integers(0, 2, n).astype(np.float64),
    }


@pytest.fixture
def cure_data(rng):
    """n=1000, π=0.3, uncured hazard 0.1, follow-up 30 to 70."""
    return simulate_cure(rng)


@pytest.fixture
def small_cure_data(rng):
    return simulate_cure(rng, n=200)


@pytest.fixture
def cure_data_200():
    """n=200 draw used for the small-sample recovery check."""
    return simulate_cure(np.random.default_rng(1), n=200)
