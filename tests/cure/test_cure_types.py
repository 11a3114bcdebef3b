"""
Tests for mixture and non-mixture cure-type strategies.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pyflexcure.core.exceptions import ValidationError
from pyflexcure.cure._cure_types import Mixture, NonMixture, resolve_cure_type
from pyflexcure.cure._links import PHLink


PI = np.array([0.1, 0.3, 0.7])
ETA = np.array([-1.0, 0.0, 0.8])
ETA_D = np.array([0.5, 1.0, 1.5])


class TestMixture:

    def test_relative_survival_limits(self):
        mix = Mixture()
        assert_allclose(mix.relative_survival(PI, np.ones(3)), 1.0)
        assert_allclose(mix.relative_survival(PI, np.zeros(3)), PI)

    def test_hazard_matches_log_derivative(self):
        """h = -d/dt log S computed by hand."""
        link = PHLink()
        surv = link.inverse_link(ETA)
        grad = link.survival_gradient(ETA, ETA_D)
        rs = Mixture().relative_survival(PI, surv)
        expected = (1 - PI) * ETA_D * np.exp(ETA) * surv / rs
        assert_allclose(Mixture().excess_hazard(PI, grad, rs), expected, rtol=1e-12)

    def test_all_cured_has_zero_hazard(self):
        link = PHLink()
        grad = link.survival_gradient(ETA, ETA_D)
        rs = Mixture().relative_survival(np.ones(3), link.inverse_link(ETA))
        assert_allclose(rs, 1.0)
        assert_allclose(Mixture().excess_hazard(np.ones(3), grad, rs), 0.0)

    def test_no_cure_reduces_to_uncured_survival(self):
        link = PHLink()
        surv = link.inverse_link(ETA)
        grad = link.survival_gradient(ETA, ETA_D)
        rs = Mixture().relative_survival(np.zeros(3), surv)
        assert_allclose(rs, surv)
        assert_allclose(Mixture().excess_hazard(np.zeros(3), grad, rs),
                        link.hazard(ETA, ETA_D), rtol=1e-12)

    def test_density_is_hazard_times_survival(self):
        link = PHLink()
        grad = link.survival_gradient(ETA, ETA_D)
        rs = Mixture().relative_survival(PI, link.inverse_link(ETA))
        assert_allclose(Mixture().excess_density(PI, grad, rs),
                        -(1 - PI) * grad, rtol=1e-12)


class TestNonMixture:

    def test_relative_survival_limits(self):
        nmix = NonMixture()
        assert_allclose(nmix.relative_survival(PI, np.ones(3)), 1.0)
        assert_allclose(nmix.relative_survival(PI, np.zeros(3)), PI, rtol=1e-12)

    def test_hazard(self):
        link = PHLink()
        grad = link.survival_gradient(ETA, ETA_D)
        rs = NonMixture().relative_survival(PI, link.inverse_link(ETA))
        assert_allclose(NonMixture().excess_hazard(PI, grad, rs),
                        np.log(PI) * grad, rtol=1e-12)
        assert np.all(NonMixture().excess_hazard(PI, grad, rs) > 0)

    def test_zero_cure_fraction_is_finite(self):
        """π = 0 gives a tiny survival and a large finite hazard."""
        link = PHLink()
        pi = np.zeros(3)
        surv = link.inverse_link(ETA)
        grad = link.survival_gradient(ETA, ETA_D)
        rs = NonMixture().relative_survival(pi, surv)
        haz = NonMixture().excess_hazard(pi, grad, rs)
        assert np.all(np.isfinite(haz))
        assert np.all(haz > 0)
        assert np.all((rs >= 0) & (rs < 1e-10))

    def test_negative_cure_fraction_is_nan(self):
        rs = NonMixture().relative_survival(np.array([-0.1]), np.array([0.5]))
        assert np.isnan(rs[0])


class TestResolve:

    def test_names(self):
        assert resolve_cure_type('mixture').name == 'mixture'
        assert resolve_cure_type('nmixture').name == 'nmixture'

    def test_instance_passthrough(self):
        mix = Mixture()
        assert resolve_cure_type(mix) is mix

    def test_unknown(self):
        with pytest.raises(ValidationError, match="Wrong specification of type"):
            resolve_cure_type('promotion')
