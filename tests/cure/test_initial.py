"""
Tests for the initial-value estimators.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.special import expit

from pyflexcure.core.exceptions import ValidationError
from pyflexcure.cure._cure_types import Mixture, NonMixture
from pyflexcure.cure._initial import (
    INITIAL_METHODS, PI_GAP, _finite_lstsq, cure_targets, initial_values,
)
from pyflexcure.cure._likelihood import CureLikelihood
from pyflexcure.cure._links import LogitCureLink, PHLink
from pyflexcure.cure.design import (
    CureDesign, build_cure_spec, build_design_matrices, build_model_spec,
)


def _setup(data, covariates=(), cure_covariates=(), cure_type=None):
    design = CureDesign.for_cure_model(
        data, time='time', event='event',
        covariates=tuple(dict.fromkeys(covariates + cure_covariates)),
    )
    matrices, _, _ = build_design_matrices(
        design, build_model_spec(covariates), build_cure_spec(cure_covariates),
    )
    kwargs = dict(covariates=covariates, cure_covariates=cure_covariates,
                  link=PHLink(), cure_link=LogitCureLink(),
                  cure_type=cure_type or Mixture())
    return design, matrices, kwargs


class TestInitialValues:

    @pytest.mark.parametrize("method", INITIAL_METHODS)
    def test_finite_and_labelled(self, cure_data, method):
        design, matrices, kwargs = _setup(cure_data)
        start = initial_values(method, design, matrices, **kwargs)
        assert start.method == method
        assert start.theta.shape == (5,)
        assert start.is_finite
        assert start.names == ('(Intercept)', '(Intercept)', 'ns(log(time))[1]',
                               'ns(log(time))[2]', 'ns(log(time))[3]')

    @pytest.mark.parametrize("method", INITIAL_METHODS)
    def test_start_is_feasible(self, cure_data, method):
        design, matrices, kwargs = _setup(cure_data)
        start = initial_values(method, design, matrices, **kwargs)
        lik = CureLikelihood.from_design(design, matrices, PHLink(), LogitCureLink(),
                                         Mixture())
        assert np.isfinite(lik.negloglik(start.theta))

    def test_cure_start_near_true_fraction(self, cure_data):
        design, matrices, kwargs = _setup(cure_data)
        start = initial_values('cure', design, matrices, **kwargs)
        assert abs(expit(start.theta[0]) - 0.3) < 0.1

    @pytest.mark.parametrize("method", INITIAL_METHODS)
    def test_covariates_and_non_mixture(self, small_cure_data, method):
        design, matrices, kwargs = _setup(small_cure_data, covariates=('x',),
                                          cure_covariates=('x',),
                                          cure_type=NonMixture())
        start = initial_values(method, design, matrices, **kwargs)
        assert start.theta.shape == (7,)
        assert start.names[:2] == ('(Intercept)', 'x')

    def test_unknown_method(self, small_cure_data):
        design, matrices, kwargs = _setup(small_cure_data)
        with pytest.raises(ValidationError, match="method"):
            initial_values('coxph', design, matrices, **kwargs)


class TestFiniteLstsq:

    def test_non_finite_rows_ignored(self):
        X = np.column_stack([np.ones(4), [0.0, 1.0, 2.0, 3.0]])
        y = np.array([1.0, 3.0, np.inf, 7.0])
        assert_allclose(_finite_lstsq(X, y), [1.0, 2.0])

    def test_nothing_finite(self):
        coef = _finite_lstsq(np.ones((2, 1)), np.array([np.nan, -np.inf]))
        assert np.all(np.isnan(coef))


class TestCureTargets:
    """Nudges applied to the flexpara curve before splitting it."""

    shat = np.array([1.0, 0.8, 0.6, 0.5])
    pi_hat = np.array([0.3, 0.9, 0.6, 0.2])

    def test_nudges(self):
        pi, _ = cure_targets(self.shat, self.pi_hat, Mixture())
        # S == 1 only moves S; pi at or above S drops to S - gap
        assert_allclose(pi, [0.3, 0.8 - PI_GAP, 0.6 - PI_GAP, 0.2])

    def test_mixture_uncured_survival(self):
        pi, su = cure_targets(self.shat, self.pi_hat, Mixture())
        shat = np.array([1.0 - PI_GAP, 0.8, 0.6, 0.5])
        assert_allclose(su, (shat - pi) / (1.0 - pi))
        assert_allclose(su[0], 0.69 / 0.7)
        assert np.all((su > 0) & (su < 1))

    def test_non_mixture_uncured_survival(self):
        pi, su = cure_targets(self.shat, self.pi_hat, NonMixture())
        shat = np.array([1.0 - PI_GAP, 0.8, 0.6, 0.5])
        assert_allclose(su, 1.0 - np.log(shat) / np.log(pi))
        assert np.all((su > 0) & (su < 1))

    def test_inputs_not_modified(self):
        shat = self.shat.copy()
        cure_targets(shat, self.pi_hat.copy(), Mixture())
        assert shat[0] == 1.0
