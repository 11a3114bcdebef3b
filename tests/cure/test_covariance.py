"""
Tests for the numerical Hessian and its inversion.
"""

import numpy as np
from numpy.testing import assert_allclose

from pyflexcure.cure._covariance import invert_hessian, numerical_hessian


class TestNumericalHessian:

    def test_quadratic(self):
        A = np.array([[4.0, 1.0, 0.5], [1.0, 3.0, 0.0], [0.5, 0.0, 2.0]])
        b = np.array([1.0, -2.0, 0.5])

        def f(x):
            return 0.5 * x @ A @ x + b @ x

        H = numerical_hessian(f, np.array([0.3, -1.0, 20.0]))
        assert_allclose(H, A, rtol=1e-5, atol=1e-5)

    def test_symmetric(self):
        def f(x):
            return np.exp(x[0]) * np.sin(x[1]) + x[0] ** 2 * x[1]

        H = numerical_hessian(f, np.array([0.2, 0.7]))
        assert H[0, 1] == H[1, 0]
        expected = np.array([
            [np.exp(0.2) * np.sin(0.7) + 2 * 0.7, np.exp(0.2) * np.cos(0.7) + 2 * 0.2],
            [np.exp(0.2) * np.cos(0.7) + 2 * 0.2, -np.exp(0.2) * np.sin(0.7)],
        ])
        assert_allclose(H, expected, atol=1e-5)


class TestInvertHessian:

    def test_regular(self):
        H = np.array([[2.0, 0.5], [0.5, 1.0]])
        cov, messages = invert_hessian(H)
        assert messages == []
        assert_allclose(cov @ H, np.eye(2), atol=1e-12)

    def test_singular(self):
        cov, messages = invert_hessian(np.array([[1.0, 1.0], [1.0, 1.0]]))
        assert cov is None
        assert len(messages) == 1
        assert "singular" in messages[0]

    def test_numerically_singular(self):
        cov, messages = invert_hessian(np.diag([1.0, 1e-20]))
        assert cov is None
        assert "condition number" in messages[0]

    def test_non_finite(self):
        cov, messages = invert_hessian(np.array([[np.nan, 0.0], [0.0, 1.0]]))
        assert cov is None
        assert "non-finite" in messages[0]

    def test_non_finite_inverse_kept(self):
        # well conditioned but the inverse overflows
        cov, messages = invert_hessian(np.diag([1e-309, 1e-309]))
        assert cov is not None
        assert cov.shape == (2, 2)
        assert not np.all(np.isfinite(cov))
        assert messages == ["Hessian is not invertible: covariance has non-finite entries"]
