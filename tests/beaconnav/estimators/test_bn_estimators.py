"""
Unit tests for the least squares solvers and the linear Kalman filter.

Tests cover:
    - Levenberg-Marquardt on 2D range positioning
    - Analytic vs numerical Jacobians
    - Weighted residuals and weight validation
    - Covariance at the estimate
    - Kalman filter initialization, predict/update and reset

Run with: pytest tests/beaconnav/estimators/test_bn_estimators.py -v
"""

import unittest

import numpy as np
import pytest
from numpy.testing import assert_allclose

from beaconnav.estimators import (
    KalmanFilter,
    LeastSquaresResult,
    levenberg_marquardt,
    numerical_jacobian,
)


class TestRangePositioning(unittest.TestCase):
    """Test the solver on ranges to four anchors."""

    def setUp(self) -> None:
        self.anchors = np.array([[0, 0], [10, 0], [0, 10], [10, 10]], dtype=float)
        self.true_pos = np.array([3.0, 4.0])
        self.ranges = np.linalg.norm(self.anchors - self.true_pos, axis=1)

        def residual(x):
            return np.linalg.norm(self.anchors - x, axis=1) - self.ranges

        def jacobian(x):
            diff = x - self.anchors
            return diff / np.maximum(np.linalg.norm(diff, axis=1, keepdims=True), 1e-10)

        self.residual = residual
        self.jacobian = jacobian

    def test_lm_exact(self) -> None:
        """Test LM converges to the true position with exact ranges."""
        result = levenberg_marquardt(self.residual, np.array([5.0, 5.0]), jacobian=self.jacobian)

        self.assertIsInstance(result, LeastSquaresResult)
        assert_allclose(result.x, self.true_pos, atol=1e-6)
        self.assertTrue(result.converged)
        self.assertLess(result.iterations, 20)
        self.assertLess(result.cost, 1e-12)

    def test_lm_from_poor_guess(self) -> None:
        """Test LM converges with a numerical Jacobian from far away."""
        result = levenberg_marquardt(self.residual, np.array([8.0, 8.0]))
        assert_allclose(result.x, self.true_pos, atol=1e-6)
        self.assertEqual(len(result.residuals), 4)

    def test_numerical_jacobian_matches_analytic(self) -> None:
        """Test central differences match the analytic Jacobian."""
        x = np.array([2.0, 7.0])
        assert_allclose(numerical_jacobian(self.residual, x), self.jacobian(x), atol=1e-6)

    def test_weights_downweight_outlier(self) -> None:
        """Test a zero weight removes a corrupted range from the fit."""
        corrupted = self.ranges.copy()
        corrupted[3] += 3.0

        def residual(x):
            return np.linalg.norm(self.anchors - x, axis=1) - corrupted

        unweighted = levenberg_marquardt(residual, np.array([5.0, 5.0]))
        weighted = levenberg_marquardt(residual, np.array([5.0, 5.0]),
                                       weights=np.array([1.0, 1.0, 1.0, 0.0]))

        self.assertGreater(np.linalg.norm(unweighted.x - self.true_pos), 0.1)
        assert_allclose(weighted.x, self.true_pos, atol=1e-5)

    def test_weight_validation(self) -> None:
        """Test malformed weights and initial estimates are rejected."""
        with pytest.raises(ValueError):
            levenberg_marquardt(self.residual, np.array([5.0, 5.0]), weights=np.ones(3))
        with pytest.raises(ValueError):
            levenberg_marquardt(self.residual, np.array([5.0, 5.0]), weights=np.array([1, 1, 1, -1.0]))
        with pytest.raises(ValueError):
            levenberg_marquardt(self.residual, np.zeros((2, 1)))

    def test_covariance(self) -> None:
        """Test covariance is symmetric and positive semi-definite."""
        rng = np.random.default_rng(42)
        noisy = self.ranges + 0.1 * rng.standard_normal(4)

        def residual(x):
            return np.linalg.norm(self.anchors - x, axis=1) - noisy

        result = levenberg_marquardt(residual, np.array([5.0, 5.0]))
        self.assertEqual(result.covariance.shape, (2, 2))
        assert_allclose(result.covariance, result.covariance.T, atol=1e-12)
        self.assertTrue(np.all(np.linalg.eigvalsh(result.covariance) > -1e-10))
        self.assertLess(np.linalg.norm(result.x - self.true_pos), 0.5)

        bare = levenberg_marquardt(residual, np.array([5.0, 5.0]), return_covariance=False)
        self.assertIsNone(bare.covariance)


class TestKalmanFilter(unittest.TestCase):
    """Test the linear Kalman filter."""

    def test_requires_initialization(self) -> None:
        """Test predict, update and get_state before initialize raise."""
        kf = KalmanFilter(np.eye(1), np.eye(1))
        self.assertFalse(kf.initialized)
        with pytest.raises(RuntimeError):
            kf.predict(np.eye(1))
        with pytest.raises(RuntimeError):
            kf.update(np.zeros(1), np.eye(1))
        with pytest.raises(RuntimeError):
            kf.get_state()

    def test_shape_validation(self) -> None:
        """Test inconsistent matrices are rejected."""
        with pytest.raises(ValueError):
            KalmanFilter(np.ones((2, 3)), np.eye(2))
        with pytest.raises(ValueError):
            KalmanFilter(np.eye(2), np.eye(3))
        kf = KalmanFilter(np.eye(2), np.eye(2))
        with pytest.raises(ValueError):
            kf.initialize(np.zeros(3), np.eye(2))

    def test_scalar_update(self) -> None:
        """Test equal prior and measurement variance averages the two."""
        kf = KalmanFilter(np.eye(1), np.eye(1), x0=np.zeros(1), P0=np.eye(1))
        innovation = kf.update(np.array([2.0]), np.eye(1))

        x, P = kf.get_state()
        assert_allclose(innovation, [2.0])
        assert_allclose(x, [1.0])
        assert_allclose(P, [[0.5]])

    def test_predict_grows_covariance(self) -> None:
        """Test constant-velocity prediction moves the state and inflates P."""
        dt = 0.5
        F = np.array([[1.0, dt], [0.0, 1.0]])
        H = np.array([[1.0, 0.0]])
        kf = KalmanFilter(F, H, x0=np.array([0.0, 2.0]), P0=np.eye(2))

        kf.predict(0.01 * np.eye(2))
        x, P = kf.get_state()
        assert_allclose(x, [1.0, 2.0])
        self.assertGreater(P[0, 0], 1.0)

        kf.update(np.array([1.0]), np.array([[0.01]]))
        _, P_after = kf.get_state()
        self.assertLess(P_after[0, 0], P[0, 0])

    def test_get_state_returns_copies(self) -> None:
        """Test callers cannot mutate the filter through get_state."""
        kf = KalmanFilter(np.eye(1), np.eye(1), x0=np.zeros(1), P0=np.eye(1))
        x, _ = kf.get_state()
        x[0] = 5.0
        assert_allclose(kf.state, [0.0])

        kf.reset()
        self.assertFalse(kf.initialized)


if __name__ == "__main__":
    unittest.main()
