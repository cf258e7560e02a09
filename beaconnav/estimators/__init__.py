"""
Estimation algorithms used by positioning and calibration.

- least_squares: Weighted Levenberg-Marquardt on residual functions
- kalman_filter: Linear Kalman filter with per-step noise
"""

from .kalman_filter import KalmanFilter
from .least_squares import (
    LeastSquaresResult,
    levenberg_marquardt,
    numerical_jacobian,
)

__all__ = [
    "KalmanFilter",
    "LeastSquaresResult",
    "levenberg_marquardt",
    "numerical_jacobian",
]
