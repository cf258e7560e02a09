"""
Temporal smoothing of position estimates.

Successive triangulation fixes jitter by tens of centimetres. A
constant-position Kalman filter over the 2D map position smooths them:

    State:        x = [px, pz]
    Prediction:   F = I,  Q = q · dt · I      (random walk)
    Measurement:  H = I,  R = (σ / c)² · I    (c = estimate confidence)

Low-confidence fixes therefore move the filtered position less.
"""

from typing import Optional

import numpy as np

from beaconnav.estimators.kalman_filter import KalmanFilter
from beaconnav.positioning.types import PositionEstimate, PositioningMethod

MIN_CONFIDENCE = 0.05


class KalmanPositionFilter:
    """
    Smooth a stream of PositionEstimate objects.

    Args:
        process_noise: Random-walk intensity q in m²/s.
        measurement_sigma: Position noise σ of a confidence-1.0 fix, meters.

    Example:
        >>> smoother = KalmanPositionFilter()
        >>> for estimate in estimates:
        ...     smoothed = smoother.update(estimate)
        >>> smoothed.method
        <PositioningMethod.KALMAN_FILTERED: 'kalman_filtered'>
    """

    def __init__(self, process_noise: float = 0.25, measurement_sigma: float = 0.3):
        if process_noise <= 0 or measurement_sigma <= 0:
            raise ValueError("process_noise and measurement_sigma must be positive")
        self.process_noise = process_noise
        self.measurement_sigma = measurement_sigma
        self._kf = KalmanFilter(F=np.eye(2), H=np.eye(2))
        self._last_time: Optional[float] = None

    def reset(self) -> None:
        self._kf.reset()
        self._last_time = None

    def _measurement_noise(self, confidence: float) -> np.ndarray:
        sigma = self.measurement_sigma / max(confidence, MIN_CONFIDENCE)
        return (sigma ** 2) * np.eye(2)

    def update(self, estimate: PositionEstimate) -> PositionEstimate:
        """
        Fuse one estimate and return the filtered result.

        The first estimate initializes the filter and is returned with the
        KALMAN_FILTERED method tag but an unchanged position.
        """
        R = self._measurement_noise(estimate.confidence)

        if not self._kf.initialized:
            self._kf.initialize(estimate.position, R)
        else:
            dt = max(0.0, estimate.timestamp - self._last_time)
            self._kf.predict(self.process_noise * max(dt, 1e-3) * np.eye(2))
            self._kf.update(estimate.position, R)
        self._last_time = estimate.timestamp

        state, covariance = self._kf.get_state()
        # Confidence from the filtered uncertainty relative to a perfect fix
        sigma = float(np.sqrt(np.trace(covariance) / 2.0))
        confidence = float(min(1.0, self.measurement_sigma / max(sigma, 1e-9)))

        return PositionEstimate(
            position=state,
            confidence=min(1.0, max(estimate.confidence, confidence)),
            heading=estimate.heading,
            method=PositioningMethod.KALMAN_FILTERED,
            timestamp=estimate.timestamp,
        )
