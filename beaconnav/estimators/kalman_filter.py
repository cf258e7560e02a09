"""
Linear Kalman filter.

Standard predict/update cycle:
    x̂_{k|k-1} = F x̂_{k-1}
    P_{k|k-1} = F P_{k-1} F' + Q
    K = P H' (H P H' + R)^{-1}
    x̂_k = x̂_{k|k-1} + K (z − H x̂_{k|k-1})
    P_k = (I − KH) P (I − KH)' + K R K'      (Joseph form)

Process and measurement noise may be passed per call, which is how the
position smoother scales noise with elapsed time and sighting confidence.
"""

from typing import Optional, Tuple

import numpy as np


class KalmanFilter:
    """
    Linear Kalman filter with per-step noise.

    Attributes:
        F: State transition matrix (n×n).
        H: Measurement matrix (m×n).
        state: Current state estimate (n,), None until initialized.
        covariance: Current state covariance (n×n), None until initialized.
    """

    def __init__(self, F: np.ndarray, H: np.ndarray,
                 x0: Optional[np.ndarray] = None, P0: Optional[np.ndarray] = None):
        F = np.asarray(F, dtype=float)
        H = np.asarray(H, dtype=float)
        if F.ndim != 2 or F.shape[0] != F.shape[1]:
            raise ValueError(f"F must be square, got shape {F.shape}")
        if H.ndim != 2 or H.shape[1] != F.shape[0]:
            raise ValueError(f"H shape {H.shape} inconsistent with state_dim {F.shape[0]}")

        self.state_dim = F.shape[0]
        self.F = F
        self.H = H
        self.state: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None
        if x0 is not None and P0 is not None:
            self.initialize(x0, P0)

    @property
    def initialized(self) -> bool:
        return self.state is not None and self.covariance is not None

    def initialize(self, x0: np.ndarray, P0: np.ndarray) -> None:
        x0 = np.asarray(x0, dtype=float).copy()
        P0 = np.asarray(P0, dtype=float).copy()
        if x0.shape != (self.state_dim,):
            raise ValueError(f"x0 shape {x0.shape} inconsistent with state_dim {self.state_dim}")
        if P0.shape != (self.state_dim, self.state_dim):
            raise ValueError(f"P0 shape {P0.shape} inconsistent with state_dim {self.state_dim}")
        self.state = x0
        self.covariance = P0

    def reset(self) -> None:
        self.state = None
        self.covariance = None

    def predict(self, Q: np.ndarray) -> None:
        """
        Time update with process noise Q.

        Raises:
            RuntimeError: If the filter has not been initialized.
        """
        if not self.initialized:
            raise RuntimeError("Filter must be initialized before predict()")
        self.state = self.F @ self.state
        self.covariance = self.F @ self.covariance @ self.F.T + np.asarray(Q, dtype=float)

    def update(self, z: np.ndarray, R: np.ndarray) -> np.ndarray:
        """
        Measurement update with measurement noise R.

        Returns:
            The innovation z − H x̂_{k|k-1}.

        Raises:
            RuntimeError: If the filter has not been initialized.
        """
        if not self.initialized:
            raise RuntimeError("Filter must be initialized before update()")

        z = np.asarray(z, dtype=float)
        R = np.asarray(R, dtype=float)
        H = self.H

        innovation = z - H @ self.state
        S = H @ self.covariance @ H.T + R
        K = self.covariance @ H.T @ np.linalg.inv(S)

        self.state = self.state + K @ innovation
        I_KH = np.eye(self.state_dim) - K @ H
        self.covariance = I_KH @ self.covariance @ I_KH.T + K @ R @ K.T
        return innovation

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        if not self.initialized:
            raise RuntimeError("Filter not initialized")
        return self.state.copy(), self.covariance.copy()
