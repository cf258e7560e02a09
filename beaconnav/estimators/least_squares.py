"""
Weighted nonlinear least squares with Levenberg-Marquardt.

Used by calibration to refine the map-to-tracking rotation and translation
from beacon measurements. The solver takes a residual function r(x) rather
than a measurement model, so callers can wrap angular residuals into
(-π, π] before they enter the cost.

Formulation:
    x̂ = argmin ½ r(x)' W r(x)

    Levenberg-Marquardt step:
        (J'WJ + μI) Δx = −J'W r
    with J = ∂r/∂x and μ adapted from the gain ratio.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

ResidualFn = Callable[[np.ndarray], np.ndarray]
JacobianFn = Callable[[np.ndarray], np.ndarray]


@dataclass
class LeastSquaresResult:
    """Result container for nonlinear least squares optimization.

    Attributes:
        x: Estimated parameter vector.
        covariance: Covariance matrix (n × n), or None.
        iterations: Number of iterations performed.
        residuals: Final residual vector r(x̂).
        cost: Final cost ½ r'Wr.
        converged: Whether the step norm dropped below tolerance.
    """

    x: np.ndarray
    covariance: Optional[np.ndarray]
    iterations: int
    residuals: np.ndarray
    cost: float
    converged: bool


def numerical_jacobian(residual: ResidualFn, x: np.ndarray, step: float = 1e-6) -> np.ndarray:
    """
    Central-difference Jacobian of a residual function.

    Args:
        residual: Function r: R^n → R^m.
        x: Point of linearization (n,).
        step: Finite-difference step.

    Returns:
        Jacobian matrix (m × n).
    """
    x = np.asarray(x, dtype=float)
    r0 = np.asarray(residual(x), dtype=float)
    J = np.zeros((len(r0), len(x)))
    for j in range(len(x)):
        dx = np.zeros_like(x)
        dx[j] = step
        J[:, j] = (np.asarray(residual(x + dx)) - np.asarray(residual(x - dx))) / (2.0 * step)
    return J


def levenberg_marquardt(
    residual: ResidualFn,
    x0: np.ndarray,
    jacobian: Optional[JacobianFn] = None,
    weights: Optional[np.ndarray] = None,
    max_iter: int = 50,
    tol: float = 1e-10,
    mu0: float = 1e-3,
    return_covariance: bool = True,
) -> LeastSquaresResult:
    """
    Levenberg-Marquardt solver for weighted nonlinear least squares.

    Damping μ moves each step between Gauss-Newton (small μ) and gradient
    descent (large μ); it shrinks after a step that lowers the cost and grows
    after a rejected one.

    Args:
        residual: Residual function r: R^n → R^m.
        x0: Initial estimate (n,).
        jacobian: Optional Jacobian ∂r/∂x (m × n). Central differences if None.
        weights: Optional non-negative residual weights (m,).
        max_iter: Maximum number of iterations.
        tol: Convergence tolerance on ‖Δx‖.
        mu0: Initial damping parameter.
        return_covariance: If True, compute covariance at the final estimate.

    Returns:
        LeastSquaresResult with estimate and diagnostics.

    Raises:
        ValueError: If x0 is not 1D, or weights or the Jacobian have the
            wrong shape, or any weight is negative.

    Example:
        >>> anchors = np.array([[0, 0], [10, 0], [0, 10], [10, 10]], dtype=float)
        >>> ranges = np.linalg.norm(anchors - np.array([3.0, 4.0]), axis=1)
        >>> r = lambda x: np.linalg.norm(anchors - x, axis=1) - ranges
        >>> result = levenberg_marquardt(r, np.array([8.0, 8.0]))
        >>> np.allclose(result.x, [3.0, 4.0], atol=1e-6)
        True
    """
    x = np.asarray(x0, dtype=float).copy()
    if x.ndim != 1:
        raise ValueError(f"x0 must be 1D array, got shape {x.shape}")

    def jac(p: np.ndarray) -> np.ndarray:
        return jacobian(p) if jacobian is not None else numerical_jacobian(residual, p)

    r = np.asarray(residual(x), dtype=float)
    m, n = len(r), len(x)

    if weights is None:
        W = np.eye(m)
    else:
        weights = np.asarray(weights, dtype=float)
        if weights.shape != (m,):
            raise ValueError(f"weights must be 1D array of length {m}")
        if np.any(weights < 0):
            raise ValueError("weights must be non-negative")
        W = np.diag(weights)

    mu = mu0
    nu = 2.0
    converged = False
    iteration = 0
    cost = 0.5 * r @ W @ r

    for iteration in range(max_iter):
        J = jac(x)
        if J.shape != (m, n):
            raise ValueError(f"Jacobian shape {J.shape}, expected ({m}, {n})")

        JtW = J.T @ W
        JtWJ = JtW @ J
        g = JtW @ r

        while True:
            damped = JtWJ + mu * np.eye(n)
            try:
                delta_x = np.linalg.solve(damped, -g)
            except np.linalg.LinAlgError:
                delta_x = np.linalg.lstsq(damped, -g, rcond=None)[0]

            x_new = x + delta_x
            r_new = np.asarray(residual(x_new), dtype=float)
            cost_new = 0.5 * r_new @ W @ r_new

            predicted_decrease = 0.5 * delta_x @ (mu * delta_x - g)
            actual_decrease = cost - cost_new
            gain_ratio = actual_decrease / predicted_decrease if predicted_decrease > 1e-15 else 0.0

            if gain_ratio > 0:
                x, r, cost = x_new, r_new, cost_new
                mu = mu * max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
                nu = 2.0
                break

            mu = mu * nu
            nu = 2.0 * nu
            if mu > 1e10:
                delta_x = np.zeros(n)
                break

        if np.linalg.norm(delta_x) < tol:
            converged = True
            break

    P = None
    if return_covariance:
        J = jac(x)
        JtWJ = J.T @ W @ J
        sigma2 = (r @ W @ r) / (m - n) if m > n else 1.0
        try:
            P = sigma2 * np.linalg.inv(JtWJ)
        except np.linalg.LinAlgError:
            P = sigma2 * np.linalg.pinv(JtWJ)

    return LeastSquaresResult(
        x=x,
        covariance=P,
        iterations=iteration + 1,
        residuals=r,
        cost=float(cost),
        converged=converged,
    )
