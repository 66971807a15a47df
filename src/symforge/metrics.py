"""Regression error metrics.

All metrics take ``(estimated, target)`` arrays of equal length. Error
metrics are "lower is better"; ``r2_score`` is reported as-is and converted
to an error by the evaluator.
"""

from __future__ import annotations

from typing import Callable

import numpy as np


def mean_squared_error(estimated: np.ndarray, target: np.ndarray) -> float:
    return float(np.mean(np.square(estimated - target)))


def root_mean_squared_error(estimated: np.ndarray, target: np.ndarray) -> float:
    return float(np.sqrt(mean_squared_error(estimated, target)))


def normalized_mean_squared_error(estimated: np.ndarray, target: np.ndarray) -> float:
    """MSE divided by the variance of the target."""
    variance = np.var(target)
    mse = mean_squared_error(estimated, target)
    if variance == 0:
        return mse
    return float(mse / variance)


def mean_absolute_error(estimated: np.ndarray, target: np.ndarray) -> float:
    return float(np.mean(np.abs(estimated - target)))


def r2_score(estimated: np.ndarray, target: np.ndarray) -> float:
    """Coefficient of determination 1 - SS_res / SS_tot."""
    ss_res = np.sum(np.square(target - estimated))
    ss_tot = np.sum(np.square(target - np.mean(target)))
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0
    return float(1.0 - ss_res / ss_tot)


coefficient_of_determination = r2_score


def poisson_negative_log_likelihood(estimated: np.ndarray, target: np.ndarray) -> float:
    """Mean Poisson negative log-likelihood with log-rate inputs.

    ``estimated`` is interpreted as ``log(lambda)`` so any real output is a
    valid rate.
    """
    with np.errstate(over="ignore", invalid="ignore"):
        return float(np.mean(np.exp(estimated) - target * estimated))


def linear_scaling(estimated: np.ndarray, target: np.ndarray) -> tuple[float, float]:
    """Least-squares ``(scale, offset)`` so that ``scale * estimated + offset ~ target``.

    Falls back to ``scale = 1`` when the estimate has no variance.
    """
    with np.errstate(all="ignore"):
        mean_x = np.mean(estimated)
        mean_y = np.mean(target)
        var_x = np.mean(np.square(estimated - mean_x))
        cov = np.mean((estimated - mean_x) * (target - mean_y))
        scale = cov / var_x if var_x > 0 else 1.0
    if not np.isfinite(scale):
        scale = 1.0
    offset = mean_y - scale * mean_x
    return float(scale), float(offset)


def _r2_error(estimated: np.ndarray, target: np.ndarray) -> float:
    # Negative r2 is as bad as a constant model
    return 1.0 - max(r2_score(estimated, target), 0.0)


ERROR_METRICS: dict[str, Callable[[np.ndarray, np.ndarray], float]] = {
    "r2": _r2_error,
    "mse": mean_squared_error,
    "rmse": root_mean_squared_error,
    "nmse": normalized_mean_squared_error,
    "mae": mean_absolute_error,
    "poisson": poisson_negative_log_likelihood,
}
