"""Maximum-likelihood fit of a stationary Ornstein-Uhlenbeck process."""

from __future__ import annotations

import math

import numpy as np

from tipfit.core.types import OUFit, OUParams
from tipfit.estimate.optim import minimize_objective
from tipfit.utils.safe_math import lag1_autocorr, penalized

ALPHA_FLOOR = 1e-4


def ou_transition(
    x_low: np.ndarray,
    alpha: float,
    mu: float,
    sigma2: float,
    delta: float,
) -> tuple[np.ndarray, float]:
    """Gaussian transition mean and variance over one step of length ``delta``."""

    rho = math.exp(-alpha * delta)
    gamma2 = sigma2 / (2.0 * alpha)
    mean = np.asarray(x_low, dtype=float) * rho + mu * (1.0 - rho)
    return mean, gamma2 * (1.0 - rho**2)


def ou_objective(params: np.ndarray, x: np.ndarray, delta: float) -> float:
    """Twice the negative log-likelihood, up to an additive constant."""

    alpha = max(float(params[0]), ALPHA_FLOOR)
    mu = float(params[1])
    sigma2 = max(float(params[2]), 0.0)
    x_low, x_upp = x[:-1], x[1:]
    mean, var = ou_transition(x_low, alpha, mu, sigma2, delta)
    with np.errstate(all="ignore"):
        value = x_upp.size * np.log(var) + np.sum((x_upp - mean) ** 2) / var
    return penalized(float(value))


def ou_start_values(x: np.ndarray, delta: float) -> np.ndarray:
    arr = np.asarray(x, dtype=float)
    mu = float(np.mean(arr))
    corr = lag1_autocorr(arr)
    alpha = -math.log(corr) / delta if 0.0 < corr < 1.0 else 1.0 / delta
    sigma2 = float(np.mean(np.diff(arr) ** 2) / delta)
    return np.array([alpha, mu, sigma2], dtype=float)


def fit_ou(
    x: np.ndarray,
    delta: float,
    method: str = "Nelder-Mead",
    maxiter: int = 2000,
    xatol: float = 1e-6,
    fatol: float = 1e-8,
    start: np.ndarray | None = None,
) -> OUFit:
    arr = np.asarray(x, dtype=float)
    if arr.size < 3:
        raise ValueError(f"fit_ou requires at least 3 observations, got {arr.size}")
    if not np.all(np.isfinite(arr)):
        raise ValueError("fit_ou requires finite observations")

    x0 = ou_start_values(arr, delta) if start is None else np.asarray(start, dtype=float)
    best, diag = minimize_objective(
        ou_objective,
        x0,
        args=(arr, float(delta)),
        method=method,
        maxiter=maxiter,
        xatol=xatol,
        fatol=fatol,
        label="OU fit",
    )
    params = OUParams(
        alpha0=max(float(best[0]), ALPHA_FLOOR),
        mu0=float(best[1]),
        sigma2=max(float(best[2]), 0.0),
    )
    return OUFit(params=params, diagnostics=diag)
