"""Strang-splitting pseudo-likelihood fit of the ramped tipping model.

Conditional on baseline OU parameters ``(alpha0, mu0, sigma2)``, the
post-onset drift is ``-(a (X - m)^2 + lambda(t))`` with

    m       = mu0 - alpha0 / (2 a)
    lambda0 = -alpha0^2 / (4 a)
    lambda  = lambda0 (1 - t / tau)

Around the moving fixed point ``mu(t) = m + sqrt(-lambda / a)`` the drift
splits into a linear OU part with rate ``alpha(t) = 2 a sqrt(-lambda / a)``
and the remainder ``-a (X - mu)^2``, which is solved exactly over half a
step. One observation interval is approximated as half nonlinear step,
full OU step, half nonlinear step; inverting the last half step gives a
Gaussian pseudo-transition plus a Jacobian term.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.stats import norm

from tipfit.core.types import DerivedQuantities, OUParams, TippingFit, TippingParams
from tipfit.estimate.optim import minimize_objective
from tipfit.utils.safe_math import LIKELIHOOD_PENALTY, penalized

A_FLOOR = 0.1


@dataclass(frozen=True)
class StrangTerms:
    """Per-transition pieces of the pseudo-likelihood."""

    target: np.ndarray
    mean: np.ndarray
    var: np.ndarray
    log_jacobian: np.ndarray


def derived_quantities(ou: OUParams, tipping: TippingParams, t0: float) -> DerivedQuantities:
    return DerivedQuantities(
        m=ou.mu0 - ou.alpha0 / (2.0 * tipping.a),
        lambda0=-(ou.alpha0**2) / (4.0 * tipping.a),
        tc=tipping.tau + t0,
    )


def strang_terms(
    x: np.ndarray,
    times: np.ndarray,
    delta: float,
    ou: OUParams,
    tipping: TippingParams,
) -> StrangTerms:
    """Evaluate the splitting scheme for every consecutive pair in ``x``.

    ``times`` holds the time since onset of each observation.
    """

    a = max(float(tipping.a), A_FLOOR)
    tau = float(tipping.tau)
    derived = derived_quantities(ou, TippingParams(tau=tau, a=a), t0=0.0)

    with np.errstate(all="ignore"):
        lam = derived.lambda0 * (1.0 - np.asarray(times, dtype=float) / tau)
        gam = np.sqrt(-lam / a)
        mu = derived.m + gam
        alpha = 2.0 * a * gam
        rho = np.exp(-alpha * delta)
        c = a * delta / 2.0

        x_low, x_upp = x[:-1], x[1:]
        mu_low, mu_upp = mu[:-1], mu[1:]
        d_low = x_low - mu_low
        d_upp = x_upp - mu_upp
        half_fwd = mu_low + d_low / (1.0 + c * d_low)
        half_inv = mu_upp + d_upp / (1.0 - c * d_upp)

        rho_low = rho[:-1]
        mean = half_fwd * rho_low + mu_low * (1.0 - rho_low)
        var = ou.sigma2 * (1.0 - rho_low**2) / (2.0 * alpha[:-1])
        log_jac = -2.0 * np.log(np.abs(1.0 - c * d_upp))
    return StrangTerms(target=half_inv, mean=mean, var=var, log_jacobian=log_jac)


def penalty_term(a: float, pen: float, n: int) -> float:
    """Soft barrier against curvature below one."""

    if a >= 1.0:
        return 0.0
    return float(pen) * n * (1.0 / a - 1.0)


def tipping_objective(
    params: np.ndarray,
    x: np.ndarray,
    times: np.ndarray,
    delta: float,
    ou: OUParams,
    pen: float = 0.0,
) -> float:
    """Penalised negative pseudo-log-likelihood in ``(tau, a)``."""

    tau = float(params[0])
    a = max(float(params[1]), A_FLOOR)
    if tau <= 0:
        return LIKELIHOOD_PENALTY
    terms = strang_terms(x, times, delta, ou, TippingParams(tau=tau, a=a))
    with np.errstate(all="ignore"):
        loglik = norm.logpdf(terms.target, loc=terms.mean, scale=np.sqrt(terms.var))
        nll = -float(np.sum(loglik)) - float(np.sum(terms.log_jacobian))
    return penalized(nll + penalty_term(a, pen, x.size))


def fit_tipping(
    x: np.ndarray,
    delta: float,
    ou: OUParams,
    pen: float = 0.0,
    start: tuple[float, float] = (100.0, 1.0),
    times: np.ndarray | None = None,
    method: str = "Nelder-Mead",
    maxiter: int = 2000,
    xatol: float = 1e-6,
    fatol: float = 1e-8,
) -> TippingFit:
    arr = np.asarray(x, dtype=float)
    if arr.size < 3:
        raise ValueError(f"fit_tipping requires at least 3 observations, got {arr.size}")
    t = delta * np.arange(arr.size, dtype=float) if times is None else np.asarray(times, dtype=float)
    if t.size != arr.size:
        raise ValueError("times and x must have equal length")

    best, diag = minimize_objective(
        tipping_objective,
        np.asarray(start, dtype=float),
        args=(arr, t, float(delta), ou, float(pen)),
        method=method,
        maxiter=maxiter,
        xatol=xatol,
        fatol=fatol,
        label="tipping fit",
    )
    params = TippingParams(tau=float(best[0]), a=max(float(best[1]), A_FLOOR))
    return TippingFit(params=params, diagnostics=diag)
