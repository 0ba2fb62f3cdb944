"""Euler-Maruyama simulation of the ramped saddle-node tipping model.

The state follows

    dX = -(a (X - m)^2 + lambda(t)) dt + sigma dW

with lambda held at ``lambda0`` for a stationary period of length ``T0``
and then ramped linearly, ``lambda0 (1 - t / tau)``, with ``t`` the time
since the ramp started. Integration stops when the state reaches the
barrier ``m - 2`` or when the step cap is exhausted.
"""

from __future__ import annotations

import math
from enum import Enum

import numpy as np

from tipfit.core.types import OUParams, SimulationResult, TippingParams

BARRIER_OFFSET = 2.0


class Phase(str, Enum):
    STATIONARY = "stationary"
    RAMPING = "ramping"


class Termination(str, Enum):
    CROSSED = "crossed"
    STEP_CAP = "step_cap"


def simulate_tipping(
    sigma: float,
    lambda0: float,
    tau: float,
    m: float,
    a: float,
    T0: float,
    x0: float,
    dt: float,
    n_max: int,
    rng: np.random.Generator,
) -> SimulationResult:
    """Integrate one trajectory; ``n_max`` caps the number of stored points."""

    if dt <= 0:
        raise ValueError("dt must be positive")
    if n_max < 1:
        raise ValueError("n_max must be >= 1")

    barrier = m - BARRIER_OFFSET
    noise = rng.standard_normal(n_max - 1)
    sqrt_dt = math.sqrt(dt)
    scale = sqrt_dt * float(sigma)

    path = [float(x0)]
    phase = Phase.STATIONARY if T0 > 0 else Phase.RAMPING
    reason: Termination | None = Termination.CROSSED if x0 <= barrier else None
    k = 0
    while reason is None:
        if k >= n_max - 1:
            reason = Termination.STEP_CAP
            break
        t = k * dt
        if phase is Phase.STATIONARY and t >= T0:
            phase = Phase.RAMPING
        if phase is Phase.STATIONARY:
            lam = lambda0
        else:
            lam = lambda0 * (1.0 - (t - T0) / tau)
        x = path[-1]
        path.append(x - (a * (x - m) ** 2 + lam) * dt + scale * noise[k])
        k += 1
        if path[-1] <= barrier:
            reason = Termination.CROSSED

    return SimulationResult(path=np.asarray(path, dtype=float), elapsed=k * dt, reason=reason.value)


def simulate_from_params(
    ou: OUParams,
    tipping: TippingParams,
    T0: float,
    x0: float,
    dt: float,
    n_max: int,
    rng: np.random.Generator,
) -> SimulationResult:
    """Simulate with the model parameterised by baseline OU and ramp parameters."""

    m = ou.mu0 - ou.alpha0 / (2.0 * tipping.a)
    lambda0 = -(ou.alpha0**2) / (4.0 * tipping.a)
    return simulate_tipping(
        sigma=ou.sigma,
        lambda0=lambda0,
        tau=tipping.tau,
        m=m,
        a=tipping.a,
        T0=T0,
        x0=x0,
        dt=dt,
        n_max=n_max,
        rng=rng,
    )


def stationary_initial_state(ou: OUParams, rng: np.random.Generator) -> float:
    return float(rng.normal(ou.mu0, math.sqrt(ou.stationary_variance)))


def simulate_ou(
    ou: OUParams,
    delta: float,
    n: int,
    rng: np.random.Generator,
    x0: float | None = None,
) -> np.ndarray:
    """Exact discretisation of the stationary OU process on a grid of step ``delta``."""

    rho = math.exp(-ou.alpha0 * delta)
    step_sd = math.sqrt(ou.stationary_variance * (1.0 - rho**2))
    out = np.empty(n, dtype=float)
    out[0] = stationary_initial_state(ou, rng) if x0 is None else float(x0)
    eps = rng.standard_normal(n - 1)
    for k in range(1, n):
        out[k] = out[k - 1] * rho + ou.mu0 * (1.0 - rho) + step_sd * eps[k - 1]
    return out


def downsample(path: np.ndarray, nloop: int, length: int) -> np.ndarray:
    """Keep every ``nloop``-th point and NaN-pad to ``length``."""

    coarse = np.asarray(path, dtype=float)[::nloop][:length]
    out = np.full(length, np.nan, dtype=float)
    out[: coarse.size] = coarse
    return out
