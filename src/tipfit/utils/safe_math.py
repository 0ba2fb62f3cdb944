"""Safe math helpers for finite and stable calculations."""

from __future__ import annotations

import numpy as np

# Finite stand-in returned by objectives whenever the likelihood is undefined.
LIKELIHOOD_PENALTY = 1e10


def finite_or(value: float, fallback: float) -> float:
    return float(value) if np.isfinite(value) else fallback


def penalized(value: float) -> float:
    """Map a non-finite objective value onto the finite likelihood penalty."""

    return finite_or(value, LIKELIHOOD_PENALTY)


def lag1_autocorr(values: np.ndarray) -> float:
    v = np.asarray(values, dtype=float)
    v = v[np.isfinite(v)]
    if v.size < 3:
        return 0.0
    v0 = v[:-1] - float(np.mean(v[:-1]))
    v1 = v[1:] - float(np.mean(v[1:]))
    denom = float(np.sqrt(np.sum(v0**2) * np.sum(v1**2)))
    if denom <= 1e-12:
        return 0.0
    return float(np.sum(v0 * v1) / denom)
