"""Standardised one-step residuals under the fitted tipping model."""

from __future__ import annotations

import numpy as np
from scipy.stats import kstest

from tipfit.core.types import OUParams, TippingParams
from tipfit.estimate.tipping import strang_terms


def strang_residuals(
    x: np.ndarray,
    delta: float,
    ou: OUParams,
    tipping: TippingParams,
    times: np.ndarray | None = None,
) -> np.ndarray:
    """Return ``(f^-1(X_{k+1}) - mean_k) / sd_k`` for every observed transition.

    Under a well-specified model the residuals are approximately iid N(0, 1).
    """

    arr = np.asarray(x, dtype=float)
    t = delta * np.arange(arr.size, dtype=float) if times is None else np.asarray(times, dtype=float)
    terms = strang_terms(arr, t, delta, ou, tipping)
    with np.errstate(all="ignore"):
        return (terms.target - terms.mean) / np.sqrt(terms.var)


def residual_summary(residuals: np.ndarray) -> dict[str, float]:
    r = np.asarray(residuals, dtype=float)
    r = r[np.isfinite(r)]
    if r.size < 2:
        nan = float("nan")
        return {"n": float(r.size), "mean": nan, "std": nan, "ks_stat": nan, "ks_p": nan}
    ks = kstest(r, "norm")
    return {
        "n": float(r.size),
        "mean": float(np.mean(r)),
        "std": float(np.std(r, ddof=1)),
        "ks_stat": float(ks.statistic),
        "ks_p": float(ks.pvalue),
    }
