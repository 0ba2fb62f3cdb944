"""Thin wrapper over scipy.optimize.minimize returning fit diagnostics.

Objectives handed to :func:`minimize_objective` follow one contract: they
clamp infeasible proposals before evaluating the likelihood, and they
return ``LIKELIHOOD_PENALTY`` instead of ``inf``/``nan``, so the optimizer
always sees a finite value.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import numpy as np
from scipy.optimize import minimize

from tipfit.core.types import FitDiagnostics

logger = logging.getLogger(__name__)


def minimize_objective(
    objective: Callable[..., float],
    x0: np.ndarray,
    args: tuple[Any, ...] = (),
    method: str = "Nelder-Mead",
    maxiter: int = 2000,
    xatol: float = 1e-6,
    fatol: float = 1e-8,
    label: str = "fit",
) -> tuple[np.ndarray, FitDiagnostics]:
    res = minimize(
        objective,
        np.asarray(x0, dtype=float),
        args=args,
        method=method,
        options=_options(method, maxiter, xatol, fatol),
    )
    diag = FitDiagnostics(
        converged=bool(res.success),
        n_iter=int(getattr(res, "nit", 0) or 0),
        n_eval=int(getattr(res, "nfev", 0) or 0),
        objective=float(res.fun),
        message=str(res.message),
    )
    if not diag.converged:
        logger.warning("%s did not converge after %d iterations: %s", label, diag.n_iter, diag.message)
    else:
        logger.debug("%s converged in %d iterations (objective=%.6g)", label, diag.n_iter, diag.objective)
    return np.asarray(res.x, dtype=float), diag


def _options(method: str, maxiter: int, xatol: float, fatol: float) -> dict[str, Any]:
    if method == "Nelder-Mead":
        return {"maxiter": maxiter, "maxfev": 2 * maxiter, "xatol": xatol, "fatol": fatol}
    if method == "Powell":
        return {"maxiter": maxiter, "xtol": xatol, "ftol": fatol}
    return {"maxiter": maxiter}
