"""Core package types used across estimation stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

ESTIMATE_COLUMNS = ["alpha0", "mu0", "lambda0", "tau", "s2", "m", "a", "tc"]


@dataclass(frozen=True)
class Trace:
    """One replicate observed on a uniform time grid."""

    name: str
    times: np.ndarray
    values: np.ndarray
    delta: float

    def __post_init__(self) -> None:
        for arr in (self.times, self.values):
            arr.setflags(write=False)

    @property
    def n(self) -> int:
        return int(self.values.size)


@dataclass(frozen=True)
class OUParams:
    alpha0: float
    mu0: float
    sigma2: float

    @property
    def sigma(self) -> float:
        return float(np.sqrt(max(self.sigma2, 0.0)))

    @property
    def stationary_variance(self) -> float:
        return float(self.sigma2 / (2.0 * self.alpha0))


@dataclass(frozen=True)
class TippingParams:
    tau: float
    a: float


@dataclass(frozen=True)
class DerivedQuantities:
    m: float
    lambda0: float
    tc: float


@dataclass(frozen=True)
class FitDiagnostics:
    """Optimizer outcome surfaced to the batch driver."""

    converged: bool
    n_iter: int
    n_eval: int
    objective: float
    message: str = ""


@dataclass(frozen=True)
class OUFit:
    params: OUParams
    diagnostics: FitDiagnostics


@dataclass(frozen=True)
class TippingFit:
    params: TippingParams
    diagnostics: FitDiagnostics


@dataclass(frozen=True)
class ReplicateEstimate:
    replicate: str
    ou: OUParams
    tipping: TippingParams
    derived: DerivedQuantities
    pen: float
    ou_diagnostics: FitDiagnostics
    tipping_diagnostics: FitDiagnostics
    n_baseline: int = 0
    n_post: int = 0

    def as_row(self, include_pen: bool = False) -> dict[str, float]:
        row = {
            "alpha0": self.ou.alpha0,
            "mu0": self.ou.mu0,
            "lambda0": self.derived.lambda0,
            "tau": self.tipping.tau,
            "s2": self.ou.sigma2,
            "m": self.derived.m,
            "a": self.tipping.a,
            "tc": self.derived.tc,
        }
        if include_pen:
            row["pen"] = self.pen
        return row

    def diagnostics_row(self) -> dict[str, Any]:
        return {
            "n_baseline": self.n_baseline,
            "n_post": self.n_post,
            "ou_converged": self.ou_diagnostics.converged,
            "ou_n_iter": self.ou_diagnostics.n_iter,
            "ou_objective": self.ou_diagnostics.objective,
            "tip_converged": self.tipping_diagnostics.converged,
            "tip_n_iter": self.tipping_diagnostics.n_iter,
            "tip_objective": self.tipping_diagnostics.objective,
            "tip_message": self.tipping_diagnostics.message,
        }


@dataclass(frozen=True)
class SimulationResult:
    path: np.ndarray
    elapsed: float
    reason: str

    @property
    def crossed(self) -> bool:
        return self.reason == "crossed"


@dataclass(frozen=True)
class CalibrationResult:
    pen: float
    pen_grid: np.ndarray
    mse: np.ndarray
    tau_ref: float
    n_sim: int
    tau_estimates: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"pen": self.pen_grid, "mse": self.mse})


@dataclass(frozen=True)
class EstimationSettings:
    """Immutable bundle of run constants threaded through every stage."""

    t0: float
    delta: float
    start: float
    floor: float = -1.2
    tau_start: float = 100.0
    a_start: float = 1.0
    ou_method: str = "Nelder-Mead"
    tipping_method: str = "Nelder-Mead"
    maxiter: int = 2000
    xatol: float = 1e-6
    fatol: float = 1e-8
    min_points: int = 3


@dataclass(frozen=True)
class DatasetResult:
    name: str
    estimates: pd.DataFrame
    diagnostics: pd.DataFrame
    pen: float
    calibration: CalibrationResult | None = None


@dataclass(frozen=True)
class ValidationIssue:
    level: str
    code: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    issues: Sequence[ValidationIssue]
    n_replicates: int
    n_rows: int
