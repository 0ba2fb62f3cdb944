"""Diagnostic plots for fitted replicates."""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
from scipy.stats import norm

from tipfit.core.types import Trace


def plot_residual_qq(residuals: np.ndarray, out_path: str | Path, title: str = "Strang residuals") -> Path:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    r = np.sort(np.asarray(residuals, dtype=float))
    r = r[np.isfinite(r)]
    fig, ax = plt.subplots(figsize=(5, 5))
    if r.size >= 2:
        probs = (np.arange(1, r.size + 1) - 0.5) / r.size
        theo = norm.ppf(probs)
        ax.scatter(theo, r, s=8, alpha=0.7)
        lim = float(max(np.max(np.abs(theo)), np.max(np.abs(r))))
        ax.plot([-lim, lim], [-lim, lim], color="black", linestyle="--", linewidth=1.0)
        ax.set_xlabel("N(0,1) quantiles")
        ax.set_ylabel("residual quantiles")
    else:
        ax.text(0.5, 0.5, "Not enough residuals", ha="center", va="center")
        ax.set_axis_off()
    ax.set_title(title)
    ax.grid(alpha=0.3)
    fig.tight_layout()
    fig.savefig(p, dpi=140)
    plt.close(fig)
    return p


def plot_trace(trace: Trace, out_path: str | Path, t0: float | None = None, tc: float | None = None) -> Path:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(8, 3.5))
    ax.plot(trace.times, trace.values, linewidth=0.8)
    if t0 is not None:
        ax.axvline(t0, color="grey", linestyle=":", linewidth=1.0, label="onset")
    if tc is not None and np.isfinite(tc):
        ax.axvline(tc, color="red", linestyle="--", linewidth=1.0, label="estimated tc")
    if t0 is not None or tc is not None:
        ax.legend(loc="lower left")
    ax.set_xlabel("time")
    ax.set_ylabel(trace.name)
    ax.grid(alpha=0.3)
    fig.tight_layout()
    fig.savefig(p, dpi=140)
    plt.close(fig)
    return p
