"""Two-stage estimation of one replicate: baseline OU fit, then post-onset tipping fit."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from tipfit.core.types import EstimationSettings, ReplicateEstimate, Trace
from tipfit.estimate.ou import fit_ou
from tipfit.estimate.tipping import derived_quantities, fit_tipping


class SegmentError(ValueError):
    """Raised when a trace segment is too short to be fitted."""


@dataclass(frozen=True)
class Segments:
    baseline: np.ndarray
    post: np.ndarray
    post_times: np.ndarray


def split_trace(trace: Trace, t0: float, floor: float) -> Segments:
    """Partition a trace at ``t0``.

    The baseline holds observations with ``time <= t0``. The post-onset
    segment holds ``time > t0`` and ends before the first observation that
    is non-finite or at/below ``floor``. ``post_times`` is measured from
    ``t0``.
    """

    times = np.asarray(trace.times, dtype=float)
    values = np.asarray(trace.values, dtype=float)
    base_mask = times <= t0
    baseline = _leading_finite(values[base_mask])

    post_vals = values[~base_mask]
    post_times = times[~base_mask] - t0
    bad = ~np.isfinite(post_vals) | (post_vals <= floor)
    stop = int(np.argmax(bad)) if np.any(bad) else post_vals.size
    return Segments(baseline=baseline, post=post_vals[:stop], post_times=post_times[:stop])


def fit_replicate(
    trace: Trace,
    settings: EstimationSettings,
    pen: float = 0.0,
    start: tuple[float, float] | None = None,
) -> ReplicateEstimate:
    seg = split_trace(trace, t0=settings.t0, floor=settings.floor)
    if seg.baseline.size < settings.min_points:
        raise SegmentError(f"{trace.name}: baseline has {seg.baseline.size} usable points")
    if seg.post.size < settings.min_points:
        raise SegmentError(f"{trace.name}: post-onset segment has {seg.post.size} usable points")

    ou_fit = fit_ou(
        seg.baseline,
        trace.delta,
        method=settings.ou_method,
        maxiter=settings.maxiter,
        xatol=settings.xatol,
        fatol=settings.fatol,
    )
    tip_fit = fit_tipping(
        seg.post,
        trace.delta,
        ou_fit.params,
        pen=pen,
        start=start or (settings.tau_start, settings.a_start),
        times=seg.post_times,
        method=settings.tipping_method,
        maxiter=settings.maxiter,
        xatol=settings.xatol,
        fatol=settings.fatol,
    )
    return ReplicateEstimate(
        replicate=trace.name,
        ou=ou_fit.params,
        tipping=tip_fit.params,
        derived=derived_quantities(ou_fit.params, tip_fit.params, settings.t0),
        pen=float(pen),
        ou_diagnostics=ou_fit.diagnostics,
        tipping_diagnostics=tip_fit.diagnostics,
        n_baseline=int(seg.baseline.size),
        n_post=int(seg.post.size),
    )


def _leading_finite(values: np.ndarray) -> np.ndarray:
    bad = ~np.isfinite(values)
    if not np.any(bad):
        return values
    return values[: int(np.argmax(bad))]
