"""Batch orchestration: per-dataset penalty calibration and replicate estimation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

import numpy as np
import pandas as pd

from tipfit.calibrate.pen_search import calibrate_pen, median_parameters
from tipfit.core.config import dump_yaml, resolve_config, settings_from_config
from tipfit.core.types import (
    ESTIMATE_COLUMNS,
    DatasetResult,
    EstimationSettings,
    OUParams,
    ReplicateEstimate,
    TippingParams,
    Trace,
)
from tipfit.core.versioning import git_commit_hash, invocation_string, package_versions
from tipfit.data.io import (
    TraceValidationError,
    dataset_name,
    read_table,
    table_to_traces,
    write_json,
    write_table,
)
from tipfit.data.validators import validate_table
from tipfit.diagnostics.residuals import residual_summary, strang_residuals
from tipfit.estimate.replicate import SegmentError, fit_replicate, split_trace
from tipfit.utils.hash import file_sha256, mapping_sha256
from tipfit.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """Raised when the pipeline cannot complete."""


def load_dataset(path: str | Path, settings: EstimationSettings) -> list[Trace]:
    """Read and validate a replicate table; malformed input fails here."""

    df = read_table(path)
    report = validate_table(df, delta=settings.delta, t0=settings.t0, start=settings.start)
    for issue in report.issues:
        if issue.level != "error":
            logger.warning("%s: [%s] %s", path, issue.code, issue.message)
    if not report.valid:
        failures = [f"[{i.code}] {i.message}" for i in report.issues if i.level == "error"]
        raise TraceValidationError(f"Invalid dataset {path}: " + " | ".join(failures))
    return table_to_traces(df, settings)


def estimate_replicates(
    traces: Sequence[Trace],
    settings: EstimationSettings,
    pen: float,
    start: tuple[float, float] | None = None,
) -> list[ReplicateEstimate]:
    out: list[ReplicateEstimate] = []
    for trace in traces:
        try:
            out.append(fit_replicate(trace, settings, pen=pen, start=start))
        except SegmentError as exc:
            logger.warning("Skipping replicate: %s", exc)
    if not out:
        raise PipelineError("No replicate could be fitted")
    return out


def estimates_frame(estimates: Sequence[ReplicateEstimate], include_pen: bool = False) -> pd.DataFrame:
    columns = ESTIMATE_COLUMNS + (["pen"] if include_pen else [])
    df = pd.DataFrame([e.as_row(include_pen=include_pen) for e in estimates], columns=columns)
    df.index = pd.Index([e.replicate for e in estimates], name="replicate")
    return df


def diagnostics_frame(estimates: Sequence[ReplicateEstimate]) -> pd.DataFrame:
    df = pd.DataFrame([e.diagnostics_row() for e in estimates])
    df.index = pd.Index([e.replicate for e in estimates], name="replicate")
    return df


def run_dataset(
    name: str,
    traces: Sequence[Trace],
    settings: EstimationSettings,
    cfg: dict[str, Any],
    rng: np.random.Generator,
) -> DatasetResult:
    """Estimate every replicate of one dataset with a dataset-wide penalty weight."""

    pen_cfg = cfg.get("penalty", {})
    cv_cfg = cfg.get("crossval", {})
    include_pen = bool(cfg.get("output", {}).get("include_pen", False))

    logger.info("%s: pen=0 pass over %d replicates", name, len(traces))
    first = estimate_replicates(traces, settings, pen=0.0)
    calibration = None
    if bool(pen_cfg.get("calibrate", True)):
        ou_med, tip_med = median_parameters(estimates_frame(first))
        calibration = calibrate_pen(
            ou_med,
            tip_med,
            tau_ref=tip_med.tau,
            settings=settings,
            n_obs=max(t.n for t in traces),
            pen_grid=pen_cfg.get("grid", [0.0]),
            nsim=int(cv_cfg.get("nsim", 50)),
            nloop=int(cv_cfg.get("nloop", 10)),
            rng=rng,
        )
        pen = calibration.pen
    else:
        pen = float(pen_cfg.get("pen", 0.0))

    final = first if pen == 0.0 else estimate_replicates(traces, settings, pen=pen)
    _warn_unconverged(name, final)
    return DatasetResult(
        name=name,
        estimates=estimates_frame(final, include_pen=include_pen),
        diagnostics=diagnostics_frame(final),
        pen=float(pen),
        calibration=calibration,
    )


def sweep_pen(
    traces: Sequence[Trace],
    settings: EstimationSettings,
    pens: Sequence[float],
) -> pd.DataFrame:
    """Combined estimate table for one reference dataset across several weights."""

    frames = []
    for pen in pens:
        logger.info("Sweep: pen=%g", pen)
        fitted = estimate_replicates(traces, settings, pen=float(pen))
        frames.append(estimates_frame(fitted, include_pen=True))
    return pd.concat(frames, axis=0)


def residual_table(
    traces: Sequence[Trace],
    estimates: pd.DataFrame,
    settings: EstimationSettings,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Standardised residual columns (NaN padded) and their per-replicate summaries."""

    if estimates.index.has_duplicates:
        dupes = sorted({str(i) for i in estimates.index[estimates.index.duplicated()]})
        raise PipelineError(
            f"Estimate table lists replicates more than once ({', '.join(dupes[:5])}); "
            "pass a single-pen table, not a sweep"
        )
    columns: dict[str, pd.Series] = {}
    summaries: dict[str, dict[str, float]] = {}
    for trace in traces:
        if trace.name not in estimates.index:
            continue
        row = estimates.loc[trace.name]
        seg = split_trace(trace, t0=settings.t0, floor=settings.floor)
        resid = strang_residuals(
            seg.post,
            trace.delta,
            OUParams(alpha0=float(row["alpha0"]), mu0=float(row["mu0"]), sigma2=float(row["s2"])),
            TippingParams(tau=float(row["tau"]), a=float(row["a"])),
            times=seg.post_times,
        )
        columns[trace.name] = pd.Series(resid)
        summaries[trace.name] = residual_summary(resid)
    summary = pd.DataFrame.from_dict(summaries, orient="index")
    summary.index.name = "replicate"
    return pd.DataFrame(columns), summary


def run_batch(
    dataset_paths: Sequence[str | Path],
    out_dir: str | Path,
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    seed: int | None = None,
    argv: list[str] | None = None,
) -> list[DatasetResult]:
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    cfg_overrides = dict(overrides or {})
    if seed is not None:
        cfg_overrides["seed"] = int(seed)
    resolved = resolve_config(config_path=config_path, overrides=cfg_overrides)
    dump_yaml(resolved, out_root / "config_resolved.yaml")
    settings = settings_from_config(resolved)
    rng = np.random.default_rng(int(resolved.get("seed", 42)))
    fmt = str(resolved.get("output", {}).get("format", "csv"))

    results: list[DatasetResult] = []
    outputs: dict[str, Any] = {}
    for path in dataset_paths:
        name = dataset_name(path)
        traces = load_dataset(path, settings)
        result = run_dataset(name, traces, settings, resolved, rng)
        results.append(result)

        est_path = write_table(result.estimates, out_root / f"{name}_estimates.{fmt}")
        write_table(result.diagnostics, out_root / f"{name}_diagnostics.{fmt}")
        entry: dict[str, Any] = {
            "input": str(Path(path).resolve()),
            "input_sha256": file_sha256(path),
            "estimates": str(est_path.resolve()),
            "n_replicates": int(len(result.estimates)),
            "pen": result.pen,
        }
        if result.calibration is not None and resolved.get("output", {}).get("write_calibration", True):
            cal_path = write_table(
                result.calibration.to_frame(), out_root / f"{name}_calibration.{fmt}", index=False
            )
            entry["calibration"] = str(cal_path.resolve())
        outputs[name] = entry
        logger.info("%s: wrote %d rows to %s (pen=%g)", name, len(result.estimates), est_path, result.pen)

    write_json(
        {
            "timestamp_utc": utc_now_iso(),
            "git_commit": git_commit_hash(Path.cwd()),
            "package_versions": package_versions(),
            "config_hash": mapping_sha256(resolved),
            "random_seed": int(resolved.get("seed", 42)),
            "cli_invocation": invocation_string(argv or []),
            "datasets": outputs,
        },
        out_root / "run_metadata.json",
    )
    return results


def _warn_unconverged(name: str, estimates: Sequence[ReplicateEstimate]) -> None:
    n_ou = sum(1 for e in estimates if not e.ou_diagnostics.converged)
    n_tip = sum(1 for e in estimates if not e.tipping_diagnostics.converged)
    if n_ou or n_tip:
        logger.warning(
            "%s: %d OU and %d tipping fits did not converge out of %d replicates",
            name,
            n_ou,
            n_tip,
            len(estimates),
        )
