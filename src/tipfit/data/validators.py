"""Validation of replicate tables before estimation."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

from tipfit.core.types import ValidationIssue, ValidationReport
from tipfit.data.io import TIME_COLUMN, replicate_columns, time_axis


def validate_table(
    df: pd.DataFrame,
    delta: float,
    t0: float,
    start: float,
    rel_tol: float = 1e-3,
) -> ValidationReport:
    issues: list[ValidationIssue] = []
    cols = replicate_columns(df)

    if df.empty or len(df) < 2:
        issues.append(ValidationIssue(level="error", code="too_few_rows", message=f"Table has {len(df)} rows"))
    if not cols:
        issues.append(
            ValidationIssue(level="error", code="no_replicates", message="Table has no replicate columns")
        )

    issues.extend(_validate_numeric(df, cols))
    if len(df) >= 2:
        issues.extend(_validate_time_axis(df, delta=delta, t0=t0, start=start, rel_tol=rel_tol))

    has_error = any(issue.level == "error" for issue in issues)
    return ValidationReport(valid=not has_error, issues=issues, n_replicates=len(cols), n_rows=len(df))


def report_to_dict(report: ValidationReport) -> dict[str, Any]:
    return {
        "valid": report.valid,
        "n_replicates": report.n_replicates,
        "n_rows": report.n_rows,
        "issues": [
            {"level": i.level, "code": i.code, "message": i.message, "context": dict(i.context)}
            for i in report.issues
        ],
    }


def _validate_numeric(df: pd.DataFrame, cols: list[str]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for col in cols:
        raw = df[col]
        coerced = pd.to_numeric(raw, errors="coerce")
        bad = coerced.isna() & raw.notna()
        if bool(bad.any()):
            first = int(np.flatnonzero(bad.to_numpy())[0])
            issues.append(
                ValidationIssue(
                    level="error",
                    code="non_numeric",
                    message=f"Column '{col}' has {int(bad.sum())} non-numeric cells (first at row {first})",
                    context={"column": col, "row": first},
                )
            )
            continue
        values = coerced.to_numpy(dtype=float)
        finite = np.isfinite(values)
        if not finite.any():
            issues.append(
                ValidationIssue(
                    level="error",
                    code="empty_replicate",
                    message=f"Column '{col}' has no finite values",
                    context={"column": col},
                )
            )
        elif not finite[: int(np.flatnonzero(finite)[-1]) + 1].all():
            issues.append(
                ValidationIssue(
                    level="warning",
                    code="interior_gap",
                    message=f"Column '{col}' has missing values before its last observation",
                    context={"column": col},
                )
            )
    return issues


def _validate_time_axis(
    df: pd.DataFrame,
    delta: float,
    t0: float,
    start: float,
    rel_tol: float,
) -> list[ValidationIssue]:
    has_time = any(str(c).strip().lower() == TIME_COLUMN for c in df.columns)
    try:
        times = time_axis(df, start=start, delta=delta)
    except (TypeError, ValueError) as exc:
        return [ValidationIssue(level="error", code="time_non_numeric", message=f"Time column: {exc}")]

    issues: list[ValidationIssue] = []
    steps = np.diff(times)
    if has_time and (not np.all(np.isfinite(steps)) or np.any(steps <= 0)):
        issues.append(
            ValidationIssue(
                level="error",
                code="time_not_increasing",
                message="Time column must be strictly increasing",
            )
        )
    elif has_time and np.max(np.abs(steps - delta)) > rel_tol * delta:
        worst = float(np.max(np.abs(steps - delta)))
        issues.append(
            ValidationIssue(
                level="error",
                code="time_step_mismatch",
                message=f"Time step deviates from delta={delta:.6g} (max |step - delta| = {worst:.3g})",
                context={"delta": delta, "max_deviation": worst},
            )
        )
    # simulated cross-validation traces start at `start`, so the data must too
    if has_time and np.isfinite(times[0]) and abs(times[0] - start) > rel_tol * delta:
        issues.append(
            ValidationIssue(
                level="error",
                code="time_start_mismatch",
                message=f"Time column starts at {times[0]:.6g}, configured time.start is {start:.6g}",
                context={"first_time": float(times[0]), "start": start},
            )
        )
    if not np.any(times > t0):
        issues.append(
            ValidationIssue(level="error", code="no_post_onset", message=f"No observations after t0={t0}")
        )
    if np.sum(times <= t0) < 3:
        issues.append(
            ValidationIssue(level="error", code="short_baseline", message=f"Fewer than 3 observations up to t0={t0}")
        )
    return issues
