import json
import logging
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from tipfit.core.config import resolve_config
from tipfit.core.pipeline import (
    PipelineError,
    estimate_replicates,
    estimates_frame,
    residual_table,
    run_batch,
    run_dataset,
    sweep_pen,
)
from tipfit.core.types import ESTIMATE_COLUMNS, EstimationSettings, OUParams, TippingParams, Trace
from tipfit.data.io import table_to_traces
from tipfit.estimate.replicate import SegmentError, fit_replicate, split_trace
from tipfit.estimate.tipping import derived_quantities
from tipfit.sim.datasets import generate_dataset

SETTINGS = EstimationSettings(t0=10.0, delta=0.1, start=0.0, tau_start=60.0, a_start=1.5)
OVERRIDES = {"time": {"start": 0.0, "delta": 0.1, "t0": 10.0}, "tipping": {"tau_start": 60.0, "a_start": 1.5}}
MODEL = {
    "name": "small",
    "n_replicates": 3,
    "n_obs": 350,
    "nloop": 5,
    "ou": {"alpha0": 3.0, "mu0": 0.25, "sigma2": 0.01},
    "tipping": {"tau": 60.0, "a": 1.5},
}


def _small_dataset(seed: int = 0) -> pd.DataFrame:
    return generate_dataset(MODEL, SETTINGS, np.random.default_rng(seed)).data


def test_split_trace_partitions_at_onset_and_truncates_at_floor():
    times = np.arange(10, dtype=float)
    values = np.array([0.0, 0.1, 0.2, 0.3, 0.2, 0.1, -0.5, -1.5, 0.3, np.nan])
    seg = split_trace(Trace("r", times, values, 1.0), t0=3.0, floor=-1.2)
    np.testing.assert_array_equal(seg.baseline, [0.0, 0.1, 0.2, 0.3])
    np.testing.assert_array_equal(seg.post, [0.2, 0.1, -0.5])
    np.testing.assert_array_equal(seg.post_times, [1.0, 2.0, 3.0])


def test_split_trace_stops_post_segment_at_padding():
    times = np.arange(8, dtype=float)
    values = np.array([0.0, 0.1, 0.2, 0.3, 0.25, np.nan, np.nan, np.nan])
    seg = split_trace(Trace("r", times, values, 1.0), t0=2.0, floor=-1.2)
    np.testing.assert_array_equal(seg.post, [0.3, 0.25])


def test_fit_replicate_rejects_short_segments():
    times = np.arange(6, dtype=float)
    trace = Trace("short", times, np.array([0.0, 0.1, 0.2, 0.1, 0.0, 0.1]), 1.0)
    with pytest.raises(SegmentError):
        fit_replicate(trace, EstimationSettings(t0=4.0, delta=1.0, start=0.0))


def test_run_dataset_with_fixed_pen_produces_consistent_table():
    traces = table_to_traces(_small_dataset(), SETTINGS)
    cfg = resolve_config(overrides={**OVERRIDES, "penalty": {"calibrate": False, "pen": 0.0}})
    result = run_dataset("small", traces, SETTINGS, cfg, np.random.default_rng(0))

    assert list(result.estimates.columns) == ESTIMATE_COLUMNS
    assert list(result.estimates.index) == ["rep001", "rep002", "rep003"]
    assert result.pen == 0.0
    assert result.calibration is None
    assert {"ou_converged", "tip_converged"}.issubset(result.diagnostics.columns)

    for _, row in result.estimates.iterrows():
        derived = derived_quantities(
            OUParams(alpha0=row["alpha0"], mu0=row["mu0"], sigma2=row["s2"]),
            TippingParams(tau=row["tau"], a=row["a"]),
            t0=SETTINGS.t0,
        )
        assert row["m"] == derived.m
        assert row["lambda0"] == derived.lambda0
        assert row["tc"] == derived.tc
        assert row["alpha0"] > 0 and row["a"] >= 0.1 and row["s2"] >= 0


def test_run_dataset_calibrates_pen_from_grid():
    traces = table_to_traces(_small_dataset(seed=1), SETTINGS)
    cfg = resolve_config(
        overrides={
            **OVERRIDES,
            "penalty": {"calibrate": True, "grid": [0.0, 1.0]},
            "crossval": {"nsim": 2, "nloop": 5},
            "output": {"include_pen": True},
        }
    )
    result = run_dataset("small", traces, SETTINGS, cfg, np.random.default_rng(2))
    assert result.calibration is not None
    assert result.pen in (0.0, 1.0)
    assert result.calibration.mse.shape == (2,)
    assert (result.estimates["pen"] == result.pen).all()


def test_sweep_pen_stacks_tables_with_pen_column():
    traces = table_to_traces(_small_dataset(), SETTINGS)[:2]
    table = sweep_pen(traces, SETTINGS, pens=[0.0, 2.0])
    assert list(table.columns) == ESTIMATE_COLUMNS + ["pen"]
    assert len(table) == 4
    assert sorted(table["pen"].unique().tolist()) == [0.0, 2.0]


def test_residual_table_has_one_column_per_replicate():
    traces = table_to_traces(_small_dataset(), SETTINGS)
    estimates = estimates_frame(estimate_replicates(traces, SETTINGS, pen=0.0))
    resid, summary = residual_table(traces, estimates, SETTINGS)
    assert list(resid.columns) == ["rep001", "rep002", "rep003"]
    n_post = split_trace(traces[0], SETTINGS.t0, SETTINGS.floor).post.size
    assert resid["rep001"].notna().sum() == n_post - 1
    assert {"mean", "std", "ks_stat", "ks_p"}.issubset(summary.columns)


def test_run_batch_writes_tables_and_metadata(tmp_path: Path):
    data_path = tmp_path / "model_small.csv"
    _small_dataset().to_csv(data_path, index=False)
    out = tmp_path / "out"

    results = run_batch(
        [data_path],
        out_dir=out,
        overrides={**OVERRIDES, "penalty": {"calibrate": False, "pen": 0.5}},
        seed=7,
        argv=["tipfit", "estimate"],
    )
    assert len(results) == 1
    assert (out / "config_resolved.yaml").exists()
    table = pd.read_csv(out / "model_small_estimates.csv", index_col="replicate")
    assert list(table.columns) == ESTIMATE_COLUMNS
    assert (out / "model_small_diagnostics.csv").exists()

    meta = json.loads((out / "run_metadata.json").read_text(encoding="utf-8"))
    assert meta["random_seed"] == 7
    assert meta["datasets"]["model_small"]["pen"] == 0.5
    assert meta["datasets"]["model_small"]["n_replicates"] == 3


def test_residual_table_rejects_sweep_tables():
    traces = table_to_traces(_small_dataset(), SETTINGS)[:2]
    swept = sweep_pen(traces, SETTINGS, pens=[0.0, 1.0])
    with pytest.raises(PipelineError, match="more than once"):
        residual_table(traces, swept, SETTINGS)


def test_unconverged_fits_are_flagged_and_logged(caplog):
    traces = table_to_traces(_small_dataset(), SETTINGS)[:2]
    tight = EstimationSettings(t0=10.0, delta=0.1, start=0.0, tau_start=60.0, a_start=1.5, maxiter=1)
    cfg = resolve_config(overrides={**OVERRIDES, "penalty": {"calibrate": False, "pen": 0.0}})
    with caplog.at_level(logging.WARNING):
        result = run_dataset("tight", traces, tight, cfg, np.random.default_rng(0))

    assert not result.diagnostics["tip_converged"].any()
    assert not result.diagnostics["ou_converged"].any()
    assert any(r.name == "tipfit.estimate.optim" and r.levelno == logging.WARNING for r in caplog.records)
    assert any(r.name == "tipfit.core.pipeline" and "did not converge" in r.getMessage() for r in caplog.records)
