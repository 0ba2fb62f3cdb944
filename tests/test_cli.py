import json
from pathlib import Path

import pandas as pd
import pytest

from tipfit.cli.main import main
from tipfit.core.types import ESTIMATE_COLUMNS


@pytest.fixture
def workspace(tmp_path: Path) -> dict[str, Path]:
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        "time:\n  start: 0.0\n  delta: 0.1\n  t0: 10.0\n"
        "tipping:\n  tau_start: 60.0\n  a_start: 2.0\n"
        "penalty:\n  grid: [0.0, 1.0]\n"
        "crossval:\n  nsim: 2\n  nloop: 5\n",
        encoding="utf-8",
    )
    model = tmp_path / "model.yaml"
    model.write_text(
        "name: cli\nn_replicates: 2\nn_obs: 300\nnloop: 5\n"
        "ou:\n  alpha0: 3.0\n  mu0: 0.25\n  sigma2: 0.01\n"
        "tipping:\n  tau: 60.0\n  a: 2.0\n",
        encoding="utf-8",
    )
    return {"root": tmp_path, "cfg": cfg, "model": model}


def _simulate(ws: dict[str, Path]) -> Path:
    data = ws["root"] / "data" / "cli.csv"
    code = main(["simulate", str(ws["model"]), "--out", str(data), "--config", str(ws["cfg"]), "--seed", "5"])
    assert code == 0
    return data


def test_simulate_writes_table_and_meta(workspace):
    data = _simulate(workspace)
    df = pd.read_csv(data)
    assert list(df.columns) == ["time", "rep001", "rep002"]
    assert len(df) == 300
    meta = json.loads(data.with_suffix(".meta.json").read_text(encoding="utf-8"))
    assert meta["truth"]["tc"] == pytest.approx(70.0)


def test_validate_exit_codes(workspace, capsys):
    data = _simulate(workspace)
    assert main(["validate", str(data), "--config", str(workspace["cfg"])]) == 0
    assert "PASS" in capsys.readouterr().out

    bad = workspace["root"] / "bad.csv"
    pd.DataFrame({"time": [0.0, 0.1, 0.2], "r1": ["x", "y", "z"]}).to_csv(bad, index=False)
    assert main(["validate", str(bad), "--config", str(workspace["cfg"]), "--json"]) == 2
    payload = json.loads(capsys.readouterr().out)
    assert payload["valid"] is False


def test_estimate_with_fixed_pen(workspace):
    data = _simulate(workspace)
    out = workspace["root"] / "out"
    code = main(["estimate", str(data.parent), "--out", str(out), "--config", str(workspace["cfg"]), "--pen", "0"])
    assert code == 0
    table = pd.read_csv(out / "cli_estimates.csv", index_col="replicate")
    assert list(table.columns) == ESTIMATE_COLUMNS
    assert len(table) == 2
    assert (out / "run_metadata.json").exists()


def test_sweep_and_residuals(workspace):
    data = _simulate(workspace)
    sweep_out = workspace["root"] / "sweep.csv"
    code = main(
        ["sweep", str(data), "--pens", "0", "1", "--out", str(sweep_out), "--config", str(workspace["cfg"])]
    )
    assert code == 0
    sweep = pd.read_csv(sweep_out)
    assert len(sweep) == 4
    assert "pen" in sweep.columns

    resid_out = workspace["root"] / "resid.csv"
    plots = workspace["root"] / "plots"
    code = main(
        ["residuals", str(data), "--out", str(resid_out), "--plot-dir", str(plots), "--config", str(workspace["cfg"])]
    )
    assert code == 0
    assert list(pd.read_csv(resid_out).columns) == ["rep001", "rep002"]
    assert (workspace["root"] / "resid_summary.csv").exists()
    assert (plots / "qq_rep001.png").exists()
    assert (plots / "trace_rep002.png").exists()


def test_no_command_prints_help():
    assert main([]) == 1
