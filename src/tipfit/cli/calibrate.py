"""Implementation of `tipfit calibrate`."""

from __future__ import annotations

import argparse

import numpy as np

from tipfit.calibrate.pen_search import calibrate_pen, median_parameters
from tipfit.cli.common import add_config_args, resolve_from_args
from tipfit.core.config import settings_from_config
from tipfit.core.pipeline import estimate_replicates, estimates_frame, load_dataset
from tipfit.data.io import write_table


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("calibrate", help="Select the penalty weight for one dataset")
    parser.add_argument("dataset", help="Dataset file")
    parser.add_argument("--out", default=None, help="Write the pen/mse curve to this table")
    parser.add_argument("--nsim", type=int, default=None, help="Cross-validation replicates")
    parser.add_argument("--nloop", type=int, default=None, help="Fine integration steps per observation")
    parser.add_argument("--grid", type=float, nargs="+", default=None, help="Candidate pen values")
    add_config_args(parser)
    parser.set_defaults(func=cmd_calibrate)


def cmd_calibrate(args: argparse.Namespace) -> int:
    extra: dict = {"crossval": {}, "penalty": {}}
    if args.nsim is not None:
        extra["crossval"]["nsim"] = int(args.nsim)
    if args.nloop is not None:
        extra["crossval"]["nloop"] = int(args.nloop)
    if args.grid is not None:
        extra["penalty"]["grid"] = [float(p) for p in args.grid]
    cfg = resolve_from_args(args, extra=extra)
    settings = settings_from_config(cfg)
    rng = np.random.default_rng(int(cfg["seed"]))

    traces = load_dataset(args.dataset, settings)
    ou_med, tip_med = median_parameters(estimates_frame(estimate_replicates(traces, settings, pen=0.0)))
    result = calibrate_pen(
        ou_med,
        tip_med,
        tau_ref=tip_med.tau,
        settings=settings,
        n_obs=max(t.n for t in traces),
        pen_grid=cfg["penalty"]["grid"],
        nsim=int(cfg["crossval"]["nsim"]),
        nloop=int(cfg["crossval"]["nloop"]),
        rng=rng,
    )
    for pen, mse in zip(result.pen_grid, result.mse):
        marker = "*" if pen == result.pen else " "
        print(f"{marker} pen={pen:<8g} mse={mse:.6g}")
    print(f"Selected pen={result.pen:g} (tau_ref={result.tau_ref:.4g}, nsim={result.n_sim})")
    if args.out:
        write_table(result.to_frame(), args.out, index=False)
        print(f"Calibration curve written to {args.out}")
    return 0
