"""Implementation of `tipfit residuals`."""

from __future__ import annotations

import argparse
from pathlib import Path

from tipfit.cli.common import add_config_args, resolve_from_args
from tipfit.core.config import settings_from_config
from tipfit.core.pipeline import estimate_replicates, estimates_frame, load_dataset, residual_table
from tipfit.data.io import read_table, write_table
from tipfit.viz.plots import plot_residual_qq, plot_trace


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("residuals", help="Standardised Strang residuals per replicate")
    parser.add_argument("dataset", help="Dataset file")
    parser.add_argument("--out", required=True, help="Residual table (one column per replicate)")
    parser.add_argument("--estimates", default=None, help="Estimate table from `tipfit estimate`")
    parser.add_argument("--pen", type=float, default=0.0, help="Penalty weight when fitting on the fly")
    parser.add_argument("--plot-dir", default=None, help="Write QQ and trace plots per replicate here")
    add_config_args(parser)
    parser.set_defaults(func=cmd_residuals)


def cmd_residuals(args: argparse.Namespace) -> int:
    settings = settings_from_config(resolve_from_args(args))
    traces = load_dataset(args.dataset, settings)
    if args.estimates:
        estimates = read_table(args.estimates).set_index("replicate")
        estimates.index = estimates.index.astype(str)
    else:
        estimates = estimates_frame(estimate_replicates(traces, settings, pen=float(args.pen)))

    resid, summary = residual_table(traces, estimates, settings)
    write_table(resid, args.out, index=False)
    out = Path(args.out)
    write_table(summary, out.with_name(f"{out.stem}_summary{out.suffix}"))
    print(f"Wrote residuals for {resid.shape[1]} replicates to {out}")

    if args.plot_dir:
        plot_dir = Path(args.plot_dir)
        for name in resid.columns:
            plot_residual_qq(resid[name].to_numpy(dtype=float), plot_dir / f"qq_{name}.png", title=str(name))
        for trace in traces:
            if trace.name in estimates.index:
                tc = float(estimates.loc[trace.name, "tc"])
                plot_trace(trace, plot_dir / f"trace_{trace.name}.png", t0=settings.t0, tc=tc)
        print(f"Wrote plots for {resid.shape[1]} replicates to {plot_dir}")
    return 0
