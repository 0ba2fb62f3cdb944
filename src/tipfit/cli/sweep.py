"""Implementation of `tipfit sweep`."""

from __future__ import annotations

import argparse

from tipfit.cli.common import add_config_args, resolve_from_args
from tipfit.core.config import settings_from_config
from tipfit.core.pipeline import load_dataset, sweep_pen
from tipfit.data.io import write_table


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("sweep", help="Estimate one reference dataset across several pen values")
    parser.add_argument("dataset", help="Reference dataset file")
    parser.add_argument("--pens", type=float, nargs="+", required=True, help="Penalty weights")
    parser.add_argument("--out", required=True, help="Combined output table")
    add_config_args(parser)
    parser.set_defaults(func=cmd_sweep)


def cmd_sweep(args: argparse.Namespace) -> int:
    settings = settings_from_config(resolve_from_args(args))
    traces = load_dataset(args.dataset, settings)
    combined = sweep_pen(traces, settings, pens=args.pens)
    write_table(combined, args.out)
    print(f"Wrote {len(combined)} rows for {len(args.pens)} pen values to {args.out}")
    return 0
