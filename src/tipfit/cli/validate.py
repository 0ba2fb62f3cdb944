"""Implementation of `tipfit validate`."""

from __future__ import annotations

import argparse
import json

from tipfit.cli.common import add_config_args, resolve_from_args
from tipfit.core.config import settings_from_config
from tipfit.data.io import read_table
from tipfit.data.validators import report_to_dict, validate_table


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("validate", help="Validate a replicate table")
    parser.add_argument("dataset", help="Dataset file")
    parser.add_argument("--json", action="store_true", help="Print report as JSON")
    add_config_args(parser)
    parser.set_defaults(func=cmd_validate)


def cmd_validate(args: argparse.Namespace) -> int:
    settings = settings_from_config(resolve_from_args(args))
    report = validate_table(read_table(args.dataset), delta=settings.delta, t0=settings.t0, start=settings.start)
    payload = report_to_dict(report)

    if args.json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        status = "PASS" if report.valid else "FAIL"
        print(f"Validation: {status}")
        print(f"Replicates: {report.n_replicates}  rows: {report.n_rows}")
        if not report.issues:
            print("No issues found")
        for issue in report.issues:
            print(f"- {issue.level.upper()} [{issue.code}] {issue.message}")

    return 0 if report.valid else 2
