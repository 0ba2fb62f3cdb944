"""Main CLI entrypoint."""

from __future__ import annotations

import argparse
import sys

from tipfit.cli import calibrate, estimate, residuals, simulate, sweep, validate
from tipfit.core.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tipfit", description="Tipping-point model estimation toolkit")
    subparsers = parser.add_subparsers(dest="command")

    simulate.register(subparsers)
    validate.register(subparsers)
    estimate.register(subparsers)
    calibrate.register(subparsers)
    sweep.register(subparsers)
    residuals.register(subparsers)

    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=getattr(args, "verbose", False))

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        print("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
