"""Argument helpers shared by subcommands."""

from __future__ import annotations

import argparse
from typing import Any

from tipfit.core.config import resolve_config


def add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Config YAML")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--t0", type=float, default=None, help="Onset time shared by all datasets")
    parser.add_argument("--floor", type=float, default=None, help="Lower cutoff for the post-onset segment")


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if getattr(args, "seed", None) is not None:
        overrides["seed"] = int(args.seed)
    if getattr(args, "t0", None) is not None:
        overrides["time"] = {"t0": float(args.t0)}
    if getattr(args, "floor", None) is not None:
        overrides["segment"] = {"floor": float(args.floor)}
    return overrides


def resolve_from_args(args: argparse.Namespace, extra: dict[str, Any] | None = None) -> dict[str, Any]:
    overrides = overrides_from_args(args)
    for key, value in (extra or {}).items():
        if isinstance(value, dict):
            overrides[key] = {**overrides.get(key, {}), **value}
        else:
            overrides[key] = value
    return resolve_config(config_path=args.config, overrides=overrides)
