"""Configuration loading and resolution."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

from tipfit.core.types import EstimationSettings


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG: dict[str, Any] = {
    "time": {
        "start": 1870.0,
        "delta": 1.0 / 12.0,
        "t0": 1924.0,
    },
    "segment": {
        "floor": -1.2,
        "min_points": 3,
    },
    "optimizer": {
        "ou_method": "Nelder-Mead",
        "tipping_method": "Nelder-Mead",
        "maxiter": 2000,
        "xatol": 1e-6,
        "fatol": 1e-8,
    },
    "tipping": {
        "tau_start": 100.0,
        "a_start": 1.0,
    },
    "penalty": {
        "calibrate": True,
        "pen": 0.0,
        "grid": [0.0, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0],
    },
    "crossval": {
        "nsim": 50,
        "nloop": 10,
    },
    "output": {
        "format": "csv",
        "include_pen": False,
        "write_calibration": True,
    },
    "seed": 42,
}

_SUPPORTED_METHODS = {"Nelder-Mead", "Powell", "BFGS", "L-BFGS-B"}
_SUPPORTED_FORMATS = {"csv", "parquet", "xlsx"}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries and return a new dictionary."""

    out = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping at root: {p}")
    return data


def resolve_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Resolve run configuration from defaults, an optional user file and overrides."""

    resolved = deepcopy(DEFAULT_CONFIG)
    if config_path is not None:
        resolved = deep_merge(resolved, load_yaml(config_path))
    if overrides:
        resolved = deep_merge(resolved, overrides)
    _validate(resolved)
    return resolved


def dump_yaml(data: dict[str, Any], out_path: str | Path) -> None:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)


def settings_from_config(cfg: dict[str, Any]) -> EstimationSettings:
    time_cfg = cfg.get("time", {})
    opt = cfg.get("optimizer", {})
    tip = cfg.get("tipping", {})
    seg = cfg.get("segment", {})
    return EstimationSettings(
        t0=float(time_cfg["t0"]),
        delta=float(time_cfg["delta"]),
        start=float(time_cfg["start"]),
        floor=float(seg.get("floor", -1.2)),
        tau_start=float(tip.get("tau_start", 100.0)),
        a_start=float(tip.get("a_start", 1.0)),
        ou_method=str(opt.get("ou_method", "Nelder-Mead")),
        tipping_method=str(opt.get("tipping_method", "Nelder-Mead")),
        maxiter=int(opt.get("maxiter", 2000)),
        xatol=float(opt.get("xatol", 1e-6)),
        fatol=float(opt.get("fatol", 1e-8)),
        min_points=int(seg.get("min_points", 3)),
    )


def _validate(cfg: dict[str, Any]) -> None:
    time_cfg = cfg.get("time", {})
    for key in ("start", "delta", "t0"):
        if key not in time_cfg:
            raise ConfigError(f"Missing time.{key}")
    if float(time_cfg["delta"]) <= 0:
        raise ConfigError(f"time.delta must be positive, got {time_cfg['delta']}")
    if float(time_cfg["t0"]) <= float(time_cfg["start"]):
        raise ConfigError("time.t0 must lie after time.start")

    opt = cfg.get("optimizer", {})
    for key in ("ou_method", "tipping_method"):
        method = opt.get(key)
        if method not in _SUPPORTED_METHODS:
            raise ConfigError(
                f"Unsupported optimizer.{key} '{method}'. Supported: {'|'.join(sorted(_SUPPORTED_METHODS))}"
            )

    tip = cfg.get("tipping", {})
    if float(tip.get("tau_start", 0.0)) <= 0 or float(tip.get("a_start", 0.0)) <= 0:
        raise ConfigError("tipping.tau_start and tipping.a_start must be positive")

    pen_cfg = cfg.get("penalty", {})
    grid = pen_cfg.get("grid", [])
    if not isinstance(grid, list) or not grid:
        raise ConfigError("penalty.grid must be a non-empty list")
    if any(float(p) < 0 for p in grid) or float(pen_cfg.get("pen", 0.0)) < 0:
        raise ConfigError("penalty values must be non-negative")

    cv = cfg.get("crossval", {})
    if int(cv.get("nsim", 0)) < 1 or int(cv.get("nloop", 0)) < 1:
        raise ConfigError("crossval.nsim and crossval.nloop must be >= 1")

    fmt = cfg.get("output", {}).get("format")
    if fmt not in _SUPPORTED_FORMATS:
        raise ConfigError(f"Unsupported output.format '{fmt}'. Supported: csv|parquet|xlsx")
