"""Synthetic replicate tables generated from a tipping-model description."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml

from tipfit.core.config import ConfigError
from tipfit.core.types import EstimationSettings, OUParams, TippingParams
from tipfit.data.io import TIME_COLUMN, write_json, write_table
from tipfit.sim.simulator import downsample, simulate_from_params, stationary_initial_state


@dataclass(frozen=True)
class GeneratedDataset:
    data: pd.DataFrame
    meta: dict[str, Any]


def load_model_spec(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Model file not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Model file root must be a mapping: {p}")
    for key in ("ou", "tipping"):
        if not isinstance(data.get(key), dict):
            raise ConfigError(f"Model file is missing the '{key}' mapping: {p}")
    return data


def generate_dataset(
    spec: dict[str, Any],
    settings: EstimationSettings,
    rng: np.random.Generator,
) -> GeneratedDataset:
    """Simulate ``n_replicates`` traces observed on the settings' time grid.

    ``spec`` carries ``ou`` (alpha0, mu0, sigma2), ``tipping`` (tau, a) and
    optionally ``name``, ``n_replicates``, ``n_obs`` or ``end``, and ``nloop``.
    """

    ou = OUParams(**{k: float(v) for k, v in spec["ou"].items()})
    tip = TippingParams(**{k: float(v) for k, v in spec["tipping"].items()})
    n_rep = int(spec.get("n_replicates", 10))
    nloop = int(spec.get("nloop", 10))
    if "n_obs" in spec:
        n_obs = int(spec["n_obs"])
    else:
        end = float(spec.get("end", settings.t0 + tip.tau))
        n_obs = int(round((end - settings.start) / settings.delta)) + 1

    times = settings.start + settings.delta * np.arange(n_obs, dtype=float)
    columns: dict[str, np.ndarray] = {TIME_COLUMN: times}
    crossed = 0
    for i in range(n_rep):
        sim = simulate_from_params(
            ou,
            tip,
            T0=settings.t0 - settings.start,
            x0=stationary_initial_state(ou, rng),
            dt=settings.delta / nloop,
            n_max=nloop * n_obs,
            rng=rng,
        )
        crossed += int(sim.crossed)
        columns[f"rep{i + 1:03d}"] = downsample(sim.path, nloop, n_obs)

    meta = {
        "name": str(spec.get("name", "synthetic")),
        "truth": {
            "alpha0": ou.alpha0,
            "mu0": ou.mu0,
            "sigma2": ou.sigma2,
            "tau": tip.tau,
            "a": tip.a,
            "tc": settings.t0 + tip.tau,
        },
        "t0": settings.t0,
        "start": settings.start,
        "delta": settings.delta,
        "n_obs": n_obs,
        "n_replicates": n_rep,
        "n_crossed": crossed,
        "nloop": nloop,
    }
    return GeneratedDataset(data=pd.DataFrame(columns), meta=meta)


def write_generated_dataset(out_path: str | Path, generated: GeneratedDataset) -> Path:
    p = write_table(generated.data, out_path, index=False)
    write_json(generated.meta, p.with_suffix(".meta.json"))
    return p
