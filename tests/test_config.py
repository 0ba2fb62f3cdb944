from pathlib import Path

import pytest

from tipfit.core.config import ConfigError, deep_merge, resolve_config, settings_from_config


def test_deep_merge_keeps_unrelated_keys():
    out = deep_merge({"a": {"x": 1, "y": 2}, "b": 3}, {"a": {"y": 5}})
    assert out == {"a": {"x": 1, "y": 5}, "b": 3}


def test_resolve_config_applies_file_then_overrides(tmp_path: Path):
    cfg_path = tmp_path / "cfg.yaml"
    cfg_path.write_text("time:\n  t0: 1930.0\ncrossval:\n  nsim: 5\n", encoding="utf-8")
    cfg = resolve_config(cfg_path, overrides={"crossval": {"nloop": 4}, "seed": 3})
    assert cfg["time"]["t0"] == 1930.0
    assert cfg["time"]["start"] == 1870.0
    assert cfg["crossval"] == {"nsim": 5, "nloop": 4}
    assert cfg["seed"] == 3

    settings = settings_from_config(cfg)
    assert settings.t0 == 1930.0
    assert settings.delta == pytest.approx(1 / 12)
    assert settings.floor == -1.2
    assert (settings.tau_start, settings.a_start) == (100.0, 1.0)


@pytest.mark.parametrize(
    "overrides",
    [
        {"optimizer": {"tipping_method": "newton"}},
        {"time": {"t0": 1800.0}},
        {"time": {"delta": 0.0}},
        {"penalty": {"grid": []}},
        {"penalty": {"grid": [0.0, -1.0]}},
        {"crossval": {"nsim": 0}},
        {"output": {"format": "json"}},
    ],
)
def test_invalid_config_is_rejected(overrides):
    with pytest.raises(ConfigError):
        resolve_config(overrides=overrides)


def test_missing_config_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError):
        resolve_config(tmp_path / "nope.yaml")
