"""Version and environment helpers."""

from __future__ import annotations

import importlib.metadata
import subprocess
from pathlib import Path

_TRACKED = ["numpy", "pandas", "scipy", "pyarrow", "matplotlib", "PyYAML"]


def package_version() -> str:
    try:
        return importlib.metadata.version("tipfit")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0+local"


def git_commit_hash(cwd: str | Path) -> str | None:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "HEAD"],
            cwd=str(cwd),
            stderr=subprocess.DEVNULL,
            text=True,
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def package_versions(packages: list[str] | None = None) -> dict[str, str]:
    out: dict[str, str] = {}
    for name in packages or _TRACKED:
        try:
            out[name] = importlib.metadata.version(name)
        except importlib.metadata.PackageNotFoundError:
            out[name] = "not-installed"
    out["tipfit"] = package_version()
    return out


def invocation_string(argv: list[str]) -> str:
    return " ".join(argv)
