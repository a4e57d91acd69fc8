"""Path helpers (expects the `dispatchsim/` package at the repo root)."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path


@lru_cache(maxsize=1)
def repo_root() -> Path:
    """Return the directory that contains `dispatchsim/`."""
    # <repo>/dispatchsim/helper/paths.py
    return Path(__file__).resolve().parents[2]


@lru_cache(maxsize=1)
def package_root() -> Path:
    return repo_root() / "dispatchsim"


@lru_cache(maxsize=1)
def simulator_root() -> Path:
    """Return the simulator package directory (holds the default config)."""
    return package_root() / "simulator"


def results_root() -> Path:
    """Return where trial exports go by default, relative to the working directory."""
    return Path.cwd() / "results"


__all__ = [
    "package_root",
    "repo_root",
    "results_root",
    "simulator_root",
]
