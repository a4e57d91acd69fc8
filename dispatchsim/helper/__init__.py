"""Filesystem helpers shared by the simulator and its scripts."""

from .paths import (
    package_root,
    repo_root,
    results_root,
    simulator_root,
)

__all__ = [
    "package_root",
    "repo_root",
    "results_root",
    "simulator_root",
]
