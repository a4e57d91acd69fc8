"""Output helpers for trial result rows."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Sequence

import numpy as np
import pandas as pd

from .config import SimulationConfig
from .metrics import CALL_PIPELINE, REPORT_PIPELINE, SimulationResult

RESULT_COLUMNS = [
    "trial",
    "pipeline",
    "avg_time_per_emergency",
    "avg_processing_time",
    "total_time_spent",
    "self_completed",
    "canceled",
    "total_completed",
    "total_generated",
]
COMPARED_METRICS = ["avg_time_per_emergency", "total_completed", "canceled"]


def results_frame(results: Sequence[SimulationResult]) -> pd.DataFrame:
    return pd.DataFrame([row.to_dict() for row in results], columns=RESULT_COLUMNS)


def summarize_results(results: Sequence[SimulationResult]) -> pd.DataFrame:
    """Average every metric per pipeline across trials."""
    frame = results_frame(results)
    if frame.empty:
        return pd.DataFrame(columns=["pipeline", "trials"] + RESULT_COLUMNS[2:])
    summary = frame.groupby("pipeline", as_index=False).agg(
        trials=("trial", "nunique"),
        **{column: (column, "mean") for column in RESULT_COLUMNS[2:]},
    )
    return summary


def compare_pipelines(results: Sequence[SimulationResult]) -> pd.DataFrame:
    """One row per trial with Report/Call ratios of the headline metrics."""
    frame = results_frame(results)
    columns = ["trial"] + [f"{metric}_ratio" for metric in COMPARED_METRICS]
    if frame.empty:
        return pd.DataFrame(columns=columns)
    wide = frame.pivot(index="trial", columns="pipeline", values=COMPARED_METRICS)
    comparison = pd.DataFrame(index=wide.index)
    for metric in COMPARED_METRICS:
        report = pd.to_numeric(wide[(metric, REPORT_PIPELINE)], errors="coerce")
        call = pd.to_numeric(wide[(metric, CALL_PIPELINE)], errors="coerce")
        # A zero Call denominator yields NaN rather than inf.
        comparison[f"{metric}_ratio"] = report.to_numpy(dtype=float) / call.replace(
            0, np.nan
        ).to_numpy(dtype=float)
    return comparison.reset_index()[columns]


def write_json_log(
    results: Sequence[SimulationResult],
    config: SimulationConfig,
    output_path: Path,
) -> Dict[str, Any]:
    summary = _build_summary(results, config)
    payload = {"metadata": summary, "results": [row.to_dict() for row in results]}
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, default=str)
    return summary


def write_ndjson_log(
    results: Sequence[SimulationResult],
    output_path: Path,
) -> None:
    """One JSON object per result row, in ledger order."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    results_frame(results).to_json(output_path, orient="records", lines=True)


def write_csv(results: Sequence[SimulationResult], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    results_frame(results).to_csv(output_path, index=False)


def format_duration(seconds: float) -> str:
    """Render seconds as ``"<hours>h <minutes>m"``."""
    total = int(seconds)
    return f"{total // 3600}h {(total % 3600) // 60}m"


def _build_summary(
    results: Sequence[SimulationResult], config: SimulationConfig
) -> Dict[str, Any]:
    summary = summarize_results(results)
    return {
        "trials": len({row.trial for row in results}),
        "rows": len(results),
        "per_pipeline": summary.to_dict(orient="records"),
        "config": config.to_dict(),
    }


__all__ = [
    "compare_pipelines",
    "format_duration",
    "results_frame",
    "summarize_results",
    "write_csv",
    "write_json_log",
    "write_ndjson_log",
]
