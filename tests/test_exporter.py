import csv
import json
import math

from dispatchsim.simulator.exporter import (
    RESULT_COLUMNS,
    compare_pipelines,
    format_duration,
    results_frame,
    summarize_results,
    write_csv,
    write_json_log,
    write_ndjson_log,
)
from dispatchsim.simulator.metrics import SimulationResult

from .factories import quiet_config


def _row(trial, pipeline, avg, completed, canceled):
    return SimulationResult(
        trial=trial,
        pipeline=pipeline,
        avg_time_per_emergency=avg,
        avg_processing_time=avg / 2,
        total_time_spent=avg * completed,
        self_completed=completed if pipeline == "Report" else 0,
        canceled=canceled,
        total_completed=completed,
        total_generated=completed + canceled,
    )


RESULTS = [
    _row(1, "Report", 60.0, 100, 0),
    _row(1, "Call", 120.0, 50, 10),
    _row(2, "Report", 80.0, 120, 0),
    _row(2, "Call", 240.0, 40, 0),
]


def test_results_frame_has_one_row_per_result() -> None:
    frame = results_frame(RESULTS)
    assert list(frame.columns) == RESULT_COLUMNS
    assert len(frame) == 4
    assert results_frame([]).empty


def test_summary_averages_per_pipeline() -> None:
    summary = summarize_results(RESULTS).set_index("pipeline")
    assert summary.loc["Report", "trials"] == 2
    assert summary.loc["Report", "avg_time_per_emergency"] == 70.0
    assert summary.loc["Call", "total_completed"] == 45.0


def test_compare_pipelines_returns_report_to_call_ratios() -> None:
    comparison = compare_pipelines(RESULTS).set_index("trial")
    assert comparison.loc[1, "avg_time_per_emergency_ratio"] == 0.5
    assert comparison.loc[2, "total_completed_ratio"] == 3.0
    assert comparison.loc[1, "canceled_ratio"] == 0.0
    assert math.isnan(comparison.loc[2, "canceled_ratio"])


def test_writers_emit_every_row(tmp_path) -> None:
    json_path = tmp_path / "out" / "results.json"
    summary = write_json_log(RESULTS, quiet_config(), json_path)
    assert summary["trials"] == 2 and summary["rows"] == 4
    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["metadata"]["config"]["call"]["operator_count"] == 1
    assert [row["pipeline"] for row in payload["results"]] == [
        "Report",
        "Call",
        "Report",
        "Call",
    ]

    ndjson_path = tmp_path / "results.ndjson"
    write_ndjson_log(RESULTS, ndjson_path)
    lines = ndjson_path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["trial"] for line in lines] == [1, 1, 2, 2]
    assert json.loads(lines[1]) == RESULTS[1].to_dict()

    csv_path = tmp_path / "results.csv"
    write_csv(RESULTS, csv_path)
    with csv_path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 4 and rows[1]["pipeline"] == "Call"


def test_format_duration() -> None:
    assert format_duration(0) == "0h 0m"
    assert format_duration(59) == "0h 0m"
    assert format_duration(3725) == "1h 2m"
    assert format_duration(48 * 3600 + 90.7) == "48h 1m"
