from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Sequence

from dispatchsim.helper.paths import results_root
from dispatchsim.simulator.config import (
    ConfigurationError,
    SimulationConfig,
    load_simulation_config,
)
from dispatchsim.simulator.exporter import (
    format_duration,
    summarize_results,
    write_csv,
    write_json_log,
    write_ndjson_log,
)
from dispatchsim.simulator.metrics import SimulationResult
from dispatchsim.simulator.simulator import SimulationRunner

LOGGER = logging.getLogger("run_trials")
DEFAULT_OUTPUT = results_root() / "trial_results.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run call vs. report dispatch trials and report the results."
    )
    parser.add_argument("--config", type=Path, help="Path to config YAML/JSON file.")
    parser.add_argument(
        "--trials",
        type=int,
        default=1,
        help="Number of consecutive trials to run (default: 1).",
    )
    parser.add_argument("--seed", type=int, help="RNG seed for the whole session.")
    parser.add_argument(
        "--hours",
        type=float,
        help="Simulated horizon per trial; incident volume is scaled to keep the "
        "hourly rate unless a volume flag is given.",
    )
    parser.add_argument("--base-incidents", type=int, help="Base incidents per trial.")
    parser.add_argument("--extra-min", type=int, help="Minimum extra incidents per trial.")
    parser.add_argument("--extra-max", type=int, help="Maximum extra incidents per trial.")
    parser.add_argument(
        "--speed",
        type=float,
        help="Speed multiplier (1-1000); only affects pacing with --realtime.",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Pace the simulation against the wall clock instead of running flat out.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help=f"JSON output path (default: {DEFAULT_OUTPUT}).",
    )
    parser.add_argument(
        "--ndjson",
        action="store_true",
        help="Also emit newline-delimited JSON alongside the structured file.",
    )
    parser.add_argument(
        "--csv",
        action="store_true",
        help="Also emit a CSV of the result rows.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags onto config keys; the horizon is applied separately."""
    flags = {
        "base_incidents": args.base_incidents,
        "extra_incidents_min": args.extra_min,
        "extra_incidents_max": args.extra_max,
        "speed_multiplier": args.speed,
        "seed": args.seed,
    }
    return {key: value for key, value in flags.items() if value is not None}


def has_volume_flags(args: argparse.Namespace) -> bool:
    return any(
        value is not None for value in (args.base_incidents, args.extra_min, args.extra_max)
    )


def load_config(args: argparse.Namespace) -> SimulationConfig:
    overrides = build_overrides(args)
    if args.hours is None:
        return load_simulation_config(args.config, overrides)
    if has_volume_flags(args):
        overrides["horizon_hours"] = args.hours
        return load_simulation_config(args.config, overrides)
    return load_simulation_config(args.config, overrides).with_horizon(args.hours)


def format_table(results: Sequence[SimulationResult]) -> str:
    header = (
        f"{'Trial':>5}  {'Type':<6}  {'Avg Time':>9}  {'Total Time':>11}  "
        f"{'Self':>6}  {'Canceled':>8}  {'Completed':>9}"
    )
    lines = [header, "-" * len(header)]
    for row in results:
        lines.append(
            f"{row.trial:>5}  {row.pipeline:<6}  "
            f"{format_duration(row.avg_time_per_emergency):>9}  "
            f"{format_duration(row.total_time_spent):>11}  "
            f"{row.self_completed:>6}  {row.canceled:>8}  {row.total_completed:>9}"
        )
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    if args.trials <= 0:
        parser.error("--trials must be positive.")
    try:
        config = load_config(args)
    except ConfigurationError as exc:
        parser.error(str(exc))
    runner = SimulationRunner(config, realtime=args.realtime)
    results = runner.run_trials(args.trials)

    print(format_table(results))
    summary = write_json_log(results, config, args.output)
    LOGGER.info("Wrote %s result rows to %s", summary["rows"], args.output)
    if args.ndjson:
        ndjson_path = args.output.with_suffix(".ndjson")
        write_ndjson_log(results, ndjson_path)
        LOGGER.info("Wrote NDJSON to %s", ndjson_path)
    if args.csv:
        csv_path = args.output.with_suffix(".csv")
        write_csv(results, csv_path)
        LOGGER.info("Wrote CSV to %s", csv_path)
    LOGGER.info("Per-pipeline averages:\n%s", summarize_results(results).to_string(index=False))


if __name__ == "__main__":
    main()
