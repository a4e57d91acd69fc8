"""Configuration helpers for the dispatch comparison simulator."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from dotenv import load_dotenv

from dispatchsim.helper.paths import simulator_root


PACKAGE_ROOT = simulator_root()
DEFAULT_CONFIG_PATHS = [PACKAGE_ROOT / "config.yaml", PACKAGE_ROOT / "config.json"]
MIN_SPEED = 1.0
MAX_SPEED = 1000.0


class ConfigurationError(ValueError):
    """Raised when a configuration value or command argument is invalid."""


@dataclass(frozen=True)
class BoundingBox:
    lat_min: float = 29.5
    lat_max: float = 30.1
    lng_min: float = -95.8
    lng_max: float = -94.9

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.lat_min <= latitude <= self.lat_max
            and self.lng_min <= longitude <= self.lng_max
        )

    def validate(self) -> "BoundingBox":
        if not -90.0 <= self.lat_min < self.lat_max <= 90.0:
            raise ConfigurationError("bounds latitude range is invalid.")
        if not -180.0 <= self.lng_min < self.lng_max <= 180.0:
            raise ConfigurationError("bounds longitude range is invalid.")
        return self


@dataclass(frozen=True)
class CallPipelineConfig:
    operator_count: int = 50
    processing_seconds_min: float = 120.0
    processing_seconds_max: float = 300.0
    hangup_threshold_seconds: float = 300.0
    # Probability per simulated second once a queued call is past the threshold.
    hangup_probability: float = 0.1 / 60

    def validate(self) -> "CallPipelineConfig":
        if self.operator_count <= 0:
            raise ConfigurationError("call.operator_count must be positive.")
        _validate_range(
            self.processing_seconds_min, self.processing_seconds_max, "call.processing"
        )
        if self.hangup_threshold_seconds < 0:
            raise ConfigurationError("call.hangup_threshold_seconds cannot be negative.")
        _validate_probability(self.hangup_probability, "call.hangup_probability")
        return self


@dataclass(frozen=True)
class ReportPipelineConfig:
    processing_seconds_min: float = 30.0
    processing_seconds_max: float = 90.0
    max_range_km: float = 10.0

    def validate(self) -> "ReportPipelineConfig":
        _validate_range(
            self.processing_seconds_min,
            self.processing_seconds_max,
            "report.processing",
        )
        if self.max_range_km <= 0:
            raise ConfigurationError("report.max_range_km must be positive.")
        return self


@dataclass(frozen=True)
class SelfCompletionConfig:
    check_interval_seconds: int = 60
    radius_km: float = 2.0
    probability: float = 0.01

    def validate(self) -> "SelfCompletionConfig":
        if self.check_interval_seconds <= 0:
            raise ConfigurationError(
                "self_completion.check_interval_seconds must be positive."
            )
        if self.radius_km <= 0:
            raise ConfigurationError("self_completion.radius_km must be positive.")
        _validate_probability(self.probability, "self_completion.probability")
        return self


@dataclass(frozen=True)
class SimulationConfig:
    horizon_hours: float = 48.0
    base_incidents: int = 75000
    extra_incidents_min: int = 5000
    extra_incidents_max: int = 15000
    responder_count: int = 100
    cell_size_deg: float = 0.05
    speed_multiplier: float = 100.0
    seed: int | None = None
    bounds: BoundingBox = field(default_factory=BoundingBox)
    call: CallPipelineConfig = field(default_factory=CallPipelineConfig)
    report: ReportPipelineConfig = field(default_factory=ReportPipelineConfig)
    self_completion: SelfCompletionConfig = field(
        default_factory=SelfCompletionConfig
    )

    def validate(self) -> "SimulationConfig":
        if self.horizon_hours <= 0:
            raise ConfigurationError("horizon_hours must be positive.")
        if self.base_incidents < 0:
            raise ConfigurationError("base_incidents cannot be negative.")
        if not 0 <= self.extra_incidents_min <= self.extra_incidents_max:
            raise ConfigurationError(
                "extra_incidents_min must be between 0 and extra_incidents_max."
            )
        if self.base_incidents + self.extra_incidents_max > self.horizon_seconds:
            raise ConfigurationError(
                "At most one incident per simulated second can be generated; "
                "reduce base_incidents/extra_incidents_max or extend horizon_hours."
            )
        if self.responder_count < 0:
            raise ConfigurationError("responder_count cannot be negative.")
        if self.cell_size_deg <= 0:
            raise ConfigurationError("cell_size_deg must be positive.")
        validate_speed(self.speed_multiplier)
        self.bounds.validate()
        self.call.validate()
        self.report.validate()
        self.self_completion.validate()
        return self

    @property
    def horizon_seconds(self) -> int:
        return int(round(self.horizon_hours * 3600))

    def with_horizon(
        self, horizon_hours: float, *, scale_volume: bool = True
    ) -> "SimulationConfig":
        """Return a validated copy running for ``horizon_hours``.

        By default the incident volume is scaled so the per-hour rate stays
        the same; pass ``scale_volume=False`` to keep the absolute counts.
        """
        if isinstance(horizon_hours, bool) or not isinstance(horizon_hours, (int, float)):
            raise ConfigurationError(f"horizon_hours must be a number; got {horizon_hours!r}.")
        if horizon_hours <= 0:
            raise ConfigurationError("horizon_hours must be positive.")
        if not scale_volume:
            return replace(self, horizon_hours=float(horizon_hours)).validate()
        ratio = horizon_hours / self.horizon_hours
        return replace(
            self,
            horizon_hours=float(horizon_hours),
            base_incidents=int(round(self.base_incidents * ratio)),
            extra_incidents_min=int(round(self.extra_incidents_min * ratio)),
            extra_incidents_max=int(round(self.extra_incidents_max * ratio)),
        ).validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "horizon_hours": self.horizon_hours,
            "base_incidents": self.base_incidents,
            "extra_incidents_min": self.extra_incidents_min,
            "extra_incidents_max": self.extra_incidents_max,
            "responder_count": self.responder_count,
            "cell_size_deg": self.cell_size_deg,
            "speed_multiplier": self.speed_multiplier,
            "seed": self.seed,
            "bounds": self.bounds.__dict__,
            "call": self.call.__dict__,
            "report": self.report.__dict__,
            "self_completion": self.self_completion.__dict__,
        }


def validate_speed(value: Any) -> float:
    """Return ``value`` as a float speed multiplier or raise ConfigurationError."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"Speed multiplier must be a number; got {value!r}.")
    speed = float(value)
    if not MIN_SPEED <= speed <= MAX_SPEED:
        raise ConfigurationError(
            f"Speed multiplier must be between {MIN_SPEED:g} and {MAX_SPEED:g}; "
            f"got {speed:g}."
        )
    return speed


def load_simulation_config(
    config_path: Path | None = None,
    overrides: Dict[str, Any] | None = None,
    *,
    use_env: bool = True,
) -> SimulationConfig:
    """Load config from a file/env/overrides, falling back to defaults."""
    data: Dict[str, Any] = {}
    path = config_path or _find_default_config()
    if path:
        if not path.exists():
            raise ConfigurationError(f"Config file {path} does not exist.")
        data.update(_load_file(path))
    if use_env:
        _load_env_file()
        data.update(_env_overrides())
    if overrides:
        data = _merge(data, overrides)

    base = SimulationConfig()
    try:
        cfg = SimulationConfig(
            horizon_hours=float(data.get("horizon_hours", base.horizon_hours)),
            base_incidents=int(data.get("base_incidents", base.base_incidents)),
            extra_incidents_min=int(
                data.get("extra_incidents_min", base.extra_incidents_min)
            ),
            extra_incidents_max=int(
                data.get("extra_incidents_max", base.extra_incidents_max)
            ),
            responder_count=int(data.get("responder_count", base.responder_count)),
            cell_size_deg=float(data.get("cell_size_deg", base.cell_size_deg)),
            speed_multiplier=float(
                data.get("speed_multiplier", base.speed_multiplier)
            ),
            seed=_maybe_int(data.get("seed")),
            bounds=_build_section(BoundingBox(), data.get("bounds")),
            call=_build_section(CallPipelineConfig(), data.get("call")),
            report=_build_section(ReportPipelineConfig(), data.get("report")),
            self_completion=_build_section(
                SelfCompletionConfig(), data.get("self_completion")
            ),
        )
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration value: {exc}") from exc
    return cfg.validate()


def _find_default_config() -> Path | None:
    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            return path
    return None


def _load_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() in {".yml", ".yaml"}:
            payload = yaml.safe_load(handle) or {}
        else:
            payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping.")
    return payload


def _load_env_file() -> None:
    """Load the nearest .env file so SIM_* overrides are sourced early."""
    file_path = Path(__file__).resolve()
    for directory in (file_path,) + tuple(file_path.parents):
        env_path = directory / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)
            return
    load_dotenv(override=False)


def _env_overrides() -> Dict[str, Any]:
    mapping = {
        "SIM_HORIZON_HOURS": "horizon_hours",
        "SIM_BASE_INCIDENTS": "base_incidents",
        "SIM_RESPONDER_COUNT": "responder_count",
        "SIM_SPEED_MULTIPLIER": "speed_multiplier",
        "SIM_SEED": "seed",
    }
    data: Dict[str, Any] = {}
    for env_key, config_key in mapping.items():
        raw = os.getenv(env_key)
        if raw:
            data[config_key] = raw
    return data


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _build_section(base: Any, data: Mapping[str, Any] | None) -> Any:
    if not data:
        return base
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            f"Section {type(base).__name__} must be a mapping; got {data!r}."
        )
    known = set(base.__dict__)
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {type(base).__name__} keys: {', '.join(sorted(unknown))}."
        )
    values = {
        key: type(getattr(base, key))(value) for key, value in data.items()
    }
    return replace(base, **values)


def _maybe_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _validate_range(low: float, high: float, name: str) -> None:
    if low < 0 or high < low:
        raise ConfigurationError(f"{name} range must satisfy 0 <= min <= max.")


def _validate_probability(value: float, name: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be between 0 and 1; got {value}.")


__all__ = [
    "BoundingBox",
    "CallPipelineConfig",
    "ConfigurationError",
    "ReportPipelineConfig",
    "SelfCompletionConfig",
    "SimulationConfig",
    "load_simulation_config",
    "validate_speed",
]
