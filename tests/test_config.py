import json

import pytest

from dispatchsim.simulator.config import (
    CallPipelineConfig,
    ConfigurationError,
    SimulationConfig,
    load_simulation_config,
    validate_speed,
)


def test_defaults_validate() -> None:
    config = SimulationConfig().validate()
    assert config.horizon_seconds == 48 * 3600
    assert config.call.operator_count == 50
    assert config.responder_count == 100


def test_packaged_yaml_matches_defaults() -> None:
    assert load_simulation_config(use_env=False) == SimulationConfig()


def test_yaml_file_and_overrides_merge(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "horizon_hours: 2\n"
        "base_incidents: 100\n"
        "extra_incidents_min: 0\n"
        "extra_incidents_max: 10\n"
        "call:\n"
        "  operator_count: 4\n"
        "  hangup_probability: 0.5\n",
        encoding="utf-8",
    )
    config = load_simulation_config(
        path, {"call": {"operator_count": 2}, "seed": 9}, use_env=False
    )
    assert config.horizon_hours == 2.0
    assert config.call.operator_count == 2
    assert config.call.hangup_probability == 0.5
    assert config.call.processing_seconds_min == 120.0
    assert config.seed == 9


def test_json_file_is_supported(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"responder_count": 12}), encoding="utf-8")
    assert load_simulation_config(path, use_env=False).responder_count == 12


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("SIM_SEED", "1234")
    monkeypatch.setenv("SIM_RESPONDER_COUNT", "5")
    config = load_simulation_config(path)
    assert config.seed == 1234
    assert config.responder_count == 5


@pytest.mark.parametrize(
    "overrides",
    [
        {"horizon_hours": 0},
        {"call": {"operator_count": 0}},
        {"call": {"hangup_probability": 1.5}},
        {"report": {"max_range_km": -1}},
        {"extra_incidents_min": 10, "extra_incidents_max": 5},
        {"base_incidents": 200000},
        {"speed_multiplier": 0},
        {"call": {"unknown_knob": 1}},
        {"responder_count": "many"},
    ],
)
def test_invalid_values_raise_configuration_error(tmp_path, overrides) -> None:
    path = tmp_path / "config.json"
    path.write_text("{}", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_simulation_config(path, overrides, use_env=False)


def test_missing_config_file_is_reported(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_simulation_config(tmp_path / "absent.yaml", use_env=False)


def test_nested_dataclass_validation() -> None:
    with pytest.raises(ConfigurationError):
        CallPipelineConfig(processing_seconds_min=10, processing_seconds_max=5).validate()


@pytest.mark.parametrize("value", [0, -5, 1000.5, "fast", None, True])
def test_validate_speed_rejects_bad_values(value) -> None:
    with pytest.raises(ConfigurationError):
        validate_speed(value)


def test_validate_speed_accepts_bounds() -> None:
    assert validate_speed(1) == 1.0
    assert validate_speed(1000) == 1000.0


def test_with_horizon_keeps_the_hourly_rate() -> None:
    config = SimulationConfig().with_horizon(2)
    assert config.horizon_hours == 2.0
    assert config.base_incidents == 3125
    assert (config.extra_incidents_min, config.extra_incidents_max) == (208, 625)
    assert config.call == SimulationConfig().call


def test_with_horizon_can_keep_absolute_volume() -> None:
    base = SimulationConfig(base_incidents=100, extra_incidents_min=0, extra_incidents_max=10)
    config = base.with_horizon(0.5, scale_volume=False)
    assert (config.horizon_seconds, config.base_incidents) == (1800, 100)
    with pytest.raises(ConfigurationError):
        SimulationConfig().with_horizon(2, scale_volume=False)


@pytest.mark.parametrize("hours", [0, -1, "two", None])
def test_with_horizon_rejects_bad_hours(hours) -> None:
    with pytest.raises(ConfigurationError):
        SimulationConfig().with_horizon(hours)
