import json

import pytest

from climate_controller.config import (
    AppConfig,
    config_from_dict,
    ensure_config,
    load_config,
    save_config,
    update_config,
    validate_config,
)
from climate_controller.models import Mode


def test_save_and_load_roundtrip(tmp_path) -> None:
    path = tmp_path / "config.json"
    config = AppConfig(name="office", climate_type="heat", thermal_lag_tune="auto", thermal_lag_off_minutes=4)
    save_config(config, str(path))

    loaded = load_config(str(path))
    assert loaded.name == "office"
    assert loaded.climate_type == "heat"
    assert loaded.auto_tune is True
    assert loaded.thermal_lag_off_ms == 4 * 60000


def test_ensure_config_writes_defaults(tmp_path) -> None:
    path = tmp_path / "config.json"
    config = ensure_config(str(path))
    assert config == AppConfig()
    assert json.loads(path.read_text())["climate_type"] == "both"


def test_update_config_merges(tmp_path) -> None:
    path = tmp_path / "config.json"
    ensure_config(str(path))

    update_config(str(path), {"default_setpoint": "19.5", "keep_alive_minutes": 10})
    updated = load_config(str(path))
    assert updated.default_setpoint == 19.5
    assert updated.keep_alive_seconds == 600
    assert updated.climate_type == "both"


def test_update_config_rejects_invalid_without_saving(tmp_path) -> None:
    path = tmp_path / "config.json"
    ensure_config(str(path))

    with pytest.raises(ValueError, match="climate_type"):
        update_config(str(path), {"climate_type": "steam"})
    assert load_config(str(path)).climate_type == "both"


def test_config_from_dict_normalizes_case() -> None:
    config = config_from_dict({"climate_type": " Cool ", "degrees": "f", "thermal_lag_tune": "AUTO"})
    assert config.climate_type == "cool"
    assert config.degrees == "F"
    assert config.min_autotune_rate == 0.04
    assert config.default_mode == Mode.COOL


def test_climate_type_capabilities() -> None:
    both = AppConfig(climate_type="both")
    assert both.has_auto_mode and both.default_mode == Mode.AUTO

    heat = AppConfig(climate_type="heat")
    assert heat.has_heating and not heat.has_cooling and not heat.has_auto_mode

    manual = AppConfig(climate_type="manual")
    assert manual.has_heating and manual.has_cooling
    assert not manual.has_setpoint
    assert manual.default_mode == Mode.HEAT


def test_validate_config_accepts_defaults() -> None:
    assert validate_config(AppConfig()) == []


def test_validate_config_flags_temperature_range() -> None:
    errors = validate_config(AppConfig(min_temp=25, max_temp=20))
    assert "min_temp must be less than max_temp" in errors


def test_validate_config_rejects_reserved_default_preset() -> None:
    errors = validate_config(AppConfig(default_preset="boost"))
    assert "default_preset must not be 'boost' or 'away'" in errors


def test_validate_config_rejects_payload_type() -> None:
    errors = validate_config(AppConfig(on_payload_type="xml"))
    assert "on_payload_type must be one of str, num, bool, json" in errors


def test_validate_config_checks_payload_values() -> None:
    errors = validate_config(AppConfig(on_payload="abc", on_payload_type="num"))
    assert "on_payload is not a valid num value" in errors

    errors = validate_config(AppConfig(off_payload="{not json", off_payload_type="json"))
    assert "off_payload is not a valid json value" in errors

    assert validate_config(AppConfig(on_payload="1", on_payload_type="num")) == []
