import json
from dataclasses import asdict, dataclass
from typing import Any, Dict

from .models import ClimateType, Mode

DEFAULT_CONFIG_PATH = "config.json"

PRESET_NONE = "none"
PRESET_BOOST = "boost"
PRESET_AWAY = "away"

PAYLOAD_TYPES = ("str", "num", "bool", "json")
TUNE_MODES = ("static", "auto")

MIN_AUTOTUNE_RATE = {
    "C": 0.02,
    "F": 0.04,
}


@dataclass
class AppConfig:
    name: str = "climate"
    climate_type: str = "both"
    degrees: str = "C"
    default_setpoint: float = 21.0
    tolerance: float = 0.5
    min_temp: float = 7.0
    max_temp: float = 30.0
    temp_valid_minutes: float = 30.0
    swap_delay_minutes: float = 5.0
    cycle_delay_seconds: float = 60.0
    keep_alive_minutes: float = 0.0
    boost_duration_minutes: float = 30.0
    default_preset: str = PRESET_NONE
    thermal_lag_tune: str = "static"
    thermal_lag_off_minutes: float = 0.0
    thermal_lag_on_minutes: float = 0.0
    on_payload: str = "ON"
    on_payload_type: str = "str"
    off_payload: str = "OFF"
    off_payload_type: str = "str"
    output_base_url: str = ""
    heating_path: str = "/heating"
    cooling_path: str = "/cooling"
    timeout_seconds: int = 10
    state_path: str = "state.json"
    bind_host: str = "0.0.0.0"
    bind_port: int = 8000

    @property
    def has_heating(self) -> bool:
        return self.climate_type in (ClimateType.BOTH.value, ClimateType.HEAT.value, ClimateType.MANUAL.value)

    @property
    def has_cooling(self) -> bool:
        return self.climate_type in (ClimateType.BOTH.value, ClimateType.COOL.value, ClimateType.MANUAL.value)

    @property
    def has_setpoint(self) -> bool:
        return self.climate_type != ClimateType.MANUAL.value

    @property
    def has_auto_mode(self) -> bool:
        return self.has_setpoint and self.has_heating and self.has_cooling

    @property
    def default_mode(self) -> Mode:
        if self.climate_type == ClimateType.BOTH.value:
            return Mode.AUTO
        if self.climate_type == ClimateType.COOL.value:
            return Mode.COOL
        return Mode.HEAT

    @property
    def auto_tune(self) -> bool:
        return self.thermal_lag_tune == "auto"

    @property
    def min_autotune_rate(self) -> float:
        return MIN_AUTOTUNE_RATE.get(self.degrees, MIN_AUTOTUNE_RATE["C"])

    @property
    def temp_valid_seconds(self) -> float:
        return self.temp_valid_minutes * 60

    @property
    def swap_delay_seconds(self) -> float:
        return self.swap_delay_minutes * 60

    @property
    def keep_alive_seconds(self) -> float:
        return self.keep_alive_minutes * 60

    @property
    def thermal_lag_off_ms(self) -> float:
        return self.thermal_lag_off_minutes * 60000

    @property
    def thermal_lag_on_ms(self) -> float:
        return self.thermal_lag_on_minutes * 60000

    def is_output_configured(self) -> bool:
        return bool(self.output_base_url)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: str) -> AppConfig:
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    return config_from_dict(data)


def save_config(config: AppConfig, path: str) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(config.to_dict(), handle, indent=2, sort_keys=True)
        handle.write("\n")


def ensure_config(path: str) -> AppConfig:
    try:
        return load_config(path)
    except FileNotFoundError:
        config = AppConfig()
        save_config(config, path)
        return config


def config_from_dict(data: Dict[str, Any]) -> AppConfig:
    defaults = AppConfig()
    default_preset = _coerce_lower(data.get("default_preset"), default=defaults.default_preset)
    return AppConfig(
        name=_coerce_str(data.get("name"), default=defaults.name),
        climate_type=_coerce_lower(data.get("climate_type"), default=defaults.climate_type),
        degrees=_coerce_str(data.get("degrees"), default=defaults.degrees).strip().upper(),
        default_setpoint=_coerce_float(data.get("default_setpoint"), default=defaults.default_setpoint),
        tolerance=_coerce_float(data.get("tolerance"), default=defaults.tolerance),
        min_temp=_coerce_float(data.get("min_temp"), default=defaults.min_temp),
        max_temp=_coerce_float(data.get("max_temp"), default=defaults.max_temp),
        temp_valid_minutes=_coerce_float(data.get("temp_valid_minutes"), default=defaults.temp_valid_minutes),
        swap_delay_minutes=_coerce_float(data.get("swap_delay_minutes"), default=defaults.swap_delay_minutes),
        cycle_delay_seconds=_coerce_float(data.get("cycle_delay_seconds"), default=defaults.cycle_delay_seconds),
        keep_alive_minutes=_coerce_float(data.get("keep_alive_minutes"), default=defaults.keep_alive_minutes),
        boost_duration_minutes=_coerce_float(
            data.get("boost_duration_minutes"), default=defaults.boost_duration_minutes
        ),
        default_preset=default_preset or PRESET_NONE,
        thermal_lag_tune=_coerce_lower(data.get("thermal_lag_tune"), default=defaults.thermal_lag_tune),
        thermal_lag_off_minutes=_coerce_float(
            data.get("thermal_lag_off_minutes"), default=defaults.thermal_lag_off_minutes
        ),
        thermal_lag_on_minutes=_coerce_float(
            data.get("thermal_lag_on_minutes"), default=defaults.thermal_lag_on_minutes
        ),
        on_payload=_coerce_str(data.get("on_payload"), default=defaults.on_payload),
        on_payload_type=_coerce_lower(data.get("on_payload_type"), default=defaults.on_payload_type),
        off_payload=_coerce_str(data.get("off_payload"), default=defaults.off_payload),
        off_payload_type=_coerce_lower(data.get("off_payload_type"), default=defaults.off_payload_type),
        output_base_url=_coerce_str(data.get("output_base_url")),
        heating_path=_coerce_str(data.get("heating_path"), default=defaults.heating_path),
        cooling_path=_coerce_str(data.get("cooling_path"), default=defaults.cooling_path),
        timeout_seconds=_coerce_int(data.get("timeout_seconds"), default=defaults.timeout_seconds),
        state_path=_coerce_str(data.get("state_path"), default=defaults.state_path),
        bind_host=_coerce_str(data.get("bind_host"), default=defaults.bind_host),
        bind_port=_coerce_int(data.get("bind_port"), default=defaults.bind_port),
    )


def validate_config(config: AppConfig) -> list[str]:
    errors = []
    if config.climate_type not in [item.value for item in ClimateType]:
        errors.append("climate_type must be 'both', 'heat', 'cool' or 'manual'")
    if config.degrees not in MIN_AUTOTUNE_RATE:
        errors.append("degrees must be 'C' or 'F'")
    if config.thermal_lag_tune not in TUNE_MODES:
        errors.append("thermal_lag_tune must be 'static' or 'auto'")
    if config.on_payload_type not in PAYLOAD_TYPES:
        errors.append("on_payload_type must be one of str, num, bool, json")
    if config.off_payload_type not in PAYLOAD_TYPES:
        errors.append("off_payload_type must be one of str, num, bool, json")
    for label, value, payload_type in (
        ("on_payload", config.on_payload, config.on_payload_type),
        ("off_payload", config.off_payload, config.off_payload_type),
    ):
        if value and not _payload_parses(value, payload_type):
            errors.append("{0} is not a valid {1} value".format(label, payload_type))
    if config.min_temp >= config.max_temp:
        errors.append("min_temp must be less than max_temp")
    if config.tolerance < 0:
        errors.append("tolerance must not be negative")
    if config.temp_valid_minutes <= 0:
        errors.append("temp_valid_minutes must be positive")
    if config.swap_delay_minutes < 0:
        errors.append("swap_delay_minutes must not be negative")
    if config.cycle_delay_seconds < 0:
        errors.append("cycle_delay_seconds must not be negative")
    if config.keep_alive_minutes < 0:
        errors.append("keep_alive_minutes must not be negative")
    if config.boost_duration_minutes <= 0:
        errors.append("boost_duration_minutes must be positive")
    if config.thermal_lag_off_minutes < 0 or config.thermal_lag_on_minutes < 0:
        errors.append("thermal lag minutes must not be negative")
    if config.default_preset in (PRESET_BOOST, PRESET_AWAY):
        errors.append("default_preset must not be 'boost' or 'away'")
    if config.bind_port <= 0:
        errors.append("bind_port must be positive")
    return errors


def update_config(path: str, updates: Dict[str, Any]) -> AppConfig:
    config = ensure_config(path)
    data = config.to_dict()
    data.update(updates)
    updated = config_from_dict(data)
    errors = validate_config(updated)
    if errors:
        raise ValueError("; ".join(errors))
    save_config(updated, path)
    return updated


def _coerce_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _coerce_lower(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    return str(value).strip().lower()


def _coerce_int(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    return int(value)


def _coerce_float(value: Any, default: float) -> float:
    if value in (None, ""):
        return float(default)
    return float(value)


def _payload_parses(value: str, payload_type: str) -> bool:
    try:
        if payload_type == "json":
            json.loads(value)
        elif payload_type == "num":
            float(value)
    except ValueError:
        return False
    return True
