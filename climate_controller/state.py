import math
from typing import Any, Optional

from .config import PRESET_AWAY, PRESET_BOOST, PRESET_NONE, AppConfig
from .models import Action, Mode
from .store import KeyValueStore

_ON_VALUES = ("on", "1", "true")
_OFF_VALUES = ("off", "0", "false")


def is_on(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _ON_VALUES


def is_off(value: Any) -> bool:
    if isinstance(value, bool):
        return not value
    return str(value).strip().lower() in _OFF_VALUES


class DeviceState:
    """Persisted inputs of one device, normalized on the way in and out.

    Invalid values are ignored rather than raised, so the decision logic
    only ever sees a known mode, a clamped setpoint and a numeric
    temperature.
    """

    def __init__(self, store: KeyValueStore, config: AppConfig) -> None:
        self._store = store
        self._config = config

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def mode(self) -> Mode:
        value = self._store.get("mode")
        if value is None or not self.valid_mode(value):
            return Mode.OFF
        return Mode(value)

    def set_mode(self, value: Any) -> None:
        if value is None:
            return
        normalized = str(value).strip().lower()
        if is_on(normalized):
            self._store.set("mode", self._config.default_mode.value)
        elif is_off(normalized):
            self._store.set("mode", Mode.OFF.value)
        elif self.valid_mode(normalized):
            self._store.set("mode", normalized)

    def valid_mode(self, value: Any) -> bool:
        config = self._config
        return (
            value == Mode.OFF.value
            or (value == Mode.AUTO.value and config.has_auto_mode)
            or (value == Mode.COOL.value and config.has_cooling)
            or (value == Mode.HEAT.value and config.has_heating)
        )

    def preset(self) -> str:
        value = self._store.get("preset")
        default = self._config.default_preset
        if value not in (default, PRESET_BOOST, PRESET_AWAY, PRESET_NONE):
            return default
        return value

    def preset_expiry(self) -> Optional[float]:
        value = self._store.get("preset_expiry")
        if value in (None, ""):
            return None
        return float(value)

    def set_preset(self, value: Any, now: float) -> None:
        if value is None:
            return
        normalized = str(value).strip().lower()
        before = self.preset()
        if normalized == self._config.default_preset or is_off(normalized):
            self._store.set("preset", self._config.default_preset)
            self._store.set("preset_expiry", None)
        elif normalized == PRESET_BOOST:
            self._store.set("preset", PRESET_BOOST)
            if before != PRESET_BOOST:
                self._store.set("preset_expiry", now + self._config.boost_duration_minutes * 60)
        elif normalized == PRESET_AWAY:
            self._store.set("preset", PRESET_AWAY)
            self._store.set("preset_expiry", None)

    def setpoint(self) -> float:
        value = self._store.get("setpoint")
        if value is None:
            return self._config.default_setpoint
        return float(value)

    def set_setpoint(self, value: Any) -> None:
        if value in (None, "") or not self._config.has_setpoint:
            return
        parsed = parse_float(value)
        if parsed is None:
            return
        parsed = min(max(parsed, self._config.min_temp), self._config.max_temp)
        self._store.set("setpoint", parsed)

    def temperature(self) -> Optional[float]:
        value = self._store.get("temp")
        if value is None:
            return None
        return float(value)

    def temperature_timestamp(self) -> Optional[float]:
        value = self._store.get("temp_time")
        if value in (None, ""):
            return None
        return float(value)

    def set_temperature(self, value: Any, now: float) -> None:
        if value is None or not self._config.has_setpoint:
            return
        parsed = parse_float(value)
        if parsed is None:
            return
        self._store.set("temp", parsed)
        self._store.set("temp_time", now)

    def action(self) -> Optional[Action]:
        value = self._store.get("action")
        try:
            return Action(value) if value is not None else None
        except ValueError:
            return None

    def set_action(self, action: Action) -> None:
        self._store.set("action", action.value)


def parse_float(value: Any) -> Optional[float]:
    """Parse a numeric input, returning None for anything that is not a finite number."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    return parsed
