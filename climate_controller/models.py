from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

LAG_HISTORY_SIZE = 5
LAG_SCHEMA_VERSION = 1


class Action(str, Enum):
    IDLE = "idle"
    OFF = "off"
    HEATING = "heating"
    COOLING = "cooling"


class Mode(str, Enum):
    OFF = "off"
    AUTO = "auto"
    HEAT = "heat"
    COOL = "cool"


class ClimateType(str, Enum):
    BOTH = "both"
    HEAT = "heat"
    COOL = "cool"
    MANUAL = "manual"


class Side(str, Enum):
    HEATING = "heating"
    COOLING = "cooling"


class Direction(str, Enum):
    TURN_OFF = "off"
    TURN_ON = "on"


class CycleType(str, Enum):
    HEATING_OFF = "heating"
    COOLING_OFF = "cooling"
    HEATING_ON_FROM_AMBIENT_COOL = "ambient-cool"
    COOLING_ON_FROM_AMBIENT_HEAT = "ambient-heat"

    @property
    def side(self) -> Side:
        if self in (CycleType.HEATING_OFF, CycleType.HEATING_ON_FROM_AMBIENT_COOL):
            return Side.HEATING
        return Side.COOLING

    @property
    def direction(self) -> Direction:
        if self in (CycleType.HEATING_OFF, CycleType.COOLING_OFF):
            return Direction.TURN_OFF
        return Direction.TURN_ON


@dataclass
class ClimateTick:
    mode: Mode
    preset: str
    setpoint: float
    temperature: Optional[float]
    temperature_timestamp: Optional[float]
    tolerance: float
    action: Action = Action.OFF
    changed: bool = False
    pending: bool = False
    keep_alive: bool = False
    retry_after: Optional[float] = None

    @property
    def should_send(self) -> bool:
        return not self.pending and (self.changed or self.keep_alive)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "preset": self.preset,
            "setpoint": self.setpoint,
            "temp": self.temperature,
            "temp_time": self.temperature_timestamp,
            "tolerance": self.tolerance,
            "action": self.action.value,
            "changed": self.changed,
            "pending": self.pending,
            "keep_alive": self.keep_alive,
        }


@dataclass(frozen=True)
class RateSample:
    temperature: float
    time: float


@dataclass
class CycleObservation:
    cycle_type: CycleType
    stop_rate: float
    stop_time: float
    peak_temperature: float


@dataclass
class LagObservationSet:
    cycles: int = 0
    lags: List[float] = field(default_factory=list)
    min: Optional[float] = None
    max: Optional[float] = None

    def add(self, lag: float) -> None:
        self.lags.append(lag)
        if len(self.lags) > LAG_HISTORY_SIZE:
            del self.lags[: len(self.lags) - LAG_HISTORY_SIZE]
        self.cycles += 1
        self.min = lag if self.min is None else min(self.min, lag)
        self.max = lag if self.max is None else max(self.max, lag)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycles": self.cycles,
            "lags": list(self.lags),
            "min": self.min,
            "max": self.max,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "LagObservationSet":
        if not isinstance(data, dict):
            return cls()
        try:
            cycles = max(0, int(data.get("cycles") or 0))
            lags = [float(value) for value in data.get("lags") or []]
        except (TypeError, ValueError):
            return cls()
        return cls(
            cycles=cycles,
            lags=lags[-LAG_HISTORY_SIZE:],
            min=_optional_float(data.get("min")),
            max=_optional_float(data.get("max")),
        )


@dataclass
class SideLagRecord:
    """Learned lag data for one side of the equipment, as persisted."""

    off: LagObservationSet = field(default_factory=LagObservationSet)
    on: LagObservationSet = field(default_factory=LagObservationSet)

    def get(self, direction: Direction) -> LagObservationSet:
        return self.off if direction == Direction.TURN_OFF else self.on

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": LAG_SCHEMA_VERSION,
            "off": self.off.to_dict(),
            "on": self.on.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SideLagRecord":
        if not isinstance(data, dict):
            return cls()
        version = data.get("version", LAG_SCHEMA_VERSION)
        if version != LAG_SCHEMA_VERSION:
            return cls()
        return cls(
            off=LagObservationSet.from_dict(data.get("off")),
            on=LagObservationSet.from_dict(data.get("on")),
        )


def _optional_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
