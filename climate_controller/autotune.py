import logging
from typing import Any, Dict, Optional, Sequence

from .models import CycleType, Direction, LagObservationSet, Side, SideLagRecord
from .store import KeyValueStore

logger = logging.getLogger(__name__)

STORE_KEYS = {
    Side.HEATING: "autotune_heating",
    Side.COOLING: "autotune_cooling",
}

DEFAULT_MIN_CYCLES = 3
OFF_LAG_RANGE_MINUTES = (1.0, 30.0)
ON_LAG_RANGE_MINUTES = (0.0, 10.0)


def median(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def ideal_lag_minutes(
    cycle_type: CycleType,
    stop_rate: float,
    peak_temperature: float,
    setpoint: float,
    tolerance: float = 0.0,
) -> tuple[float, float]:
    """Return (delta, ideal lag in minutes) for a finished cycle, before clamping.

    The delta is the overshoot or undershoot past the point where the
    equipment should have been switched.
    """
    abs_rate = abs(stop_rate)
    if cycle_type == CycleType.HEATING_OFF:
        delta = peak_temperature - setpoint
        return delta, delta / stop_rate
    if cycle_type == CycleType.COOLING_OFF:
        delta = setpoint - peak_temperature
        return delta, delta / abs_rate
    if cycle_type == CycleType.HEATING_ON_FROM_AMBIENT_COOL:
        delta = (setpoint - tolerance) - peak_temperature
        return delta, delta / abs_rate
    delta = peak_temperature - (setpoint + tolerance)
    return delta, delta / abs_rate


def clamp_lag(cycle_type: CycleType, lag_minutes: float) -> float:
    low, high = OFF_LAG_RANGE_MINUTES if cycle_type.direction == Direction.TURN_OFF else ON_LAG_RANGE_MINUTES
    return max(low, min(high, lag_minutes))


class AutoTuneLearner:
    """Learns thermal lag per side and direction from observed cycles.

    Each of the four observation sets keeps the last few clamped ideal lags;
    the effective lag is their median once enough cycles have been seen.
    """

    def __init__(
        self,
        store: KeyValueStore,
        enabled: bool = True,
        min_rate: float = 0.02,
        degrees: str = "C",
    ) -> None:
        self._store = store
        self._enabled = enabled
        self._min_rate = min_rate
        self._degrees = degrees

    @property
    def enabled(self) -> bool:
        return self._enabled

    def load(self, side: Side) -> SideLagRecord:
        return SideLagRecord.from_dict(self._store.get(STORE_KEYS[side]))

    def observation_set(self, direction: Direction, side: Side) -> LagObservationSet:
        return self.load(side).get(direction)

    def observe(
        self,
        cycle_type: CycleType,
        stop_rate: float,
        peak_temperature: float,
        setpoint: float,
        tolerance: float = 0.0,
    ) -> None:
        if not self._enabled:
            return

        abs_rate = abs(stop_rate)
        if abs_rate < self._min_rate:
            logger.debug(
                "Auto-tune skipped: rate too low (%.3f°%s/min) - need longer %s cycle",
                abs_rate,
                self._degrees,
                cycle_type.value,
            )
            return

        delta, ideal = ideal_lag_minutes(cycle_type, stop_rate, peak_temperature, setpoint, tolerance)
        lag = clamp_lag(cycle_type, ideal)

        record = self.load(cycle_type.side)
        data = record.get(cycle_type.direction)
        data.add(lag)
        self._store.set(STORE_KEYS[cycle_type.side], record.to_dict())

        logger.info(
            "Auto-tune %s-%s cycle %d: %s=%.2f°%s, rate=%.3f°%s/min, ideal=%.1fmin, median=%.1fmin [%s]",
            cycle_type.side.value,
            cycle_type.direction.value,
            data.cycles,
            "overshoot" if cycle_type in (CycleType.HEATING_OFF, CycleType.COOLING_ON_FROM_AMBIENT_HEAT) else "undershoot",
            delta,
            self._degrees,
            abs_rate,
            self._degrees,
            ideal,
            median(data.lags),
            ", ".join("{0:.1f}".format(value) for value in data.lags),
        )

    def effective_lag(
        self,
        direction: Direction,
        side: Side,
        static_fallback: float,
        min_cycles: int = DEFAULT_MIN_CYCLES,
    ) -> float:
        """Effective lag in milliseconds, or the static fallback until warmed up."""
        if not self._enabled:
            return static_fallback
        data = self.observation_set(direction, side)
        if data.cycles < min_cycles or not data.lags:
            return static_fallback
        value = median(data.lags)
        if value is None:
            return static_fallback
        return value * 60000

    def summary(self) -> Dict[str, Dict[str, Any]]:
        result: Dict[str, Dict[str, Any]] = {}
        for side in Side:
            record = self.load(side)
            result[side.value] = {
                "off": record.off.to_dict(),
                "on": record.on.to_dict(),
            }
        return result
