import logging
from typing import Optional

from .autotune import AutoTuneLearner
from .models import Action, CycleObservation, CycleType

logger = logging.getLogger(__name__)

OFF_CYCLE_TIMEOUT_SECONDS = 20 * 60
ON_CYCLE_TIMEOUT_SECONDS = 10 * 60


class CycleTracker:
    """Follows the temperature after an action change until it peaks.

    Only one cycle is tracked at a time. A new qualifying action change
    replaces any cycle still in flight.
    """

    def __init__(self, learner: AutoTuneLearner) -> None:
        self.learner = learner
        self._cycle: Optional[CycleObservation] = None

    @property
    def cycle(self) -> Optional[CycleObservation]:
        return self._cycle

    @property
    def state(self) -> str:
        if self._cycle is None:
            return "idle"
        return "tracking-{0}".format(self._cycle.cycle_type.value)

    def record_action_change(
        self,
        last_action: Optional[Action],
        new_action: Action,
        temperature: Optional[float],
        rate: float,
        now: float,
    ) -> None:
        if temperature is None:
            return

        cycle_type = _cycle_type_for(last_action, new_action, rate)
        if cycle_type is None:
            return

        if self._cycle is not None:
            logger.debug("Discarding unfinished %s cycle", self._cycle.cycle_type.value)
        self._cycle = CycleObservation(
            cycle_type=cycle_type,
            stop_rate=rate,
            stop_time=now,
            peak_temperature=temperature,
        )

    def track(
        self,
        temperature: float,
        setpoint: float,
        tolerance: float,
        rate: float,
        now: float,
    ) -> None:
        cycle = self._cycle
        if cycle is None:
            return

        elapsed = now - cycle.stop_time
        if cycle.cycle_type in (CycleType.HEATING_OFF, CycleType.COOLING_ON_FROM_AMBIENT_HEAT):
            cycle.peak_temperature = max(cycle.peak_temperature, temperature)
            finished = rate < 0
        else:
            cycle.peak_temperature = min(cycle.peak_temperature, temperature)
            finished = rate > 0

        if cycle.cycle_type in (CycleType.HEATING_OFF, CycleType.COOLING_OFF):
            timeout = OFF_CYCLE_TIMEOUT_SECONDS
        else:
            timeout = ON_CYCLE_TIMEOUT_SECONDS

        if finished or elapsed >= timeout:
            self._cycle = None
            self.learner.observe(
                cycle.cycle_type,
                cycle.stop_rate,
                cycle.peak_temperature,
                setpoint,
                tolerance=tolerance,
            )

    def reset(self) -> None:
        self._cycle = None


def _cycle_type_for(last_action: Optional[Action], new_action: Action, rate: float) -> Optional[CycleType]:
    if last_action == Action.HEATING and new_action != Action.HEATING:
        return CycleType.HEATING_OFF
    if last_action == Action.COOLING and new_action != Action.COOLING:
        return CycleType.COOLING_OFF
    if new_action == Action.HEATING and rate < 0:
        return CycleType.HEATING_ON_FROM_AMBIENT_COOL
    if new_action == Action.COOLING and rate > 0:
        return CycleType.COOLING_ON_FROM_AMBIENT_HEAT
    return None
