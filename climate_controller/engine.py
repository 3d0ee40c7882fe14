import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .autotune import AutoTuneLearner
from .config import PRESET_AWAY, PRESET_BOOST, AppConfig
from .cycles import CycleTracker
from .models import Action, ClimateTick, Direction, Mode, Side
from .rate import RateEstimator

logger = logging.getLogger(__name__)


@dataclass
class ControllerState:
    last_action: Optional[Action] = None
    last_change: Optional[float] = None
    last_heat_time: Optional[float] = None
    last_cool_time: Optional[float] = None
    last_send: Optional[float] = None
    rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_action": self.last_action.value if self.last_action else None,
            "last_change": self.last_change,
            "last_heat_time": self.last_heat_time,
            "last_cool_time": self.last_cool_time,
            "last_send": self.last_send,
            "rate": self.rate,
        }


def predict_temperature(temperature: float, rate: float, lag_ms: float) -> float:
    if rate == 0 or lag_ms <= 0:
        return temperature
    return temperature + rate * (lag_ms / 60000)


class ClimateEngine:
    """Decides heating, cooling or off for one device on every tick."""

    def __init__(
        self,
        config: AppConfig,
        learner: AutoTuneLearner,
        rate_estimator: Optional[RateEstimator] = None,
        tracker: Optional[CycleTracker] = None,
        state: Optional[ControllerState] = None,
    ) -> None:
        self._config = config
        self._learner = learner
        self._rate_estimator = rate_estimator or RateEstimator()
        self._tracker = tracker or CycleTracker(learner)
        self.state = state or ControllerState()

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def learner(self) -> AutoTuneLearner:
        return self._learner

    @property
    def tracker(self) -> CycleTracker:
        return self._tracker

    @property
    def rate_estimator(self) -> RateEstimator:
        return self._rate_estimator

    def reconfigure(self, config: AppConfig, learner: AutoTuneLearner) -> None:
        self._config = config
        self._learner = learner
        self._tracker.learner = learner

    def effective_lag(self, direction: Direction, side: Side) -> float:
        if direction == Direction.TURN_OFF:
            fallback = self._config.thermal_lag_off_ms
        else:
            fallback = self._config.thermal_lag_on_ms
        return self._learner.effective_lag(direction, side, fallback)

    def calc_setpoint_action(self, tick: ClimateTick, now: float) -> Action:
        config = self._config
        state = self.state

        if tick.temperature is None or tick.temperature_timestamp is None:
            return Action.IDLE
        if now - tick.temperature_timestamp >= config.temp_valid_seconds:
            return Action.IDLE

        can_heat = config.has_heating and tick.mode in (Mode.AUTO, Mode.HEAT)
        can_cool = config.has_cooling and tick.mode in (Mode.AUTO, Mode.COOL)

        temperature = tick.temperature
        estimator = self._rate_estimator
        # only a new reading feeds the window, other ticks reuse the last rate
        if estimator.last_time != tick.temperature_timestamp:
            estimator.record(temperature, tick.temperature_timestamp)
        rate = estimator.rate
        state.rate = rate
        self._tracker.track(temperature, tick.setpoint, tick.tolerance, rate, now)

        if state.last_action == Action.HEATING and can_heat:
            predicted = predict_temperature(temperature, rate, self.effective_lag(Direction.TURN_OFF, Side.HEATING))
            return Action.OFF if predicted >= tick.setpoint else Action.HEATING

        if state.last_action == Action.COOLING and can_cool:
            predicted = predict_temperature(temperature, rate, self.effective_lag(Direction.TURN_OFF, Side.COOLING))
            return Action.OFF if predicted <= tick.setpoint else Action.COOLING

        if can_heat and rate <= 0:
            point = temperature
            if rate < 0:
                point = predict_temperature(temperature, rate, self.effective_lag(Direction.TURN_ON, Side.HEATING))
            if point <= tick.setpoint - tick.tolerance and self._can_start(Side.HEATING, now):
                return Action.HEATING

        if can_cool and rate >= 0:
            point = temperature
            if rate > 0:
                point = predict_temperature(temperature, rate, self.effective_lag(Direction.TURN_ON, Side.COOLING))
            if point >= tick.setpoint + tick.tolerance and self._can_start(Side.COOLING, now):
                return Action.COOLING

        return Action.OFF

    def decide(self, tick: ClimateTick, now: float) -> ClimateTick:
        config = self._config
        state = self.state

        if tick.preset == PRESET_BOOST:
            tick.mode = config.default_mode

        if config.has_setpoint:
            tick.action = self.calc_setpoint_action(tick, now)
        elif tick.mode == Mode.HEAT:
            tick.action = Action.HEATING
        elif tick.mode == Mode.COOL:
            tick.action = Action.COOLING
        else:
            tick.action = Action.OFF

        if tick.preset == PRESET_AWAY:
            tick.action = Action.OFF

        tick.changed = tick.action != state.last_action

        if state.last_send is not None and config.keep_alive_seconds > 0:
            if now - state.last_send >= config.keep_alive_seconds:
                tick.keep_alive = True

        if tick.changed and state.last_change is not None:
            elapsed = now - state.last_change
            if elapsed < config.cycle_delay_seconds:
                tick.pending = True
                tick.retry_after = config.cycle_delay_seconds - elapsed
                return tick

        if tick.changed:
            self._commit(tick, now)

        if tick.changed or tick.keep_alive:
            state.last_send = now

        return tick

    def _commit(self, tick: ClimateTick, now: float) -> None:
        state = self.state
        previous = state.last_action
        self._tracker.record_action_change(previous, tick.action, tick.temperature, state.rate, now)

        if tick.action == Action.HEATING or previous == Action.HEATING:
            state.last_heat_time = now
        if tick.action == Action.COOLING or previous == Action.COOLING:
            state.last_cool_time = now

        state.last_change = now
        state.last_action = tick.action
        logger.info(
            "Action changed: %s -> %s temp=%s setpoint=%s rate=%.3f",
            previous.value if previous else None,
            tick.action.value,
            tick.temperature,
            tick.setpoint,
            state.rate,
        )

    def _can_start(self, side: Side, now: float) -> bool:
        # only starting the opposite side is gated, stopping never is
        state = self.state
        if side == Side.HEATING:
            opposite_action, opposite_time = Action.COOLING, state.last_cool_time
        else:
            opposite_action, opposite_time = Action.HEATING, state.last_heat_time
        if state.last_action == opposite_action:
            return False
        if opposite_time is None:
            return True
        return now - opposite_time >= self._config.swap_delay_seconds
