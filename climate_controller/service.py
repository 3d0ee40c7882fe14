import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol

import requests

from .autotune import AutoTuneLearner
from .client import WebhookClient
from .config import AppConfig, ensure_config, validate_config
from .engine import ClimateEngine
from .exceptions import ClimateControllerError
from .models import Action, ClimateTick, Direction, Side
from .payloads import build_outputs, build_status
from .scheduler import TickScheduler
from .state import DeviceState, is_on, parse_float
from .store import JsonFileStore, KeyValueStore

logger = logging.getLogger(__name__)

MIN_TICK_INTERVAL_SECONDS = 1.0


class OutputSink(Protocol):
    def send(self, heating: bool, cooling: bool) -> None:
        ...


class ClimateService:
    """Per-device controller: persists inputs, runs ticks and sends outputs.

    Every tick runs under one lock, so external inputs and the scheduled
    tick never evaluate concurrently.
    """

    def __init__(
        self,
        config: AppConfig,
        store: KeyValueStore,
        output: Optional[OutputSink] = None,
        scheduler: Optional[TickScheduler] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store
        self._device = DeviceState(store, config)
        self._engine = ClimateEngine(config, _build_learner(config, store))
        self._output = output
        self._scheduler = scheduler or TickScheduler()
        self._clock = clock
        self._tolerance = config.tolerance
        self._lock = threading.RLock()
        self._started = False
        self._last_tick: Optional[ClimateTick] = None
        self._last_status: Optional[Dict[str, str]] = None
        self._last_outputs: Optional[Dict[str, Any]] = None
        self._last_error: Optional[str] = None

    @classmethod
    def from_config_path(cls, config_path: str) -> "ClimateService":
        config = ensure_config(config_path)
        errors = validate_config(config)
        if errors:
            raise ValueError("; ".join(errors))
        output = WebhookClient(config) if config.is_output_configured() else None
        return cls(config, JsonFileStore(config.state_path), output=output)

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def engine(self) -> ClimateEngine:
        return self._engine

    @property
    def device(self) -> DeviceState:
        return self._device

    def start(self) -> None:
        with self._lock:
            self._started = True
            logger.info(
                "Starting %s: climate_type=%s mode=%s preset=%s setpoint=%s "
                "thermal_lag_tune=%s lag_off=%smin lag_on=%smin",
                self._config.name,
                self._config.climate_type,
                self._device.mode().value,
                self._device.preset(),
                self._device.setpoint(),
                self._config.thermal_lag_tune,
                self._config.thermal_lag_off_minutes,
                self._config.thermal_lag_on_minutes,
            )
            self.update()
            # the first change after startup is not held back by the cycle delay
            self._engine.state.last_change = None

    def stop(self) -> None:
        with self._lock:
            self._started = False
            self._scheduler.cancel()

    def apply_config(self, config: AppConfig) -> None:
        errors = validate_config(config)
        if errors:
            raise ValueError("; ".join(errors))
        with self._lock:
            self._config = config
            self._device = DeviceState(self._store, config)
            self._engine.reconfigure(config, _build_learner(config, self._store))
            self._tolerance = config.tolerance
            if self._output is None or isinstance(self._output, WebhookClient):
                self._output = WebhookClient(config) if config.is_output_configured() else None
        self.update()

    def handle_input(self, message: Dict[str, Any]) -> Optional[ClimateTick]:
        with self._lock:
            now = self._clock()
            device = self._device
            if "payload" in message:
                device.set_mode(message["payload"])
            if "mode" in message:
                device.set_mode(message["mode"])
            if "preset" in message:
                device.set_preset(message["preset"], now)
            if "setpoint" in message:
                device.set_setpoint(message["setpoint"])
            if "temp" in message:
                device.set_temperature(message["temp"], now)
            if "tolerance" in message:
                tolerance = parse_float(message["tolerance"])
                if tolerance is not None and tolerance >= 0:
                    self._tolerance = tolerance

            if "boost" in message:
                device.set_preset("boost" if is_on(message["boost"]) else self._config.default_preset, now)
            if "away" in message:
                device.set_preset("away" if is_on(message["away"]) else self._config.default_preset, now)

            return self.update()

    def update(self) -> Optional[ClimateTick]:
        with self._lock:
            if not self._started:
                return None

            self._scheduler.cancel()
            config = self._config
            device = self._device
            state = self._engine.state
            now = self._clock()

            intervals = [config.temp_valid_seconds]
            expiry = device.preset_expiry()
            if expiry is not None:
                if now >= expiry:
                    logger.info("Preset %s expired", device.preset())
                    device.set_preset(config.default_preset, now)
                else:
                    intervals.append(expiry - now)

            tick = ClimateTick(
                mode=device.mode(),
                preset=device.preset(),
                setpoint=device.setpoint(),
                temperature=device.temperature(),
                temperature_timestamp=device.temperature_timestamp(),
                tolerance=self._tolerance,
            )
            last_action = state.last_action
            self._engine.decide(tick, now)
            self._last_tick = tick

            if tick.pending:
                logger.debug("Change to %s pending for %.1fs", tick.action.value, tick.retry_after or 0)
                self._last_status = build_status(tick, config, last_action, self._last_error is None)
                self._scheduler.schedule(max(MIN_TICK_INTERVAL_SECONDS, tick.retry_after or 0), self.update)
                return tick

            if tick.changed:
                device.set_action(tick.action)

            if tick.should_send:
                self._send(tick)

            if config.keep_alive_seconds > 0:
                remaining = config.keep_alive_seconds
                if state.last_send is not None:
                    remaining -= now - state.last_send
                intervals.append(remaining)

            self._last_status = build_status(tick, config, last_action, self._last_error is None)
            self._scheduler.schedule(max(MIN_TICK_INTERVAL_SECONDS, min(intervals)), self.update)
            return tick

    def effective_lags(self) -> Dict[str, Dict[str, float]]:
        return {
            side.value: {
                direction.value: self._engine.effective_lag(direction, side) for direction in Direction
            }
            for side in Side
        }

    def get_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            tick = self._last_tick
            return {
                "tick": tick.to_dict() if tick else None,
                "status": self._last_status,
                "outputs": self._last_outputs,
                "controller": self._engine.state.to_dict(),
                "cycle": self._engine.tracker.state,
                "autotune": {
                    "enabled": self._config.auto_tune,
                    "learned": self._engine.learner.summary(),
                    "effective_lag_ms": self.effective_lags(),
                },
                "config": self._config.to_dict(),
                "error": self._last_error,
            }

    def _send(self, tick: ClimateTick) -> None:
        heating = tick.action == Action.HEATING
        cooling = tick.action == Action.COOLING
        logger.info(
            "Output: heating=%s cooling=%s keep_alive=%s",
            heating,
            cooling,
            tick.keep_alive,
        )
        try:
            self._last_outputs = build_outputs(self._config, heating, cooling)
            if self._output is not None:
                self._output.send(heating, cooling)
        except (ClimateControllerError, requests.RequestException, ValueError) as exc:
            # the next tick is still scheduled after a failed delivery
            logger.exception("Output delivery failed")
            self._last_error = str(exc)
        else:
            self._last_error = None


def _build_learner(config: AppConfig, store: KeyValueStore) -> AutoTuneLearner:
    return AutoTuneLearner(
        store,
        enabled=config.auto_tune,
        min_rate=config.min_autotune_rate,
        degrees=config.degrees,
    )
