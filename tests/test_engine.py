from typing import Optional

import pytest

from climate_controller.autotune import AutoTuneLearner
from climate_controller.config import AppConfig
from climate_controller.engine import ClimateEngine, predict_temperature
from climate_controller.models import Action, ClimateTick, Direction, Mode, Side
from climate_controller.store import MemoryStore


def _engine(config: AppConfig, store: Optional[MemoryStore] = None) -> ClimateEngine:
    store = store if store is not None else MemoryStore()
    learner = AutoTuneLearner(store, enabled=config.auto_tune, min_rate=config.min_autotune_rate)
    return ClimateEngine(config, learner)


def _tick(
    temperature: Optional[float],
    now: float,
    mode: Mode = Mode.HEAT,
    setpoint: float = 20.0,
    tolerance: float = 0.5,
    preset: str = "none",
) -> ClimateTick:
    return ClimateTick(
        mode=mode,
        preset=preset,
        setpoint=setpoint,
        temperature=temperature,
        temperature_timestamp=now if temperature is not None else None,
        tolerance=tolerance,
    )


def test_predict_temperature() -> None:
    assert predict_temperature(20.0, 0.2, 5 * 60000) == pytest.approx(21.0)
    assert predict_temperature(20.0, 0.0, 5 * 60000) == 20.0
    assert predict_temperature(20.0, 0.2, 0) == 20.0


def test_no_temperature_is_idle() -> None:
    engine = _engine(AppConfig())
    assert engine.calc_setpoint_action(_tick(None, 0.0), 0.0) == Action.IDLE


def test_stale_temperature_is_idle() -> None:
    engine = _engine(AppConfig(temp_valid_minutes=30))
    tick = _tick(10.0, 0.0)
    assert engine.calc_setpoint_action(tick, 30 * 60.0) == Action.IDLE
    assert engine.calc_setpoint_action(tick, 30 * 60.0 - 1) == Action.HEATING


def test_mode_off_never_acts() -> None:
    engine = _engine(AppConfig())
    assert engine.calc_setpoint_action(_tick(10.0, 0.0, mode=Mode.OFF), 0.0) == Action.OFF
    assert engine.calc_setpoint_action(_tick(30.0, 0.0, mode=Mode.OFF), 0.0) == Action.OFF


def test_heat_only_device_does_not_cool_in_auto() -> None:
    engine = _engine(AppConfig(climate_type="heat"))
    assert engine.calc_setpoint_action(_tick(30.0, 0.0, mode=Mode.AUTO), 0.0) == Action.OFF


def test_hysteresis_holds_inside_dead_band() -> None:
    engine = _engine(AppConfig(climate_type="heat", cycle_delay_seconds=0))

    assert engine.decide(_tick(19.7, 0.0), 0.0).action == Action.OFF
    assert engine.decide(_tick(19.5, 10.0), 10.0).action == Action.HEATING

    for now in (20.0, 30.0, 40.0, 50.0):
        tick = engine.decide(_tick(19.7, now), now)
        assert tick.action == Action.HEATING

    assert engine.decide(_tick(20.0, 60.0), 60.0).action == Action.OFF

    for now in (70.0, 80.0, 90.0):
        tick = engine.decide(_tick(19.7, now), now)
        assert tick.action == Action.OFF


def test_turn_off_lag_stops_heating_before_setpoint() -> None:
    engine = _engine(AppConfig(climate_type="heat", thermal_lag_off_minutes=5))
    engine.state.last_action = Action.HEATING

    assert engine.calc_setpoint_action(_tick(19.0, 0.0), 0.0) == Action.HEATING
    # rate 0.2/min over 5 minutes projects 20.2
    assert engine.calc_setpoint_action(_tick(19.2, 60.0), 60.0) == Action.OFF


def test_turn_on_lag_starts_heating_before_threshold() -> None:
    engine = _engine(AppConfig(climate_type="heat", thermal_lag_on_minutes=5))

    assert engine.calc_setpoint_action(_tick(20.0, 0.0), 0.0) == Action.OFF
    # rate -0.2/min over 5 minutes projects 18.8
    assert engine.calc_setpoint_action(_tick(19.8, 60.0), 60.0) == Action.HEATING


def test_rising_temperature_does_not_start_heating() -> None:
    engine = _engine(AppConfig(climate_type="heat"))
    engine.calc_setpoint_action(_tick(18.0, 0.0), 0.0)
    assert engine.calc_setpoint_action(_tick(18.5, 60.0), 60.0) == Action.OFF


def test_cooling_turns_on_and_off_symmetrically() -> None:
    engine = _engine(AppConfig(climate_type="cool", cycle_delay_seconds=0))
    assert engine.decide(_tick(20.4, 0.0, mode=Mode.COOL), 0.0).action == Action.OFF
    assert engine.decide(_tick(20.5, 10.0, mode=Mode.COOL), 10.0).action == Action.COOLING
    assert engine.decide(_tick(20.3, 20.0, mode=Mode.COOL), 20.0).action == Action.COOLING
    assert engine.decide(_tick(20.0, 30.0, mode=Mode.COOL), 30.0).action == Action.OFF


def test_swap_delay_blocks_opposite_start() -> None:
    config = AppConfig(climate_type="both", swap_delay_minutes=10, cycle_delay_seconds=0)
    engine = _engine(config)
    engine.state.last_action = Action.COOLING

    stopped = engine.decide(_tick(19.0, 0.0, mode=Mode.AUTO), 0.0)
    assert stopped.action == Action.OFF
    assert engine.state.last_cool_time == 0.0

    assert engine.decide(_tick(19.0, 60.0, mode=Mode.AUTO), 60.0).action == Action.OFF
    assert engine.decide(_tick(19.0, 599.0, mode=Mode.AUTO), 599.0).action == Action.OFF
    assert engine.decide(_tick(19.0, 600.0, mode=Mode.AUTO), 600.0).action == Action.HEATING


def test_swap_delay_does_not_block_stopping() -> None:
    config = AppConfig(climate_type="both", swap_delay_minutes=10, cycle_delay_seconds=0)
    engine = _engine(config)
    assert engine.decide(_tick(19.0, 0.0, mode=Mode.AUTO), 0.0).action == Action.HEATING
    assert engine.decide(_tick(21.0, 5.0, mode=Mode.AUTO), 5.0).action == Action.OFF


def test_running_side_blocks_opposite_until_it_stops() -> None:
    config = AppConfig(climate_type="both", swap_delay_minutes=0, cycle_delay_seconds=0)
    engine = _engine(config)
    engine.state.last_action = Action.COOLING
    # mode switched to heat while cooling: stop first, heat on a later tick
    assert engine.decide(_tick(18.0, 0.0, mode=Mode.HEAT), 0.0).action == Action.OFF
    assert engine.decide(_tick(18.0, 1.0, mode=Mode.HEAT), 1.0).action == Action.HEATING


def test_cycle_delay_defers_change() -> None:
    engine = _engine(AppConfig(climate_type="heat", cycle_delay_seconds=60))
    first = engine.decide(_tick(20.0, 0.0), 0.0)
    assert first.changed
    assert engine.state.last_action == Action.OFF

    deferred = engine.decide(_tick(18.0, 10.0), 10.0)
    assert deferred.action == Action.HEATING
    assert deferred.pending
    assert deferred.retry_after == pytest.approx(50.0)
    assert not deferred.should_send
    assert engine.state.last_action == Action.OFF

    applied = engine.decide(_tick(18.0, 60.0), 60.0)
    assert applied.changed and not applied.pending
    assert engine.state.last_action == Action.HEATING
    assert engine.state.last_heat_time == 60.0


def test_away_preset_forces_off() -> None:
    engine = _engine(AppConfig(climate_type="heat"))
    tick = engine.decide(_tick(10.0, 0.0, preset="away"), 0.0)
    assert tick.action == Action.OFF


def test_boost_uses_default_mode() -> None:
    engine = _engine(AppConfig(climate_type="heat"))
    tick = engine.decide(_tick(10.0, 0.0, mode=Mode.OFF, preset="boost"), 0.0)
    assert tick.mode == Mode.HEAT
    assert tick.action == Action.HEATING


def test_manual_device_follows_mode() -> None:
    engine = _engine(AppConfig(climate_type="manual", cycle_delay_seconds=0))
    assert engine.decide(_tick(None, 0.0, mode=Mode.HEAT), 0.0).action == Action.HEATING
    assert engine.decide(_tick(None, 1.0, mode=Mode.COOL), 1.0).action == Action.COOLING
    assert engine.decide(_tick(None, 2.0, mode=Mode.OFF), 2.0).action == Action.OFF
    assert engine.decide(_tick(None, 3.0, mode=Mode.OFF, preset="boost"), 3.0).action == Action.HEATING


def test_keep_alive_after_interval() -> None:
    engine = _engine(AppConfig(climate_type="heat", keep_alive_minutes=1))
    assert engine.decide(_tick(20.0, 0.0), 0.0).should_send
    assert not engine.decide(_tick(20.0, 30.0), 30.0).keep_alive

    tick = engine.decide(_tick(20.0, 60.0), 60.0)
    assert tick.keep_alive and not tick.changed
    assert tick.should_send
    assert engine.state.last_send == 60.0


def test_learned_lag_replaces_static_lag() -> None:
    store = MemoryStore(
        {
            "autotune_heating": {
                "version": 1,
                "off": {"cycles": 3, "lags": [4.0, 5.0, 6.0], "min": 4.0, "max": 6.0},
                "on": {"cycles": 1, "lags": [3.0], "min": 3.0, "max": 3.0},
            }
        }
    )
    config = AppConfig(thermal_lag_tune="auto", thermal_lag_off_minutes=1, thermal_lag_on_minutes=2)
    engine = _engine(config, store)
    assert engine.effective_lag(Direction.TURN_OFF, Side.HEATING) == 5 * 60000
    assert engine.effective_lag(Direction.TURN_ON, Side.HEATING) == 2 * 60000
    assert engine.effective_lag(Direction.TURN_OFF, Side.COOLING) == 1 * 60000


def test_heating_stop_opens_cycle_with_rate() -> None:
    engine = _engine(AppConfig(climate_type="heat", cycle_delay_seconds=0, thermal_lag_tune="auto"))
    engine.state.last_action = Action.HEATING
    engine.decide(_tick(19.5, 0.0), 0.0)
    tick = engine.decide(_tick(20.0, 60.0), 60.0)

    assert tick.action == Action.OFF
    cycle = engine.tracker.cycle
    assert cycle is not None
    assert cycle.stop_rate == pytest.approx(0.5)
    assert cycle.peak_temperature == 20.0


def test_repeated_reading_does_not_flatten_rate() -> None:
    engine = _engine(AppConfig(climate_type="heat"))
    engine.calc_setpoint_action(_tick(18.0, 0.0), 0.0)
    engine.calc_setpoint_action(_tick(19.0, 60.0), 60.0)
    assert engine.state.rate == pytest.approx(1.0)

    # a setpoint change re-evaluates the same reading later on
    held = _tick(19.0, 60.0, setpoint=22.0)
    for now in (90.0, 120.0, 150.0):
        engine.calc_setpoint_action(held, now)

    assert engine.state.rate == pytest.approx(1.0)
    assert len(engine.rate_estimator.samples) == 2
