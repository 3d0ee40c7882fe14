import json
from typing import Any, Dict, Optional

from .config import PRESET_AWAY, PRESET_BOOST, AppConfig
from .models import Action, ClimateTick

DEFAULT_ON_PAYLOAD = "ON"
DEFAULT_OFF_PAYLOAD = "OFF"


def build_output_payload(config: AppConfig, is_on: bool) -> Any:
    value = config.on_payload if is_on else config.off_payload
    payload_type = config.on_payload_type if is_on else config.off_payload_type

    if not value or not payload_type:
        return DEFAULT_ON_PAYLOAD if is_on else DEFAULT_OFF_PAYLOAD

    if payload_type == "json":
        return json.loads(value)
    if payload_type == "bool":
        return value.strip().lower() == "true"
    if payload_type == "num":
        return float(value)
    return value


def build_outputs(config: AppConfig, heating: bool, cooling: bool) -> Dict[str, Any]:
    return {
        "heating": build_output_payload(config, heating),
        "cooling": build_output_payload(config, cooling),
    }


def build_status(
    tick: ClimateTick,
    config: AppConfig,
    last_action: Optional[Action] = None,
    output_online: bool = True,
) -> Dict[str, str]:
    action = last_action if tick.pending else tick.action
    if action == Action.HEATING:
        fill = "yellow"
    elif action == Action.COOLING:
        fill = "blue"
    else:
        fill = "grey"

    prefix = "* " if tick.pending else ""
    mode = tick.mode.value + "*" if tick.preset == PRESET_BOOST else tick.mode.value

    if tick.action == Action.IDLE:
        text = "{0}waiting for temp...".format(prefix)
    elif config.has_setpoint:
        setpoint = "away" if tick.preset == PRESET_AWAY else tick.setpoint
        text = "{0}mode={1}, set={2}, temp={3}".format(prefix, mode, setpoint, tick.temperature)
    else:
        text = "{0}mode={1}".format(prefix, mode)

    if not output_online and tick.action != Action.IDLE:
        text += ", output=offline"

    return {"fill": fill, "shape": "dot", "text": text}
