import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

from .autotune import AutoTuneLearner
from .client import post_input
from .config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from .exceptions import RequestError
from .models import Direction, Side
from .store import JsonFileStore

DEFAULT_URL = "http://127.0.0.1:8000"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Predictive thermostat controller with thermal lag auto-tune."
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="Path to config file (default: config.json)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    server_parser = subparsers.add_parser("server", help="Start the controller and its HTTP API")
    server_parser.add_argument("--host", help="Bind host (default from config)")
    server_parser.add_argument("--port", type=int, help="Bind port (default from config)")

    autotune_parser = subparsers.add_parser("autotune", help="Print learned thermal lag data")
    autotune_parser.add_argument("--state", help="Path to state file (default from config)")

    input_parser = subparsers.add_parser("input", help="Send an input to a running controller")
    input_parser.add_argument(
        "--url",
        help="Controller base URL (or CLIMATE_URL, default: http://127.0.0.1:8000)",
    )
    input_parser.add_argument("--mode", help="off, auto, heat, cool, on")
    input_parser.add_argument("--preset", help="Preset name (boost, away or the default preset)")
    input_parser.add_argument("--setpoint", type=float)
    input_parser.add_argument("--temp", type=float, help="Current temperature reading")
    input_parser.add_argument("--tolerance", type=float)
    input_parser.add_argument("--timeout", type=int, default=10)

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def build_input_payload(args: argparse.Namespace) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key in ("mode", "preset", "setpoint", "temp", "tolerance"):
        value = getattr(args, key, None)
        if value is not None:
            payload[key] = value
    if not payload:
        raise ValueError("at least one of --mode, --preset, --setpoint, --temp, --tolerance is required")
    return payload


def resolve_url(args: argparse.Namespace, environ: Optional[Dict[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return args.url or env.get("CLIMATE_URL") or DEFAULT_URL


def autotune_report(config: AppConfig, state_path: Optional[str] = None) -> Dict[str, Any]:
    store = JsonFileStore(state_path or config.state_path)
    learner = AutoTuneLearner(
        store,
        enabled=config.auto_tune,
        min_rate=config.min_autotune_rate,
        degrees=config.degrees,
    )
    effective = {}
    for side in Side:
        effective[side.value] = {
            Direction.TURN_OFF.value: learner.effective_lag(Direction.TURN_OFF, side, config.thermal_lag_off_ms),
            Direction.TURN_ON.value: learner.effective_lag(Direction.TURN_ON, side, config.thermal_lag_on_ms),
        }
    return {
        "enabled": config.auto_tune,
        "learned": learner.summary(),
        "effective_lag_ms": effective,
    }


def run_command(args: argparse.Namespace) -> None:
    if args.command == "server":
        from .server import run_server

        run_server(config_path=args.config, host=args.host, port=args.port)
        return

    if args.command == "autotune":
        config = _load_config_file(args.config)
        _write_json(autotune_report(config, state_path=args.state))
        return

    if args.command == "input":
        payload = build_input_payload(args)
        response = post_input(resolve_url(args), payload, timeout=args.timeout)
        _write_json(response)
        return

    raise ValueError("unknown command")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        run_command(args)
    except (ValueError, RequestError) as exc:
        print(str(exc), file=sys.stderr)
        return 2
    return 0


def _write_json(payload: Dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")


def _load_config_file(path: Optional[str]) -> AppConfig:
    if not path:
        return AppConfig()
    try:
        return load_config(path)
    except FileNotFoundError:
        return AppConfig()
