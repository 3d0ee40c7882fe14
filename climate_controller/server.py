import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request

from .config import DEFAULT_CONFIG_PATH, ensure_config, update_config
from .service import ClimateService

logger = logging.getLogger(__name__)

INPUT_KEYS = ("payload", "mode", "preset", "setpoint", "temp", "tolerance", "boost", "away")


def create_app(config_path: str, service: Optional[ClimateService] = None) -> FastAPI:
    app = FastAPI(title="Climate Controller")
    if service is None:
        service = ClimateService.from_config_path(config_path)

    app.state.service = service

    @app.on_event("startup")
    def _startup() -> None:
        service.start()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        service.stop()

    @app.get("/api/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/status")
    def status() -> Dict[str, Any]:
        return service.get_snapshot()

    @app.get("/api/config")
    def get_config() -> Dict[str, Any]:
        return service.config.to_dict()

    @app.post("/api/config")
    async def set_config(request: Request) -> Dict[str, Any]:
        payload = await request.json()
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="config payload must be JSON object")
        try:
            updated = update_config(config_path, payload)
            service.apply_config(updated)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        logger.info(
            "Config updated via API: climate_type=%s default_setpoint=%s tolerance=%s "
            "swap_delay_minutes=%s cycle_delay_seconds=%s thermal_lag_tune=%s",
            updated.climate_type,
            updated.default_setpoint,
            updated.tolerance,
            updated.swap_delay_minutes,
            updated.cycle_delay_seconds,
            updated.thermal_lag_tune,
        )
        return updated.to_dict()

    @app.post("/api/input")
    async def input_message(request: Request) -> Dict[str, Any]:
        payload = await request.json()
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="input payload must be JSON object")
        if not any(key in payload for key in INPUT_KEYS):
            raise HTTPException(status_code=400, detail="no known input keys")
        try:
            tick = service.handle_input(payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"status": "ok", "tick": tick.to_dict() if tick else None}

    @app.get("/api/autotune")
    def autotune() -> Dict[str, Any]:
        snapshot = service.get_snapshot()
        return snapshot["autotune"]

    return app


def run_server(
    config_path: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    import uvicorn

    _configure_logging()
    path = config_path or DEFAULT_CONFIG_PATH
    config = ensure_config(path)
    bind_host = host or config.bind_host
    bind_port = port or config.bind_port

    app = create_app(path)
    uvicorn.run(app, host=bind_host, port=bind_port)


def _configure_logging() -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    logging.getLogger("climate_controller").setLevel(logging.INFO)
