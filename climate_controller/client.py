from typing import Any, Dict, Optional

import requests

from .config import AppConfig
from .endpoints import EndpointConfig
from .exceptions import EndpointNotConfigured, RequestError
from .payloads import build_output_payload


class WebhookClient:
    """Delivers the heating and cooling outputs as HTTP POSTs."""

    def __init__(
        self,
        config: AppConfig,
        endpoints: Optional[EndpointConfig] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ) -> None:
        if endpoints is None:
            if not config.output_base_url:
                raise EndpointNotConfigured("output_base_url is not configured")
            endpoints = EndpointConfig(
                base_url=config.output_base_url,
                heating_path=config.heating_path,
                cooling_path=config.cooling_path,
            )
        self._config = config
        self._endpoints = endpoints
        self._session = session or requests.Session()
        self._timeout = timeout if timeout is not None else config.timeout_seconds

    @property
    def base_url(self) -> str:
        return self._endpoints.base_url

    def send(self, heating: bool, cooling: bool) -> None:
        if self._config.has_heating:
            self._post_json(self._endpoints.heating_url(), _payload(self._config, heating))
        if self._config.has_cooling:
            self._post_json(self._endpoints.cooling_url(), _payload(self._config, cooling))

    def _post_json(self, url: str, payload: Dict[str, Any]) -> None:
        response = self._session.post(url, json=payload, timeout=self._timeout)
        if response.status_code not in (200, 201, 202, 204):
            raise RequestError("POST {0} returned {1}".format(url, response.status_code))


def _payload(config: AppConfig, is_on: bool) -> Dict[str, Any]:
    return {"payload": build_output_payload(config, is_on)}


def post_input(
    base_url: str,
    payload: Dict[str, Any],
    session: Optional[requests.Session] = None,
    timeout: int = 10,
) -> Dict[str, Any]:
    """POST an input message to a running controller's API."""
    url = EndpointConfig(base_url=base_url).url_for("/api/input")
    response = (session or requests.Session()).post(url, json=payload, timeout=timeout)
    if response.status_code != 200:
        raise RequestError("POST {0} returned {1}".format(url, response.status_code))
    try:
        return response.json()
    except ValueError as exc:
        raise RequestError("response was not JSON") from exc
