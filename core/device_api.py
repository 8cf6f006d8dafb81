from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from core.models import AddonsConfig, AddonsOptions

logger = logging.getLogger(__name__)


# -----------------------------
# Exceptions (Business-level)
# -----------------------------
class DeviceClientError(Exception):
    """Base exception for the device API client."""


class NetworkError(DeviceClientError):
    """Connection/timeout/DNS issues."""


class HTTPError(DeviceClientError):
    """Non-2xx response from the device."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class ContractError(DeviceClientError):
    """Response JSON doesn't match the expected add-ons payload."""


def _normalize_base_url(base_url: str) -> str:
    base = (base_url or "").strip()
    if not base:
        base = "http://192.168.7.1"
    return base.rstrip("/")


class DeviceClient:
    """
    Device web API client:
    - GET  /api/getAddonsOptions  -> record + usedPins + buzzerSongs
    - POST /api/setAddonsOptions  -> save record

    Loading raises; saving reports a flat bool and is never retried.
    """

    def __init__(
        self,
        *,
        base_url: str = "http://192.168.7.1",
        timeout_s: float = 5.0,
        http: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = _normalize_base_url(base_url)
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=httpx.Timeout(timeout_s))

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "DeviceClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def get_addons_options(self) -> AddonsOptions:
        url = f"{self.base_url}/api/getAddonsOptions"
        try:
            r = self.http.get(url)
        except (httpx.TimeoutException, httpx.NetworkError, httpx.ConnectError) as e:
            raise NetworkError(str(e)) from e

        if r.status_code != 200:
            raise HTTPError(r.status_code, r.text)

        try:
            data = r.json()
        except ValueError as e:
            raise ContractError(f"Invalid JSON in getAddonsOptions response: {e}") from e

        if not isinstance(data, dict):
            raise ContractError("getAddonsOptions response is not an object")

        try:
            options = AddonsOptions.from_device(data)
        except (ValidationError, TypeError, ValueError) as e:
            raise ContractError(f"getAddonsOptions response violates contract: {e}") from e

        logger.info(
            "Loaded add-ons options: %d used pin(s), %d catalogue song(s)",
            len(options.used_pins),
            len(options.catalog),
        )
        return options

    def set_addons_options(self, config: AddonsConfig | Dict[str, Any]) -> bool:
        url = f"{self.base_url}/api/setAddonsOptions"
        payload = config.to_wire() if isinstance(config, AddonsConfig) else dict(config)
        try:
            r = self.http.post(url, json=payload)
        except (httpx.TimeoutException, httpx.NetworkError, httpx.ConnectError) as e:
            logger.warning("Save failed (network): %s", e)
            return False

        if r.status_code != 200:
            logger.warning("Save failed: HTTP %s %s", r.status_code, r.text)
            return False
        return True
