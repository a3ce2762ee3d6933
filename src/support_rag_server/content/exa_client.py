"""
Content Retrieval Client

Thin async wrapper around the Exa contents API. The service is a black box
to the rest of the system: callers get the raw JSON payload back and every
failure surfaces as an ExternalServiceError.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from ..config import settings
from ..core.errors import (
    ConfigurationError,
    ExternalServiceError,
    raise_for_service_status,
)

logger = logging.getLogger("support.exa")

SERVICE = "exa"


class ExaClient:
    """
    Stateless client; a fresh httpx.AsyncClient is opened per request.

    `transport` exists so tests can inject httpx.MockTransport.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key or settings.exa_api_key.get_secret_value()
        if not self.api_key:
            raise ConfigurationError("EXA_API_KEY is required")

        self.base_url = (base_url or settings.exa_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    f"{self.base_url}{path}",
                    json=payload,
                    headers={"x-api-key": self.api_key},
                )
        except httpx.HTTPError as exc:
            logger.error("Exa request to %s failed: %s", path, exc)
            raise ExternalServiceError(
                SERVICE, f"{type(exc).__name__}: {exc}"
            ) from exc

        raise_for_service_status(resp, SERVICE)

        try:
            return resp.json()
        except ValueError as exc:
            raise ExternalServiceError(SERVICE, "response was not JSON") from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_contents(
        self,
        urls: Sequence[str],
        text: bool = True,
    ) -> Dict[str, Any]:
        """
        Fetch page contents for the given URLs.

        Returns the service payload, shaped like
        {"results": [{"url": ..., "title": ..., "text": ...}, ...]}.
        """
        logger.info("Fetching content for %d url(s)", len(urls))
        data = await self._post("/contents", {"urls": list(urls), "text": text})

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise ExternalServiceError(SERVICE, "response missing 'results' list")
        return data

    async def health_check(self) -> bool:
        """True if a minimal search succeeds."""
        try:
            await self._post("/search", {"query": "test", "numResults": 1})
            return True
        except ExternalServiceError as exc:
            logger.error("Exa health check failed: %s", exc)
            return False
