from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.errors import ConfigurationError, ExternalServiceError, raise_for_service_status

SERVICE = "openai"


@dataclass(frozen=True)
class Completion:
    text: str
    tokens_used: int
    model: str


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is required")
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        """
        Run one chat completion.

        `messages` are {"role", "content"} dicts, system prompt included.
        An empty completion comes back as text="" and the caller decides
        what to say instead.
        """
        payload = {
            "model": model or settings.chat_model,
            "messages": messages,
            "temperature": settings.chat_temperature if temperature is None else temperature,
            "max_tokens": max_tokens or settings.chat_max_tokens,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            raise ExternalServiceError(SERVICE, f"{type(exc).__name__}: {exc}") from exc

        raise_for_service_status(resp, SERVICE)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ExternalServiceError(SERVICE, "response was not JSON") from exc

        choices = data.get("choices") or []
        message = (choices[0].get("message") or {}) if choices else {}
        return Completion(
            text=message.get("content") or "",
            tokens_used=(data.get("usage") or {}).get("total_tokens") or 0,
            model=data.get("model") or payload["model"],
        )
