"""HTTP client for the OpenAI-compatible chat completion gateway."""

import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import httpx

from app.core.config import settings
from app.exceptions.ai import (
    AIConfigurationError,
    AITimeoutError,
    InferenceFailureError,
    map_gateway_status,
)

logger = logging.getLogger(__name__)


class InferenceGateway:
    """Opens streamed chat completions and classifies gateway failures."""

    def __init__(
        self,
        url: str | None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 60,
        system_prompt: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the gateway client.

        Args:
            url: Full URL of the chat completions endpoint.
            api_key: Optional bearer key sent in the Authorization header.
            model: Optional model name included in the request body.
            timeout: Transport timeout in seconds.
            system_prompt: Optional system message prepended to every history.
            transport: Custom httpx transport, used by tests.
        """
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.system_prompt = system_prompt
        self.transport = transport

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> "InferenceGateway":
        return cls(
            url=settings.ai_gateway_url,
            api_key=settings.ai_api_key,
            model=settings.ai_model,
            timeout=settings.ai_request_timeout,
            system_prompt=settings.ai_system_prompt,
            transport=transport,
        )

    def build_payload(self, messages: Sequence[dict[str, str]]) -> dict[str, Any]:
        """Build the request body for ``messages`` (role/content dicts, in order)."""
        history = [{"role": m["role"], "content": m["content"]} for m in messages]
        if self.system_prompt:
            history.insert(0, {"role": "system", "content": self.system_prompt})

        payload: dict[str, Any] = {"messages": history, "stream": True}
        if self.model:
            payload["model"] = self.model
        return payload

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @asynccontextmanager
    async def stream_chat(self, messages: Sequence[dict[str, str]]) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streamed completion and yield its raw byte chunks.

        Raises:
            AIConfigurationError: No gateway URL is configured.
            RateLimitedError: The gateway answered 429.
            QuotaExhaustedError: The gateway answered 402.
            InferenceFailureError: Any other non-2xx answer or transport error.
        """
        if not self.url:
            raise AIConfigurationError("AI gateway URL not configured")

        payload = self.build_payload(messages)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                async with client.stream("POST", self.url, json=payload, headers=self._headers()) as response:
                    if not response.is_success:
                        raise await self._error_from_response(response)

                    logger.info(f"AI gateway stream opened ({len(messages)} messages)")
                    yield self._iter_chunks(response)
            except httpx.TimeoutException as e:
                logger.error(f"AI gateway request timed out: {str(e)}")
                raise AITimeoutError() from e
            except httpx.HTTPError as e:
                logger.error(f"AI gateway transport error: {str(e)}")
                raise InferenceFailureError(f"AI gateway request failed: {str(e)}") from e

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.TimeoutException as e:
            logger.error(f"AI gateway stream timed out: {str(e)}")
            raise AITimeoutError("AI response stream timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"AI gateway stream interrupted: {str(e)}")
            raise InferenceFailureError(f"AI response stream interrupted: {str(e)}") from e

    async def _error_from_response(self, response: httpx.Response) -> Exception:
        body = await response.aread()
        message = None
        try:
            data = json.loads(body) if body else {}
            if isinstance(data, dict) and isinstance(data.get("error"), str):
                message = data["error"]
            elif isinstance(data, dict) and isinstance(data.get("error"), dict):
                message = data["error"].get("message")
        except ValueError:
            pass

        retry_after = None
        header = response.headers.get("Retry-After")
        if header and header.isdigit():
            retry_after = int(header)

        logger.warning(f"AI gateway returned {response.status_code}: {message or 'no error text'}")
        return map_gateway_status(response.status_code, message, retry_after)
