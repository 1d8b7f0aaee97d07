"""
HTTP client for the external AI microservice.

Provides:
- AIResult: status code, raw body and parsed JSON of one call
- AIServiceClient: JSON POST with bearer auth, timeout and retry on connection errors
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

# Endpoint paths exposed by the AI service
CODE_REVIEW_PATH = "/code-review"
SUMMARIZE_PATH = "/summarize"
MINDMAP_IDEAS_PATH = "/mindmap-ideas"
TASK_ASSISTANT_PATH = "/assistente-tarefas"


@dataclass
class AIResult:
    """Outcome of one AI call.

    ``status_code`` is 0 when no HTTP response was received at all.
    """

    status_code: int
    body: bytes = b""
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def error_message(self) -> Optional[str]:
        """The ``error`` field of a structured AI error body, if any."""
        if isinstance(self.data, dict):
            value = self.data.get("error")
            if isinstance(value, str) and value:
                return value
        return None

    def loggable_response(self) -> Any:
        """Parsed JSON when available, otherwise the raw text (or None)."""
        if self.data is not None:
            return self.data
        return self.text if self.body else None


class AIServiceClient:
    """
    Thin proxy to the AI microservice.

    * Bearer ``AI_API_KEY`` header when configured
    * Retries with exponential backoff when the service cannot be reached
      (the request never left, so a retry cannot duplicate work)
    * Never raises for HTTP or transport failures; they come back in AIResult
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.AI_API_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.AI_API_KEY
        self.timeout = httpx.Timeout(timeout or settings.AI_API_TIMEOUT, connect=10.0)
        self.max_retries = max_retries if max_retries is not None else settings.AI_API_MAX_RETRIES
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def call(self, path: str, payload: Any) -> AIResult:
        """POST *payload* as JSON to ``base_url + path``."""
        url = f"{self.base_url}{path}"
        attempts = self.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                t0 = time.perf_counter()
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.post(url, json=payload, headers=self._headers())
                elapsed_ms = (time.perf_counter() - t0) * 1000
            except httpx.ConnectError as exc:
                logger.warning(
                    "AI service connect error on %s (attempt %d/%d): %s",
                    path,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    await asyncio.sleep(2 ** (attempt - 1))
                    continue
                return AIResult(status_code=0, error=f"could not reach AI service: {exc}")
            except httpx.TimeoutException as exc:
                logger.warning("AI service timeout on %s: %s", path, exc)
                return AIResult(status_code=0, error=f"AI service timed out: {exc}")
            except httpx.HTTPError as exc:
                logger.error("AI service transport error on %s: %s", path, exc)
                return AIResult(status_code=0, error=f"error communicating with AI service: {exc}")

            logger.debug("AI %s → %d in %.1f ms", path, resp.status_code, elapsed_ms)
            return self._to_result(resp)

        # Loop always returns; kept for type checkers.
        return AIResult(status_code=0, error="AI service call was not attempted")

    @staticmethod
    def _to_result(resp: httpx.Response) -> AIResult:
        body = resp.content
        try:
            data = resp.json() if body else None
        except ValueError:
            data = None

        if 200 <= resp.status_code < 300:
            if body and data is None:
                return AIResult(
                    status_code=resp.status_code,
                    body=body,
                    error="AI service returned a non-JSON success body",
                )
            return AIResult(status_code=resp.status_code, body=body, data=data)

        return AIResult(
            status_code=resp.status_code,
            body=body,
            data=data,
            error=f"AI service returned status {resp.status_code}: {resp.text[:500]}",
        )

    async def check_health(self) -> bool:
        """Return ``True`` if the AI service answers at all (any HTTP status)."""
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                await client.get(self.base_url + "/")
            return True
        except Exception as exc:
            logger.error("AI service health check failed: %s", exc)
            return False
