"""Base fetcher shared by the provider-specific adapters.

Every adapter implements one contract: send a system prompt and a user text
to a backend and return the text of the first choice or candidate. Failures
surface as :class:`~axis_kernel.errors.ProviderError` subclasses carrying
the HTTP status and raw body when there is one.
"""

from __future__ import annotations

import json
import os
import time
from typing import Any, Dict, Mapping, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from axis_kernel.errors import (
    MissingCredentialError,
    ProviderError,
    ProviderHTTPError,
    ProviderReportedError,
)


class BaseFetcher:
    provider = "base"

    def __init__(
        self,
        name: str,
        *,
        endpoint: str,
        model: str,
        credential_env: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: float = 60.0,
        retry_attempts: int = 3,
        retry_backoff: float = 0.5,
    ) -> None:
        self.name = name
        self.endpoint = endpoint
        self.model = model
        self.credential_env = credential_env
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.health_ok: bool = True
        self.failure_count: int = 0
        self.recent_latency_avg: float = 0.0

    def _record(self, latency_ms: int, error: str | None) -> None:
        alpha = 0.2
        if self.recent_latency_avg == 0.0:
            self.recent_latency_avg = float(latency_ms)
        else:
            self.recent_latency_avg = alpha * float(latency_ms) + (1 - alpha) * self.recent_latency_avg
        if error:
            self.failure_count += 1
            self.health_ok = False
        else:
            self.health_ok = True

    def health(self) -> Dict[str, Any]:
        return {
            "id": self.name,
            "model": self.model,
            "health_ok": self.health_ok,
            "failure_count": self.failure_count,
            "recent_latency_avg": self.recent_latency_avg,
        }

    def _credential(self) -> str:
        if not self.credential_env:
            return ""
        value = os.getenv(self.credential_env)
        if not value:
            raise MissingCredentialError(self.credential_env)
        return value

    async def _post(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Dict[str, Any]:
        """POST ``payload`` with transport retries and return the decoded body."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.retry_attempts),
                    wait=wait_exponential(multiplier=self.retry_backoff),
                    retry=retry_if_exception_type(httpx.TransportError),
                ):
                    with attempt:
                        resp = await client.post(url, headers=headers, params=params, json=payload)
        except RetryError as exc:
            raise ProviderError(f"Network Error: {exc.last_attempt.exception()}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Network Error: {exc}") from exc

        body = resp.text
        if not resp.is_success:
            raise ProviderHTTPError(resp.status_code, body)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(f"Parse failed. Body: {body}", status=resp.status_code, body=body) from exc
        if not isinstance(data, dict):
            raise ProviderError(f"Parse failed. Body: {body}", status=resp.status_code, body=body)
        if data.get("error"):
            raise ProviderReportedError(json.dumps(data["error"]), status=resp.status_code)
        return data

    async def _generate(self, system_prompt: str, user_text: str, temperature: float | None) -> str:
        raise NotImplementedError

    async def generate(
        self,
        system_prompt: str,
        user_text: str,
        *,
        temperature: float | None = None,
    ) -> str:
        """Return the backend's reply text or raise :class:`ProviderError`."""
        start = time.monotonic()
        try:
            content = await self._generate(system_prompt, user_text, temperature)
        except ProviderError as exc:
            self._record(int((time.monotonic() - start) * 1000), str(exc))
            raise
        self._record(int((time.monotonic() - start) * 1000), None)
        return content

    async def probe(self) -> bool:
        """Optional health probe."""
        try:
            await self.generate("Reply with OK.", "ping")
            return True
        except ProviderError:
            return False


__all__ = ["BaseFetcher"]
