"""Ollama fetcher for a self-hosted local worker."""

from __future__ import annotations

from typing import Any, Dict

from axis_kernel.errors import NoContentError
from axis_kernel.model_fetchers.base_fetcher import BaseFetcher


class OllamaFetcher(BaseFetcher):
    provider = "ollama"

    async def _generate(self, system_prompt: str, user_text: str, temperature: float | None) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_text},
            ],
            "stream": False,
        }
        options: Dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if self.max_tokens is not None:
            options["num_predict"] = self.max_tokens
        if options:
            payload["options"] = options
        data = await self._post(self.endpoint, payload)
        content = (data.get("message") or {}).get("content") or data.get("response")
        if not isinstance(content, str):
            raise NoContentError()
        return content


__all__ = ["OllamaFetcher"]
