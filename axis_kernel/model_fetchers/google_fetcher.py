"""Google Generative Language (Gemini) fetcher."""

from __future__ import annotations

from typing import Any, Dict

from axis_kernel.errors import NoContentError
from axis_kernel.model_fetchers.base_fetcher import BaseFetcher

DEFAULT_GOOGLE_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


class GoogleFetcher(BaseFetcher):
    provider = "google"

    async def _generate(self, system_prompt: str, user_text: str, temperature: float | None) -> str:
        api_key = self._credential()
        url = f"{self.endpoint.rstrip('/')}/models/{self.model}:generateContent"
        payload: Dict[str, Any] = {
            "system_instruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_text}]}],
        }
        config: Dict[str, Any] = {}
        if temperature is not None:
            config["temperature"] = temperature
        if self.max_tokens is not None:
            config["maxOutputTokens"] = self.max_tokens
        if config:
            payload["generationConfig"] = config
        data = await self._post(
            url,
            payload,
            headers={"Content-Type": "application/json"},
            params={"key": api_key},
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise NoContentError() from exc
        if not isinstance(text, str):
            raise NoContentError()
        return text


__all__ = ["GoogleFetcher", "DEFAULT_GOOGLE_ENDPOINT"]
