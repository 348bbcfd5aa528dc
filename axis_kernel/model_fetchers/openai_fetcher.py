"""OpenAI-compatible fetcher (OpenAI, xAI, NVIDIA-hosted models)."""

from __future__ import annotations

from typing import Any, Dict, List

from axis_kernel.errors import NoContentError, ProviderError
from axis_kernel.model_fetchers.base_fetcher import BaseFetcher


def _first_choice(data: Dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if not choices:
        raise NoContentError()
    message = choices[0].get("message") or {}
    content = message.get("content")
    if not isinstance(content, str):
        raise NoContentError()
    return content


class OpenAICompatibleFetcher(BaseFetcher):
    provider = "openai_compatible"

    def _url(self) -> str:
        if self.endpoint.endswith("/chat/completions"):
            return self.endpoint
        return self.endpoint.rstrip("/") + "/chat/completions"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = self._credential()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _payload(self, messages: List[Dict[str, Any]], temperature: float | None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        # reasoning models such as gpt-5-nano reject both fields
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if temperature is not None:
            payload["temperature"] = temperature
        return payload

    async def _generate(self, system_prompt: str, user_text: str, temperature: float | None) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_text},
        ]
        data = await self._post(self._url(), self._payload(messages, temperature), headers=self._headers())
        return _first_choice(data)

    async def describe_image(self, image_b64: str, prompt: str, *, temperature: float = 0.5) -> str:
        """Ask an image-capable model about a base64 PNG.

        Failures come back as a ``[Vision Agent Error]`` line instead of an
        exception so the caller can drop it straight into a transcript.
        """
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image_b64}"}},
                ],
            }
        ]
        try:
            data = await self._post(self._url(), self._payload(messages, temperature), headers=self._headers())
            return _first_choice(data)
        except ProviderError as exc:
            self._record(0, str(exc))
            return f"[Vision Agent Error] {exc}"


__all__ = ["OpenAICompatibleFetcher"]
