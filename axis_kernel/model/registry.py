"""Worker profiles and the registry mapping provider keys to fetchers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from axis_kernel.config import Settings, load_json
from axis_kernel.model_fetchers.base_fetcher import BaseFetcher
from axis_kernel.model_fetchers.google_fetcher import DEFAULT_GOOGLE_ENDPOINT, GoogleFetcher
from axis_kernel.model_fetchers.ollama_fetcher import OllamaFetcher
from axis_kernel.model_fetchers.openai_fetcher import OpenAICompatibleFetcher
from axis_kernel.utils.logging import logger

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
XAI_ENDPOINT = "https://api.x.ai/v1/chat/completions"
NVIDIA_ENDPOINT = "https://integrate.api.nvidia.com/v1/chat/completions"

DEFAULT_WORKER = "llama"
ENSEMBLE = "ensemble"

SCORE_FIELDS = ("code", "reasoning", "math", "general_qa", "planning", "multimodal", "speed", "cost")


@dataclass(frozen=True)
class WorkerProfile:
    name: str
    code: float = 0.0
    reasoning: float = 0.0
    math: float = 0.0
    general_qa: float = 0.0
    planning: float = 0.0
    multimodal: float = 0.0
    speed: float = 0.0
    cost: float = 0.0

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "WorkerProfile":
        values = {key: float(data.get(key, 0.0) or 0.0) for key in SCORE_FIELDS}
        return cls(name=name, **values)

    def render(self) -> str:
        lines = [f"- {self.name}:"]
        lines.extend(f"  {key}: {getattr(self, key):g}" for key in SCORE_FIELDS)
        return "\n".join(lines)


@dataclass(frozen=True)
class ProfileCatalog:
    """Immutable catalog of worker capability scores.

    Built once at startup and handed to the router explicitly.
    """

    profiles: Tuple[WorkerProfile, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProfileCatalog":
        profiles = []
        for name in sorted(data):
            scores = data[name]
            if isinstance(scores, Mapping):
                profiles.append(WorkerProfile.from_dict(name, scores))
        return cls(tuple(profiles))

    def __iter__(self) -> Iterator[WorkerProfile]:
        return iter(self.profiles)

    def __len__(self) -> int:
        return len(self.profiles)

    def get(self, name: str) -> Optional[WorkerProfile]:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None

    def render(self) -> str:
        if not self.profiles:
            return "(no model profiles loaded)"
        return "\n".join(p.render() for p in self.profiles)


def load_profile_catalog(path: Path | str) -> ProfileCatalog:
    """Load profiles from JSON; an unreadable file yields an empty catalog."""
    path = Path(path)
    data = load_json(path)
    if not data:
        logger.warning("model_profiles_unavailable", path=str(path))
    try:
        return ProfileCatalog.from_mapping(data)
    except (TypeError, ValueError) as exc:
        logger.warning("model_profiles_unavailable", path=str(path), error=str(exc))
        return ProfileCatalog()


@dataclass
class WorkerRegistry:
    """Provider keys (``gpt``, ``gemini``, ``grok``, ``llama``) mapped to fetchers."""

    fetchers: Dict[str, BaseFetcher] = field(default_factory=dict)
    default: str = DEFAULT_WORKER
    labels: Dict[str, str] = field(default_factory=dict)
    vision: Optional[OpenAICompatibleFetcher] = None

    def __post_init__(self) -> None:
        if self.default not in self.fetchers:
            raise ValueError(f"default worker {self.default!r} is not registered")

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkerRegistry":
        if settings.local_backend == "ollama":
            local: BaseFetcher = OllamaFetcher(
                "llama", endpoint=settings.ollama_url, model=settings.router_model, max_tokens=1024
            )
        else:
            local = OpenAICompatibleFetcher(
                "llama",
                endpoint=NVIDIA_ENDPOINT,
                credential_env="NVIDIA_API_KEY",
                model=settings.router_model,
                max_tokens=1024,
            )
        fetchers: Dict[str, BaseFetcher] = {
            "gpt": OpenAICompatibleFetcher(
                "gpt", endpoint=OPENAI_ENDPOINT, credential_env="OPENAI_API_KEY", model=settings.gpt_model
            ),
            "gemini": GoogleFetcher(
                "gemini",
                endpoint=DEFAULT_GOOGLE_ENDPOINT,
                credential_env="GEMINI_API_KEY",
                model=settings.gemini_model,
            ),
            "grok": OpenAICompatibleFetcher(
                "grok", endpoint=XAI_ENDPOINT, credential_env="XAI_API_KEY", model=settings.grok_model
            ),
            "llama": local,
        }
        labels = {
            "gpt": f"OpenAI / {settings.gpt_model} (strong at coding, reasoning)",
            "gemini": f"Google / {settings.gemini_model} (strong at planning, multimodal)",
            "grok": f"xAI / {settings.grok_model} (strong at reasoning, math, news)",
            "llama": f"Local {settings.router_model}",
        }
        vision = OpenAICompatibleFetcher(
            "vision",
            endpoint=NVIDIA_ENDPOINT,
            credential_env="NVIDIA_API_KEY",
            model=settings.vision_model,
            max_tokens=1024,
        )
        return cls(fetchers=fetchers, default=DEFAULT_WORKER, labels=labels, vision=vision)

    def keys(self) -> list[str]:
        return list(self.fetchers)

    def get(self, key: str) -> Optional[BaseFetcher]:
        return self.fetchers.get(key)

    def resolve(self, target: str) -> Tuple[str, BaseFetcher]:
        """Return ``(key, fetcher)`` for ``target``, falling back to the default worker."""
        if target in self.fetchers:
            return target, self.fetchers[target]
        return self.default, self.fetchers[self.default]

    @property
    def commander(self) -> BaseFetcher:
        return self.fetchers[self.default]

    def render_aliases(self) -> str:
        return "\n".join(f'- "{key}" = {self.labels.get(key, key)}.' for key in self.fetchers)


__all__ = [
    "WorkerProfile",
    "ProfileCatalog",
    "WorkerRegistry",
    "load_profile_catalog",
    "DEFAULT_WORKER",
    "ENSEMBLE",
]
