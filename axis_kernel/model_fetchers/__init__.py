"""Provider fetchers for the Axis kernel."""

from .base_fetcher import BaseFetcher
from .google_fetcher import GoogleFetcher
from .ollama_fetcher import OllamaFetcher
from .openai_fetcher import OpenAICompatibleFetcher

__all__ = [
    "BaseFetcher",
    "GoogleFetcher",
    "OllamaFetcher",
    "OpenAICompatibleFetcher",
]
