"""Configuration for the Axis kernel.

Settings come from ``AXIS_*`` environment variables (or a ``.env`` file).
Per-role model overrides also accept their bare names (``GPT_MODEL`` ...)
so existing environments keep working. Provider credentials are not part of
:class:`Settings`; adapters read them from the process environment at call
time.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_PROFILES_PATH = DEFAULT_CONFIG_DIR / "model_profiles.json"


def _aliases(name: str, bare: str) -> AliasChoices:
    return AliasChoices(name, f"AXIS_{bare}", bare)


class Settings(BaseSettings):
    """Kernel settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AXIS_",
        extra="ignore",
        populate_by_name=True,
    )

    router_model: str = Field(
        "meta/llama-3.1-70b-instruct",
        validation_alias=_aliases("router_model", "AI_MODEL"),
        description="Arbitration model; also the local default worker",
    )
    gpt_model: str = Field("gpt-5-nano", validation_alias=_aliases("gpt_model", "GPT_MODEL"))
    gemini_model: str = Field("gemini-2.5-flash", validation_alias=_aliases("gemini_model", "GEMINI_MODEL"))
    grok_model: str = Field("grok-4-1-fast-reasoning", validation_alias=_aliases("grok_model", "GROK_MODEL"))
    vision_model: str = Field(
        "meta/llama-3.2-11b-vision-instruct",
        validation_alias=_aliases("vision_model", "VISION_MODEL"),
    )
    memory_direct_threshold: float = Field(
        6.0,
        validation_alias=_aliases("memory_direct_threshold", "MEMORY_DIRECT_THRESHOLD"),
        description="Score at which a memory hit answers a request directly",
    )
    memory_direct_recall: bool = Field(False, description="Answer from memory when the threshold is met")

    data_dir: Path = Field(Path("~/.axis"), description="Root for memory, history and the relational log")
    output_dir: Path = Field(Path("~/Desktop"), description="Directory SAVE actions write into")
    profiles_path: Path = Field(DEFAULT_PROFILES_PATH, description="Worker capability profiles JSON")
    local_backend: Literal["nvidia", "ollama"] = "nvidia"
    ollama_url: str = "http://localhost:11434/api/chat"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging verbosity"
    )

    @field_validator("data_dir", "output_dir", "profiles_path", mode="after")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return value.expanduser()

    @property
    def memory_dir(self) -> Path:
        return self.data_dir / "axis_memory"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history.json"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "memory.db"

    @classmethod
    def load(cls, **overrides: Any) -> "Settings":
        """Load settings using optional env file from ``AXIS_CONFIG_FILE``."""
        env_file = os.getenv("AXIS_CONFIG_FILE")
        kwargs: Dict[str, Any] = {"_env_file": env_file} if env_file else {}
        kwargs.update(overrides)
        return cls(**kwargs)


def load_json(path: Path) -> Dict[str, Any]:
    """Return a JSON object from ``path`` or ``{}`` if it is missing or invalid."""
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError):
        return {}
    if isinstance(data, dict):
        return data
    return {}


__all__ = ["Settings", "load_json", "DEFAULT_PROFILES_PATH"]
