from __future__ import annotations

"""Prompt rendering with Jinja2 templates shipped in ``axis_kernel/prompts``."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from jinja2 import Environment, FileSystemLoader, StrictUndefined, meta

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent / "prompts"


@dataclass
class PromptManager:
    """Render named prompt templates, refusing to render with missing variables."""

    templates_dir: str | Path = DEFAULT_TEMPLATES_DIR

    def __post_init__(self) -> None:
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=False,
            autoescape=False,
        )

    def _validate(self, template_name: str, variables: Iterable[str]) -> None:
        """Ensure all variables required by the template are present."""
        source, *_ = self.env.loader.get_source(self.env, template_name)
        required = meta.find_undeclared_variables(self.env.parse(source))
        missing = set(required) - set(variables)
        if missing:
            raise ValueError(f"Missing variables for template {template_name}: {', '.join(sorted(missing))}")

    def render(self, template_name: str, **data: Any) -> str:
        self._validate(template_name, data.keys())
        return self.env.get_template(template_name).render(**data)


__all__ = ["PromptManager", "DEFAULT_TEMPLATES_DIR"]
