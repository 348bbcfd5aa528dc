"""Commander: one arbitration call that picks the worker for a request.

The commander never fails its caller. Anything that goes wrong (provider
error, prose without JSON, JSON of the wrong shape) collapses into
:meth:`RoutingDecision.fallback`.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from prometheus_client import Counter
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from axis_kernel.errors import ProviderError
from axis_kernel.model.registry import ENSEMBLE, ProfileCatalog, WorkerRegistry
from axis_kernel.prompt import PromptManager
from axis_kernel.utils.logging import logger

ROUTE_DECISIONS = Counter(
    "axis_route_decisions_total",
    "Routing decisions by target and strategy",
    ["target", "strategy"],
)

ARBITRATION_TEMPERATURE = 0.1
FALLBACK_TARGET = "gpt"


class RoutingDecision(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    target: str
    strategy: str = "general"
    reason: str = "Default decision"
    task_type: str = Field("", validation_alias=AliasChoices("task_type", "taskType"))

    @field_validator("target")
    @classmethod
    def _normalize_target(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("empty target")
        return value

    @classmethod
    def fallback(cls) -> "RoutingDecision":
        return cls(target=FALLBACK_TARGET, strategy="fallback", reason="parse failed")

    @property
    def is_ensemble(self) -> bool:
        return self.target == ENSEMBLE


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span in ``text``.

    Braces inside JSON strings are ignored. ``None`` when no span closes.
    """
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start: idx + 1]
    return None


def parse_decision(raw: str) -> RoutingDecision:
    span = extract_json_object(raw)
    if span is None:
        return RoutingDecision.fallback()
    try:
        data: Any = json.loads(span)
        return RoutingDecision.model_validate(data)
    except (ValueError, ValidationError):
        return RoutingDecision.fallback()


class Commander:
    """Ask the arbitration model which worker should answer."""

    def __init__(
        self,
        registry: WorkerRegistry,
        catalog: ProfileCatalog,
        prompts: PromptManager | None = None,
        *,
        temperature: float = ARBITRATION_TEMPERATURE,
    ) -> None:
        self.registry = registry
        self.catalog = catalog
        self.prompts = prompts or PromptManager()
        self.temperature = temperature

    def build_prompt(self, context_text: str, profiles_text: str) -> str:
        targets = [*self.registry.keys(), ENSEMBLE]
        return self.prompts.render(
            "dispatch.txt",
            profiles=profiles_text,
            context=context_text,
            aliases=self.registry.render_aliases(),
            targets=", ".join(f'"{t}"' for t in targets),
            targets_bar="|".join(targets),
        )

    async def decide(self, context_text: str, profiles_text: str, user_text: str) -> RoutingDecision:
        system_prompt = self.build_prompt(context_text, profiles_text)
        try:
            raw = await self.registry.commander.generate(
                system_prompt, user_text, temperature=self.temperature
            )
        except ProviderError as exc:
            logger.warning("routing_call_failed", error=str(exc))
            decision = RoutingDecision.fallback()
        else:
            decision = parse_decision(raw)
            if decision.strategy == "fallback" and decision.reason == "parse failed":
                logger.warning("routing_parse_failed", raw=raw[:200])
        ROUTE_DECISIONS.labels(decision.target, decision.strategy).inc()
        return decision

    async def route(self, context_text: str, user_text: str) -> RoutingDecision:
        return await self.decide(context_text, self.catalog.render(), user_text)


__all__ = ["Commander", "RoutingDecision", "extract_json_object", "parse_decision"]
