"""Request pipeline: route, run the worker, interpret actions, persist."""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence

from axis_kernel.actions import (
    ActionInterpreter,
    Capabilities,
    DesktopCapabilities,
    DuckDuckGoSearch,
    EncyclopediaSearch,
)
from axis_kernel.actions.web import SearchProvider
from axis_kernel.config import Settings
from axis_kernel.errors import ProviderError
from axis_kernel.memory import MemoryIndex
from axis_kernel.model import ProfileCatalog, WorkerRegistry, load_profile_catalog
from axis_kernel.model_fetchers import BaseFetcher
from axis_kernel.prompt import PromptManager
from axis_kernel.router import Commander, RoutingDecision
from axis_kernel.sanitizer import sanitize
from axis_kernel.storage import HistoryLog, RelationalLog
from axis_kernel.utils.logging import log_event, logger
from axis_kernel.utils.tracing import async_span, tracer

from .session import SessionAssembler
from .task import Task

LOCAL_WORKER_TEMPERATURE = 0.7
ENSEMBLE_MEMBERS = ("gpt", "gemini")


@dataclass
class AskResult:
    answer: str
    session_id: str
    provider_used: str
    target: str
    task_type: str = ""
    actions_ran: bool = False
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Orchestrator:
    def __init__(
        self,
        settings: Settings,
        registry: WorkerRegistry,
        catalog: ProfileCatalog,
        assembler: SessionAssembler,
        interpreter: ActionInterpreter,
        *,
        commander: Commander | None = None,
        prompts: PromptManager | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.catalog = catalog
        self.assembler = assembler
        self.interpreter = interpreter
        self.prompts = prompts or PromptManager()
        self.commander = commander or Commander(registry, catalog, self.prompts)
        self.worker_prompt = self.prompts.render("worker.txt")

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        registry: WorkerRegistry | None = None,
        capabilities: Capabilities | None = None,
        search_providers: Sequence[SearchProvider] | None = None,
    ) -> "Orchestrator":
        settings = settings or Settings.load()
        registry = registry or WorkerRegistry.from_settings(settings)
        catalog = load_profile_catalog(settings.profiles_path)
        assembler = SessionAssembler(
            HistoryLog(settings.history_path),
            MemoryIndex(settings.memory_dir),
            RelationalLog(settings.db_path),
        )
        describe = registry.vision.describe_image if registry.vision is not None else None
        interpreter = ActionInterpreter(
            registry,
            capabilities or DesktopCapabilities(),
            search_providers if search_providers is not None else [EncyclopediaSearch(), DuckDuckGoSearch()],
            settings.output_dir,
            describe_image=describe,
        )
        return cls(settings, registry, catalog, assembler, interpreter)

    @property
    def commander_key(self) -> str:
        return self.registry.default

    @staticmethod
    async def _quiet(fetcher: Optional[BaseFetcher], system_prompt: str, user_text: str) -> str:
        if fetcher is None:
            return ""
        try:
            return await fetcher.generate(system_prompt, user_text)
        except ProviderError as exc:
            logger.warning("ensemble_member_failed", worker=fetcher.name, error=str(exc))
            return ""

    async def run_worker(self, decision: RoutingDecision, task_input: str, raw_input: str) -> tuple[str, str]:
        """Return ``(worker_key, raw_reply)`` for ``decision``."""
        if decision.is_ensemble:
            first, second = (self.registry.get(key) for key in ENSEMBLE_MEMBERS)
            a, b = await asyncio.gather(
                self._quiet(first, self.worker_prompt, task_input),
                self._quiet(second, self.worker_prompt, task_input),
            )
            return decision.target, f"GPT: {a}\nGemini: {b}"

        key, fetcher = self.registry.resolve(decision.target)
        try:
            if key == self.registry.default:
                reply = await fetcher.generate(
                    self.worker_prompt, raw_input, temperature=LOCAL_WORKER_TEMPERATURE
                )
            else:
                reply = await fetcher.generate(self.worker_prompt, task_input)
        except ProviderError as exc:
            logger.warning("worker_failed", worker=key, error=str(exc))
            reply = f"Error: {exc}"
        return key, reply

    async def _direct_recall(self, text: str, session_id: str, start: float) -> Optional[AskResult]:
        if not self.settings.memory_direct_recall:
            return None
        try:
            best = await asyncio.to_thread(self.assembler.index.search_best, text)
        except OSError as exc:
            logger.warning("direct_recall_failed", error=str(exc))
            return None
        if best is None or best.score < self.settings.memory_direct_threshold:
            return None
        answer = best.entry.output.text
        await self.assembler.finalize(
            session_id,
            text,
            answer,
            provider_used="memory",
            provider="memory",
            task_type=best.meta.task_type,
            source="memory",
        )
        return AskResult(
            answer=answer,
            session_id=session_id,
            provider_used="memory",
            target="memory",
            task_type=best.meta.task_type or "",
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    async def ask(self, text: str, session_id: str = "default") -> AskResult:
        start = time.monotonic()
        async with async_span("ask", tracer, attributes={"session_id": session_id}):
            recalled = await self._direct_recall(text, session_id, start)
            if recalled is not None:
                await self._log_complete(recalled)
                return recalled

            history_text = await asyncio.to_thread(self.assembler.history_context, session_id)
            memory_text = await self.assembler.memory_context(text)

            async with async_span("route", tracer):
                decision = await self.commander.route(history_text, text)
            logger.info("routed", target=decision.target, task_type=decision.task_type, reason=decision.reason)

            task_input = f"Context:\n{history_text}\n{memory_text}\n\nUser Request: {text}"
            async with async_span("worker", tracer, attributes={"target": decision.target}):
                worker_key, raw = await self.run_worker(decision, task_input, text)

            reply = sanitize(raw)
            async with async_span("actions", tracer):
                outcome = await self.interpreter.interpret(reply, worker_key)

            provider_used = f"{self.commander_key}→{worker_key}"
            await self.assembler.finalize(
                session_id,
                text,
                outcome.answer,
                provider_used=provider_used,
                provider=worker_key,
                task_type=decision.task_type,
            )
            result = AskResult(
                answer=outcome.answer,
                session_id=session_id,
                provider_used=provider_used,
                target=worker_key,
                task_type=decision.task_type,
                actions_ran=outcome.actions_ran,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            await self._log_complete(result)
            return result

    async def run(self, task: Task | dict) -> AskResult:
        if isinstance(task, dict):
            task = Task(**task)
        return await self.ask(task.text, task.session_id)

    async def forget(self, session_id: str) -> int:
        """Delete a session from the interaction logs."""
        removed = await asyncio.to_thread(self.assembler.history.delete_session, session_id)
        if self.assembler.relational is not None:
            try:
                await self.assembler.relational.delete_session(session_id)
            except Exception as exc:  # noqa: BLE001
                logger.warning("relational_delete_failed", session=session_id, error=str(exc))
        return removed

    async def _log_complete(self, result: AskResult) -> None:
        try:
            await log_event("ask_complete", result.to_dict())
        except Exception as exc:  # noqa: BLE001
            logger.warning("log_event_failed", error=str(exc))


__all__ = ["Orchestrator", "AskResult"]
