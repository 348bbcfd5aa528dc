"""Action interpreter: runs a worker's command chain and reports on it.

Commands run strictly in order. A failing command adds a note to the
transcript and the chain continues. When the transcript ends up non-empty
a second provider call turns it into the user-facing answer.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

from prometheus_client import Counter

from axis_kernel.actions.capabilities import Capabilities
from axis_kernel.actions.commands import (
    Apps,
    Command,
    Exec,
    InvalidSave,
    Look,
    Press,
    Save,
    Search,
    TypeText,
    Unknown,
    Wait,
    has_commands,
    parse_chain,
)
from axis_kernel.actions.web import SearchProvider, SearchResult
from axis_kernel.errors import ProviderError
from axis_kernel.model.registry import WorkerRegistry
from axis_kernel.utils.logging import logger

ACTIONS_TOTAL = Counter(
    "axis_actions_total",
    "Executed action commands by outcome",
    ["command", "outcome"],
)

MAX_LISTED_APPS = 10
REPORT_FALLBACK = "Done."
SAVE_FORMAT_ERROR = "[System] Save Error: Invalid format. Use 'SAVE: filename ||| content'"

DescribeImage = Callable[[str, str], Awaitable[str]]
Sleep = Callable[[float], Awaitable[None]]


class Transcript:
    """Per-request log of action side effects."""

    def __init__(self) -> None:
        self._lines: List[str] = []

    def add(self, line: str) -> None:
        self._lines.append(line)

    def __bool__(self) -> bool:
        return bool(self._lines)

    @property
    def text(self) -> str:
        return "".join(f"{line}\n" for line in self._lines)


@dataclass
class ActionOutcome:
    answer: str
    transcript: str = ""
    commands: List[Command] = field(default_factory=list)

    @property
    def actions_ran(self) -> bool:
        return bool(self.transcript)


class ActionInterpreter:
    def __init__(
        self,
        registry: WorkerRegistry,
        capabilities: Capabilities,
        search_providers: Sequence[SearchProvider],
        output_dir: Path | str,
        *,
        describe_image: Optional[DescribeImage] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.registry = registry
        self.capabilities = capabilities
        self.search_providers = list(search_providers)
        self.output_dir = Path(output_dir)
        self.describe_image = describe_image
        self._sleep = sleep

    async def interpret(self, reply: str, target: str) -> ActionOutcome:
        """Return the final answer for a sanitized worker ``reply``."""
        if not has_commands(reply):
            return ActionOutcome(answer=reply)
        commands = parse_chain(reply)
        transcript = await self.execute(commands)
        if not transcript:
            return ActionOutcome(answer=reply, commands=commands)
        answer = await self.report(transcript.text, target)
        return ActionOutcome(answer=answer, transcript=transcript.text, commands=commands)

    async def execute(self, commands: Sequence[Command]) -> Transcript:
        transcript = Transcript()
        for command in commands:
            kind = type(command).__name__.lower()
            try:
                await self._dispatch(command, transcript)
            except Exception as exc:  # noqa: BLE001
                logger.warning("action_failed", command=kind, error=str(exc))
                transcript.add(f"[System] {type(command).__name__} Error: {exc}")
                ACTIONS_TOTAL.labels(kind, "error").inc()
            else:
                ACTIONS_TOTAL.labels(kind, "ok").inc()
        return transcript

    async def _dispatch(self, command: Command, transcript: Transcript) -> None:
        if isinstance(command, Look):
            await self._look(transcript)
        elif isinstance(command, Apps):
            apps = await asyncio.to_thread(self.capabilities.list_running_apps)
            transcript.add("[System] Running Apps:")
            for idx, name in enumerate(apps[:MAX_LISTED_APPS], start=1):
                transcript.add(f"{idx}. {name}")
        elif isinstance(command, Search):
            await self._search(command.query, transcript)
        elif isinstance(command, Save):
            transcript.add(self._save(command.filename, command.content))
        elif isinstance(command, InvalidSave):
            transcript.add(SAVE_FORMAT_ERROR)
        elif isinstance(command, Exec):
            transcript.add(await asyncio.to_thread(self.capabilities.launch_app, command.app))
        elif isinstance(command, TypeText):
            transcript.add(await asyncio.to_thread(self.capabilities.type_text, command.text, command.target))
        elif isinstance(command, Press):
            transcript.add(await asyncio.to_thread(self.capabilities.press_key, command.key))
        elif isinstance(command, Wait):
            if command.ms is not None:
                await self._sleep(command.ms / 1000.0)
        elif isinstance(command, Unknown):
            logger.debug("action_ignored", raw=command.raw)

    async def _look(self, transcript: Transcript) -> None:
        try:
            image_b64 = await asyncio.to_thread(self.capabilities.capture_screenshot)
        except Exception as exc:  # noqa: BLE001
            transcript.add(f"[System] Screen capture failed: {exc}")
            return
        transcript.add("[System] Analyzed screen.")
        if self.describe_image is None:
            description = "[Vision Agent Error] no vision model configured"
        else:
            description = await self.describe_image(image_b64, "Describe screen.")
        transcript.add(f"\n[Vision Report]\n{description}")

    async def _search(self, query: str, transcript: Transcript) -> None:
        results: List[SearchResult] = []
        provider_name = ""
        for provider in self.search_providers:
            provider_name = provider.name
            try:
                results = await provider.search(query)
            except Exception as exc:  # noqa: BLE001
                transcript.add(f"Search Error ({provider.name}): {exc}")
                results = []
            if results:
                break
        if not results:
            transcript.add("No search results found from both sources.")
            return
        transcript.add(f"[Search Results: {provider_name}]")
        for result in results:
            transcript.add(f"- {result.title} ({result.link})")

    def _save(self, filename: str, content: str) -> str:
        root = self.output_dir.expanduser().resolve()
        path = (root / filename).resolve()
        if not filename or not path.is_relative_to(root) or path == root:
            return f"[System] File Save Error: invalid filename {filename!r}"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            return f"[System] File Save Error: {exc}"
        return f"[System] File saved successfully: {path}"

    async def report(self, transcript_text: str, target: str) -> str:
        prompt = f"Report the result based on log:\n{transcript_text}"
        if target == "grok":
            key, style = "grok", "Report witty."
        else:
            key, style = "gpt", "Report briefly."
        _, fetcher = self.registry.resolve(key)
        try:
            return await fetcher.generate(style, prompt)
        except ProviderError as exc:
            logger.warning("report_failed", target=key, error=str(exc))
            return REPORT_FALLBACK


__all__ = ["ActionInterpreter", "ActionOutcome", "Transcript", "SAVE_FORMAT_ERROR", "REPORT_FALLBACK"]
