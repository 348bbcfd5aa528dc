"""Command line interface for the Axis kernel.

Exposes one-shot requests, history management, memory maintenance and the
foreground-window observer through `Typer`.
"""

from __future__ import annotations

import asyncio
import json
import queue
from typing import Optional

import typer
from dotenv import load_dotenv

from axis_kernel.actions.capabilities import vital_stats
from axis_kernel.config import Settings
from axis_kernel.errors import MemoryValidationError
from axis_kernel.memory import MemoryIndex, MemoryKind
from axis_kernel.observer import Notification, Observer
from axis_kernel.orchestrator import Orchestrator
from axis_kernel.storage import HistoryLog
from axis_kernel.utils.logging import configure_logging

app = typer.Typer(add_completion=False, help="Axis personal-assistant kernel")
memory_app = typer.Typer(add_completion=False, help="Inspect and maintain the memory index")
app.add_typer(memory_app, name="memory")


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _index(ctx: typer.Context) -> MemoryIndex:
    return MemoryIndex(_settings(ctx).memory_dir)


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Optional[str] = typer.Option(None, help="Override the data directory"),
    env_file: Optional[str] = typer.Option(None, help="Load credentials from this .env file"),
) -> None:
    """Axis kernel command line interface."""
    load_dotenv(env_file)
    overrides = {"data_dir": data_dir} if data_dir else {}
    settings = Settings.load(**overrides)
    configure_logging(settings.log_level)
    ctx.obj = {"settings": settings}


@app.command()
def ask(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Request text"),
    session: str = typer.Option("default", help="Session identifier"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
) -> None:
    """Send one request through the pipeline."""
    orchestrator = Orchestrator.from_settings(_settings(ctx))
    result = asyncio.run(orchestrator.ask(text, session))
    if as_json:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        typer.echo(result.answer)


@app.command()
def history(
    ctx: typer.Context,
    session: Optional[str] = typer.Option(None, help="Only show this session"),
) -> None:
    """Print logged interactions."""
    log = HistoryLog(_settings(ctx).history_path)
    turns = log.for_session(session) if session else log.all()
    typer.echo(json.dumps([t.model_dump() for t in turns], ensure_ascii=False, indent=2))


@app.command()
def forget(ctx: typer.Context, session: str = typer.Argument(..., help="Session to delete")) -> None:
    """Delete a session from the interaction logs."""
    orchestrator = Orchestrator.from_settings(_settings(ctx))
    removed = asyncio.run(orchestrator.forget(session))
    typer.echo(f"Deleted {removed} turns from session {session}")


@app.command()
def vitals() -> None:
    """Show CPU, memory and battery figures."""
    typer.echo(json.dumps(vital_stats().to_dict(), indent=2))


@app.command()
def observe(
    interval: float = typer.Option(5.0, help="Seconds between polls"),
    ticks: int = typer.Option(0, help="Stop after this many polls (0 runs forever)"),
) -> None:
    """Watch the focused window and print notifications."""
    channel: "queue.Queue[Notification]" = queue.Queue()
    observer = Observer(channel, interval=interval)
    if ticks:
        for _ in range(ticks):
            note = observer.poll_once()
            if note is not None:
                typer.echo(str(note))
        return
    observer.start()
    try:
        while True:
            typer.echo(str(channel.get()))
    except KeyboardInterrupt:
        observer.stop()


@memory_app.command("search")
def memory_search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Query text"),
    k: int = typer.Option(5, help="Number of results"),
) -> None:
    """Rank memory records against a query."""
    hits = _index(ctx).retrieve_top_k(query, k)
    if not hits:
        typer.echo("No matching memories", err=True)
        raise typer.Exit(code=1)
    for hit in hits:
        typer.echo(f"{hit.score:.2f}\t{hit.id}\t{hit.entry.input.text[:80]}")


@memory_app.command("list")
def memory_list(ctx: typer.Context, limit: int = typer.Option(20, help="Maximum records")) -> None:
    """List metadata records, most recently updated first."""
    for meta in _index(ctx).list_meta()[:limit]:
        typer.echo(f"{meta.id}\t{meta.kind.value}\t{meta.importance:.2f}\t{','.join(meta.tags)}")


def _rekind(ctx: typer.Context, record_id: str, kind: MemoryKind, reason: Optional[str] = None) -> None:
    try:
        meta = _index(ctx).rekind(record_id, kind, reason)
    except KeyError:
        typer.echo(f"Memory record not found: {record_id}", err=True)
        raise typer.Exit(code=1)
    except MemoryValidationError as exc:
        typer.echo(f"Rejected: {exc}", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"{meta.id} -> {meta.kind.value}")


@memory_app.command("seal")
def memory_seal(
    ctx: typer.Context,
    record_id: str = typer.Argument(...),
    reason: str = typer.Option(..., help="Why the record is sealed"),
) -> None:
    """Seal a record so it is never recalled."""
    _rekind(ctx, record_id, MemoryKind.SEALED, reason)


@memory_app.command("promote")
def memory_promote(ctx: typer.Context, record_id: str = typer.Argument(...)) -> None:
    """Promote a record to long-term memory."""
    _rekind(ctx, record_id, MemoryKind.LONG_TERM)


@memory_app.command("delete")
def memory_delete(ctx: typer.Context, record_id: str = typer.Argument(...)) -> None:
    """Delete a record and its metadata."""
    try:
        found = _index(ctx).delete(record_id)
    except MemoryValidationError as exc:
        typer.echo(f"Rejected: {exc}", err=True)
        raise typer.Exit(code=2)
    if not found:
        typer.echo(f"Memory record not found: {record_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted {record_id}")


if __name__ == "__main__":  # pragma: no cover
    app()
