"""Parser for the worker action mini-language.

A reply is a chain of commands joined by ``" && "``. Each command is matched
against an ordered rule table and the first rule that matches decides its
type. The order is fixed: ``LOOK``, ``APPS``, ``SEARCH:``, ``SAVE:``,
``EXEC:``, ``TYPE:``, ``PRESS:``, ``WAIT:``. ``LOOK`` and ``APPS`` must be
the whole command, ``SAVE:`` may appear anywhere in it (workers sometimes
emit ``EXECUTE SAVE:``), the rest are prefixes. Because ``SEARCH:`` is
checked before ``SAVE:``, ``"SEARCH: x SAVE: y"`` is a search, and because
``SAVE:`` is checked before ``EXEC:``, ``"EXEC: SAVE: a ||| b"`` is a save.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

SEPARATOR = " && "
SAVE_SEPARATOR = "|||"
TRIGGER_MARKERS = ("EXEC:", "TYPE:", "SEARCH:", "APPS", "LOOK", "SAVE:")
SKIP_TOKENS = ("", "NO")


@dataclass(frozen=True)
class Look:
    pass


@dataclass(frozen=True)
class Apps:
    pass


@dataclass(frozen=True)
class Search:
    query: str


@dataclass(frozen=True)
class Save:
    filename: str
    content: str


@dataclass(frozen=True)
class InvalidSave:
    raw: str


@dataclass(frozen=True)
class Exec:
    app: str


@dataclass(frozen=True)
class TypeText:
    text: str
    target: Optional[str] = None


@dataclass(frozen=True)
class Press:
    key: str


@dataclass(frozen=True)
class Wait:
    ms: Optional[int]


@dataclass(frozen=True)
class Unknown:
    raw: str


Command = Union[Look, Apps, Search, Save, InvalidSave, Exec, TypeText, Press, Wait, Unknown]


def has_commands(reply: str) -> bool:
    return any(marker in reply for marker in TRIGGER_MARKERS)


def _after(cmd: str, marker: str) -> str:
    return cmd[cmd.index(marker) + len(marker):].strip()


def _parse_save(cmd: str) -> Command:
    payload = _after(cmd, "SAVE:")
    filename, sep, content = payload.partition(SAVE_SEPARATOR)
    if not sep:
        return InvalidSave(cmd)
    return Save(filename.strip(), content.strip())


def _parse_type(cmd: str) -> Command:
    text, sep, target = _after(cmd, "TYPE:").partition("@")
    if sep:
        return TypeText(text.strip(), target.strip() or None)
    return TypeText(text.strip())


def _parse_wait(cmd: str) -> Command:
    arg = _after(cmd, "WAIT:")
    return Wait(int(arg) if arg.isascii() and arg.isdigit() else None)


def parse_command(cmd: str) -> Command:
    cmd = cmd.strip()
    if cmd == "LOOK":
        return Look()
    if cmd == "APPS":
        return Apps()
    if cmd.startswith("SEARCH:"):
        return Search(_after(cmd, "SEARCH:"))
    if "SAVE:" in cmd:
        return _parse_save(cmd)
    if cmd.startswith("EXEC:"):
        return Exec(_after(cmd, "EXEC:"))
    if cmd.startswith("TYPE:"):
        return _parse_type(cmd)
    if cmd.startswith("PRESS:"):
        return Press(_after(cmd, "PRESS:"))
    if cmd.startswith("WAIT:"):
        return _parse_wait(cmd)
    return Unknown(cmd)


def parse_chain(reply: str) -> List[Command]:
    """Split ``reply`` on the separator and parse each non-skipped command."""
    commands: List[Command] = []
    for part in reply.split(SEPARATOR):
        part = part.strip()
        if part in SKIP_TOKENS:
            continue
        commands.append(parse_command(part))
    return commands


__all__ = [
    "Command",
    "Look",
    "Apps",
    "Search",
    "Save",
    "InvalidSave",
    "Exec",
    "TypeText",
    "Press",
    "Wait",
    "Unknown",
    "has_commands",
    "parse_command",
    "parse_chain",
]
