"""Relational message log with a trigram full-text index.

A secondary recall path: role-tagged messages per session plus an FTS5
``trigram`` index, which matches text without whitespace-delimited words.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import List

import aiosqlite

SCHEMA = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    FOREIGN KEY(session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
);

CREATE VIRTUAL TABLE IF NOT EXISTS message_index
USING fts5(content, session_id UNINDEXED, tokenize='trigram');
"""

_FTS_UNSAFE = str.maketrans({'"': " ", "*": " ", ":": " ", "-": " "})


def _now_ms() -> int:
    return int(time.time() * 1000)


def fts_phrase(query: str) -> str:
    """Quote ``query`` as one FTS5 phrase after blanking operator characters."""
    return '"' + query.translate(_FTS_UNSAFE).strip() + '"'


class RelationalLog:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._ready = False

    async def _connect(self) -> aiosqlite.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.path)
        await db.execute("PRAGMA foreign_keys = ON")
        if not self._ready:
            await db.executescript(SCHEMA)
            await db.commit()
            self._ready = True
        return db

    async def init(self) -> None:
        db = await self._connect()
        await db.close()

    async def save_message(self, session_id: str, role: str, content: str) -> None:
        now = _now_ms()
        db = await self._connect()
        try:
            await db.execute(
                "INSERT INTO sessions(session_id, title, created_at, updated_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET updated_at = excluded.updated_at",
                (session_id, f"session {session_id[:8]}", now, now),
            )
            await db.execute(
                "INSERT INTO messages(session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (session_id, role, content, now),
            )
            await db.execute(
                "INSERT INTO message_index(content, session_id) VALUES (?, ?)",
                (content, session_id),
            )
            await db.commit()
        finally:
            await db.close()

    async def save_interaction(self, session_id: str, user_text: str, assistant_text: str) -> None:
        await self.save_message(session_id, "user", user_text)
        await self.save_message(session_id, "assistant", assistant_text)

    async def messages(self, session_id: str) -> List[tuple[str, str]]:
        db = await self._connect()
        try:
            cur = await db.execute(
                "SELECT role, content FROM messages WHERE session_id = ? ORDER BY id",
                (session_id,),
            )
            rows = await cur.fetchall()
        finally:
            await db.close()
        return [(row[0], row[1]) for row in rows]

    async def search_similar(self, query: str, limit: int = 3) -> List[str]:
        phrase = fts_phrase(query)
        if phrase == '""':
            return []
        db = await self._connect()
        try:
            cur = await db.execute(
                "SELECT content FROM message_index WHERE message_index MATCH ? "
                "ORDER BY bm25(message_index) LIMIT ?",
                (phrase, limit),
            )
            rows = await cur.fetchall()
        finally:
            await db.close()
        return [row[0] for row in rows]

    async def delete_session(self, session_id: str) -> None:
        db = await self._connect()
        try:
            await db.execute("DELETE FROM message_index WHERE session_id = ?", (session_id,))
            await db.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            await db.commit()
        finally:
            await db.close()


__all__ = ["RelationalLog", "fts_phrase"]
