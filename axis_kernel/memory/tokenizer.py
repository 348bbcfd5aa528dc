"""Normalization and script-aware tokenization for memory search."""

from __future__ import annotations

from typing import List

_OTHER, _ASCII, _CJK = 0, 1, 2


def normalize_text(text: str) -> str:
    return text.lower().replace("　", " ").strip()


def _char_class(ch: str) -> int:
    if ch.isascii() and ch.isalnum():
        return _ASCII
    code = ord(ch)
    # hiragana/katakana and CJK unified ideographs
    if 0x3040 <= code <= 0x30FF or 0x4E00 <= code <= 0x9FFF:
        return _CJK
    return _OTHER


def _keep(token: str) -> bool:
    return len(token) >= 2 or token.isdigit()


def tokenize(text: str) -> List[str]:
    """Split normalized ``text`` into ASCII-alnum and CJK runs.

    Any other character ends the current run and is dropped. Runs shorter
    than two characters are discarded unless they are numeric.
    """
    tokens: List[str] = []
    current: List[str] = []
    current_class = _OTHER
    for ch in normalize_text(text):
        cls = _char_class(ch)
        if cls != current_class and current:
            token = "".join(current)
            if _keep(token):
                tokens.append(token)
            current = []
        current_class = cls
        if cls != _OTHER:
            current.append(ch)
    if current:
        token = "".join(current)
        if _keep(token):
            tokens.append(token)
    return tokens


__all__ = ["normalize_text", "tokenize"]
