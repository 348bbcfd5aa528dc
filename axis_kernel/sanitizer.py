"""Strip meta-commentary that workers sometimes leak into their replies.

This is best-effort leak suppression, not a parser: a reply that happens to
contain one of the markers in ordinary prose will be trimmed as well.
"""

from __future__ import annotations

CONVERSATION_LABEL = "CONVERSATION:"
NATURAL_RESPONSE_MARKER = "Here's a natural response:"
LEAK_MARKERS = ("To classify", "[Phase", "Therefore,")


def sanitize(text: str) -> str:
    out = text.strip()

    if out.startswith(CONVERSATION_LABEL):
        out = out[len(CONVERSATION_LABEL):].strip()

    pos = out.rfind(NATURAL_RESPONSE_MARKER)
    if pos != -1:
        out = out[pos + len(NATURAL_RESPONSE_MARKER):].strip()

    if any(marker in out for marker in LEAK_MARKERS):
        pos = out.rfind("\n\n")
        if pos != -1:
            out = out[pos + 2:].strip()

    return out


__all__ = ["sanitize"]
