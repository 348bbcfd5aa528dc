from dataclasses import dataclass


@dataclass
class Task:
    """One inbound request."""

    text: str
    session_id: str = "default"
