"""Request orchestration."""

from .orchestrator import AskResult, Orchestrator
from .session import SessionAssembler
from .task import Task

__all__ = ["AskResult", "Orchestrator", "SessionAssembler", "Task"]
