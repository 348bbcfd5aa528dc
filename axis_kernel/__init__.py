"""Axis kernel: request routing, memory recall and action execution."""

__version__ = "0.3.0"

__all__ = ["__version__"]
