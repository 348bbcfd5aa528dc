"""Error taxonomy shared across the kernel."""

from __future__ import annotations


class AxisError(Exception):
    """Base class for kernel errors."""


class ProviderError(AxisError):
    """A provider call failed at the adapter boundary."""

    def __init__(self, message: str, *, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class MissingCredentialError(ProviderError):
    def __init__(self, env_key: str) -> None:
        super().__init__(f"{env_key} missing")
        self.env_key = env_key


class ProviderHTTPError(ProviderError):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"API Error [{status}]: {body}", status=status, body=body)


class ProviderReportedError(ProviderError):
    def __init__(self, body: str, status: int | None = None) -> None:
        super().__init__(f"API Returned Error: {body}", status=status, body=body)


class NoContentError(ProviderError):
    def __init__(self, body: str | None = None) -> None:
        super().__init__("No content in response", body=body)


class MemoryValidationError(AxisError):
    """A memory record violated an invariant and was not written."""


class CapabilityError(AxisError):
    """An external capability (screen, search, shell) failed."""


__all__ = [
    "AxisError",
    "ProviderError",
    "MissingCredentialError",
    "ProviderHTTPError",
    "ProviderReportedError",
    "NoContentError",
    "MemoryValidationError",
    "CapabilityError",
]
