"""
Error taxonomy for the orchestration engine.

HTTP mapping (see convollm.server.app):
    CallerInputError          -> 400
    BackendError              -> 500 (backend message preserved)
    InvalidFunctionArguments  -> 500

UnknownTool and FormattingError never leave the engine: an unknown tool
returns the unexecuted response, and the formatter returns a placeholder
completion instead of raising.
"""

from __future__ import annotations

from typing import Any


class OrchestrationError(Exception):
    """Base class for all errors raised by the engine."""

    status_code = 500


class CallerInputError(OrchestrationError):
    """The inbound request is missing a required field or is malformed."""

    status_code = 400


class BackendError(OrchestrationError):
    """
    Transport or model-provider failure.

    Attributes:
        status: HTTP status reported by the provider, if any
        detail: Structured error payload reported by the provider, if any
    """

    def __init__(self, message: str, status: int | None = None, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.detail = detail

    @classmethod
    def from_exception(cls, exc: Exception, prefix: str = "LLM backend error") -> BackendError:
        """Wrap any transport exception, keeping its status and error detail."""
        status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
        if not isinstance(status, int):
            status = None
        detail = getattr(exc, "body", None) or getattr(exc, "error", None)
        return cls(f"{prefix}: {exc}", status=status, detail=detail)


class InvalidFunctionArguments(OrchestrationError):
    """The model produced a function call whose arguments are not a JSON object."""

    def __init__(self, name: str, arguments: str, reason: str):
        super().__init__(f"Invalid function call arguments for '{name}': {reason}")
        self.name = name
        self.arguments = arguments


class UnknownTool(OrchestrationError):
    """The model requested a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown function name: {name}")
        self.name = name


class FormattingError(OrchestrationError):
    """A native response could not be converted to the canonical shape."""
