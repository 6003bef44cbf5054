"""
Backend adapter interface.

Each adapter owns everything protocol-specific about one family of LLM APIs:
request shape, tool-schema shape, error translation, function-call
detection, follow-up construction, canonical conversion and the stream
normalizer for its native events. The orchestrator only ever talks to this
interface.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from convollm.config.settings import LLMSettings
from convollm.llm.errors import BackendError
from convollm.llm.models import CanonicalCompletion, FunctionCall, Message, ToolSchema
from convollm.llm.streaming import FunctionCallHandler, StreamNormalizer

logger = logging.getLogger(__name__)

# A terminal native response, or an async iterator of native stream events
BackendResult = Any


class BackendAdapter(ABC):
    """
    Protocol adapter for one LLM API family.

    Args:
        settings: LLM configuration; optional values (api_key, api_base,
            temperature, max_tokens, timeout) are forwarded when set
    """

    name: str = "backend"

    def __init__(self, settings: LLMSettings):
        self._settings = settings

    @abstractmethod
    async def submit(
        self,
        messages: list[Message],
        tools: list[ToolSchema],
        model: str,
        streaming: bool,
    ) -> BackendResult:
        """
        Send one request.

        Returns the terminal native response, or (when ``streaming``) an async
        iterator of native events.

        Raises:
            BackendError: On any transport or provider failure
        """

    @abstractmethod
    def find_function_call(self, response: Any) -> FunctionCall | None:
        """Return the function call requested by a terminal response, if any."""

    @abstractmethod
    async def submit_follow_up(
        self,
        messages: list[Message],
        call: FunctionCall,
        result: str,
        model: str,
        streaming: bool,
    ) -> BackendResult:
        """Resubmit the conversation with the tool result appended (no tool schemas)."""

    @abstractmethod
    def to_completion(self, response: Any, model: str) -> CanonicalCompletion:
        """Convert a terminal native response to the canonical completion."""

    @abstractmethod
    def stream_normalizer(
        self,
        model: str,
        function_call_handler: FunctionCallHandler | None = None,
        completion_id: str | None = None,
        created: int | None = None,
    ) -> StreamNormalizer:
        """A fresh normalizer for one request's native stream."""

    def _optional_kwargs(self, max_tokens_key: str = "max_tokens") -> dict[str, Any]:
        settings = self._settings
        kwargs: dict[str, Any] = {}
        if settings.api_key:
            kwargs["api_key"] = settings.api_key
        if settings.api_base:
            kwargs["api_base"] = settings.api_base
        if settings.temperature is not None:
            kwargs["temperature"] = settings.temperature
        if settings.max_tokens is not None:
            kwargs[max_tokens_key] = settings.max_tokens
        if settings.timeout is not None:
            kwargs["timeout"] = settings.timeout
        return kwargs

    def _result(self, result: Any, streaming: bool) -> BackendResult:
        return _guard_stream(result) if streaming else result


async def _guard_stream(events: Any) -> AsyncIterator[Any]:
    """Re-raise errors from a native stream as BackendError."""
    try:
        async for event in events:
            yield event
    except BackendError:
        raise
    except Exception as e:
        raise BackendError.from_exception(e, prefix="LLM stream error") from e
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
