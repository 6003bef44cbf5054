"""
Responses-API backend (transcript style).

The conversation is flattened into one role-labelled transcript and sent to
LiteLLM ``aresponses``. A tool result is fed back by extending the transcript
with a synthetic assistant turn announcing the call and a function turn
carrying the result. Native stream events are typed
(``response.output_text.delta``, ``response.function_call_arguments.delta``,
...) and are dispatched by type in ResponsesStreamNormalizer.
"""

from __future__ import annotations

import logging
from typing import Any

from litellm import aresponses

from convollm.llm.backends.base import BackendAdapter, BackendResult
from convollm.llm.errors import BackendError
from convollm.llm.formatter import find_function_call_item, format_response
from convollm.llm.function_calls import PendingFunctionCall
from convollm.llm.models import CanonicalChunk, CanonicalCompletion, FunctionCall, Message, ToolSchema
from convollm.llm.native import as_dict, event_type, field
from convollm.llm.streaming import FunctionCallHandler, StreamNormalizer

logger = logging.getLogger(__name__)

_ROLE_LABELS = {
    "system": "System",
    "user": "User",
    "assistant": "Assistant",
}


def flatten_transcript(messages: list[Message]) -> str:
    """
    Render messages as a blank-line separated transcript.

    Example:
        >>> flatten_transcript([Message(role="user", content="Hi")])
        'User: Hi'
    """
    lines = []
    for message in messages:
        content = message.content or ""
        if message.role == "function":
            lines.append(f"Function ({message.name}): {content}")
        else:
            lines.append(f"{_ROLE_LABELS.get(message.role, message.role)}: {content}")
    return "\n\n".join(lines)


def follow_up_transcript(messages: list[Message], call: FunctionCall, result: str) -> str:
    """The original transcript plus the announced call and its result."""
    return (
        f"{flatten_transcript(messages)}"
        f"\n\nAssistant: I'll call the function '{call.name}' with these arguments: {call.arguments}"
        f"\n\nFunction ({call.name}): {result}"
    )


class ResponsesBackend(BackendAdapter):
    """Adapter for Responses-style APIs via ``litellm.aresponses``."""

    name = "responses"

    async def submit(
        self,
        messages: list[Message],
        tools: list[ToolSchema],
        model: str,
        streaming: bool,
    ) -> BackendResult:
        return await self._send(flatten_transcript(messages), tools, model, streaming)

    async def _send(
        self, transcript: str, tools: list[ToolSchema], model: str, streaming: bool
    ) -> BackendResult:
        call_kwargs: dict[str, Any] = {
            "model": model,
            "input": transcript,
            "stream": streaming,
            **self._optional_kwargs(max_tokens_key="max_output_tokens"),
        }
        if tools:
            call_kwargs["tools"] = [
                {
                    "type": "function",
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                }
                for tool in tools
            ]

        logger.debug(
            f"Submitting transcript of {len(transcript)} characters to {model} "
            f"(stream={streaming}, tools={len(tools)})"
        )
        try:
            response = await aresponses(**call_kwargs)
        except Exception as e:
            raise BackendError.from_exception(e) from e

        return self._result(response, streaming)

    def find_function_call(self, response: Any) -> FunctionCall | None:
        output = field(response, "output", [])
        if not isinstance(output, (list, tuple)):
            return None
        return find_function_call_item([as_dict(item) for item in output])

    async def submit_follow_up(
        self,
        messages: list[Message],
        call: FunctionCall,
        result: str,
        model: str,
        streaming: bool,
    ) -> BackendResult:
        return await self._send(follow_up_transcript(messages, call, result), [], model, streaming)

    def to_completion(self, response: Any, model: str) -> CanonicalCompletion:
        return format_response(response, model)

    def stream_normalizer(
        self,
        model: str,
        function_call_handler: FunctionCallHandler | None = None,
        completion_id: str | None = None,
        created: int | None = None,
    ) -> StreamNormalizer:
        return ResponsesStreamNormalizer(model, function_call_handler, completion_id, created)


class ResponsesStreamNormalizer(StreamNormalizer):
    """Normalizes ``aresponses`` stream events, dispatching on ``event.type``."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._call_claimed = False
        self._call_item_id: str | None = None
        self._call_closed = False
        self._handlers = {
            "response.created": self._on_created,
            "response.output_text.delta": self._on_text_delta,
            "response.refusal.delta": self._on_text_delta,
            "response.output_text.done": self._ignore,
            "response.output_item.added": self._on_item_added,
            "response.output_item.done": self._on_item_done,
            "response.function_call_arguments.delta": self._on_arguments_delta,
            "response.function_call_arguments.done": self._on_arguments_done,
            "response.completed": self._on_completed,
            "response.failed": self._on_failed,
            "error": self._on_error,
        }

    def handle_event(self, event: Any) -> list[CanonicalChunk]:
        kind = event_type(event)
        handler = self._handlers.get(kind)
        if handler is None:
            logger.debug(f"Ignoring stream event: {kind}")
            return []
        return handler(event)

    def _ignore(self, event: Any) -> list[CanonicalChunk]:
        return []

    def _on_created(self, event: Any) -> list[CanonicalChunk]:
        response_id = field(field(event, "response"), "id")
        if isinstance(response_id, str) and response_id and not self.completion_id_fixed:
            self.completion_id = response_id
        return []

    def _on_text_delta(self, event: Any) -> list[CanonicalChunk]:
        delta = field(event, "delta")
        if not isinstance(delta, str) or not delta:
            return []
        return [self._content_chunk(delta)]

    def _on_item_added(self, event: Any) -> list[CanonicalChunk]:
        item = field(event, "item")
        if field(item, "type") != "function_call" or not self._claims(field(item, "id")):
            return []
        return [self._function_call_chunk(name=field(item, "name"))]

    def _on_arguments_delta(self, event: Any) -> list[CanonicalChunk]:
        delta = field(event, "delta")
        if not isinstance(delta, str) or not delta or not self._claims(field(event, "item_id")):
            return []
        return [self._function_call_chunk(arguments=delta)]

    def _on_arguments_done(self, event: Any) -> list[CanonicalChunk]:
        if not self._claims(field(event, "item_id")):
            return []
        self._ensure_pending()
        arguments = field(event, "arguments")
        if isinstance(arguments, str) and arguments:
            self.pending.arguments = arguments
        self._call_closed = True
        return self._finish_chunks("function_call")

    def _on_item_done(self, event: Any) -> list[CanonicalChunk]:
        item = field(event, "item")
        if field(item, "type") != "function_call" or not self._claims(field(item, "id"), done=True):
            return []
        self._ensure_pending()
        name = field(item, "name")
        arguments = field(item, "arguments")
        if not self.pending.name and isinstance(name, str):
            self.pending.name = name
        if not self.pending.arguments and isinstance(arguments, str):
            self.pending.arguments = arguments
        self._call_closed = True
        return []

    def _on_completed(self, event: Any) -> list[CanonicalChunk]:
        return self._finish()

    def _on_failed(self, event: Any) -> list[CanonicalChunk]:
        error = field(field(event, "response"), "error")
        message = field(error, "message", "unknown error")
        raise BackendError(f"Responses stream failed: {message}", detail=as_dict(error) or None)

    def _on_error(self, event: Any) -> list[CanonicalChunk]:
        error = field(event, "error", event)
        message = field(error, "message", "unknown error")
        raise BackendError(f"Responses stream error: {message}", detail=as_dict(error) or None)

    def _ensure_pending(self) -> None:
        if self.pending is None:
            self.pending = PendingFunctionCall()

    def _claims(self, item_id: Any, done: bool = False) -> bool:
        """
        Whether a function-call event belongs to the call being streamed.

        Only the first function-call item is streamed and executed, matching
        ``find_function_call_item`` on complete responses. Events without an
        item id count as the current call until it is closed; the closing
        ``output_item.done`` of that call is still accepted.
        """
        if not isinstance(item_id, str) or not item_id:
            item_id = None
        if not self._call_claimed:
            self._call_claimed = True
            self._call_item_id = item_id
            return True
        if item_id is not None and self._call_item_id is not None:
            return item_id == self._call_item_id
        if item_id is not None and not self._call_closed:
            self._call_item_id = item_id
        return done or not self._call_closed
