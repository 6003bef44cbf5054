"""
Chat-Completions backend (message-array style).

Messages go to LiteLLM ``acompletion`` as-is; tools are advertised with the
legacy ``functions`` parameter and the tool result is fed back as a
``function`` role message. Native streaming chunks already carry the
canonical delta shape, so the normalizer mostly passes them through.
"""

from __future__ import annotations

import logging
from typing import Any

from litellm import acompletion

from convollm.llm.backends.base import BackendAdapter, BackendResult
from convollm.llm.errors import BackendError
from convollm.llm.models import CanonicalChunk, CanonicalCompletion, FunctionCall, Message, ToolSchema
from convollm.llm.native import field
from convollm.llm.streaming import FunctionCallHandler, StreamNormalizer

logger = logging.getLogger(__name__)


class CompletionsBackend(BackendAdapter):
    """Adapter for Chat-Completions style APIs via ``litellm.acompletion``."""

    name = "completions"

    async def submit(
        self,
        messages: list[Message],
        tools: list[ToolSchema],
        model: str,
        streaming: bool,
    ) -> BackendResult:
        call_kwargs: dict[str, Any] = {
            "model": model,
            "messages": [message.to_backend() for message in messages],
            "stream": streaming,
            **self._optional_kwargs(),
        }

        # Only advertise functions when there are any
        if tools:
            call_kwargs["functions"] = [
                {"name": tool.name, "description": tool.description, "parameters": tool.parameters}
                for tool in tools
            ]
            call_kwargs["function_call"] = "auto"

        logger.debug(
            f"Submitting {len(messages)} message(s) to {model} "
            f"(stream={streaming}, functions={len(tools)})"
        )
        try:
            response = await acompletion(**call_kwargs)
        except Exception as e:
            raise BackendError.from_exception(e) from e

        return self._result(response, streaming)

    def find_function_call(self, response: Any) -> FunctionCall | None:
        choices = field(response, "choices", [])
        if not choices:
            return None

        function_call = field(field(choices[0], "message"), "function_call")
        name = field(function_call, "name")
        if not isinstance(name, str) or not name:
            return None

        arguments = field(function_call, "arguments", "")
        return FunctionCall(name=name, arguments=arguments if isinstance(arguments, str) else "")

    async def submit_follow_up(
        self,
        messages: list[Message],
        call: FunctionCall,
        result: str,
        model: str,
        streaming: bool,
    ) -> BackendResult:
        follow_up = [*messages, Message(role="function", name=call.name, content=result)]
        return await self.submit(follow_up, [], model, streaming)

    def to_completion(self, response: Any, model: str) -> CanonicalCompletion:
        response_id = field(response, "id", "chatcmpl-unknown")
        response_model = field(response, "model", model)
        created = field(response, "created", 0)

        call = self.find_function_call(response)
        if call is not None:
            return CanonicalCompletion.from_function_call(response_id, response_model, created, call)

        choices = field(response, "choices", [])
        content = field(field(choices[0], "message"), "content", "") if choices else ""
        return CanonicalCompletion.from_text(response_id, response_model, created, content)

    def stream_normalizer(
        self,
        model: str,
        function_call_handler: FunctionCallHandler | None = None,
        completion_id: str | None = None,
        created: int | None = None,
    ) -> StreamNormalizer:
        return CompletionsStreamNormalizer(model, function_call_handler, completion_id, created)


class CompletionsStreamNormalizer(StreamNormalizer):
    """Normalizes ``acompletion`` streaming chunks."""

    def handle_event(self, event: Any) -> list[CanonicalChunk]:
        choices = field(event, "choices", [])
        if not choices:
            return []

        choice = choices[0]
        delta = field(choice, "delta")
        ids = {"chunk_id": field(event, "id"), "created": field(event, "created")}
        chunks: list[CanonicalChunk] = []

        content = field(delta, "content")
        if isinstance(content, str) and content:
            chunks.append(self._content_chunk(content, **ids))

        function_call = field(delta, "function_call")
        name = field(function_call, "name")
        arguments = field(function_call, "arguments")
        if name or arguments:
            chunks.append(self._function_call_chunk(name=name, arguments=arguments, **ids))

        if field(choice, "finish_reason"):
            chunks.extend(self._finish(**ids))

        return chunks
