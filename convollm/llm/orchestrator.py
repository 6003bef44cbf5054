"""
Completion orchestrator: the core request pipeline.

Sits between the HTTP layer and the LLM backend. For every request it
prepends the context system message, submits the conversation with the
registered tool schemas, and, when the model asks for a function call,
executes the tool once and resubmits the conversation with the result.

Data flow:
    messages + RequestContext
              ↓
    assemble() → [system, *messages]
              ↓
    BackendAdapter.submit()  ──function call?──→  FunctionCallExecutor
              ↓                                          ↓
              │                          BackendAdapter.submit_follow_up()
              ↓                                          ↓
    CanonicalCompletion  (or async iterator of CanonicalChunk when streaming)

Design decisions:
- At most one tool runs per request. The non-streaming path never inspects
  the follow-up response for another call, and the streaming follow-up
  normalizer carries no function-call handler.
- An unknown tool name is not an error for the caller: the model's
  unexecuted response is returned as-is (finish_reason "function_call").
- Tool failures become the tool result text (see FunctionCallExecutor) so
  the model can still produce an answer.
- Nothing here branches on the backend type; protocol differences live in
  the adapters.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from convollm.context.assembler import ContextStore, assemble
from convollm.llm.backends.base import BackendAdapter
from convollm.llm.errors import UnknownTool
from convollm.llm.function_calls import FunctionCallExecutor
from convollm.llm.models import CanonicalChunk, CanonicalCompletion, FunctionCall, Message, RequestContext
from convollm.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class CompletionOrchestrator:
    """
    Runs one completion request end to end.

    Holds only collaborators that are built once at startup and never
    mutated, so a single instance serves concurrent requests.

    Args:
        backend: Protocol adapter for the configured LLM API
        registry: Tools the model may call
        context_store: Source of the knowledge injected into the system message
        system_template: Prompt template with a {context_block} placeholder
    """

    def __init__(
        self,
        backend: BackendAdapter,
        registry: ToolRegistry,
        context_store: ContextStore,
        system_template: str,
    ):
        self._backend = backend
        self._registry = registry
        self._context_store = context_store
        self._system_template = system_template
        self._executor = FunctionCallExecutor(registry)

    @property
    def backend(self) -> BackendAdapter:
        return self._backend

    async def process(
        self, messages: list[Message], context: RequestContext
    ) -> CanonicalCompletion | AsyncIterator[CanonicalChunk]:
        """Dispatch to ``stream`` or ``complete`` according to ``context.stream``."""
        if context.stream:
            return await self.stream(messages, context)
        return await self.complete(messages, context)

    async def complete(self, messages: list[Message], context: RequestContext) -> CanonicalCompletion:
        """
        Produce one canonical completion.

        Raises:
            BackendError: If a backend call fails
            InvalidFunctionArguments: If the requested call's arguments are not a JSON object
        """
        full_messages = assemble(messages, self._context_store, self._system_template)
        response = await self._backend.submit(
            full_messages, self._registry.schemas(), context.model, streaming=False
        )

        call = self._backend.find_function_call(response)
        if call is None:
            return self._backend.to_completion(response, context.model)

        logger.info(f"Model requested function call: {call.name}")
        try:
            result = await self._executor.execute(call, context)
        except UnknownTool as e:
            logger.warning(f"{e}; returning the unexecuted response")
            return self._backend.to_completion(response, context.model)

        follow_up = await self._backend.submit_follow_up(
            full_messages, call, result, context.model, streaming=False
        )
        return self._backend.to_completion(follow_up, context.model)

    async def stream(
        self, messages: list[Message], context: RequestContext
    ) -> AsyncIterator[CanonicalChunk]:
        """
        Start a streaming completion.

        The initial backend submission is awaited here, so its errors are
        raised before any chunk is produced. Errors after that surface while
        iterating the returned stream.
        """
        full_messages = assemble(messages, self._context_store, self._system_template)
        events = await self._backend.submit(
            full_messages, self._registry.schemas(), context.model, streaming=True
        )

        async def run_function_call(call: FunctionCall) -> AsyncIterator[CanonicalChunk] | None:
            try:
                result = await self._executor.execute(call, context)
            except UnknownTool as e:
                logger.warning(f"{e}; ending the stream without a follow-up")
                return None

            follow_up_events = await self._backend.submit_follow_up(
                full_messages, call, result, context.model, streaming=True
            )
            follow_up = self._backend.stream_normalizer(
                context.model,
                completion_id=normalizer.completion_id,
                created=normalizer.created,
            )
            return follow_up.stream(follow_up_events)

        normalizer = self._backend.stream_normalizer(
            context.model, function_call_handler=run_function_call
        )
        return normalizer.stream(events)
