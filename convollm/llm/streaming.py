"""
Stream normalization.

A StreamNormalizer consumes one backend's native incremental events and
yields canonical chunks. Each backend adapter provides a subclass that
interprets its own event shapes in ``handle_event``; the base class owns the
state machine, the function-call accumulator and the hand-off to the
function-call executor:

    AWAITING_FIRST_EVENT → STREAMING_CONTENT ⇄ STREAMING_FUNCTION_CALL → TERMINATED

On the terminal native event the normalizer emits the closing chunk and stops
reading the native stream. If a function call was accumulated and a handler
is attached, the handler runs it and returns the follow-up call's normalized
stream, whose chunks are spliced in after everything emitted so far. The
follow-up normalizer is created without a handler, so a request never runs
more than one tool.

A normalizer instance belongs to exactly one request.
"""

from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any

from convollm.llm.function_calls import PendingFunctionCall
from convollm.llm.models import (
    CanonicalChunk,
    ChunkChoice,
    ChunkDelta,
    FinishReason,
    FunctionCall,
    FunctionCallDelta,
)

logger = logging.getLogger(__name__)

FunctionCallHandler = Callable[[FunctionCall], Awaitable[AsyncIterator[CanonicalChunk] | None]]


class StreamState(str, Enum):
    AWAITING_FIRST_EVENT = "awaiting_first_event"
    STREAMING_CONTENT = "streaming_content"
    STREAMING_FUNCTION_CALL = "streaming_function_call"
    TERMINATED = "terminated"


class StreamNormalizer(ABC):
    """
    Base class for per-backend stream normalizers.

    Args:
        model: Model name stamped on every emitted chunk
        function_call_handler: Coroutine run once with the accumulated call
            after the terminal event; returns the follow-up chunk stream, or
            None to end the stream without a follow-up
        completion_id: Id stamped on chunks (generated if omitted)
        created: Unix timestamp stamped on chunks (now if omitted)
    """

    def __init__(
        self,
        model: str,
        function_call_handler: FunctionCallHandler | None = None,
        completion_id: str | None = None,
        created: int | None = None,
    ):
        self.model = model
        self.completion_id = completion_id or f"chatcmpl-{uuid.uuid4().hex}"
        self.completion_id_fixed = completion_id is not None
        self.created = created if created is not None else int(time.time())
        self.state = StreamState.AWAITING_FIRST_EVENT
        self.pending: PendingFunctionCall | None = None
        self._handler = function_call_handler
        self._finish_emitted = False
        self._completed = False

    @property
    def completed(self) -> bool:
        """True once the terminal native event has been observed."""
        return self._completed

    @abstractmethod
    def handle_event(self, event: Any) -> list[CanonicalChunk]:
        """
        Interpret one native event.

        Returns the canonical chunks it produces (possibly none). Implementations
        call ``_finish`` on the backend's terminal event.
        """

    async def stream(self, events: AsyncIterator[Any]) -> AsyncIterator[CanonicalChunk]:
        """Normalize ``events``, splicing in a follow-up stream after a function call."""
        try:
            try:
                async for event in events:
                    if self.state is StreamState.AWAITING_FIRST_EVENT:
                        logger.debug("First stream event received")
                    for chunk in self.handle_event(event):
                        yield chunk
                    if self._completed:
                        break
            finally:
                await _close(events)

            if self._completed:
                follow_up = await self._hand_off()
                if follow_up is not None:
                    try:
                        async for chunk in follow_up:
                            yield chunk
                    finally:
                        await _close(follow_up)
        finally:
            self.state = StreamState.TERMINATED
            self.pending = None

    async def _hand_off(self) -> AsyncIterator[CanonicalChunk] | None:
        if self.pending is None or self._handler is None:
            return None

        call = self.pending.to_call()
        self.pending = None
        if call is None:
            logger.warning("Function call arguments streamed without a function name; not executing")
            return None

        logger.info(f"Stream requested function call: {call.name}")
        return await self._handler(call)

    # ------------------------------------------------------------------
    # Chunk builders for subclasses
    # ------------------------------------------------------------------

    def _chunk(
        self,
        delta: ChunkDelta,
        finish_reason: FinishReason | None = None,
        chunk_id: str | None = None,
        created: int | None = None,
    ) -> CanonicalChunk:
        return CanonicalChunk(
            id=chunk_id or self.completion_id,
            created=created if created is not None else self.created,
            model=self.model,
            choices=[ChunkChoice(index=0, delta=delta, finish_reason=finish_reason)],
        )

    def _content_chunk(self, text: str, **ids) -> CanonicalChunk:
        self.state = StreamState.STREAMING_CONTENT
        return self._chunk(ChunkDelta(content=text), **ids)

    def _function_call_chunk(
        self, name: str | None = None, arguments: str | None = None, **ids
    ) -> CanonicalChunk:
        if self.pending is None:
            self.pending = PendingFunctionCall()
        self.pending.add(name=name, arguments=arguments)
        self.state = StreamState.STREAMING_FUNCTION_CALL
        return self._chunk(
            ChunkDelta(function_call=FunctionCallDelta(name=name or None, arguments=arguments or None)),
            **ids,
        )

    def _finish_chunks(self, reason: FinishReason | None = None, **ids) -> list[CanonicalChunk]:
        """The closing chunk, unless one was already emitted."""
        if self._finish_emitted:
            return []
        self._finish_emitted = True
        if reason is None:
            reason = "function_call" if self.pending is not None else "stop"
        return [self._chunk(ChunkDelta(), finish_reason=reason, **ids)]

    def _finish(self, **ids) -> list[CanonicalChunk]:
        """Handle the terminal native event."""
        chunks = self._finish_chunks(**ids)
        self._completed = True
        return chunks


async def _close(events: Any) -> None:
    aclose = getattr(events, "aclose", None)
    if aclose is not None:
        await aclose()
