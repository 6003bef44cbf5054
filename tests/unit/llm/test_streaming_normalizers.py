"""
Unit tests for the stream normalizers.

Native events are fed straight into the normalizers; no backend is called.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from litellm.types.llms.openai import ResponsesAPIStreamEvents

from convollm.llm.backends.completions import CompletionsStreamNormalizer
from convollm.llm.backends.responses import ResponsesStreamNormalizer
from convollm.llm.errors import BackendError
from convollm.llm.models import CanonicalChunk, ChunkChoice, ChunkDelta, FunctionCall
from convollm.llm.streaming import StreamState


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _chat_chunk(content=None, function_call=None, finish_reason=None, chunk_id="chatcmpl-7") -> dict:
    delta = {"role": "assistant"}
    if content is not None:
        delta["content"] = content
    if function_call is not None:
        delta["function_call"] = function_call
    return {
        "id": chunk_id,
        "created": 1700000000,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def _event(event_type, **fields) -> dict:
    return {"type": event_type, **fields}


def _canonical(content: str) -> CanonicalChunk:
    return CanonicalChunk(
        id="follow",
        created=1,
        model="gpt-4o-mini",
        choices=[ChunkChoice(delta=ChunkDelta(content=content))],
    )


class _TrackedStream:
    """Async iterator over native events that records whether it was closed."""

    def __init__(self, items):
        self._items = list(items)
        self.consumed = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.consumed >= len(self._items):
            raise StopAsyncIteration
        item = self._items[self.consumed]
        self.consumed += 1
        return item

    async def aclose(self):
        self.closed = True


async def _aiter(items):
    for item in items:
        yield item


async def _collect(stream):
    return [chunk async for chunk in stream]


# ---------------------------------------------------------------------------
# Completions normalizer
# ---------------------------------------------------------------------------

class TestCompletionsStreamNormalizer:

    def test_content_delta_passes_through_native_ids(self):
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini")

        [chunk] = normalizer.handle_event(_chat_chunk(content="Hi"))

        assert chunk.id == "chatcmpl-7"
        assert chunk.created == 1700000000
        assert chunk.model == "gpt-4o-mini"
        assert chunk.content == "Hi"
        assert normalizer.state is StreamState.STREAMING_CONTENT

    def test_role_only_delta_emits_nothing(self):
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini")

        assert normalizer.handle_event(_chat_chunk()) == []
        assert normalizer.state is StreamState.AWAITING_FIRST_EVENT

    def test_chunk_without_choices_ignored(self):
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini")

        assert normalizer.handle_event({"id": "x", "choices": []}) == []

    def test_function_call_fragments_accumulated(self):
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini")

        first = normalizer.handle_event(_chat_chunk(function_call={"name": "sendPhoto", "arguments": ""}))
        normalizer.handle_event(_chat_chunk(function_call={"arguments": '{"url"'}))
        normalizer.handle_event(_chat_chunk(function_call={"arguments": ': "x"}'}))

        assert first[0].model_dump()["choices"][0]["delta"] == {"function_call": {"name": "sendPhoto"}}
        assert normalizer.state is StreamState.STREAMING_FUNCTION_CALL
        assert normalizer.pending.to_call() == FunctionCall(name="sendPhoto", arguments='{"url": "x"}')

    def test_finish_reason_is_terminal(self):
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini")

        [chunk] = normalizer.handle_event(_chat_chunk(finish_reason="stop"))

        assert chunk.finish_reason == "stop"
        assert chunk.model_dump()["choices"][0]["delta"] == {}
        assert normalizer.completed

    def test_finish_reports_function_call_when_pending(self):
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini")
        normalizer.handle_event(_chat_chunk(function_call={"name": "sendPhoto", "arguments": "{}"}))

        [chunk] = normalizer.handle_event(_chat_chunk(finish_reason="function_call"))

        assert chunk.finish_reason == "function_call"

    def test_reads_attribute_style_chunks(self):
        native = SimpleNamespace(
            id="c1",
            created=5,
            choices=[
                SimpleNamespace(
                    delta=SimpleNamespace(content="attr", function_call=None), finish_reason=None
                )
            ],
        )

        [chunk] = CompletionsStreamNormalizer("m").handle_event(native)

        assert chunk.content == "attr"


# ---------------------------------------------------------------------------
# Responses normalizer
# ---------------------------------------------------------------------------

class TestResponsesStreamNormalizer:

    def test_created_sets_completion_id(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")

        assert normalizer.handle_event(_event("response.created", response={"id": "resp_1"})) == []
        [chunk] = normalizer.handle_event(_event("response.output_text.delta", delta="Hi"))

        assert chunk.id == "resp_1"

    def test_fixed_completion_id_kept(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini", completion_id="chatcmpl-fixed")
        normalizer.handle_event(_event("response.created", response={"id": "resp_2"}))

        [chunk] = normalizer.handle_event(_event("response.output_text.delta", delta="Hi"))

        assert chunk.id == "chatcmpl-fixed"

    def test_text_and_refusal_deltas(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")

        chunks = [
            *normalizer.handle_event(_event("response.output_text.delta", delta="Hello")),
            *normalizer.handle_event(_event("response.refusal.delta", delta=" no")),
            *normalizer.handle_event(_event("response.output_text.done", text="Hello")),
        ]

        assert [c.content for c in chunks] == ["Hello", " no"]

    def test_enum_event_types_dispatched(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")
        event = SimpleNamespace(type=ResponsesAPIStreamEvents.OUTPUT_TEXT_DELTA, delta="enum", item_id="msg_1")

        [chunk] = normalizer.handle_event(event)

        assert chunk.content == "enum"

    def test_function_call_sequence(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")

        added = normalizer.handle_event(
            _event("response.output_item.added", item={"type": "function_call", "name": "sendPhoto"})
        )
        delta = normalizer.handle_event(
            _event("response.function_call_arguments.delta", item_id="fc_1", delta='{"url":')
        )
        done = normalizer.handle_event(
            _event("response.function_call_arguments.done", item_id="fc_1", arguments='{"url": "x"}')
        )
        completed = normalizer.handle_event(_event("response.completed", response={"id": "resp_1"}))

        assert added[0].choices[0].delta.function_call.name == "sendPhoto"
        assert delta[0].choices[0].delta.function_call.arguments == '{"url":'
        assert [c.finish_reason for c in done] == ["function_call"]
        # The closing chunk was already sent with the arguments
        assert completed == []
        assert normalizer.completed
        assert normalizer.pending.to_call() == FunctionCall(name="sendPhoto", arguments='{"url": "x"}')

    def test_only_first_function_call_item_streamed(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")
        events = [
            _event("response.output_item.added", item={"type": "function_call", "id": "fc_1", "name": "sendPhoto"}),
            _event("response.function_call_arguments.delta", item_id="fc_1", delta='{"url": "x"}'),
            _event("response.function_call_arguments.done", item_id="fc_1", arguments='{"url": "x"}'),
            _event(
                "response.output_item.done",
                item={"type": "function_call", "id": "fc_1", "name": "sendPhoto", "arguments": '{"url": "x"}'},
            ),
            _event("response.output_item.added", item={"type": "function_call", "id": "fc_2", "name": "lookup"}),
            _event("response.function_call_arguments.delta", item_id="fc_2", delta='{"q": 1}'),
            _event("response.function_call_arguments.done", item_id="fc_2", arguments='{"q": 1}'),
            _event("response.completed", response={}),
        ]

        chunks = [chunk for event in events for chunk in normalizer.handle_event(event)]

        names = [c.choices[0].delta.function_call.name for c in chunks if c.choices[0].delta.function_call]
        assert names == ["sendPhoto", None]
        assert [c.finish_reason for c in chunks if c.finish_reason] == ["function_call"]
        assert normalizer.pending.to_call() == FunctionCall(name="sendPhoto", arguments='{"url": "x"}')

    def test_item_done_fills_missing_name(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")
        normalizer.handle_event(_event("response.function_call_arguments.delta", delta="{}"))

        normalizer.handle_event(
            _event("response.output_item.done", item={"type": "function_call", "name": "lookup", "arguments": "{}"})
        )

        assert normalizer.pending.to_call() == FunctionCall(name="lookup", arguments="{}")

    def test_completed_without_call_emits_stop(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")

        [chunk] = normalizer.handle_event(_event("response.completed", response={}))

        assert chunk.finish_reason == "stop"

    def test_failed_event_raises(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")
        event = _event("response.failed", response={"error": {"code": "server_error", "message": "overloaded"}})

        with pytest.raises(BackendError, match="overloaded") as exc_info:
            normalizer.handle_event(event)

        assert exc_info.value.detail == {"code": "server_error", "message": "overloaded"}

    def test_error_event_raises(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")

        with pytest.raises(BackendError, match="rate limited"):
            normalizer.handle_event(_event("error", error={"message": "rate limited"}))

    def test_unknown_events_ignored(self):
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini")

        assert normalizer.handle_event(_event("response.in_progress")) == []
        assert normalizer.handle_event({"no_type": True}) == []


# ---------------------------------------------------------------------------
# Stream driving and hand-off
# ---------------------------------------------------------------------------

class TestStreamLifecycle:

    @pytest.mark.asyncio
    async def test_stops_reading_after_terminal_event(self):
        native = _TrackedStream([
            _chat_chunk(content="Hi"),
            _chat_chunk(finish_reason="stop"),
            _chat_chunk(content="never read"),
        ])
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini")

        chunks = await _collect(normalizer.stream(native))

        assert [c.content for c in chunks] == ["Hi", None]
        assert native.consumed == 2
        assert native.closed
        assert normalizer.state is StreamState.TERMINATED

    @pytest.mark.asyncio
    async def test_hand_off_splices_follow_up_after_closing_chunk(self):
        async def follow_up():
            yield _canonical("Done")

        handler = AsyncMock(return_value=follow_up())
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini", function_call_handler=handler)
        native = [
            _chat_chunk(function_call={"name": "sendPhoto", "arguments": '{"url": "x"}'}),
            _chat_chunk(finish_reason="function_call"),
        ]

        chunks = await _collect(normalizer.stream(_aiter(native)))

        handler.assert_awaited_once_with(FunctionCall(name="sendPhoto", arguments='{"url": "x"}'))
        assert [c.finish_reason for c in chunks] == [None, "function_call", None]
        assert chunks[-1].content == "Done"

    @pytest.mark.asyncio
    async def test_no_hand_off_without_terminal_event(self):
        handler = AsyncMock()
        normalizer = CompletionsStreamNormalizer("gpt-4o-mini", function_call_handler=handler)

        await _collect(normalizer.stream(_aiter([
            _chat_chunk(function_call={"name": "sendPhoto", "arguments": "{}"}),
        ])))

        handler.assert_not_awaited()
        assert normalizer.state is StreamState.TERMINATED

    @pytest.mark.asyncio
    async def test_handler_returning_none_ends_stream(self):
        handler = AsyncMock(return_value=None)
        normalizer = ResponsesStreamNormalizer("gpt-4o-mini", function_call_handler=handler)
        native = [
            _event("response.output_item.added", item={"type": "function_call", "name": "foo"}),
            _event("response.function_call_arguments.done", arguments="{}"),
            _event("response.completed", response={}),
        ]

        chunks = await _collect(normalizer.stream(_aiter(native)))

        handler.assert_awaited_once()
        assert chunks[-1].finish_reason == "function_call"

    @pytest.mark.asyncio
    async def test_consumer_closing_early_closes_native_stream(self):
        native = _TrackedStream([_chat_chunk(content="a"), _chat_chunk(content="b")])
        stream = CompletionsStreamNormalizer("gpt-4o-mini").stream(native)

        first = await stream.__anext__()
        await stream.aclose()

        assert first.content == "a"
        assert native.closed

    @pytest.mark.asyncio
    async def test_consumer_closing_during_follow_up_closes_follow_up_stream(self):
        follow_native = _TrackedStream([_chat_chunk(content="one"), _chat_chunk(content="two")])

        async def handler(call):
            return CompletionsStreamNormalizer("gpt-4o-mini").stream(follow_native)

        native = _TrackedStream([
            _chat_chunk(function_call={"name": "sendPhoto", "arguments": "{}"}),
            _chat_chunk(finish_reason="function_call"),
        ])
        stream = CompletionsStreamNormalizer("gpt-4o-mini", function_call_handler=handler).stream(native)

        chunks = [await stream.__anext__() for _ in range(3)]
        await stream.aclose()

        assert chunks[-1].content == "one"
        assert native.closed
        assert follow_native.closed
