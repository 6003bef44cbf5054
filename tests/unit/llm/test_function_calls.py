"""Unit tests for function-call argument parsing and execution."""

from unittest.mock import AsyncMock

import pytest

from convollm.llm.errors import InvalidFunctionArguments, UnknownTool
from convollm.llm.function_calls import FunctionCallExecutor, PendingFunctionCall, parse_arguments
from convollm.llm.models import FunctionCall, RequestContext
from convollm.tools.base import FunctionTool
from convollm.tools.registry import ToolRegistry


@pytest.fixture
def context():
    return RequestContext(app_id="app1", user_id="user1", channel="chan1", model="gpt-4o-mini")


def _executor(func) -> FunctionCallExecutor:
    return FunctionCallExecutor(ToolRegistry([FunctionTool("sendPhoto", func)]))


class TestPendingFunctionCall:

    def test_accumulates_fragments(self):
        pending = PendingFunctionCall()
        pending.add(name="sendPhoto")
        pending.add(arguments='{"url":')
        pending.add(arguments=' "x"}')

        assert pending.to_call() == FunctionCall(name="sendPhoto", arguments='{"url": "x"}')

    def test_no_call_without_name(self):
        pending = PendingFunctionCall()
        pending.add(arguments="{}")

        assert pending.to_call() is None


class TestParseArguments:

    def test_json_object(self):
        assert parse_arguments(FunctionCall(name="f", arguments='{"a": 1}')) == {"a": 1}

    @pytest.mark.parametrize("payload", ["", "   "])
    def test_empty_is_empty_object(self, payload):
        assert parse_arguments(FunctionCall(name="f", arguments=payload)) == {}

    def test_invalid_json_raises(self):
        with pytest.raises(InvalidFunctionArguments, match="Invalid function call arguments for 'f'"):
            parse_arguments(FunctionCall(name="f", arguments="{oops"))

    def test_non_object_raises(self):
        with pytest.raises(InvalidFunctionArguments, match="expected a JSON object"):
            parse_arguments(FunctionCall(name="f", arguments="[1, 2]"))


class TestFunctionCallExecutor:

    @pytest.mark.asyncio
    async def test_passes_identity_and_arguments(self, context):
        func = AsyncMock(return_value="ok")

        result = await _executor(func).execute(
            FunctionCall(name="sendPhoto", arguments='{"url": "x"}'), context
        )

        assert result == "ok"
        func.assert_awaited_once_with("app1", "user1", "chan1", {"url": "x"})

    @pytest.mark.asyncio
    async def test_unknown_tool_raises(self, context):
        func = AsyncMock()

        with pytest.raises(UnknownTool, match="Unknown function name: foo"):
            await _executor(func).execute(FunctionCall(name="foo"), context)

        func.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_error_text(self, context):
        func = AsyncMock(side_effect=ValueError("bad url"))

        result = await _executor(func).execute(FunctionCall(name="sendPhoto"), context)

        assert result == "Error: Tool 'sendPhoto' failed: bad url"

    @pytest.mark.asyncio
    async def test_non_string_result_converted(self, context):
        func = AsyncMock(return_value={"sent": True})

        result = await _executor(func).execute(FunctionCall(name="sendPhoto"), context)

        assert result == "{'sent': True}"
