"""
Function-call execution.

Given a function call detected in a backend response (complete or
accumulated from a stream), resolve it in the tool registry, decode its
arguments and run it with the request's identity. The orchestrator calls
``execute`` at most once per request.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from convollm.llm.errors import InvalidFunctionArguments, UnknownTool
from convollm.llm.models import FunctionCall, RequestContext
from convollm.tools.registry import ToolHandler, ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class PendingFunctionCall:
    """
    Accumulator for a function call arriving in fragments over a stream.

    Lives for one request only and belongs to that request's stream normalizer.
    """

    name: str | None = None
    arguments: str = ""

    def add(self, name: str | None = None, arguments: str | None = None) -> None:
        if name:
            self.name = name
        if arguments:
            self.arguments += arguments

    def to_call(self) -> FunctionCall | None:
        """The completed call, or None if no name was ever received."""
        if not self.name:
            return None
        return FunctionCall(name=self.name, arguments=self.arguments)


def parse_arguments(call: FunctionCall) -> dict:
    """
    Decode a call's JSON argument text into a dict.

    An empty payload decodes to ``{}``; anything that is not a JSON object
    raises InvalidFunctionArguments.
    """
    if not call.arguments.strip():
        return {}
    try:
        parsed = json.loads(call.arguments)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse function call arguments for '{call.name}': {e}")
        raise InvalidFunctionArguments(call.name, call.arguments, str(e)) from e
    if not isinstance(parsed, dict):
        raise InvalidFunctionArguments(
            call.name, call.arguments, f"expected a JSON object, got {type(parsed).__name__}"
        )
    return parsed


class FunctionCallExecutor:
    """
    Runs a detected function call against the tool registry.

    Tool failures do not fail the request: the error text becomes the tool
    result so the model can still answer ("I couldn't send the photo, but...").
    Malformed arguments do fail it (InvalidFunctionArguments), and an
    unregistered name raises UnknownTool for the caller to degrade on.
    """

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    def resolve(self, name: str) -> ToolHandler:
        handler = self._registry.lookup(name)
        if handler is None:
            raise UnknownTool(name)
        return handler

    async def execute(self, call: FunctionCall, context: RequestContext) -> str:
        """
        Execute ``call`` with ``(app_id, user_id, channel, args)``.

        Raises:
            UnknownTool: If the tool is not registered
            InvalidFunctionArguments: If the arguments are not a JSON object
        """
        handler = self.resolve(call.name)
        arguments = parse_arguments(call)

        logger.info(f"Executing function '{call.name}' for app {context.app_id}")
        try:
            result = await handler(context.app_id, context.user_id, context.channel, arguments)
        except Exception as e:
            logger.warning(f"Tool '{call.name}' failed: {e}")
            return f"Error: Tool '{call.name}' failed: {e}"

        if not isinstance(result, str):
            result = str(result)
        logger.debug(f"Function '{call.name}' returned {len(result)} characters")
        return result
