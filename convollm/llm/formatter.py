"""
Responses-API -> canonical chat completion formatter.

Only the Responses-style backend needs this: the Chat-Completions backend's
terminal shape is already canonical.

Content is extracted in a fixed precedence order:

    1. a function-call output item   -> finish_reason "function_call", content None
    2. assistant message, string content
    3. assistant message, list of typed fragments (output_text / text), in order
    4. top-level ``output_text``
    5. empty content

The formatter is a pure function of its input (``created`` comes from the
response's ``created_at``, never from the clock), so formatting the same
response twice yields identical output. It never raises: on internal
inconsistency it logs and returns a placeholder completion.
"""

from __future__ import annotations

import logging
from typing import Any

from convollm.llm.errors import FormattingError
from convollm.llm.models import CanonicalCompletion, FunctionCall
from convollm.llm.native import as_dict, field

logger = logging.getLogger(__name__)

FUNCTION_CALL_ITEM_TYPES = ("function_call", "function_tool_call")
TEXT_FRAGMENT_TYPES = ("output_text", "text")
FALLBACK_CONTENT = "Error formatting response. Please try again."


def format_response(response: Any, model: str | None = None) -> CanonicalCompletion:
    """
    Convert a native Responses-API terminal object into a CanonicalCompletion.

    Args:
        response: ResponsesAPIResponse (or equivalent dict)
        model: Requested model name, used when the response does not carry one

    Returns:
        A well-formed CanonicalCompletion; never raises.
    """
    try:
        return _format(response, model)
    except Exception as e:
        logger.error(f"Error formatting response as completion: {e}", exc_info=True)
        return CanonicalCompletion.from_text(
            id="fallback_id",
            model=model or "unknown",
            created=0,
            content=FALLBACK_CONTENT,
        )


def _format(response: Any, model: str | None) -> CanonicalCompletion:
    response_id = field(response, "id")
    response_id = response_id if isinstance(response_id, str) else "response_id"
    response_model = field(response, "model")
    if not isinstance(response_model, str):
        response_model = model or "unknown_model"
    created = _created(field(response, "created_at"))

    output = field(response, "output", [])
    if not isinstance(output, (list, tuple)):
        raise FormattingError(f"Response output is not a list: {type(output).__name__}")
    items = [as_dict(item) for item in output]

    call = find_function_call_item(items)
    if call is not None:
        logger.debug(f"Formatting function call response: {call.name}")
        return CanonicalCompletion.from_function_call(response_id, response_model, created, call)

    text = _assistant_text(items)
    if not text:
        top_level = field(response, "output_text")
        if isinstance(top_level, str) and top_level:
            logger.debug("Using top-level output_text as fallback")
            text = top_level

    return CanonicalCompletion.from_text(response_id, response_model, created, text or "")


def find_function_call_item(items: list[dict[str, Any]]) -> FunctionCall | None:
    """Return the first function-call output item as a FunctionCall, if any."""
    for item in items:
        if item.get("type") not in FUNCTION_CALL_ITEM_TYPES:
            continue
        name = item.get("name")
        call_id = item.get("call_id")
        if not isinstance(name, str) or not name:
            # Some providers only report "<name>_<suffix>" call ids
            if not isinstance(call_id, str) or not call_id:
                continue
            name = call_id.split("_")[0]
        arguments = item.get("arguments")
        if not isinstance(arguments, str) or not arguments:
            arguments = "{}"
        return FunctionCall(name=name, arguments=arguments)
    return None


def _assistant_text(items: list[dict[str, Any]]) -> str:
    message = next(
        (
            item
            for item in items
            if item.get("type") == "message" and item.get("role") == "assistant"
        ),
        None,
    )
    if message is None:
        return ""

    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for fragment in content:
            fragment = as_dict(fragment)
            text = fragment.get("text")
            if fragment.get("type") in TEXT_FRAGMENT_TYPES and isinstance(text, str):
                parts.append(text)
        return "".join(parts)
    return ""


def _created(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0
