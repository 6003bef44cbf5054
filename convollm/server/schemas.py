"""
Inbound request parsing.

Turns the raw JSON body of ``POST /chat/completion`` into the message list
and the immutable RequestContext the orchestrator works with, applying
configured defaults for the optional fields.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from convollm.config.settings import LLMSettings, ServerSettings
from convollm.llm.errors import CallerInputError
from convollm.llm.models import CompletionRequest, Message, RequestContext


def parse_completion_request(
    payload: Any,
    server_settings: ServerSettings,
    llm_settings: LLMSettings,
) -> tuple[list[Message], RequestContext]:
    """
    Validate a request body.

    Raises:
        CallerInputError: If the body is not an object, lacks ``messages`` or
            ``appId``, or has fields of the wrong type
    """
    if not isinstance(payload, dict):
        raise CallerInputError("Request body must be a JSON object")
    if payload.get("messages") is None:
        raise CallerInputError('Missing "messages" in request body')
    if not payload.get("appId") and not payload.get("app_id"):
        raise CallerInputError('Missing "appId" in request body')

    try:
        request = CompletionRequest.model_validate(payload)
    except ValidationError as e:
        raise CallerInputError(f"Invalid request body: {e.errors()[0]['msg']}") from e

    context = RequestContext(
        app_id=request.app_id,
        user_id=request.user_id or server_settings.default_user_id,
        channel=request.channel or server_settings.default_channel,
        model=request.model or llm_settings.model,
        stream=request.stream,
    )
    return list(request.messages), context
