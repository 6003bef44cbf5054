"""
Data models shared by the orchestration engine.

Inbound conversation messages, tool schemas, the per-request context, and the
two canonical output shapes (a complete chat completion and a streaming chunk).
The canonical shapes serialize to OpenAI-style snake_case JSON so any
Chat-Completions client can consume them regardless of which backend produced
the data.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_serializer

from convollm.tools.base import ToolSchema

__all__ = [
    "CanonicalChunk",
    "CanonicalCompletion",
    "ChunkChoice",
    "ChunkDelta",
    "CompletionChoice",
    "CompletionMessage",
    "CompletionRequest",
    "FunctionCall",
    "FunctionCallDelta",
    "Message",
    "RequestContext",
    "ToolSchema",
]

Role = Literal["system", "user", "assistant", "function"]
FinishReason = Literal["stop", "function_call"]


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


class FunctionCall(BaseModel):
    """A complete function call: tool name plus its raw JSON argument text."""

    name: str
    arguments: str = "{}"

    model_config = ConfigDict(frozen=True)


class Message(BaseModel):
    """
    One conversation turn.

    Messages are immutable; the orchestrator only ever builds new lists with
    extra messages appended (or the system preamble prepended).
    """

    role: Role
    content: str | None = None
    name: str | None = None
    function_call: FunctionCall | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    def to_backend(self) -> dict[str, Any]:
        """Serialize for a message-array backend, omitting unset optional fields."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name is not None:
            data["name"] = self.name
        if self.function_call is not None:
            data["function_call"] = self.function_call.model_dump()
        return data


class RequestContext(BaseModel):
    """Immutable per-request values threaded through every stage."""

    app_id: str
    user_id: str
    channel: str
    model: str
    stream: bool = False

    model_config = ConfigDict(frozen=True)


class CompletionRequest(BaseModel):
    """
    Inbound request body.

    Accepts the camelCase keys sent by realtime front-ends (``userId``,
    ``appId``) as well as their snake_case names.
    """

    messages: list[Message] | None = None
    model: str | None = None
    stream: bool = False
    channel: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    app_id: str | None = Field(default=None, alias="appId")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Canonical non-streaming completion
# ---------------------------------------------------------------------------


class CompletionMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str | None = None
    function_call: FunctionCall | None = None

    @model_serializer(mode="wrap")
    def _serialize(self, handler):
        # content is part of the contract even when null; function_call is not
        data = handler(self)
        if data.get("function_call") is None:
            data.pop("function_call", None)
        return data


class CompletionChoice(BaseModel):
    index: int = 0
    message: CompletionMessage
    finish_reason: FinishReason = "stop"


class CanonicalCompletion(BaseModel):
    """The non-streaming output contract, identical for every backend."""

    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: list[CompletionChoice]

    @classmethod
    def from_text(cls, id: str, model: str, created: int, content: str) -> CanonicalCompletion:
        return cls(
            id=id,
            model=model,
            created=created,
            choices=[CompletionChoice(message=CompletionMessage(content=content))],
        )

    @classmethod
    def from_function_call(
        cls, id: str, model: str, created: int, call: FunctionCall
    ) -> CanonicalCompletion:
        return cls(
            id=id,
            model=model,
            created=created,
            choices=[
                CompletionChoice(
                    message=CompletionMessage(content=None, function_call=call),
                    finish_reason="function_call",
                )
            ],
        )


# ---------------------------------------------------------------------------
# Canonical streaming chunk
# ---------------------------------------------------------------------------


class FunctionCallDelta(BaseModel):
    """A fragment of a streamed function call (name and/or partial arguments)."""

    name: str | None = None
    arguments: str | None = None

    @model_serializer(mode="wrap")
    def _serialize(self, handler):
        return _drop_none(handler(self))


class ChunkDelta(BaseModel):
    content: str | None = None
    function_call: FunctionCallDelta | None = None

    @model_serializer(mode="wrap")
    def _serialize(self, handler):
        return _drop_none(handler(self))


class ChunkChoice(BaseModel):
    index: int = 0
    delta: ChunkDelta = Field(default_factory=ChunkDelta)
    finish_reason: FinishReason | None = None


class CanonicalChunk(BaseModel):
    """One element of the streaming output contract."""

    id: str
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int
    model: str
    choices: list[ChunkChoice]

    @property
    def content(self) -> str | None:
        """Text carried by this chunk, if any."""
        return self.choices[0].delta.content if self.choices else None

    @property
    def finish_reason(self) -> FinishReason | None:
        return self.choices[0].finish_reason if self.choices else None
