"""
Base classes for tools the model can call.

Every tool is exposed to the orchestration engine as a named async capability
``(app_id, user_id, channel, arguments) -> str``. The identity arguments let a
tool act on behalf of the caller (e.g. message the user on their channel);
``arguments`` is the decoded JSON object the model produced.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ToolFunction = Callable[[str, str, str, dict[str, Any]], Awaitable[str]]


class ToolSchema(BaseModel):
    """Backend-neutral description of one callable tool."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    model_config = ConfigDict(frozen=True)


class Tool(ABC):
    """
    Abstract base class for tools.

    Subclasses provide the schema attributes and implement ``run``.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}}

    @abstractmethod
    async def run(
        self,
        app_id: str,
        user_id: str,
        channel: str,
        arguments: dict[str, Any],
    ) -> str:
        """
        Execute the tool.

        Args:
            app_id: Application the request came from
            user_id: End user the conversation belongs to
            channel: Realtime channel of the conversation
            arguments: Decoded JSON arguments from the model

        Returns:
            Result text, fed back to the model as a function message
        """

    def schema(self) -> ToolSchema:
        return ToolSchema(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )


class FunctionTool(Tool):
    """
    Wrap a plain async function as a Tool.

    Example:
        >>> async def send_photo(app_id, user_id, channel, args):
        ...     return f"Photo {args['url']} sent to {user_id}"
        >>> tool = FunctionTool("send_photo", send_photo, "Send a photo to the user")
    """

    def __init__(
        self,
        name: str,
        func: ToolFunction,
        description: str = "",
        parameters: dict[str, Any] | None = None,
    ):
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}}
        self._func = func

    async def run(self, app_id, user_id, channel, arguments):
        return await self._func(app_id, user_id, channel, arguments)
