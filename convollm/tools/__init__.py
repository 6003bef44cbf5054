"""
Tool Integration Layer.

Tools the model can call mid-conversation, exposed to the orchestration
engine through a read-only ToolRegistry.
"""

from convollm.tools.base import FunctionTool, Tool, ToolSchema
from convollm.tools.registry import ToolHandler, ToolRegistry

__all__ = [
    "FunctionTool",
    "Tool",
    "ToolHandler",
    "ToolRegistry",
    "ToolSchema",
]
