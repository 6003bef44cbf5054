"""
Completion Orchestration Engine.

Sits between the realtime front-end and the model backend:

    caller messages  →  context preamble prepended
                                ↓
    CompletionOrchestrator  →  BackendAdapter (Chat Completions | Responses)
                                ↓
              function call?  →  ToolRegistry  →  one follow-up call
                                ↓
    CanonicalCompletion (non-streaming) | CanonicalChunk stream (streaming)

The orchestrator itself lives in ``convollm.llm.orchestrator`` and the backend
adapters in ``convollm.llm.backends``; this module exports the shared models
and the error taxonomy.
"""

from convollm.llm.errors import (
    BackendError,
    CallerInputError,
    FormattingError,
    InvalidFunctionArguments,
    OrchestrationError,
    UnknownTool,
)
from convollm.llm.models import (
    CanonicalChunk,
    CanonicalCompletion,
    CompletionRequest,
    FunctionCall,
    Message,
    RequestContext,
    ToolSchema,
)

__all__ = [
    "BackendError",
    "CallerInputError",
    "CanonicalChunk",
    "CanonicalCompletion",
    "CompletionRequest",
    "FormattingError",
    "FunctionCall",
    "InvalidFunctionArguments",
    "Message",
    "OrchestrationError",
    "RequestContext",
    "ToolSchema",
    "UnknownTool",
]
