"""
convollm - custom LLM endpoint for realtime conversational AI agents.

This package accepts chat-completion requests from a voice/realtime front-end,
injects retrieved context, forwards the conversation to a model backend
(Chat Completions or Responses style, via LiteLLM), runs at most one tool call
on the model's behalf, and returns a single canonical chat-completion shape.
"""

__version__ = "0.1.0"
