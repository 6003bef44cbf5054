"""Backend adapters: one per LLM API family."""

from convollm.llm.backends.base import BackendAdapter
from convollm.llm.backends.completions import CompletionsBackend
from convollm.llm.backends.responses import ResponsesBackend

BACKENDS: dict[str, type[BackendAdapter]] = {
    CompletionsBackend.name: CompletionsBackend,
    ResponsesBackend.name: ResponsesBackend,
}

__all__ = ["BACKENDS", "BackendAdapter", "CompletionsBackend", "ResponsesBackend"]
