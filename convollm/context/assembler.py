"""
Prompt assembly: prepend the retrieved-context system message.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from convollm.llm.models import Message

DEFAULT_TEMPLATE_PATH = Path(__file__).parent.parent / "prompts" / "system.txt"


class ContextStore(Protocol):
    def get_formatted_context(self) -> str: ...


def load_template(path: Path | None = None) -> str:
    """Read a system prompt template (the bundled one if ``path`` is None)."""
    template_path = Path(path) if path is not None else DEFAULT_TEMPLATE_PATH
    if not template_path.exists():
        raise FileNotFoundError(f"System prompt template not found: {template_path}")
    return template_path.read_text(encoding="utf-8")


def build_system_message(context: str, template: str) -> Message:
    """Fill the template's ``{context_block}`` placeholder with ``context``."""
    return Message(role="system", content=template.replace("{context_block}", context).strip())


def assemble(messages: list[Message], store: ContextStore, template: str) -> list[Message]:
    """
    Return a new message list with exactly one context system message prepended.

    The caller's list is not modified. Store failures propagate.
    """
    return [build_system_message(store.get_formatted_context(), template), *messages]
