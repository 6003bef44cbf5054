"""
Static context store.

Holds the knowledge snippets the model should ground its answers in, keyed
by document name, and renders them for the system prompt.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from convollm.config.settings import ContextSettings

logger = logging.getLogger(__name__)


class StaticContextStore:
    """
    Read-only key -> text lookup.

    Example:
        >>> store = StaticContextStore({"doc1": "Agora is a realtime platform."})
        >>> store.get_formatted_context()
        'doc1: "Agora is a realtime platform."'
    """

    def __init__(self, documents: Mapping[str, str] | None = None):
        self._documents = MappingProxyType(dict(documents or {}))

    @classmethod
    def from_settings(cls, settings: ContextSettings) -> StaticContextStore:
        """
        Build the store from inline documents plus an optional JSON file.

        File entries are merged after (and override) inline entries.

        Raises:
            FileNotFoundError: If documents_file is set but missing
            ValueError: If the file is not a JSON object of strings
        """
        documents = dict(settings.documents)
        if settings.documents_file is not None:
            documents.update(load_documents_file(settings.documents_file))
        store = cls(documents)
        logger.info(f"Context store loaded with {len(store)} document(s)")
        return store

    def get_formatted_context(self) -> str:
        """Render every entry as ``key: "text"``, one per line, in insertion order."""
        return "\n".join(f'{key}: "{value}"' for key, value in self._documents.items())

    def __len__(self) -> int:
        return len(self._documents)


def load_documents_file(path: Path) -> dict[str, str]:
    """Read a JSON object of key -> text from ``path``."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Context documents file not found: {path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise ValueError(f"Context documents file must contain a JSON object of strings: {path}")
    return data
