"""
Retrieved-context layer.

A static key -> text store whose formatted contents are injected into every
conversation as a system preamble.
"""

from convollm.context.assembler import DEFAULT_TEMPLATE_PATH, assemble, build_system_message, load_template
from convollm.context.store import StaticContextStore

__all__ = [
    "DEFAULT_TEMPLATE_PATH",
    "StaticContextStore",
    "assemble",
    "build_system_message",
    "load_template",
]
