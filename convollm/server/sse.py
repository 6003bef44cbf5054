"""
Server-sent events framing for canonical chunk streams.

Every chunk becomes one ``data: <json>`` frame. A stream that finishes
normally ends with ``data: [DONE]``; a stream that fails part-way ends with
a single error frame instead, after whatever frames were already sent.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

from convollm.llm.models import CanonicalChunk

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"


def encode_frame(chunk: CanonicalChunk) -> str:
    return f"data: {chunk.model_dump_json()}\n\n"


def error_frame(error: Exception) -> str:
    payload = {"error": {"message": str(error), "type": type(error).__name__}}
    return f"data: {json.dumps(payload)}\n\n"


async def sse_frames(chunks: AsyncIterator[CanonicalChunk]) -> AsyncIterator[str]:
    """Frame ``chunks`` for a text/event-stream response."""
    count = 0
    try:
        async for chunk in chunks:
            count += 1
            yield encode_frame(chunk)
    except Exception as e:
        logger.exception(f"Stream failed after {count} chunk(s): {e}")
        yield error_frame(e)
        return
    finally:
        # Stops the backend stream if the client went away
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    logger.debug(f"Stream complete: {count} chunk(s)")
    yield DONE_FRAME
