# harmony_relay/services/sse.py
from __future__ import annotations

import json
import logging
from typing import AsyncIterator

from harmony_relay.models.chat import ClientEvent

logger = logging.getLogger("harmony.sse")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_event(event: ClientEvent) -> str:
    """One self-delimited SSE frame: ``data: <json>`` plus a blank line."""
    data = json.dumps(event.model_dump(), ensure_ascii=False)
    return f"data: {data}\n\n"


async def event_stream(events: AsyncIterator[ClientEvent]) -> AsyncIterator[str]:
    sent = 0
    try:
        async for event in events:
            yield encode_event(event)
            sent += 1
    finally:
        logger.debug("SSE closed frames=%d", sent)
