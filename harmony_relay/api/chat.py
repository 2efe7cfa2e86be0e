from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from harmony_relay.api.deps import chat_relay, ollama_client
from harmony_relay.models.chat import ChatOnceRequest, ChatOnceResponse, ChatStreamRequest
from harmony_relay.models.providers import ProviderInfo
from harmony_relay.services import sse
from harmony_relay.services.ollama_client import OllamaClient
from harmony_relay.services.providers import list_providers
from harmony_relay.services.relay import ChatRelay

logger = logging.getLogger("harmony.api.chat")
router = APIRouter()


# ---- stream ----
@router.post("", name="chat_stream")
async def chat_stream(req: ChatStreamRequest, relay: ChatRelay = Depends(chat_relay)):
    # BadRequest raised here is answered as JSON 400 before any stream opens.
    turn = relay.validate(req)
    logger.info("POST /api/chat sid=%s model=%s len=%d", turn.sid, turn.model, len(turn.message))
    return StreamingResponse(
        sse.event_stream(relay.stream(turn)),
        media_type="text/event-stream",
        headers=sse.SSE_HEADERS,
    )


@router.post("/", include_in_schema=False, name="chat_stream_slash")
async def chat_stream_slash(req: ChatStreamRequest, relay: ChatRelay = Depends(chat_relay)):
    return await chat_stream(req, relay)


# ---- one-shot (blocking; runs in the thread pool) ----
@router.post("/complete", response_model=ChatOnceResponse, name="chat_complete")
def chat_complete(req: ChatOnceRequest, relay: ChatRelay = Depends(chat_relay)):
    reply = relay.complete_once(req)
    logger.info("POST /api/chat/complete model=%s reply_len=%d", req.model, len(reply.content))
    return ChatOnceResponse(message=reply)


# ---- provider discovery ----
@router.get("/providers", name="chat_providers")
def chat_providers(client: OllamaClient = Depends(ollama_client)):
    providers: List[ProviderInfo] = list_providers(client)
    logger.info("GET /api/chat/providers -> %s", ",".join(f"{p.id}:{p.available}" for p in providers))
    return {"providers": [p.model_dump(exclude_none=True) for p in providers]}
