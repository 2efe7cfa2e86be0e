# harmony_relay/services/relay.py
"""
Relay controller: one client chat turn, end to end.

    validate  ->  persist user turn  ->  stream upstream  ->  commit
                                              |
                                              +--> rollback + error event

The user turn is written to the store before the backend is called. On
clean completion the assistant reply is appended; on any backend failure
the user turn is removed again, so the store never keeps a user turn
without its reply. A client that disconnects mid-stream leaves the user
turn in place and gets no terminal event.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from harmony_relay.core.config import LOCAL_PROVIDER_ID
from harmony_relay.core.errors import BadRequest, Cancelled, RelayError, StreamError
from harmony_relay.models.chat import (
    ChatOnceRequest,
    ChatStreamRequest,
    ClientEvent,
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    Message,
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    normalize_messages,
    systems_first,
)
from harmony_relay.services.conversation_store import ConversationStore
from harmony_relay.services.ollama_client import OllamaClient
from harmony_relay.services.stream_framer import iter_records

logger = logging.getLogger("harmony.relay")

CancelCheck = Callable[[], Awaitable[bool]]


@dataclass
class ChatTurn:
    """A validated client turn."""
    sid: str
    model: str
    message: str
    system_messages: List[Message] = field(default_factory=list)
    history: List[Message] = field(default_factory=list)


def _required(value: Optional[str], what: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise BadRequest(f"Missing {what}")
    return text


class ChatRelay:
    def __init__(self, store: ConversationStore, client: OllamaClient, *, provider: str = LOCAL_PROVIDER_ID):
        self.store = store
        self.client = client
        self.provider = provider

    # ---------------- validation ----------------
    def _check_provider(self, provider: Optional[str]) -> None:
        if provider != self.provider:
            raise BadRequest(f"Unsupported provider: {provider}")

    def validate(self, req: ChatStreamRequest) -> ChatTurn:
        self._check_provider(req.provider)
        model = _required(req.model, "model")
        sid = _required(req.session_id, "sessionId")
        message = _required(req.message, "message content")
        return ChatTurn(
            sid=sid,
            model=model,
            message=message,
            system_messages=normalize_messages(req.system_messages),
            history=normalize_messages(req.history),
        )

    # ---------------- store preparation ----------------
    def _persist_user_turn(self, turn: ChatTurn) -> List[Message]:
        """Fold supplied instructions/history into the store, append the turn."""
        sid = turn.sid
        if turn.history:
            prefix = turn.system_messages or [m for m in self.store.read(sid) if m.role == ROLE_SYSTEM]
            self.store.set_exact(sid, prefix + turn.history)
        elif turn.system_messages:
            self.store.replace_system_prefix(sid, turn.system_messages)

        self.store.set_exact(sid, systems_first(self.store.read(sid)))
        self.store.append(sid, Message(role=ROLE_USER, content=turn.message))
        return self.store.read_for_backend(sid)

    # ---------------- streaming ----------------
    async def stream(self, turn: ChatTurn, is_cancelled: Optional[CancelCheck] = None) -> AsyncIterator[ClientEvent]:
        sid = turn.sid
        async with self.store.session_turn(sid):
            outbound = self._persist_user_turn(turn)
            logger.info("relay start sid=%s model=%s messages=%d", sid, turn.model, len(outbound))

            parts: List[str] = []
            tokens: Optional[int] = None
            try:
                completed = False
                async with self.client.complete_streaming(outbound, turn.model) as chunks:
                    async for record in iter_records(chunks):
                        if record.delta:
                            if is_cancelled is not None and await is_cancelled():
                                raise Cancelled("client disconnected")
                            parts.append(record.delta)
                            yield DeltaEvent(delta=record.delta)
                        if record.done:
                            completed = True
                            if record.eval_count is not None:
                                tokens = record.eval_count
                if not completed:
                    raise StreamError("Ollama stream ended before completion")
            except Cancelled:
                logger.info("relay cancelled sid=%s deltas=%d", sid, len(parts))
                return
            except (asyncio.CancelledError, GeneratorExit):
                logger.info("relay aborted by client sid=%s deltas=%d", sid, len(parts))
                raise
            except RelayError as e:
                self.store.remove_last(sid)
                logger.warning("relay rollback sid=%s code=%s err=%s", sid, e.code, e.message)
                yield ErrorEvent(error=e.message)
                return
            except Exception as e:
                self.store.remove_last(sid)
                logger.exception("relay rollback sid=%s (unexpected)", sid)
                yield ErrorEvent(error=str(e) or "Failed to process Ollama stream")
                return

            content = "".join(parts)
            self.store.append(sid, Message(role=ROLE_ASSISTANT, content=content))
            logger.info("relay done sid=%s len=%d tokens=%s", sid, len(content), tokens)
            yield DoneEvent(content=content, tokens=tokens)

    # ---------------- one-shot ----------------
    def complete_once(self, req: ChatOnceRequest) -> Message:
        self._check_provider(req.provider)
        model = _required(req.model, "model")
        messages = normalize_messages(req.messages)
        if not messages:
            raise BadRequest("Missing messages")
        logger.info("complete_once model=%s messages=%d", model, len(messages))
        return self.client.complete_once(systems_first(messages), model)
