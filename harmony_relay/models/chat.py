# harmony_relay/models/chat.py
from __future__ import annotations
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


def normalize_messages(messages: Optional[List[Message]]) -> List[Message]:
    """Drop blank entries and trim the rest."""
    if not messages:
        return []
    return [
        Message(role=m.role, content=m.content.strip())
        for m in messages
        if isinstance(m.content, str) and m.content.strip()
    ]


def systems_first(messages: List[Message]) -> List[Message]:
    """Stable partition: every system message ahead of every other one."""
    return [m for m in messages if m.role == ROLE_SYSTEM] + [m for m in messages if m.role != ROLE_SYSTEM]


# ---- client requests ----
class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ChatStreamRequest(_Request):
    provider: Optional[str] = None
    model: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    system_messages: Optional[List[Message]] = Field(default=None, alias="systemMessages")
    history: Optional[List[Message]] = None
    message: Optional[str] = None


class ChatOnceRequest(_Request):
    provider: Optional[str] = None
    model: Optional[str] = None
    messages: Optional[List[Message]] = None


class ChatOnceResponse(BaseModel):
    message: Message


# ---- push-stream events ----
class DeltaEvent(BaseModel):
    delta: str


class DoneEvent(BaseModel):
    done: Literal[True] = True
    content: str
    tokens: Optional[int] = None


class ErrorEvent(BaseModel):
    error: str


ClientEvent = Union[DeltaEvent, DoneEvent, ErrorEvent]


__all__ = [
    "ROLE_SYSTEM", "ROLE_USER", "ROLE_ASSISTANT", "Role",
    "Message", "normalize_messages", "systems_first",
    "ChatStreamRequest", "ChatOnceRequest", "ChatOnceResponse",
    "DeltaEvent", "DoneEvent", "ErrorEvent", "ClientEvent",
]
