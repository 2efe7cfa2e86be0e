# harmony_relay/models/agents.py
from __future__ import annotations
from typing import Optional

from pydantic import BaseModel


class AgentProfile(BaseModel):
    id: str
    label: str
    prompt: str


class CreateAgentBody(BaseModel):
    label: Optional[str] = None
    prompt: Optional[str] = None
