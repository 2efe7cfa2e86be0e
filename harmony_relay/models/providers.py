# harmony_relay/models/providers.py
from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel


class ProviderModel(BaseModel):
    id: str
    label: str


class ProviderInfo(BaseModel):
    id: str
    label: str
    available: bool
    models: List[ProviderModel] = []
    error: Optional[str] = None
