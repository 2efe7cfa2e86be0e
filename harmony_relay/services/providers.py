# harmony_relay/services/providers.py
from __future__ import annotations

import logging
from typing import List

from harmony_relay.core.config import LOCAL_PROVIDER_ID, LOCAL_PROVIDER_LABEL
from harmony_relay.core.errors import RelayError
from harmony_relay.models.providers import ProviderInfo, ProviderModel
from harmony_relay.services.ollama_client import OllamaClient

logger = logging.getLogger("harmony.providers")


def list_providers(client: OllamaClient) -> List[ProviderInfo]:
    """Local Ollama (live) plus the hosted providers that are not wired yet."""
    providers: List[ProviderInfo] = []
    try:
        models = [ProviderModel(**m) for m in client.list_models()]
        providers.append(ProviderInfo(
            id=LOCAL_PROVIDER_ID,
            label=LOCAL_PROVIDER_LABEL,
            available=bool(models),
            models=models,
        ))
    except RelayError as e:
        logger.warning("provider discovery failed id=%s err=%s", LOCAL_PROVIDER_ID, e.message)
        providers.append(ProviderInfo(
            id=LOCAL_PROVIDER_ID,
            label=LOCAL_PROVIDER_LABEL,
            available=False,
            models=[],
            error=e.message or "Failed to reach Ollama",
        ))

    providers.append(ProviderInfo(
        id="openai",
        label="OpenAI",
        available=False,
        models=[],
        error="Provider coming soon",
    ))
    return providers
