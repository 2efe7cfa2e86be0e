# harmony_relay/services/ollama_client.py
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Sequence

import httpx
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from harmony_relay.core.config import (
    OLLAMA_BASE_URL,
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
    DISCOVERY_RETRIES,
    BACKOFF_FACTOR,
    POOL_MAXSIZE,
)
from harmony_relay.core.errors import StreamError, UpstreamRejected, UpstreamUnavailable
from harmony_relay.models.chat import Message, ROLE_ASSISTANT

logger = logging.getLogger("harmony.ollama")

# Only the idempotent discovery GET is retried; completions are never replayed.
_RETRY = Retry(
    total=DISCOVERY_RETRIES,
    connect=DISCOVERY_RETRIES,
    read=DISCOVERY_RETRIES,
    backoff_factor=BACKOFF_FACTOR,
    status_forcelist=(502, 503, 504),
    allowed_methods=("GET",),
    raise_on_status=False,
)


def _new_session() -> requests.Session:
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=_RETRY, pool_maxsize=POOL_MAXSIZE)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


def _payload(messages: Sequence[Message], model: str, stream: bool) -> Dict:
    return {
        "model": model,
        "messages": [{"role": m.role, "content": m.content} for m in messages],
        "stream": stream,
    }


def error_detail(body: str) -> str:
    """Ollama puts the reason in ``{"error": ...}``; fall back to the raw body."""
    body = (body or "").strip()
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return body


class OllamaClient:
    """
    Thin forwarding client for the local Ollama server.

    - complete_streaming: async, pooled httpx client, yields the raw response bytes.
    - complete_once / list_models: blocking, pooled requests session.
    Both pools live as long as the client; `aclose` releases them.
    Neither retries a completion; a failure goes straight back to the caller.
    """

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        *,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout or None
        self._transport = transport
        self._session = session
        self._async_client: Optional[httpx.AsyncClient] = None

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = _new_session()
        return self._session

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._read_timeout, connect=self._connect_timeout),
                limits=httpx.Limits(max_connections=POOL_MAXSIZE, max_keepalive_connections=POOL_MAXSIZE),
                transport=self._transport,
                trust_env=False,
            )
        return self._async_client

    async def aclose(self) -> None:
        """Release pooled connections; called on app shutdown."""
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None
        if self._session is not None:
            self._session.close()
            self._session = None

    # ------------ streaming ------------
    @asynccontextmanager
    async def complete_streaming(self, messages: Sequence[Message], model: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Open a streaming chat call and hand the caller the byte iterator.

        The response is released when the block exits, whether the caller
        finished, failed or was cancelled.
        """
        url = f"{self.base_url}/api/chat"
        client = self._get_async_client()
        try:
            async with client.stream("POST", url, json=_payload(messages, model, True)) as resp:
                if resp.status_code >= 400:
                    body = (await resp.aread()).decode("utf-8", "replace")
                    logger.warning("Ollama stream HTTP %d: %s", resp.status_code, body[:300])
                    raise UpstreamRejected(resp.status_code, body, error_detail(body) or None)
                logger.info("Ollama stream open model=%s messages=%d", model, len(messages))
                yield resp.aiter_bytes()
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning("Ollama unreachable url=%s err=%r", url, e)
            raise UpstreamUnavailable(f"Failed to contact Ollama: {e}") from e
        except httpx.TransportError as e:
            logger.warning("Ollama stream broken model=%s err=%r", model, e)
            raise StreamError(f"Failed to read Ollama response stream: {e}") from e

    # ------------ blocking ------------
    def complete_once(self, messages: Sequence[Message], model: str) -> Message:
        url = f"{self.base_url}/api/chat"
        try:
            resp = self._get_session().post(
                url,
                json=_payload(messages, model, False),
                timeout=(self._connect_timeout, self._read_timeout),
            )
        except requests.exceptions.ConnectionError as e:
            logger.warning("Ollama unreachable url=%s err=%r", url, e)
            raise UpstreamUnavailable(f"Failed to contact Ollama: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.warning("Ollama request failed url=%s err=%r", url, e)
            raise StreamError(f"Failed to read Ollama response: {e}") from e

        if resp.status_code >= 400:
            logger.warning("Ollama HTTP %d: %s", resp.status_code, resp.text[:300])
            raise UpstreamRejected(resp.status_code, resp.text, error_detail(resp.text) or None)

        try:
            data = resp.json()
        except ValueError as e:
            logger.error("Ollama returned non-JSON body: %s", resp.text[:300])
            raise StreamError("Ollama returned a malformed reply") from e
        if isinstance(data, dict) and data.get("error"):
            raise StreamError(str(data["error"]))

        content = ((data or {}).get("message") or {}).get("content") or ""
        return Message(role=ROLE_ASSISTANT, content=content)

    def list_models(self) -> List[Dict[str, str]]:
        """Installed models as ``[{"id": ..., "label": ...}]``."""
        url = f"{self.base_url}/api/tags"
        try:
            resp = self._get_session().get(url, timeout=(self._connect_timeout, self._read_timeout))
        except requests.exceptions.RequestException as e:
            raise UpstreamUnavailable(f"Failed to reach Ollama: {e}") from e
        if resp.status_code >= 400:
            raise UpstreamRejected(resp.status_code, resp.text, error_detail(resp.text) or None)
        try:
            data = resp.json()
        except ValueError as e:
            raise StreamError("Ollama returned a malformed model list") from e
        models = (data if isinstance(data, dict) else {}).get("models") or []
        return [
            {"id": str(m.get("model") or m.get("name")), "label": str(m.get("name") or m.get("model"))}
            for m in models
            if isinstance(m, dict) and (m.get("model") or m.get("name"))
        ]
