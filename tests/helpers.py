import asyncio
import json

import httpx

from harmony_relay.services.ollama_client import OllamaClient


def ndjson(*records) -> bytes:
    return b"".join(json.dumps(r).encode("utf-8") + b"\n" for r in records)


def hello_stream() -> bytes:
    return ndjson(
        {"message": {"role": "assistant", "content": "he"}},
        {"message": {"role": "assistant", "content": "llo"}},
        {"done": True, "eval_count": 2},
    )


def chunked(*chunks):
    """Response body delivered as separate network reads."""
    async def gen():
        for c in chunks:
            yield c
    return gen()


def mock_client(handler, session=None) -> OllamaClient:
    return OllamaClient("http://ollama.test", transport=httpx.MockTransport(handler), session=session)


def run(coro):
    return asyncio.run(coro)


async def collect(agen):
    return [e async for e in agen]


def parse_sse(text: str):
    return [json.loads(f[len("data: "):]) for f in text.split("\n\n") if f.startswith("data: ")]


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; records calls, replays canned replies."""

    def __init__(self, post=None, get=None):
        self._post = post
        self._get = get
        self.calls = []
        self.closed = False

    def _reply(self, canned):
        if isinstance(canned, Exception):
            raise canned
        return canned

    def post(self, url, json=None, timeout=None):
        self.calls.append(("POST", url, json))
        return self._reply(self._post)

    def get(self, url, timeout=None):
        self.calls.append(("GET", url, None))
        return self._reply(self._get)

    def close(self):
        self.closed = True
