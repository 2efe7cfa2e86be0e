# harmony_relay/services/stream_framer.py
"""
Newline-delimited JSON framing for the Ollama token stream.

Network reads may split one record over several chunks, batch many records
into one chunk, or cut a multi-byte UTF-8 character in half. ``StreamFramer``
keeps the partial line (and the partial character) between reads.
"""
from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from harmony_relay.core.errors import StreamError

logger = logging.getLogger("harmony.stream_framer")


@dataclass(frozen=True)
class BackendRecord:
    delta: str = ""
    done: bool = False
    eval_count: Optional[int] = None
    error: Optional[str] = None


def parse_record(line: str) -> Optional[BackendRecord]:
    """Parse one line; ``None`` for blanks and non-JSON noise."""
    text = line.strip()
    if not text:
        return None
    try:
        obj = json.loads(text)
    except ValueError:
        logger.debug("dropped non-JSON frame: %s", text[:200])
        return None
    if not isinstance(obj, dict):
        logger.debug("dropped non-object frame: %s", text[:200])
        return None

    error = obj.get("error")
    msg = obj.get("message")
    delta = msg.get("content") if isinstance(msg, dict) else None
    eval_count = obj.get("eval_count")
    if isinstance(eval_count, bool) or not isinstance(eval_count, int):
        eval_count = None

    return BackendRecord(
        delta=delta if isinstance(delta, str) else "",
        done=bool(obj.get("done")),
        eval_count=eval_count,
        error=str(error) if error else None,
    )


class StreamFramer:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[BackendRecord]:
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        out: List[BackendRecord] = []
        for line in lines:
            rec = parse_record(line)
            if rec is not None:
                out.append(rec)
        return out

    def finish(self) -> List[BackendRecord]:
        """Flush; the terminal record may come without a trailing newline."""
        self._buffer += self._decoder.decode(b"", final=True)
        out = self.feed(b"")
        tail, self._buffer = self._buffer, ""
        rec = parse_record(tail)
        if rec is not None:
            out.append(rec)
        return out


async def iter_records(chunks: AsyncIterator[bytes]) -> AsyncIterator[BackendRecord]:
    """
    Yield records as soon as each one is complete.

    An ``error`` record raises ``StreamError`` after every record ahead of
    it has been yielded. ``done`` does not end iteration; the byte stream does.
    """
    framer = StreamFramer()
    async for chunk in chunks:
        for rec in framer.feed(chunk):
            if rec.error:
                raise StreamError(rec.error)
            yield rec
    for rec in framer.finish():
        if rec.error:
            raise StreamError(rec.error)
        yield rec
