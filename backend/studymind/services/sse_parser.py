"""
Incremental parser for the gateway's Server-Sent-Events stream.

Each event line looks like `data: {json}`; the text delta lives at
`choices[0].delta.content` and the stream ends with `data: [DONE]`.
Bytes may arrive split at arbitrary points (even inside a multi-byte UTF-8
character), so decoding and line splitting are both incremental.
"""

import codecs
import json
import logging
from typing import AsyncIterator, List, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def _extract_delta(payload: dict) -> Optional[str]:
    try:
        content = payload["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) and content else None


class SSEParser:
    """
    Feed raw bytes in, get text deltas out.

    A data line whose JSON does not parse is pushed back and retried when
    more bytes arrive, but only while it is the last line received. Once a
    later line has arrived it is dropped, so one bad event cannot hold up
    the deltas or the [DONE] sentinel behind it. finish() flushes whatever
    is left, skipping lines that still fail to parse.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._parts: List[str] = []
        self.done = False

    @property
    def text(self) -> str:
        """Full text reconstructed so far."""
        return "".join(self._parts)

    def feed(self, chunk: bytes) -> List[str]:
        """Consume one chunk of bytes and return the deltas it completed."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        deltas: List[str] = []

        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            raw_line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]

            line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
            if not line.startswith(DATA_PREFIX):
                # Blank separators, ": keep-alive" comments and other fields
                continue

            data = line[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                self.done = True
                break

            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                if "\n" not in self._buffer:
                    self._buffer = raw_line + "\n" + self._buffer
                    break
                logger.debug(f"Dropping unparseable SSE line: {data[:100]}")
                continue

            delta = _extract_delta(payload)
            if delta:
                deltas.append(delta)

        self._parts.extend(deltas)
        return deltas

    def finish(self) -> List[str]:
        """Flush the decoder and any buffered lines. Returns the final deltas."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        deltas: List[str] = []

        for raw_line in remaining.split("\n"):
            line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                break
            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Dropping unparseable SSE line: {data[:100]}")
                continue
            delta = _extract_delta(payload)
            if delta:
                deltas.append(delta)

        self.done = True
        self._parts.extend(deltas)
        return deltas


async def collect_stream_text(chunks: AsyncIterator[bytes]) -> str:
    """
    Drain an SSE byte stream and return the concatenated text deltas.

    Stops reading at the [DONE] sentinel; anything after it is ignored.
    """
    parser = SSEParser()
    async for chunk in chunks:
        parser.feed(chunk)
        if parser.done:
            break
    parser.finish()
    return parser.text
