"""Incremental decoding of an OpenAI-style SSE byte stream.

Chunk boundaries are arbitrary: a chunk may end in the middle of a line, of a
JSON payload, or of a multi-byte UTF-8 character. The decoder carries the
undecoded bytes and the unterminated line over to the next chunk.
"""

import codecs
import json
from typing import Optional

DATA_FIELD = "data:"
DONE_SENTINEL = "[DONE]"


class SSELineDecoder:
    """Turns byte chunks into complete text lines."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Decode ``chunk`` and return the lines it completes."""
        text = self._pending + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._pending = lines.pop()
        return [_strip_cr(line) for line in lines]

    def flush(self) -> list[str]:
        """Return the trailing unterminated line, if any, at end of stream."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [_strip_cr(text)] if text else []


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def parse_data_line(line: str) -> Optional[str]:
    """Payload of a ``data:`` line, or None for any other line."""
    if not line.startswith(DATA_FIELD):
        return None
    payload = line[len(DATA_FIELD):]
    return payload[1:] if payload.startswith(" ") else payload


def extract_delta(payload: str) -> Optional[str]:
    """Incremental text from one chunk payload.

    Returns None for payloads that are not JSON or carry no text, such as
    keep-alive lines or the role-only first chunk.
    """
    try:
        data = json.loads(payload)
        content = data["choices"][0]["delta"]["content"]
    except (json.JSONDecodeError, KeyError, IndexError, TypeError):
        return None
    if isinstance(content, str) and content:
        return content
    return None


class SSEDeltaParser:
    """Extracts text deltas from a chunked SSE byte stream.

    When the end sentinel is found, the remaining lines decoded from that
    chunk are skipped. Later chunks are still parsed: the sentinel is a
    marker inside the text protocol, and the stream ends only when the
    transport says so.
    """

    def __init__(self):
        self._lines = SSELineDecoder()
        self.done_seen = False

    def feed(self, chunk: bytes) -> list[str]:
        return self._parse(self._lines.feed(chunk))

    def flush(self) -> list[str]:
        return self._parse(self._lines.flush())

    def _parse(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            payload = parse_data_line(line)
            if payload is None:
                continue
            if payload == DONE_SENTINEL:
                self.done_seen = True
                break
            delta = extract_delta(payload)
            if delta is not None:
                deltas.append(delta)
        return deltas
