"""
Incremental parser for OpenAI-compatible streaming chat bodies.
Handles records split across reads and multi-byte characters split across chunks.
"""
import json
from typing import Optional

from models.chat_models import StreamState
from utils.constants import SSEFormat
from utils.errors import MalformedRecordWarning
from utils.logger import app_logger


class SSEStreamParser:
    """Turns raw body chunks into content deltas.

    Records are separated by a blank line. Only records starting with
    ``data: `` are considered; the ``[DONE]`` payload marks completion.
    """

    def __init__(self, state: Optional[StreamState] = None):
        self.state = state or StreamState()

    @property
    def done(self) -> bool:
        return self.state.done

    @property
    def answer(self) -> str:
        return self.state.answer

    def feed(self, chunk: bytes) -> list[str]:
        """Decode a chunk and return the deltas of every record it completes."""
        if self.state.done:
            return []

        self.state.buffer += self.state.decoder.decode(chunk)

        parts = self.state.buffer.split(SSEFormat.RECORD_SEPARATOR)
        self.state.buffer = parts.pop()

        return self._process_records(parts)

    def finish(self) -> list[str]:
        """Flush the decoder and parse a trailing record left without a separator."""
        if self.state.done:
            return []

        self.state.buffer += self.state.decoder.decode(b"", final=True)
        remaining = self.state.buffer
        self.state.buffer = ""

        if not remaining.strip():
            return []
        return self._process_records([remaining])

    def _process_records(self, records: list[str]) -> list[str]:
        deltas = []
        for record in records:
            if not record.startswith(SSEFormat.DATA_PREFIX):
                continue

            self.state.records += 1
            data = record[len(SSEFormat.DATA_PREFIX):].strip()

            if data == SSEFormat.DONE_SENTINEL:
                self.state.done = True
                break

            delta = self._extract_delta(data)
            if delta:
                self.state.answer += delta
                deltas.append(delta)

        return deltas

    def _extract_delta(self, data: str) -> Optional[str]:
        """Read choices[0].delta.content, or None when the record is unusable."""
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            self._warn_malformed(data, "invalid JSON")
            return None

        try:
            content = payload["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            self._warn_malformed(data, "no choices[0].delta")
            return None

        if content is not None and not isinstance(content, str):
            self._warn_malformed(data, "non-string delta content")
            return None
        return content

    def _warn_malformed(self, data: str, reason: str) -> None:
        self.state.malformed += 1
        warning = MalformedRecordWarning(f"Skipping SSE record ({reason}): {data[:200]}")
        app_logger.warning(str(warning))

    def reset(self):
        """Reset the parser state."""
        self.state = StreamState()
