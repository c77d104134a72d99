"""
Data models for chat processing.
Contains the session, per-call stream state and stream events.
"""
import asyncio
import codecs
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from utils.constants import CallState, StreamEventType


@dataclass
class ChatMessage:
    """One conversation turn. `aborted` marks a partial answer and is never sent."""
    role: str  # "user" or "assistant"
    content: str
    aborted: bool = False

    def to_payload(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class Session:
    """
    Conversation owned by the host: history, selection, context and the
    template chosen for the first turn.
    """
    selection: str
    context: str = ""
    template: Optional[str] = None
    api_index: Optional[int] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    messages: list[ChatMessage] = field(default_factory=list)
    busy: bool = False
    last_state: str = CallState.IDLE
    abort_event: asyncio.Event = field(default_factory=asyncio.Event)
    closed: bool = False
    last_active: float = field(default_factory=time.monotonic)

    @property
    def is_first_turn(self) -> bool:
        """No turn has been committed yet."""
        return not self.messages

    def add_user_message(self, content: str) -> ChatMessage:
        message = ChatMessage(role="user", content=content)
        self.messages.append(message)
        return message

    def add_assistant_message(self, content: str, aborted: bool = False) -> ChatMessage:
        message = ChatMessage(role="assistant", content=content, aborted=aborted)
        self.messages.append(message)
        return message

    def payload(self) -> list[dict]:
        """History in the shape sent to the endpoint."""
        return [m.to_payload() for m in self.messages]

    def cancel(self) -> None:
        """Signal the in-flight request to stop. A cancel sent before the turn starts still applies to it."""
        self.abort_event.set()

    def close(self) -> None:
        """Cancel for good: no later turn of this session is sent."""
        self.closed = True
        self.abort_event.set()

    def touch(self) -> None:
        self.last_active = time.monotonic()


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass
class StreamState:
    """Per-call parsing state. Created at request start, dropped at stream end."""
    decoder: codecs.IncrementalDecoder = field(default_factory=_utf8_decoder)
    buffer: str = ""
    answer: str = ""
    done: bool = False
    records: int = 0
    malformed: int = 0


@dataclass
class StreamEvent:
    """Item yielded by the chat client. Only `delta` events are non-terminal."""
    type: str
    content: str = ""
    error: Optional[Exception] = None

    @property
    def is_terminal(self) -> bool:
        return self.type != StreamEventType.DELTA
