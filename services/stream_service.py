"""
Streaming service bridging the chat client to the host.
Turns client stream events into Server-Sent Events for the HTTP surface.
"""
import json
from typing import AsyncIterator, Optional

from models.api_models import ApiEndpoint
from models.chat_models import Session, StreamEvent
from services.chat_client import StreamingChatClient
from utils.constants import StreamEventType
from utils.errors import TransportError


class StreamService:
    """Service for relaying a chat turn to the host as SSE."""

    @staticmethod
    def send_sse_event(event_type: str, data: dict) -> str:
        """Format data as Server-Sent Events (SSE) format."""
        return f"event: {event_type}\ndata: {json.dumps(data, separators=(',', ':'), ensure_ascii=False)}\n\n"

    @staticmethod
    def event_to_sse(event: StreamEvent, session: Session) -> str:
        """Map one client event to its SSE record."""
        if event.type == StreamEventType.DELTA:
            return StreamService.send_sse_event("token", {"content": event.content})

        if event.type == StreamEventType.DONE:
            return StreamService.send_sse_event("done", {
                "session_id": session.id,
                "full_response": event.content,
                "messages": len(session.messages)
            })

        if event.type == StreamEventType.ABORTED:
            return StreamService.send_sse_event("aborted", {
                "session_id": session.id,
                "partial_response": event.content
            })

        error = event.error
        data = {
            "type": type(error).__name__,
            "message": StreamingChatClient.describe_error(error).strip(),
            "detail": str(error)
        }
        if isinstance(error, TransportError) and error.status_code is not None:
            data["status"] = error.status_code
        return StreamService.send_sse_event("error", data)

    @staticmethod
    async def relay(
        client: StreamingChatClient,
        session: Session,
        endpoint: Optional[ApiEndpoint],
        first_turn: bool,
        default_template: Optional[str] = None,
        question: Optional[str] = None
    ) -> AsyncIterator[str]:
        """
        Stream one turn of `session` as SSE records.

        Yields:
            `token` records followed by one `done`, `aborted` or `error` record
        """
        async for event in client.stream_chat(session, endpoint, first_turn, default_template, question):
            yield StreamService.event_to_sse(event, session)
