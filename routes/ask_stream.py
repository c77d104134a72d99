"""
Route handlers for streaming ask operations.
Handles the first turn of a session and its follow-up questions.
"""
from typing import AsyncIterator, Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import StreamingResponse

from models.api_models import AskRequest, FollowUpRequest
from models.chat_models import Session
from services.chat_client import get_chat_client
from services.session_service import get_session_manager
from services.settings_store import get_settings_store
from services.stream_service import StreamService
from services.text_service import TextService
from utils.errors import AskAIError, SessionBusyError, SessionNotFoundError
from utils.logger import app_logger

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no"
}


def stream_session_turn(session: Session, first_turn: bool, question: Optional[str] = None) -> StreamingResponse:
    """Stream one turn of `session` with the currently configured endpoint."""

    async def event_generator() -> AsyncIterator[str]:
        yield StreamService.send_sse_event("session", {"session_id": session.id})
        try:
            store = get_settings_store()
            endpoint = store.get_endpoint(session.api_index)
            default_template = store.get_default_template() if first_turn else None

            async for record in StreamService.relay(
                client=get_chat_client(),
                session=session,
                endpoint=endpoint,
                first_turn=first_turn,
                default_template=default_template,
                question=question
            ):
                yield record

        except AskAIError as e:
            app_logger.error(f"Session {session.id} error: {e}")
            yield StreamService.send_sse_event("error", {"type": type(e).__name__, "message": str(e)})
        except Exception as e:
            app_logger.error(f"Streaming ask error: {str(e)}")
            yield StreamService.send_sse_event("error", {"type": "internal_error", "message": str(e)})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS
    )


def _resolve_template(request: AskRequest) -> Optional[str]:
    """Explicit template text, then a stored template by index, else None (use the default)."""
    if request.template is not None:
        return request.template
    if request.template_index is None:
        return None

    template = get_settings_store().get_template(request.template_index)
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No prompt template at index {request.template_index}"
        )
    return template.template


@router.post("/ask/stream")
async def ask_stream(request: AskRequest):
    """
    Start a session on the selected text and stream the first answer.
    """
    context = request.context
    if context is None and request.lines is not None and request.cursor_line is not None:
        context = TextService.extract_context(request.lines, request.cursor_line)

    session = get_session_manager().create(
        selection=request.selection,
        context=context or "",
        template=_resolve_template(request),
        api_index=request.api_index
    )
    return stream_session_turn(session, first_turn=True)


@router.post("/sessions/{session_id}/followup/stream")
async def followup_stream(session_id: str, request: FollowUpRequest):
    """
    Ask a follow-up question; the full history is resent as-is.
    The question joins the history once the endpoint accepts it.
    """
    try:
        session = get_session_manager().get_idle(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SessionBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return stream_session_turn(session, first_turn=False, question=request.question)
