"""
Route handlers for session inspection, cancellation and closing.
"""
from fastapi import APIRouter, HTTPException, status

from services.session_service import get_session_manager
from utils.errors import SessionNotFoundError

router = APIRouter()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    """Message history and state of a session."""
    try:
        session = get_session_manager().get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return {
        "session_id": session.id,
        "busy": session.busy,
        "state": session.last_state,
        "messages": [
            {"role": m.role, "content": m.content, "aborted": m.aborted}
            for m in session.messages
        ]
    }


@router.post("/sessions/{session_id}/cancel")
async def cancel_session(session_id: str):
    """Stop the answer currently streaming, keeping the session open."""
    try:
        cancelled = get_session_manager().cancel(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"session_id": session_id, "cancelled": cancelled}


@router.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    """Close a session, cancelling any in-flight request."""
    try:
        get_session_manager().close(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"session_id": session_id, "closed": True}
