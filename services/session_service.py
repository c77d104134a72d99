"""
In-memory registry of live chat sessions.
Sessions idle for longer than Config.SESSION_TTL are evicted.
"""
import time
from typing import Optional

from config import Config
from models.chat_models import Session
from utils.errors import SessionBusyError, SessionNotFoundError
from utils.logger import app_logger


class SessionManager:
    """Creates, looks up and closes sessions."""

    def __init__(self, ttl: Optional[float] = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._ttl = ttl

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def ttl(self) -> float:
        return self._ttl if self._ttl is not None else Config.SESSION_TTL

    def _evict_expired(self) -> None:
        """Drop idle sessions past their TTL. Sessions still streaming are kept."""
        cutoff = time.monotonic() - self.ttl
        expired = [
            session_id for session_id, session in self._sessions.items()
            if not session.busy and session.last_active < cutoff
        ]
        for session_id in expired:
            self._sessions.pop(session_id).close()

        if expired:
            app_logger.debug(f"Sessions: evicted {len(expired)} idle sessions")

    def create(
        self,
        selection: str,
        context: str = "",
        template: Optional[str] = None,
        api_index: Optional[int] = None
    ) -> Session:
        self._evict_expired()
        session = Session(selection=selection, context=context, template=template, api_index=api_index)
        self._sessions[session.id] = session
        app_logger.info(f"Session {session.id} created ({len(selection)} chars selected)")
        return session

    def get(self, session_id: str) -> Session:
        self._evict_expired()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        session.touch()
        return session

    def get_idle(self, session_id: str) -> Session:
        """Session ready for a follow-up turn. Refused while the previous answer is streaming."""
        session = self.get(session_id)
        if session.busy:
            raise SessionBusyError(f"Session {session_id} is still answering")
        return session

    def cancel(self, session_id: str) -> bool:
        """Stop the in-flight request, if any. Returns whether one was running."""
        session = self.get(session_id)
        if not session.busy:
            return False
        session.cancel()
        app_logger.info(f"Session {session_id} cancel requested")
        return True

    def close(self, session_id: str) -> None:
        """Cancel any in-flight or not yet started request and drop the session."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        session.close()
        app_logger.info(f"Session {session_id} closed after {len(session.messages)} messages")


_session_manager = SessionManager()


def get_session_manager() -> SessionManager:
    """Get the global session manager instance."""
    return _session_manager
