import logging
import threading
import time
import uuid
from dataclasses import fields, replace
from typing import Any, Callable, Dict, List, Optional

from typing_trainer.core.errors import SessionNotFoundError, ValidationError
from typing_trainer.types import Session


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionStore:
    """In-memory store of practice sessions keyed by session id.

    The store is the only writer of Session records. Every read-modify-write
    happens under one lock, so updates to the same id are atomic even when
    callers run on worker threads.
    """

    _UPDATABLE_FIELDS = frozenset(f.name for f in fields(Session)) - {"id"}

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, text: Optional[str] = None, word_count: Optional[int] = None) -> Session:
        """Allocate a new session in the ``initialized`` state."""
        with self._lock:
            session_id = uuid.uuid4().hex
            # uuid4 collisions are not expected, but an id must never be reused
            while session_id in self._sessions:
                session_id = uuid.uuid4().hex
            session = Session(id=session_id, text=text, word_count=word_count, created_at=now_ms())
            self._sessions[session_id] = session
        self.logger.debug(f"Created session {session_id}")
        return session

    def get(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def update(self, session_id: str, **changes: Any) -> Session:
        """Merge ``changes`` into the session and return the new record."""
        if "id" in changes:
            raise ValidationError("Session id cannot be changed")
        unknown = set(changes) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown session fields: {', '.join(sorted(unknown))}")

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            updated = replace(session, **changes)
            self._sessions[session_id] = updated
        return updated

    def delete(self, session_id: str) -> bool:
        with self._lock:
            existed = self._sessions.pop(session_id, None) is not None
        if existed:
            self.logger.debug(f"Deleted session {session_id}")
        return existed

    def purge_idle(
        self,
        max_idle_ms: int,
        now: Optional[int] = None,
        keep: Optional[Callable[[str], bool]] = None,
    ) -> List[str]:
        """Remove sessions with no activity for longer than ``max_idle_ms``.

        Sessions for which ``keep(session_id)`` is true are left alone.
        """
        cutoff = (now if now is not None else now_ms()) - max_idle_ms
        with self._lock:
            expired = [
                sid
                for sid, session in self._sessions.items()
                if session.last_activity < cutoff and not (keep and keep(sid))
            ]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            self.logger.info(f"Reclaimed {len(expired)} idle session(s)")
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
