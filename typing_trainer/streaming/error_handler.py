import logging
from typing import Optional

from typing_trainer.core.errors import InternalError, SessionNotFoundError, TypingTrainerError
from typing_trainer.core.session_store import SessionStore
from typing_trainer.streaming.connections import ConnectionRegistry
from typing_trainer.streaming.protocol import error_event
from typing_trainer.types import SessionStatus

GENERIC_ERROR_MESSAGE = "Internal server error"


class StreamErrorHandler:
    """Turns failures raised while serving a stream into ERROR events.

    Declared errors (validation, not found, protocol, session state) are sent
    back with their own message and status code. Anything else is logged with
    its traceback, marks the session as errored and reaches the client only as
    a generic 500. Nothing raised here escapes to the caller.
    """

    def __init__(self, store: SessionStore, registry: ConnectionRegistry, logger: Optional[logging.Logger] = None):
        self.store = store
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)

    async def handle(self, session_id: Optional[str], error: BaseException) -> None:
        if isinstance(error, TypingTrainerError) and not isinstance(error, InternalError):
            self.logger.warning(f"Stream error in session {session_id}: [{error.error_code}] {error.message}")
            message, code = error.message, error.status_code
        else:
            self.logger.error(f"Unexpected error in session {session_id}: {error}", exc_info=error)
            message, code = GENERIC_ERROR_MESSAGE, 500
            self._mark_session_errored(session_id, error)

        if session_id is None:
            return

        try:
            sent = await self.registry.send(session_id, error_event(message, code))
        except Exception as e:
            self.logger.error(f"Failed to deliver error event to session {session_id}: {e}")
            return
        if not sent:
            self.logger.info(f"No live connection for session {session_id}; dropped error event: {message}")

    def _mark_session_errored(self, session_id: Optional[str], error: BaseException) -> None:
        if session_id is None:
            return
        try:
            self.store.update(session_id, status=SessionStatus.ERROR, last_error=str(error))
        except SessionNotFoundError:
            self.logger.debug(f"Session {session_id} is gone; not marking it errored")
