import logging
from typing import Any, Dict, Optional, Protocol

from starlette.websockets import WebSocketDisconnect


class JsonConnection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    """Maps a session id to the one live connection streaming it.

    The registry is the only writer of this mapping. A second connection for a
    session that is already registered is refused rather than replacing it.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._connections: Dict[str, JsonConnection] = {}

    def register(self, session_id: str, connection: JsonConnection) -> bool:
        existing = self._connections.get(session_id)
        if existing is not None and existing is not connection:
            self.logger.warning(f"Session {session_id} already has a live connection")
            return False
        self._connections[session_id] = connection
        self.logger.debug(f"Registered connection for session {session_id}")
        return True

    def unregister(self, session_id: str, connection: Optional[JsonConnection] = None) -> bool:
        """Drop the registration, only if it still belongs to ``connection`` when one is given."""
        existing = self._connections.get(session_id)
        if existing is None or (connection is not None and existing is not connection):
            return False
        del self._connections[session_id]
        self.logger.debug(f"Unregistered connection for session {session_id}")
        return True

    def get(self, session_id: str) -> Optional[JsonConnection]:
        return self._connections.get(session_id)

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._connections

    async def send(self, session_id: str, payload: Dict[str, Any]) -> bool:
        """Send ``payload`` to the session's connection. Returns False if there is none or it is gone."""
        connection = self._connections.get(session_id)
        if connection is None:
            return False
        try:
            await connection.send_json(payload)
            return True
        except (WebSocketDisconnect, RuntimeError) as e:
            self.logger.warning(f"Failed to send {payload.get('type')} to session {session_id}: {e}")
            return False

    def __len__(self) -> int:
        return len(self._connections)
