import asyncio
import logging
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect

from typing_trainer.core.errors import SessionNotFoundError
from typing_trainer.core.session_store import SessionStore
from typing_trainer.streaming.connections import ConnectionRegistry
from typing_trainer.streaming.error_handler import StreamErrorHandler
from typing_trainer.streaming.handler import TypingSessionHandler
from typing_trainer.streaming.protocol import (
    CLOSE_ALREADY_CONNECTED,
    CLOSE_IDLE_TIMEOUT,
    CLOSE_INVALID_SESSION,
    CLOSE_REASONS,
    CLOSE_SESSION_ID_REQUIRED,
    parse_inbound,
)


class SessionStreamEndpoint:
    """Serves ``/ws?sessionId=...``: one coroutine per connection, messages handled in arrival order."""

    def __init__(
        self,
        store: SessionStore,
        registry: ConnectionRegistry,
        handler: TypingSessionHandler,
        error_handler: StreamErrorHandler,
        idle_timeout_seconds: float = 0,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.registry = registry
        self.handler = handler
        self.error_handler = error_handler
        self.idle_timeout_seconds = idle_timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    async def serve(self, websocket: WebSocket, session_id: Optional[str]) -> None:
        # Accept first so the client sees the close code instead of a failed handshake
        await websocket.accept()

        if not session_id:
            await self._refuse(websocket, CLOSE_SESSION_ID_REQUIRED)
            return
        try:
            self.store.get(session_id)
        except SessionNotFoundError:
            await self._refuse(websocket, CLOSE_INVALID_SESSION, session_id)
            return
        if not self.registry.register(session_id, websocket):
            await self._refuse(websocket, CLOSE_ALREADY_CONNECTED, session_id)
            return

        self.logger.info(f"Stream opened for session {session_id}")
        try:
            await self._serve(websocket, session_id)
        finally:
            self.registry.unregister(session_id, websocket)
            self.logger.info(f"Stream closed for session {session_id}")

    async def _serve(self, websocket: WebSocket, session_id: str) -> None:
        while True:
            try:
                raw = await self._receive(websocket)
            except asyncio.TimeoutError:
                self.logger.info(f"Closing idle stream for session {session_id}")
                await websocket.close(code=CLOSE_IDLE_TIMEOUT, reason=CLOSE_REASONS[CLOSE_IDLE_TIMEOUT])
                return
            except WebSocketDisconnect:
                return

            try:
                event = parse_inbound(raw)
                await self.handler.dispatch(session_id, event)
            except Exception as e:
                await self.error_handler.handle(session_id, e)

    async def _receive(self, websocket: WebSocket) -> str:
        if self.idle_timeout_seconds and self.idle_timeout_seconds > 0:
            return await asyncio.wait_for(self._receive_frame(websocket), timeout=self.idle_timeout_seconds)
        return await self._receive_frame(websocket)

    @staticmethod
    async def _receive_frame(websocket: WebSocket) -> str:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        if message.get("text") is not None:
            return message["text"]
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def _refuse(self, websocket: WebSocket, code: int, session_id: Optional[str] = None) -> None:
        self.logger.warning(f"Refusing stream connection (session={session_id}): {CLOSE_REASONS[code]}")
        await websocket.close(code=code, reason=CLOSE_REASONS[code])
