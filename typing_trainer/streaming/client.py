import asyncio
import inspect
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from typing_trainer.streaming.protocol import CLOSE_NORMAL, FATAL_CLOSE_CODES, NO_RECONNECT_CLOSE_CODES, InboundEventType

Handler = Callable[[Any], Optional[Awaitable[None]]]


class ClientState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class TypingStreamClient:
    """Client side of the session stream with automatic reconnection.

    A supervising task owns the connection: DISCONNECTED -> CONNECTING -> OPEN ->
    DISCONNECTED, then retries after ``base_delay * 2 ** (attempt - 1)`` seconds
    until ``max_reconnect_attempts`` is used up. A normal closure (1000), the
    server's refusal codes, an idle timeout (4008) and an already connected
    session (4002) end the loop without retrying. Handlers registered with
    ``on`` live on the client, so they keep working across reconnects.
    """

    def __init__(
        self,
        base_url: str,
        session_id: str,
        max_reconnect_attempts: int = 5,
        base_delay: float = 1.0,
        connect: Optional[Callable[[str], Awaitable[Any]]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.url = f"{base_url.rstrip('/')}/ws?sessionId={quote(session_id)}"
        self.session_id = session_id
        self.max_reconnect_attempts = max_reconnect_attempts
        self.base_delay = base_delay
        self.logger = logger or logging.getLogger(__name__)

        self._connect = connect or websockets.connect
        self._sleep = sleep
        self._handlers: Dict[str, List[Handler]] = {}
        self._ws: Any = None
        self._supervisor: Optional[asyncio.Task] = None
        self._opened = asyncio.Event()
        self._closing = False

        self.state = ClientState.DISCONNECTED
        self.reconnect_attempts = 0
        self.last_close_code: Optional[int] = None

    # ------------------------------
    # Lifecycle
    # ------------------------------

    async def start(self) -> None:
        if self._supervisor is not None and not self._supervisor.done():
            return
        self._closing = False
        self._supervisor = asyncio.create_task(self._run())

    async def wait_open(self, timeout: Optional[float] = None) -> None:
        """Wait until the stream is open; raises ConnectionError if the supervisor gives up first."""
        if self._supervisor is None:
            raise ConnectionError("Client has not been started")
        opened = asyncio.ensure_future(self._opened.wait())
        done, _ = await asyncio.wait({opened, self._supervisor}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        if opened not in done:
            opened.cancel()
            raise ConnectionError(f"Stream for session {self.session_id} did not open (close code {self.last_close_code})")

    async def close(self) -> None:
        """Close the stream and stop any pending reconnect."""
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
        task = self._supervisor
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._ws = None
        self.state = ClientState.CLOSED

    async def __aenter__(self) -> "TypingStreamClient":
        await self.start()
        await self.wait_open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _run(self) -> None:
        while True:
            self.state = ClientState.CONNECTING
            close_code: Optional[int] = None
            try:
                ws = await self._connect(self.url)
            except (OSError, WebSocketException) as e:
                self.logger.warning(f"Connection attempt for session {self.session_id} failed: {e}")
            else:
                self._ws = ws
                self.state = ClientState.OPEN
                self.reconnect_attempts = 0
                self._opened.set()
                self.logger.info(f"Stream open for session {self.session_id}")
                close_code = await self._read_loop(ws)
                self._ws = None
                self._opened.clear()

            self.state = ClientState.DISCONNECTED
            self.last_close_code = close_code
            if not self._should_reconnect(close_code):
                return

            self.reconnect_attempts += 1
            delay = self.base_delay * 2 ** (self.reconnect_attempts - 1)
            self.logger.info(
                f"Reconnecting in {delay:.1f}s (attempt {self.reconnect_attempts}/{self.max_reconnect_attempts})"
            )
            await self._sleep(delay)

    def _should_reconnect(self, close_code: Optional[int]) -> bool:
        if self._closing or close_code == CLOSE_NORMAL:
            return False
        if close_code in FATAL_CLOSE_CODES:
            self.logger.error(f"Server refused session {self.session_id} (close code {close_code}); not reconnecting")
            return False
        if close_code in NO_RECONNECT_CLOSE_CODES:
            self.logger.info(f"Server closed stream for session {self.session_id} (close code {close_code}); not reconnecting")
            return False
        if self.reconnect_attempts >= self.max_reconnect_attempts:
            self.logger.error(f"Giving up on session {self.session_id} after {self.reconnect_attempts} reconnect attempts")
            return False
        return True

    async def _read_loop(self, ws: Any) -> Optional[int]:
        try:
            async for raw in ws:
                await self._dispatch(raw)
        except ConnectionClosed:
            pass
        return getattr(ws, "close_code", None)

    # ------------------------------
    # Messages
    # ------------------------------

    def on(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for an outbound event type; returns a function that unregisters it."""
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def _dispatch(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
            event_type = message["type"]
        except (TypeError, ValueError, KeyError) as e:
            self.logger.warning(f"Ignoring malformed message from server: {e}")
            return

        for handler in list(self._handlers.get(event_type, [])):
            try:
                result = handler(message.get("data"))
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self.logger.exception(f"Handler for {event_type} failed")

    async def send(self, event_type: str, data: Any = None) -> None:
        if self.state != ClientState.OPEN or self._ws is None:
            raise ConnectionError("Stream is not connected")
        await self._ws.send(json.dumps({"type": event_type, "data": data}))

    async def start_session(self) -> None:
        await self.send(InboundEventType.START_SESSION.value)

    async def update_input(self, text: str) -> None:
        await self.send(InboundEventType.INPUT_UPDATE.value, {"input": text})

    async def end_session(self) -> None:
        await self.send(InboundEventType.END_SESSION.value)
