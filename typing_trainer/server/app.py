import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from typing_trainer.analysis.differ import DifferenceAnalyzer
from typing_trainer.analysis.metrics import MetricsEngine
from typing_trainer.core.config import ServerConfig
from typing_trainer.core.errors import TypingTrainerError, ValidationError
from typing_trainer.core.session_store import SessionStore
from typing_trainer.core.text_generator import TextGenerator
from typing_trainer.streaming.connections import ConnectionRegistry
from typing_trainer.streaming.endpoint import SessionStreamEndpoint
from typing_trainer.streaming.error_handler import StreamErrorHandler
from typing_trainer.streaming.handler import TypingSessionHandler


class SessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    word_count: Optional[StrictInt] = Field(None, alias="wordCount")


class TypingServer:
    """HTTP and WebSocket surface of the typing practice service."""

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        store: Optional[SessionStore] = None,
        text_generator: Optional[TextGenerator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ServerConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.store = store or SessionStore(logger=self.logger)
        self.text_generator = text_generator or TextGenerator()

        self.registry = ConnectionRegistry(logger=self.logger)
        self.handler = TypingSessionHandler(
            self.store,
            self.registry,
            analyzer=DifferenceAnalyzer(logger=self.logger),
            metrics_engine=MetricsEngine(),
            logger=self.logger,
        )
        self.error_handler = StreamErrorHandler(self.store, self.registry, logger=self.logger)
        self.stream_endpoint = SessionStreamEndpoint(
            self.store,
            self.registry,
            self.handler,
            self.error_handler,
            idle_timeout_seconds=self.config.connection_idle_timeout_seconds,
            logger=self.logger,
        )

        # Create FastAPI instance and configure
        self.app = FastAPI(title="Typing Trainer", lifespan=self._lifespan)
        self._configure_cors()
        self._register_exception_handlers()
        self._register_routes()

    def _configure_cors(self) -> None:
        """Configure CORS middleware."""
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["Content-Type"],
        )

    def _register_routes(self) -> None:
        """Register API routes."""
        self.app.add_api_route("/api/session", self.create_session, methods=["POST"])
        self.app.add_api_route("/api/session/{session_id}", self.get_session, methods=["GET"])
        self.app.add_api_route("/api/session/{session_id}", self.delete_session, methods=["DELETE"])
        self.app.add_api_route("/api/session/{session_id}/metrics", self.get_session_metrics, methods=["GET"])
        self.app.add_api_route("/health", self.health, methods=["GET"])
        self.app.add_api_websocket_route("/ws", self.stream_session)

    def _register_exception_handlers(self) -> None:
        self.app.add_exception_handler(TypingTrainerError, self._handle_app_error)
        self.app.add_exception_handler(RequestValidationError, self._handle_request_validation_error)
        self.app.add_exception_handler(Exception, self._handle_unexpected_error)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        reaper = None
        if self.config.session_idle_timeout_seconds > 0:
            reaper = asyncio.create_task(self._reap_idle_sessions())
        try:
            yield
        finally:
            if reaper is not None:
                reaper.cancel()
                try:
                    await reaper
                except asyncio.CancelledError:
                    pass

    async def _reap_idle_sessions(self) -> None:
        max_idle_ms = self.config.session_idle_timeout_seconds * 1000
        while True:
            await asyncio.sleep(self.config.session_reap_interval_seconds)
            # A live stream keeps its session, even when the user pauses
            self.store.purge_idle(max_idle_ms, keep=self.registry.is_connected)

    # ------------------------------
    # REST endpoints
    # ------------------------------

    async def create_session(self, request: Optional[SessionRequest] = None):
        """Create a practice session with freshly generated text."""
        request = request or SessionRequest()
        word_count = request.word_count if request.word_count is not None else self.config.default_word_count
        if not self.config.min_word_count <= word_count <= self.config.max_word_count:
            raise ValidationError(
                f"wordCount must be between {self.config.min_word_count} and {self.config.max_word_count}"
            )

        text = self.text_generator.generate_text(word_count)
        session = self.store.create(text=text, word_count=word_count)
        self.logger.info(f"Created session {session.id} with {word_count} words")
        return {"sessionId": session.id, "text": session.text, "wordCount": word_count}

    async def get_session(self, session_id: str):
        return self.store.get(session_id).to_dict()

    async def delete_session(self, session_id: str):
        return {"deleted": self.store.delete(session_id)}

    async def get_session_metrics(self, session_id: str):
        session = self.store.get(session_id)
        return {"sessionId": session_id, "metrics": session.metrics.to_dict() if session.metrics else None}

    async def health(self):
        return {"status": "healthy", "sessions": len(self.store)}

    async def stream_session(self, websocket: WebSocket, sessionId: Optional[str] = Query(None)):
        await self.stream_endpoint.serve(websocket, sessionId)

    # ------------------------------
    # Error responses
    # ------------------------------

    async def _handle_app_error(self, request: Request, exc: TypingTrainerError) -> JSONResponse:
        self.logger.warning(f"{request.method} {request.url.path} failed: [{exc.error_code}] {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    async def _handle_request_validation_error(self, request: Request, exc: RequestValidationError) -> JSONResponse:
        self.logger.warning(f"{request.method} {request.url.path} rejected: invalid request data")
        return JSONResponse(
            status_code=400,
            content={
                "statusCode": 400,
                "errorCode": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "details": [
                    {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
                    for err in exc.errors()
                ],
            },
        )

    async def _handle_unexpected_error(self, request: Request, exc: Exception) -> JSONResponse:
        self.logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"statusCode": 500, "errorCode": "INTERNAL_SERVER_ERROR", "message": "An unexpected error occurred"},
        )


def create_app(config: Optional[ServerConfig] = None, logger: Optional[logging.Logger] = None) -> FastAPI:
    return TypingServer(config=config, logger=logger).app
