import logging
from typing import Callable, Optional

from typing_trainer.analysis.differ import DifferenceAnalyzer
from typing_trainer.analysis.metrics import MIN_INTERVAL_MS, MetricsEngine
from typing_trainer.core.errors import InvalidMessageTypeError, ProtocolError, SessionStateError
from typing_trainer.core.session_store import SessionStore, now_ms
from typing_trainer.streaming.connections import ConnectionRegistry
from typing_trainer.streaming.protocol import (
    InboundEvent,
    InboundEventType,
    OutboundEventType,
    outbound_event,
    parse_input_payload,
)
from typing_trainer.types import DifferenceAnalysis, Metrics, Session, SessionStatus


class TypingSessionHandler:
    """Applies inbound stream events to a session and pushes metrics back.

    A session completes as soon as the input is at least as long as the target
    text. END_SESSION stops a session early. Either way completion happens
    once; input arriving after it is rejected.
    """

    def __init__(
        self,
        store: SessionStore,
        registry: ConnectionRegistry,
        analyzer: Optional[DifferenceAnalyzer] = None,
        metrics_engine: Optional[MetricsEngine] = None,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.registry = registry
        self.analyzer = analyzer or DifferenceAnalyzer()
        self.metrics_engine = metrics_engine or MetricsEngine()
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    async def dispatch(self, session_id: str, event: InboundEvent) -> None:
        if event.session_id is not None and event.session_id != session_id:
            raise ProtocolError("sessionId does not match this connection")

        kind = event.kind
        if kind is InboundEventType.START_SESSION:
            await self.handle_start(session_id)
        elif kind is InboundEventType.INPUT_UPDATE:
            await self.handle_input_update(session_id, parse_input_payload(event.data))
        elif kind is InboundEventType.END_SESSION:
            await self.handle_end(session_id)
        else:
            raise InvalidMessageTypeError(event.type)

    async def handle_start(self, session_id: str) -> Session:
        session = self.store.get(session_id)
        if session.is_completed:
            raise SessionStateError("Session already completed")
        if session.start_time is not None:
            self.logger.debug(f"Session {session_id} already started; keeping start time")
            if session.status == SessionStatus.ERROR:
                session = self.store.update(session_id, status=SessionStatus.ACTIVE)
            return session
        session = self.store.update(session_id, status=SessionStatus.ACTIVE, start_time=self.clock())
        self.logger.info(f"Session {session_id} started")
        return session

    async def handle_input_update(self, session_id: str, input_text: str) -> DifferenceAnalysis:
        session = self.store.get(session_id)
        if session.is_completed:
            raise SessionStateError("Session already completed")
        if session.text is None:
            raise SessionStateError("Session has no target text")

        now = self.clock()
        already_started = session.start_time is not None
        # An update that goes through also clears an earlier error status
        changes = {"input": input_text, "last_update": now, "status": SessionStatus.ACTIVE}
        if not already_started:
            changes["start_time"] = now
        session = self.store.update(session_id, **changes)

        analysis = self.analyzer.analyze(session.text, input_text)

        # No interval to measure on the update that starts the clock
        if already_started:
            metrics = self._compute(analysis, session.start_time, now)
            await self.registry.send(
                session_id,
                outbound_event(
                    OutboundEventType.METRICS_UPDATE,
                    {"analysis": analysis.to_dict(), "metrics": metrics.to_dict()},
                ),
            )

        if len(input_text) >= len(session.text):
            await self.complete(session_id, analysis=analysis, end_time=now)
        return analysis

    async def handle_end(self, session_id: str) -> Optional[Metrics]:
        session = self.store.get(session_id)
        if session.is_completed:
            self.logger.debug(f"END_SESSION for completed session {session_id} ignored")
            return None
        return await self.complete(session_id)

    async def complete(
        self,
        session_id: str,
        analysis: Optional[DifferenceAnalysis] = None,
        end_time: Optional[int] = None,
    ) -> Optional[Metrics]:
        """Finalize the session and push SESSION_COMPLETE. Returns None if it was already complete."""
        session = self.store.get(session_id)
        if session.is_completed:
            return None

        end = end_time if end_time is not None else self.clock()
        start = session.start_time if session.start_time is not None else end
        if analysis is None:
            analysis = self.analyzer.analyze(session.text or "", session.input)
        metrics = self._compute(analysis, start, end)

        self.store.update(
            session_id,
            status=SessionStatus.COMPLETED,
            start_time=start,
            end_time=end,
            metrics=metrics,
        )
        self.logger.info(f"Session {session_id} completed: {metrics.wpm} wpm, {metrics.accuracy}% accuracy")

        await self.registry.send(
            session_id,
            outbound_event(OutboundEventType.SESSION_COMPLETE, {"sessionId": session_id, "metrics": metrics.to_dict()}),
        )
        return metrics

    def _compute(self, analysis: DifferenceAnalysis, start: int, end: int) -> Metrics:
        if end - start < MIN_INTERVAL_MS:
            return self.metrics_engine.without_interval(analysis)
        return self.metrics_engine.compute_metrics(analysis, start, end)
