from unittest.mock import AsyncMock

import pytest

from typing_trainer.core.errors import InternalError, ProtocolError, SessionNotFoundError, SessionStateError
from typing_trainer.streaming.error_handler import GENERIC_ERROR_MESSAGE, StreamErrorHandler
from typing_trainer.types import SessionStatus
from tests.test_helpers import FakeConnection, create_test_session


@pytest.fixture
def error_handler(store, registry, mock_logger):
    return StreamErrorHandler(store, registry, logger=mock_logger)


@pytest.fixture
def session(store, registry, connection):
    session = create_test_session(store)
    registry.register(session.id, connection)
    return session


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error,code",
    [
        (ProtocolError("Malformed message: invalid JSON"), 400),
        (SessionStateError("Session already completed"), 409),
        (SessionNotFoundError("gone"), 404),
    ],
)
async def test_declared_errors_keep_message_and_code(error_handler, store, session, connection, mock_logger, error, code):
    await error_handler.handle(session.id, error)

    assert connection.sent == [{"type": "ERROR", "data": {"message": error.message, "code": code}}]
    assert store.get(session.id).status == SessionStatus.INITIALIZED
    mock_logger.warning.assert_called_once()
    mock_logger.error.assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_error_is_masked_and_marks_session(error_handler, store, session, connection, mock_logger):
    await error_handler.handle(session.id, KeyError("secret detail"))

    assert connection.sent == [{"type": "ERROR", "data": {"message": GENERIC_ERROR_MESSAGE, "code": 500}}]
    stored = store.get(session.id)
    assert stored.status == SessionStatus.ERROR
    assert "secret detail" in stored.last_error
    assert mock_logger.error.call_args.kwargs["exc_info"] is not None


@pytest.mark.asyncio
async def test_internal_error_is_treated_as_unexpected(error_handler, store, session, connection):
    await error_handler.handle(session.id, InternalError("wiring broke"))

    assert connection.sent[0]["data"] == {"message": GENERIC_ERROR_MESSAGE, "code": 500}
    assert store.get(session.id).status == SessionStatus.ERROR


@pytest.mark.asyncio
async def test_unknown_session_is_not_marked(error_handler, mock_logger):
    await error_handler.handle("gone", ValueError("boom"))
    mock_logger.debug.assert_called_once()


@pytest.mark.asyncio
async def test_no_session_id(error_handler, registry):
    registry.send = AsyncMock()
    await error_handler.handle(None, ProtocolError("bad"))
    registry.send.assert_not_called()


@pytest.mark.asyncio
async def test_dead_connection_does_not_raise(error_handler, store, registry):
    session = create_test_session(store)
    registry.register(session.id, FakeConnection(fail_with=RuntimeError("closed")))

    await error_handler.handle(session.id, ProtocolError("bad"))


@pytest.mark.asyncio
async def test_send_failure_does_not_raise(error_handler, store, registry, session, mock_logger):
    registry.send = AsyncMock(side_effect=OSError("pipe"))

    await error_handler.handle(session.id, ProtocolError("bad"))

    assert "Failed to deliver" in mock_logger.error.call_args.args[0]
