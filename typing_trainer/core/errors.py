from typing import Any, Dict, Optional


class TypingTrainerError(Exception):
    """Base class for errors that carry a declared status code.

    Errors raised inside the session pipeline are caught at the HTTP and
    WebSocket boundaries and turned into structured responses.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        return {"statusCode": self.status_code, "errorCode": self.error_code, "message": self.message}


class ValidationError(TypingTrainerError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class InvalidIntervalError(ValidationError):
    error_code = "INVALID_INTERVAL"


class SessionNotFoundError(TypingTrainerError):
    status_code = 404
    error_code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__("Session not found")
        self.session_id = session_id


class ProtocolError(TypingTrainerError):
    status_code = 400
    error_code = "PROTOCOL_ERROR"


class InvalidMessageTypeError(ProtocolError):
    error_code = "INVALID_MESSAGE_TYPE"

    def __init__(self, message_type: Any):
        super().__init__(f"Unknown message type: {message_type}")
        self.message_type = message_type


class SessionStateError(TypingTrainerError):
    status_code = 409
    error_code = "SESSION_STATE_ERROR"


class InternalError(TypingTrainerError):
    pass
