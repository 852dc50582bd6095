"""Wire format of the typing session stream.

Inbound events: ``{"type": "START_SESSION" | "INPUT_UPDATE" | "END_SESSION", "data": ..., "sessionId": ...}``
Outbound events: ``{"type": "METRICS_UPDATE" | "SESSION_COMPLETE" | "ERROR", "data": ...}``
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictStr

from typing_trainer.core.errors import ProtocolError

# Close codes sent by the server. 4000 and 4001 mean the same parameters can never succeed.
CLOSE_NORMAL = 1000
CLOSE_SESSION_ID_REQUIRED = 4000
CLOSE_INVALID_SESSION = 4001
CLOSE_ALREADY_CONNECTED = 4002
CLOSE_IDLE_TIMEOUT = 4008

CLOSE_REASONS = {
    CLOSE_SESSION_ID_REQUIRED: "session id required",
    CLOSE_INVALID_SESSION: "invalid session",
    CLOSE_ALREADY_CONNECTED: "session already connected",
    CLOSE_IDLE_TIMEOUT: "idle timeout",
}

FATAL_CLOSE_CODES = frozenset({CLOSE_SESSION_ID_REQUIRED, CLOSE_INVALID_SESSION})

# Closes a client must not answer by reconnecting: the server ended the stream on purpose,
# or another stream for the session is still live.
NO_RECONNECT_CLOSE_CODES = FATAL_CLOSE_CODES | {CLOSE_NORMAL, CLOSE_ALREADY_CONNECTED, CLOSE_IDLE_TIMEOUT}


class InboundEventType(str, Enum):
    START_SESSION = "START_SESSION"
    INPUT_UPDATE = "INPUT_UPDATE"
    END_SESSION = "END_SESSION"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_wire(cls, value: str) -> "InboundEventType":
        if value == cls.UNKNOWN.value:
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class OutboundEventType(str, Enum):
    METRICS_UPDATE = "METRICS_UPDATE"
    SESSION_COMPLETE = "SESSION_COMPLETE"
    ERROR = "ERROR"


class InboundEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: StrictStr
    data: Any = None
    session_id: Optional[StrictStr] = Field(None, alias="sessionId")

    @property
    def kind(self) -> InboundEventType:
        return InboundEventType.from_wire(self.type)


class InputUpdatePayload(BaseModel):
    input: StrictStr


def parse_inbound(raw: str) -> InboundEvent:
    """Parse one text frame into an InboundEvent, raising ProtocolError if it is malformed."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        raise ProtocolError("Malformed message: invalid JSON")
    if not isinstance(message, dict):
        raise ProtocolError("Malformed message: expected a JSON object")
    try:
        return InboundEvent.model_validate(message)
    except pydantic.ValidationError as e:
        raise ProtocolError(f"Malformed message: {_first_error(e)}")


def parse_input_payload(data: Any) -> str:
    try:
        return InputUpdatePayload.model_validate(data).input
    except pydantic.ValidationError as e:
        raise ProtocolError(f"Invalid INPUT_UPDATE payload: {_first_error(e)}")


def _first_error(error: pydantic.ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "message"
    return f"{location}: {first.get('msg', 'invalid')}"


def outbound_event(event_type: OutboundEventType, data: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": event_type.value, "data": data}


def error_event(message: str, code: int = 500) -> Dict[str, Any]:
    return outbound_event(OutboundEventType.ERROR, {"message": message, "code": code})
