from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionStatus(str, Enum):
    """Lifecycle states of a practice session."""

    INITIALIZED = "initialized"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"


class ErrorType(str, Enum):
    MISSING = "missing"
    EXTRA = "extra"


@dataclass(frozen=True)
class ErrorContext:
    """Target text surrounding an error, plus where the error falls by word."""

    before: str
    after: str
    word_number: int
    word_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "before": self.before,
            "after": self.after,
            "wordPosition": {
                "wordNumber": self.word_number,
                "wordPercentage": self.word_percentage,
            },
        }


@dataclass(frozen=True)
class TypingError:
    """A single missing or extra span found while comparing input to target."""

    type: ErrorType
    position: int
    expected: str
    actual: str
    context: Optional[ErrorContext] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "type": self.type.value,
            "position": self.position,
            "expected": self.expected,
            "actual": self.actual,
        }
        if self.context is not None:
            d["context"] = self.context.to_dict()
        return d


@dataclass(frozen=True)
class ErrorDistribution:
    """Error counts for the first, middle and final third of the target text."""

    beginning: int = 0
    middle: int = 0
    end: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"beginning": self.beginning, "middle": self.middle, "end": self.end}


@dataclass(frozen=True)
class AnalysisContext:
    total_words: int
    error_distribution: ErrorDistribution
    overall_accuracy: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalWords": self.total_words,
            "errorDistribution": self.error_distribution.to_dict(),
            "overallAccuracy": self.overall_accuracy,
        }


@dataclass
class DifferenceAnalysis:
    """Character level comparison of typed input against the target text."""

    correct_characters: int = 0
    incorrect_characters: int = 0
    missing_characters: int = 0
    extra_characters: int = 0
    errors: List[TypingError] = field(default_factory=list)
    context: Optional[AnalysisContext] = None

    @property
    def accuracy(self) -> float:
        """Percentage of the compared target reproduced correctly, 100 when nothing was compared."""
        expected = self.correct_characters + self.missing_characters
        if expected == 0:
            return 100.0
        return self.correct_characters / expected * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert DifferenceAnalysis to dictionary for JSON serialization."""
        d = {
            "correctCharacters": self.correct_characters,
            "incorrectCharacters": self.incorrect_characters,
            "missingCharacters": self.missing_characters,
            "extraCharacters": self.extra_characters,
            "accuracy": self.accuracy,
            "errors": [error.to_dict() for error in self.errors],
        }
        if self.context is not None:
            d["context"] = self.context.to_dict()
        return d


@dataclass(frozen=True)
class Metrics:
    """Speed and accuracy figures for one analysis over one time interval."""

    wpm: float
    accuracy: float
    duration: float  # minutes
    error_rate: float
    net_wpm: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wpm": self.wpm,
            "accuracy": self.accuracy,
            "duration": self.duration,
            "errorRate": self.error_rate,
            "netWpm": self.net_wpm,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Metrics":
        return cls(
            wpm=data["wpm"],
            accuracy=data["accuracy"],
            duration=data["duration"],
            error_rate=data["errorRate"],
            net_wpm=data.get("netWpm", 0.0),
        )


@dataclass(frozen=True)
class Session:
    """One practice attempt. Timestamps are epoch milliseconds.

    Records are immutable; the session store swaps in a new record on every update.
    """

    id: str
    text: Optional[str] = None
    input: str = ""
    status: SessionStatus = SessionStatus.INITIALIZED
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    last_update: Optional[int] = None
    last_error: Optional[str] = None
    word_count: Optional[int] = None
    created_at: int = 0
    metrics: Optional[Metrics] = None

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    @property
    def last_activity(self) -> int:
        """Most recent timestamp touched by the session."""
        return max(ts for ts in (self.created_at, self.start_time, self.last_update, self.end_time) if ts is not None)

    def to_dict(self) -> Dict[str, Any]:
        """Convert Session to dictionary for JSON serialization."""
        return {
            "sessionId": self.id,
            "text": self.text,
            "input": self.input,
            "status": self.status.value,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "lastUpdate": self.last_update,
            "lastError": self.last_error,
            "wordCount": self.word_count,
            "createdAt": self.created_at,
            "metrics": self.metrics.to_dict() if self.metrics else None,
        }
