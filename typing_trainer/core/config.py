import os
from dataclasses import dataclass, field
from typing import List


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


@dataclass
class ServerConfig:
    """Configuration for the typing practice server."""

    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])

    min_word_count: int = 10
    max_word_count: int = 200
    default_word_count: int = 50

    # 0 disables the limit
    session_idle_timeout_seconds: int = 30 * 60
    session_reap_interval_seconds: int = 60
    connection_idle_timeout_seconds: int = 5 * 60

    @staticmethod
    def from_env() -> "ServerConfig":
        origins = os.getenv("TYPING_TRAINER_CORS_ORIGINS", "http://localhost:3000")
        return ServerConfig(
            host=os.getenv("TYPING_TRAINER_HOST", "0.0.0.0"),
            port=_env_int("TYPING_TRAINER_PORT", 3001),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            min_word_count=_env_int("TYPING_TRAINER_MIN_WORD_COUNT", 10),
            max_word_count=_env_int("TYPING_TRAINER_MAX_WORD_COUNT", 200),
            default_word_count=_env_int("TYPING_TRAINER_DEFAULT_WORD_COUNT", 50),
            session_idle_timeout_seconds=_env_int("TYPING_TRAINER_SESSION_IDLE_TIMEOUT", 30 * 60),
            session_reap_interval_seconds=_env_int("TYPING_TRAINER_SESSION_REAP_INTERVAL", 60),
            connection_idle_timeout_seconds=_env_int("TYPING_TRAINER_CONNECTION_IDLE_TIMEOUT", 5 * 60),
        )

    def validate(self) -> None:
        if not 0 < self.min_word_count <= self.default_word_count <= self.max_word_count:
            raise ValueError("Word count bounds must satisfy 0 < min <= default <= max")
        if self.session_reap_interval_seconds <= 0:
            raise ValueError("session_reap_interval_seconds must be positive")
