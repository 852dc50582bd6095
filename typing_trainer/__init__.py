from typing_trainer.core.config import ServerConfig
from typing_trainer.server.app import TypingServer, create_app
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("typing-trainer")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["TypingServer", "ServerConfig", "create_app"]
