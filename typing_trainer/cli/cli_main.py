#!/usr/bin/env python3
import argparse
import logging
from importlib.metadata import PackageNotFoundError, version

import uvicorn
from dotenv import load_dotenv

from typing_trainer.core.config import ServerConfig
from typing_trainer.server.app import TypingServer


def create_arg_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="typing-trainer-server",
        description="Serve real-time typing practice sessions over HTTP and WebSocket",
        formatter_class=lambda prog: argparse.HelpFormatter(prog, max_help_position=52),
    )

    try:
        package_version = version("typing-trainer")
    except PackageNotFoundError:
        package_version = "unknown"
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {package_version}")

    parser.add_argument(
        "--log_level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging level. Default: INFO"
    )

    server_group = parser.add_argument_group("Server Options")
    server_group.add_argument("--host", help="Interface to bind. Can also use TYPING_TRAINER_HOST env var. Default: 0.0.0.0")
    server_group.add_argument("--port", type=int, help="Port to listen on. Can also use TYPING_TRAINER_PORT env var. Default: 3001")
    server_group.add_argument(
        "--cors_origin",
        action="append",
        dest="cors_origins",
        help="Allowed CORS origin, may be repeated. Can also use TYPING_TRAINER_CORS_ORIGINS (comma separated).",
    )

    session_group = parser.add_argument_group("Session Options")
    session_group.add_argument(
        "--session_idle_timeout",
        type=int,
        help="Seconds of inactivity before a session is reclaimed, 0 to keep sessions forever. Default: 1800",
    )
    session_group.add_argument(
        "--connection_idle_timeout",
        type=int,
        help="Seconds a stream may stay silent before it is closed, 0 to disable. Default: 300",
    )

    return parser


def setup_logging(log_level: str) -> logging.Logger:
    """Configure logging with consistent format."""
    logger = logging.getLogger("typing_trainer")
    log_level_enum = getattr(logging, log_level.upper())
    logger.setLevel(log_level_enum)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt="%(asctime)s.%(msecs)03d - %(levelname)s - %(module)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def create_config(args: argparse.Namespace) -> ServerConfig:
    """Build the server configuration from environment variables, with command line values taking precedence."""
    load_dotenv()
    config = ServerConfig.from_env()

    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.cors_origins:
        config.cors_origins = args.cors_origins
    if args.session_idle_timeout is not None:
        config.session_idle_timeout_seconds = args.session_idle_timeout
    if args.connection_idle_timeout is not None:
        config.connection_idle_timeout_seconds = args.connection_idle_timeout

    return config


def main(args_list: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = create_arg_parser()
    args = parser.parse_args(args_list)

    # Set up logging first
    logger = setup_logging(args.log_level)

    try:
        config = create_config(args)
        config.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        exit(1)

    server = TypingServer(config=config, logger=logger)
    logger.info(f"Typing trainer listening on {config.host}:{config.port}")
    uvicorn.run(server.app, host=config.host, port=config.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
