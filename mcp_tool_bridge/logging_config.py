"""Logging configuration for MCP Tool Bridge."""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Dict, Any


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

COMPONENT_LOGGERS = ("server_manager", "tool_calls", "context_provider", "mcp_server")


def _rotating_handler(log_file: str, level: int, log_format: str,
                      max_file_size: int = 10 * 1024 * 1024,
                      backup_count: int = 5) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_file_size,
        backupCount=backup_count
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    enable_console: bool = True
) -> None:
    """Setup logging configuration for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        log_format: Custom log format (optional)
        max_file_size: Maximum log file size in bytes before rotation
        backup_count: Number of backup log files to keep
        enable_console: Whether to enable console logging
    """
    if log_format is None:
        log_format = DEFAULT_FORMAT
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(console_handler)

    if log_file:
        root_logger.addHandler(
            _rotating_handler(log_file, level, log_format, max_file_size, backup_count)
        )


def setup_bridge_logging(config: Dict[str, Any]) -> None:
    """Setup logging for the client stack and the wire traffic log.

    Args:
        config: Configuration dictionary containing logging settings
    """
    log_level = config.get("log_level", "INFO")
    level = getattr(logging, log_level.upper())

    setup_logging(
        log_level=log_level,
        log_file=config.get("log_file"),
        enable_console=True
    )

    # Per-server client loggers are children of "mcp_client"
    client_logger = logging.getLogger("mcp_client")
    client_logger.setLevel(level)
    for handler in client_logger.handlers[:]:
        client_logger.removeHandler(handler)

    wire_log_file = config.get("wire_log_file")
    if wire_log_file:
        client_logger.addHandler(_rotating_handler(wire_log_file, level, DEFAULT_FORMAT))

    for name in COMPONENT_LOGGERS:
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
