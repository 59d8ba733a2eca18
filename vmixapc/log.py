"""Logging utilities for the vmixapc bridge."""
import logging
import sys
import os
import threading
from typing import Optional, Set


# Thread-safe lock for logger initialization
_logger_init_lock = threading.Lock()

# Names handed out by get_logger, so set_log_level can reach every component
_known_loggers: Set[str] = set()


class BridgeFormatter(logging.Formatter):
    """Compact single-line formatter for bridge logs.

    Format: [{level[0]} {time} {module_basename[:9]}] {message}
    Example: [I 14:23:45.123 vmix     ] Connected to 127.0.0.1:8099
    """

    def format(self, record):
        level_char = record.levelname[0]

        # Module basename truncated to 9 chars and right-padded
        module_name = record.name.split('.')[-1]
        module_padded = module_name[:9].ljust(9)

        timestamp = self.formatTime(record, "%H:%M:%S")
        msecs = f"{record.msecs:03.0f}"

        prefix = f"[{level_char} {timestamp}.{msecs} {module_padded}]"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{prefix} {message}"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get logger for a bridge component.

    Args:
        name: Component name (usually __name__)
        level: Optional level (DEBUG/INFO/WARNING/ERROR)
               Falls back to VMIXAPC_LOG_LEVEL env var, then INFO

    Returns:
        Configured logger instance

    Example:
        >>> from vmixapc.log import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Subscribed to ACTS")
        [I 14:23:45.123 vmix     ] Subscribed to ACTS
    """
    logger = logging.getLogger(name)

    # Set level from: parameter > env var > INFO default
    if level is None:
        level = os.getenv("VMIXAPC_LOG_LEVEL", "INFO")

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Add handler if not already configured (thread-safe)
    with _logger_init_lock:
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(BridgeFormatter())
            logger.addHandler(handler)
        _known_loggers.add(name)

    return logger


def set_log_level(level: str) -> None:
    """Change the level of every logger created through get_logger.

    Used by the --debug flag after modules have already created their loggers.

    Args:
        level: Level name (DEBUG/INFO/WARNING/ERROR)
    """
    resolved = getattr(logging, level.upper(), logging.INFO)
    os.environ["VMIXAPC_LOG_LEVEL"] = level.upper()
    with _logger_init_lock:
        names = list(_known_loggers)
    for name in names:
        logging.getLogger(name).setLevel(resolved)
