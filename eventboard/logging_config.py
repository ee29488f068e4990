"""Central logging configuration for eventboard.

Keeps eventboard's own loggers at INFO (DEBUG in debug mode) while quieting
third-party libraries that log every request or parse step.
"""

import logging
import os
from typing import Optional

# Third-party loggers and the level they are held at
NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """Configure logging levels for eventboard.

    Args:
        debug_mode: Whether to enable debug logging for eventboard modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        EVENTBOARD_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        EVENTBOARD_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("EVENTBOARD_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("EVENTBOARD_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    # Handlers are installed by eventboard._init_logging; only levels are set here
    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    logger_config = dict(NOISY_LOGGERS)
    logger_config["eventboard"] = logging.DEBUG if final_debug else logging.INFO

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.debug("Debug logging enabled for eventboard; third-party debug logs suppressed")


def get_logging_status() -> dict[str, str]:
    """Map key logger names to their configured level names."""
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["eventboard", *NOISY_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
