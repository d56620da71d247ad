"""
Logging configuration for LibreNote.

Sets up loguru sinks for the console and, optionally, a rotating log file.
Credentials are scrubbed from every record before it is written.
"""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .config import get_cli_setting, get_log_file_path
from .Utils.log_sanitizer import sanitize_string


def _scrub(record) -> bool:
    record["message"] = sanitize_string(record["message"])
    return True


def configure_logging(level: Optional[str] = None,
                      log_file: Optional[Union[str, Path]] = None,
                      log_to_file: Optional[bool] = None) -> None:
    """
    Configure loguru sinks.

    This should be called once at startup. Arguments left as None fall back
    to the [general] and [logging] sections of config.toml.
    """
    console_level = (level or get_cli_setting("general", "log_level", "INFO")).upper()
    if log_to_file is None:
        log_to_file = bool(get_cli_setting("logging", "log_to_file", True))

    logger.remove()  # Remove default handler
    logger.add(
        sink=sys.stderr,
        level=console_level,
        colorize=True,
        filter=_scrub,
    )

    if log_to_file:
        file_path = Path(log_file) if log_file else get_log_file_path()
        logger.add(
            sink=str(file_path),
            level=get_cli_setting("logging", "file_log_level", "DEBUG"),
            rotation=get_cli_setting("logging", "rotation", "10 MB"),
            retention=get_cli_setting("logging", "retention", "7 days"),
            filter=_scrub,
            enqueue=True,
        )
        logger.debug(f"File logging enabled at {file_path}")

    logger.debug(f"Logging configured: console level={console_level}")
