"""
Logging system for tickthrottle

Provides unified logging across all modules with:
- File rotation
- Per-module log levels
- Console output on STDERR only

STDOUT belongs to the supervisord event listener protocol. Anything other
than READY/RESULT written there desynchronizes supervisord, so no handler
configured here may ever touch it.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    log_file: Optional[str] = "logs/tickthrottle.log",
    log_level: str = "INFO",
    max_bytes: int = 10_485_760,  # 10MB
    backup_count: int = 5,
    module_levels: Optional[dict] = None
) -> logging.Logger:
    """
    Setup tickthrottle logging system

    Args:
        log_file: Path to log file (None disables the file handler)
        log_level: Default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep
        module_levels: Per-module log levels (e.g. {'tickthrottle.throttle': 'DEBUG'})

    Returns:
        Root logger instance

    Example:
        >>> from tickthrottle.utils import setup_logging, get_logger
        >>> setup_logging(log_level='INFO')
        >>> logger = get_logger(__name__)
        >>> logger.info("Listener started")
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture everything, filter in handlers

    root_logger.handlers.clear()

    # =========================================================================
    # FILE HANDLER (All logs -> file)
    # =========================================================================
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    # =========================================================================
    # CONSOLE HANDLER (Rich output on stderr, captured by supervisord)
    # =========================================================================
    console = Console(stderr=True)
    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        show_time=False,  # supervisord stamps stderr_logfile lines
        show_path=False
    )
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    # =========================================================================
    # PER-MODULE LOG LEVELS
    # =========================================================================
    if module_levels:
        for module_name, module_level in module_levels.items():
            module_logger = logging.getLogger(module_name)
            module_logger.setLevel(getattr(logging, module_level.upper()))

    logger = get_logger("tickthrottle.setup")
    logger.debug(f"Logging system initialized - Log file: {log_file}")
    logger.debug(f"Log level: {log_level} | File rotation: {max_bytes} bytes | Backups: {backup_count}")

    if module_levels:
        logger.debug(f"Per-module log levels: {module_levels}")

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance for a module

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
