"""Logging setup for the localimages CLI.

Everything goes through loguru: library modules log with
``from loguru import logger`` and stdlib loggers of the HTTP stack are
forwarded by ``InterceptHandler``. The console shows INFO and above,
DEBUG is written only to the optional log file.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from click import Context
from loguru import logger

from localimages import __version__
from localimages.config import LogConfig

LOG_DIR_ENV = "LOCALIMAGES_LOG_DIR"

# Third-party loggers routed to loguru (WARNING and above only)
INTERCEPTED_LOGGERS = [
    "httpx",
    "httpcore",
    "asyncio",
]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {module}:{line: <3} | {message}"


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping their origin."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.bind(
            name=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        ).opt(exception=record.exc_info).log(level, record.getMessage())


def _is_third_party_log(name: str) -> bool:
    name = name.lower()
    return any(
        name == intercepted or name.startswith(f"{intercepted}.")
        for intercepted in INTERCEPTED_LOGGERS
    )


def _should_show_log(record: Any, verbose: bool) -> bool:
    """Console filter: no DEBUG, no third-party INFO.

    Without ``verbose`` only WARNING and above reach the console, since
    the CLI prints its own summary lines.
    """
    level = record["level"].name
    if level == "DEBUG":
        return False
    if level in ("WARNING", "ERROR", "CRITICAL"):
        return True
    if _is_third_party_log(record["extra"].get("name", "")):
        return False
    return verbose


def setup_logging(
    verbose: bool,
    log_config: LogConfig | None = None,
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Configure loguru sinks and stdlib interception.

    Args:
        verbose: Show INFO messages on the console
        log_config: File logging options; ``LOCALIMAGES_LOG_DIR`` overrides
            ``log_config.dir``
        quiet: Disable console logging entirely

    Returns:
        Tuple of (console_handler_id, log_file_path). The path is None when
        file logging is disabled.
    """
    log_config = log_config or LogConfig()
    logger.remove()

    console_handler_id: int | None = None
    if not quiet:
        console_handler_id = logger.add(
            sys.stderr,
            level="INFO",
            format=CONSOLE_FORMAT,
            filter=lambda record: _should_show_log(record, verbose),
        )

    log_dir = os.environ.get(LOG_DIR_ENV) or log_config.dir
    log_file_path: Path | None = None
    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log_file_path = log_path / f"localimages_{timestamp}.log"
        logger.add(
            log_file_path,
            level=log_config.level,
            rotation=log_config.rotation,
            retention=log_config.retention,
            format=FILE_FORMAT,
        )

    _setup_log_interception()
    return console_handler_id, log_file_path


def _setup_log_interception() -> None:
    intercept_handler = InterceptHandler()
    for logger_name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        stdlib_logger.handlers.clear()
        stdlib_logger.addHandler(intercept_handler)
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def print_version(ctx: Context, param: Any, value: bool) -> None:
    """Eager ``--version`` callback."""
    if not value or ctx.resilient_parsing:
        return
    from localimages.cli.console import get_console

    get_console().print(f"localimages {__version__}")
    ctx.exit(0)
