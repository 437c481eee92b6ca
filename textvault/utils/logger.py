"""Loguru setup for TextVault.

Console output is human readable. When file logging is enabled, every
record goes to a daily rotated file and WARNING and above are also
copied into ``errors_*.log`` so failed ingestions are easy to find.
"""

import sys
from pathlib import Path

from loguru import logger

from textvault.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[module]} - {message}"


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Replace Loguru's default sink with the configured ones."""
    config = config or LoggingConfig()
    logger.remove()
    # Records logged through the bare logger still render
    logger.configure(extra={"module": "textvault"})

    logger.add(sys.stderr, level=config.level, format=CONSOLE_FORMAT, colorize=True)

    if not config.log_to_file:
        return

    log_path = Path(config.log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    file_options = {
        "rotation": config.file_rotation,
        "retention": config.file_retention,
        "compression": config.compression,
        "serialize": config.serialize,
        "enqueue": True,
    }
    logger.add(
        log_path / "textvault_{time:YYYY-MM-DD}.log",
        level=config.level,
        format=FILE_FORMAT,
        **file_options,
    )
    logger.add(
        log_path / "errors_{time:YYYY-MM-DD}.log",
        level="WARNING",
        format=FILE_FORMAT,
        backtrace=True,
        **file_options,
    )


def get_logger(name: str):
    """Logger bound to a module name."""
    return logger.bind(module=name)
