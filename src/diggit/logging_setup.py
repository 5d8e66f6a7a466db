"""
Logging Configuration.

Configures the ``diggit`` logger from LoggingConfig. Library code only
ever calls ``logging.getLogger(__name__)``; handlers are installed here,
by the command line entry point.
"""

import logging
from pathlib import Path

from diggit.config.models import LoggingConfig, LogLevel


def configure_logging(
    config: LoggingConfig,
    verbose: bool = False,
    folder: Path | None = None,
) -> logging.Logger:
    """Install handlers on the ``diggit`` logger.

    Args:
        config: Logging configuration
        verbose: Force INFO level (or lower, if configured)
        folder: Folder relative log files are resolved against

    Returns:
        The configured ``diggit`` logger
    """
    level = logging.getLevelName(config.level.value)
    if verbose:
        level = min(level, logging.getLevelName(LogLevel.INFO.value))

    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        log_file = Path(config.file)
        if folder is not None and not log_file.is_absolute():
            log_file = folder / log_file
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logger = logging.getLogger("diggit")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
