"""
Logging setup for workchat.

All modules log through loguru via ``get_logger(__name__)``; the CLI and
embedding applications call ``setup_logging`` once at startup.
"""

import sys
from typing import Optional

from loguru import logger as _logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)



def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure the global loguru sinks.

    Args:
        level: Minimum level for the stderr sink (e.g. "DEBUG", "WARNING").
        log_file: Optional path for an additional rotating file sink.
    """
    level = level.upper()
    # Records from unbound loggers still need a name for LOG_FORMAT
    _logger.configure(extra={"name": "workchat"})
    _logger.remove()
    _logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file:
        _logger.add(
            log_file,
            level=level,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=3,
            encoding="utf-8",
        )


def get_logger(name: str):
    """Return a logger bound to the given module name."""
    return _logger.bind(name=name)
