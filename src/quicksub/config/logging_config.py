import logging
import os
import sys
from typing import ClassVar, Optional

_DEFAULT_FORMAT = os.getenv(
    "QUICKSUB_LOG_FORMAT",
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
_DEFAULT_DATEFMT = os.getenv("QUICKSUB_LOG_DATEFMT", "%Y-%m-%d %H:%M:%S")
_configured: str | int | bool = False

# Loggers from the AWS SDK are chatty at DEBUG (wire dumps, credential lookups)
_NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")


def _supports_color() -> bool:
    try:
        return sys.stdout.isatty() and os.getenv("NO_COLOR") is None
    except Exception:
        return False


class _LevelColorFormatter(logging.Formatter):
    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\x1b[37m",  # light gray
        "INFO": "\x1b[32m",  # green
        "WARNING": "\x1b[33m",  # yellow
        "ERROR": "\x1b[31m",  # red
        "CRITICAL": "\x1b[41m",  # red background
    }

    RESET: ClassVar[str] = "\x1b[0m"

    def __init__(self, fmt: str, datefmt: str, use_color: bool):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if self.use_color:
            levelname = record.levelname
            color = self.COLORS.get(levelname, "")
            record.levelname_color = f"{color}{levelname}{self.RESET}" if color else levelname
        else:
            record.levelname_color = record.levelname
        return super().format(record)


def configure_logging(level: Optional[str | int] = None) -> str | int:
    """Configure root logging for quicksub and the AWS SDK.

    Calling it again with the same level is a no-op; a different level
    re-applies to the root handlers and every ``quicksub.*`` logger.

    Environment overrides:
    - `LOG_LEVEL` / `DEBUG` / `QUICKSUB_LOG_LEVEL` (see Environment.get_log_level)
    - `QUICKSUB_LOG_FORMAT`
    - `QUICKSUB_LOG_DATEFMT`
    """
    from quicksub.config.environment import Environment

    global _configured

    if isinstance(level, str):
        level = level.upper()

    if level is None:
        level = Environment.get_log_level()

    if _configured and _configured == level:
        return level
    _configured = level

    use_color = _supports_color()
    if os.getenv("QUICKSUB_LOG_FORMAT") is None and use_color:
        fmt = "\x1b[90m%(asctime)s\x1b[0m | %(levelname_color)s | \x1b[36m%(name)s\x1b[0m | %(message)s"
    else:
        fmt = _DEFAULT_FORMAT
    formatter = _LevelColorFormatter(fmt=fmt, datefmt=_DEFAULT_DATEFMT, use_color=use_color)

    # basicConfig leaves existing handlers (e.g. pytest's) alone, so align them here
    logging.basicConfig(level=level, format=fmt, datefmt=_DEFAULT_DATEFMT)
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers:
        if isinstance(h, logging.StreamHandler):
            h.setLevel(level)
            h.setFormatter(formatter)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # Module loggers pin their level in get_logger; keep them in step
    for name, logger in logging.root.manager.loggerDict.items():
        if name.startswith("quicksub") and isinstance(logger, logging.Logger):
            logger.setLevel(level)
    return level


def get_logger(name: str) -> logging.Logger:
    """Return a module-scoped logger."""
    level = configure_logging()
    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
