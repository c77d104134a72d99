"""
Logging configuration for the application.
Every line can carry the session and endpoint of the chat call that wrote it.
"""
import logging
import sys
from typing import Optional

from config import Config

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(context)s%(message)s'


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name on a copy of the record."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        # other handlers (pytest's caplog, file handlers) must see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


class ContextFilter(logging.Filter):
    """Gives records logged without a call context an empty one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            record.context = ""
        return True


class CallLogger(logging.LoggerAdapter):
    """Logger adapter prefixing messages with `[session=... endpoint=...]`."""

    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {})["context"] = self.extra["context"]
        return msg, kwargs


def resolve_level(name: str) -> int:
    """Numeric level for a level name; unknown names fall back to INFO."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger writing to stdout.

    Args:
        name: Logger name
        level: Level name, defaults to Config.LOG_LEVEL

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(resolve_level(level or Config.LOG_LEVEL))

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    logger.addHandler(handler)
    return logger


app_logger = setup_logger("ask_ai")


def call_logger(session_id: str, endpoint_name: Optional[str] = None) -> CallLogger:
    """Logger for one chat call, tagged with its session and endpoint."""
    context = f"session={session_id[:8]}"
    if endpoint_name:
        context += f" endpoint={endpoint_name}"
    return CallLogger(app_logger, {"context": f"[{context}] "})
