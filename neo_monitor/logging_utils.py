"""Event-tagged log lines for cache, upstream and state-store activity."""
import logging
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def log_event(logger: logging.Logger, event: str, message: str, *, level: str = "info", **fields: Any) -> None:
    """Log ``[event] message key=value ...``; None-valued fields are dropped.

    The event name and fields also ride on the record as ``extra`` so a JSON
    formatter can pick them up.
    """
    context = {k: v for k, v in fields.items() if v is not None}
    line = f"[{event}] {message}"
    if context:
        line += " " + " ".join(f"{k}={v}" for k, v in sorted(context.items()))
    logger.log(logging.getLevelName(level.upper()), line, extra={"event": event, "context": context})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())
