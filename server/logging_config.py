"""Logging for the API server.

``setup_logging("Server")`` runs once in the FastAPI lifespan. The message
route sets ``user_id_var`` and ``conversation_id_var`` around each chat turn,
so every record emitted while serving it carries ``[User n][Conv n]``.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path

user_id_var: ContextVar[str] = ContextVar("user_id_var", default="")
conversation_id_var: ContextVar[str] = ContextVar("conversation_id_var", default="")

STREAM_HANDLER_NAME = "_modelhub_stream"
FILE_HANDLER_NAME = "_modelhub_file"
LINE_FORMAT = "%(asctime)s %(context_prefix)s %(name)s:%(lineno)d - %(message)s"

_QUIET_LOGGERS = ("httpx", "httpcore", "urllib3")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


class ContextFilter(logging.Filter):
    """Copies the process role and the current chat context onto each record."""

    def __init__(self, role: str) -> None:
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self.role  # type: ignore[attr-defined]
        record.user_id = user_id_var.get()  # type: ignore[attr-defined]
        record.conversation_id = conversation_id_var.get()  # type: ignore[attr-defined]
        return True


class ContextFormatter(logging.Formatter):
    """``2026-10-19 14:30:01 [Server][User 7][Conv 3][WARNING] services.dispatcher:71 - ...``

    Empty context fields are left out of the bracketed prefix.
    """

    def __init__(self, datefmt: str | None = None) -> None:
        super().__init__(LINE_FORMAT, datefmt=datefmt)

    @staticmethod
    def context_prefix(record: logging.LogRecord) -> str:
        labels = [
            getattr(record, "role", ""),
            f"User {record.user_id}" if getattr(record, "user_id", "") else "",
            f"Conv {record.conversation_id}" if getattr(record, "conversation_id", "") else "",
            record.levelname,
        ]
        return "".join(f"[{label}]" for label in labels if label)

    def format(self, record: logging.LogRecord) -> str:
        record.context_prefix = self.context_prefix(record)  # type: ignore[attr-defined]
        return super().format(record)


def _attach(root: logging.Logger, handler: logging.Handler, name: str, role: str) -> None:
    handler.name = name
    handler.addFilter(ContextFilter(role))
    handler.setFormatter(ContextFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)


def setup_logging(role: str) -> None:
    """Route all logging through stderr, plus ``settings.LOG_FILE`` when set.

    A second call is a no-op.
    """
    from config import settings

    root = logging.getLogger()
    if any(h.name == STREAM_HANDLER_NAME for h in root.handlers):
        return

    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    _attach(root, logging.StreamHandler(sys.stderr), STREAM_HANDLER_NAME, role)

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        _attach(root, rotating, FILE_HANDLER_NAME, role)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # uvicorn installs its own handlers; funnel its records through ours
    for name in _UVICORN_LOGGERS:
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
