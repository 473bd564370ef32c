"""System routes for logs and diagnostics."""

import logging
from collections import deque
from typing import List, Dict, Any
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter()

# Global in-memory log buffer
LOG_BUFFER: deque = deque(maxlen=100)

_STANDARD_ATTRS = {
    "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs", "message", "msg", "name",
    "pathname", "process", "processName", "relativeCreated", "stack_info", "thread",
    "threadName", "taskName",
}


class LogEntry(BaseModel):
    timestamp: str
    level: str
    logger: str
    message: str
    extra: Dict[str, Any]


class MemoryLogHandler(logging.Handler):
    """Custom handler to capture logs into memory."""

    def emit(self, record):
        try:
            msg = self.format(record)
            extra = {
                k: v if isinstance(v, (str, int, float, bool, type(None))) else repr(v)
                for k, v in record.__dict__.items()
                if k not in _STANDARD_ATTRS
            }
            entry = {
                "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": msg,
                "extra": extra,
            }
            LOG_BUFFER.append(entry)
        except Exception:
            self.handleError(record)


def install_memory_handler(level: int = logging.INFO) -> MemoryLogHandler:
    """Attach the buffer handler to the root logger once."""
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, MemoryLogHandler):
            return handler
    handler = MemoryLogHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    # Ensure level allows INFO
    if root.level == logging.NOTSET or root.level > level:
        root.setLevel(level)
    return handler


memory_handler = install_memory_handler()


@router.get("/api/system/logs", response_model=List[LogEntry])
async def get_logs():
    """Retrieve recent system logs."""
    return list(LOG_BUFFER)


__all__ = ["router", "LOG_BUFFER", "MemoryLogHandler", "install_memory_handler"]
