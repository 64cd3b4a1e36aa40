# hybridfs/monitoring/logger.py
"""
Structured JSON logger for hybridfs.
"""
import logging
import json
from datetime import datetime
from typing import Optional

from hybridfs.config import settings

def get_request_context():
    # Import lazily to avoid import cycles
    from hybridfs.monitoring.context import get_request_context as _g
    return _g()

_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}
_CORE_FIELDS = {"component", "request_id", "session_id", "provider"}

class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "component": getattr(record, "component", None) or record.module,
            "request_id": getattr(record, "request_id", None),
            "session_id": getattr(record, "session_id", None),
            "provider": getattr(record, "provider", None),
        }
        extra = {
            k: v for k, v in vars(record).items()
            if k not in _RESERVED and k not in _CORE_FIELDS
        }
        if extra:
            log_record["context"] = extra
        return json.dumps(log_record, default=str)

logger = logging.getLogger("hybridfs")
logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter())
logger.handlers = [handler]

# Helper to log with context
def log(level: str, message: str, component: Optional[str] = None, request_id: Optional[str] = None, session_id: Optional[str] = None, provider: Optional[str] = None, **kwargs):
    # Map legacy 'module' kwarg to 'component' to avoid LogRecord collision
    if "module" in kwargs and not component:
        component = kwargs.pop("module")
    # Fill missing fields from contextvars
    ctx = get_request_context()
    if request_id is None:
        request_id = ctx.get("request_id")
    if session_id is None:
        session_id = ctx.get("session_id")
    if provider is None:
        provider = ctx.get("provider")

    extra = {
        "request_id": request_id,
        "session_id": session_id,
        "provider": provider,
        "component": component,
        **{k: v for k, v in kwargs.items() if k not in _RESERVED},
    }
    logger.log(getattr(logging, level.upper(), logging.INFO), message, extra=extra)
