import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger import jsonlogger

from app.core.config import Settings

# Set by RequestIdMiddleware for the lifetime of one request.
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestContextFilter(logging.Filter):
    """Stamps every record with the current request id (or '-')."""

    def filter(self, record: logging.LogRecord) -> bool:
        # an explicit extra={"requestId": ...} wins
        if not getattr(record, "requestId", None):
            record.requestId = request_id_ctx.get() or "-"
        return True


def configure_logging(settings: Settings) -> None:
    """
    JSON lines on stdout. Service loggers pass proposalId / entryId / actor
    via extra={...}; those land as top-level keys next to requestId.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(requestId)s %(message)s",
            rename_fields={"levelname": "level", "name": "logger"},
            static_fields={"app": settings.app_name, "env": settings.environment},
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    # replace, not append: create_app may run more than once per process
    root.handlers = [handler]

    for name in ("uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
