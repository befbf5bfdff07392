"""
Structured JSON logging.

Every line carries the service name, the request id of the HTTP request it
belongs to, and the onboarding context fields below (null when not given).
Services pass the context through `extra=`.
"""
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from onboarding_hub.core.config import settings

# Context variable to store request_id for the current task/request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

CONTEXT_FIELDS = ("actor_id", "record_id", "code")


class OnboardingJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["service"] = settings.app_name
        log_record["environment"] = settings.environment
        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id

        for field in CONTEXT_FIELDS:
            log_record.setdefault(field, None)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        log_record["level"] = record.levelname


def setup_logging(level: int = logging.INFO):
    logger = logging.getLogger()
    # The app module may be imported more than once (tests, reloaders)
    if any(isinstance(h.formatter, OnboardingJsonFormatter) for h in logger.handlers):
        return
    log_handler = logging.StreamHandler()
    log_handler.setFormatter(OnboardingJsonFormatter("%(timestamp) %(level) %(name) %(message)"))
    logger.addHandler(log_handler)
    logger.setLevel(level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
