"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from cardledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


ledger_logger = logging.getLogger("cardledger.ledger")


def log_ledger_event(operation: str, user_id: str, **fields: Any) -> None:
    """Log a committed ledger operation with its balance effects"""
    ledger_logger.info(
        "Ledger operation committed",
        extra={"step": operation, "user_id": user_id, **fields},
    )


def log_ledger_rejection(operation: str, user_id: str, error: Exception) -> None:
    """Log an operation refused by a precondition"""
    ledger_logger.warning(
        f"Ledger operation rejected: {error}",
        extra={"step": operation, "user_id": user_id, "error_kind": type(error).__name__},
    )
