"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from splitledger.config import settings


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


def log_merge(
    request_id: Optional[str],
    currency: str,
    merged_bill_count: int,
    retired_count: int,
    completed_count: int,
    duration_ms: float,
) -> None:
    """Log structured merge outcome for one currency group"""
    logging.info(
        "Merge completed",
        extra={
            "request_id": request_id,
            "step": "merge_complete",
            "currency": currency,
            "merged_bill_count": merged_bill_count,
            "retired_count": retired_count,
            "completed_count": completed_count,
            "duration_ms": duration_ms,
        },
    )


def log_settlements(request_id: Optional[str], settlement_count: int, bill_count: int, duration_ms: float) -> None:
    """Log structured settlement report summary"""
    logging.info(
        "Settlements computed",
        extra={
            "request_id": request_id,
            "step": "settlement_complete",
            "settlement_count": settlement_count,
            "bill_count": bill_count,
            "duration_ms": duration_ms,
        },
    )
