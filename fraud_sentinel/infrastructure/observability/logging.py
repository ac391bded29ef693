"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict, List
from pythonjsonlogger import jsonlogger
from fraud_sentinel.config import settings
from fraud_sentinel.utils.date_utils import utcnow


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping timestamp, level and service name"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)


def log_assessment(
    request_id: str,
    transaction_id: str,
    account_id: str,
    risk_score: int,
    status: str,
    factor_types: List[str],
    duration_ms: float,
) -> None:
    """Log the scoring outcome of one transaction"""
    logging.info(
        "Transaction scored",
        extra={
            "request_id": request_id,
            "transaction_id": transaction_id,
            "account_id": account_id,
            "step": "scoring_complete",
            "risk_score": risk_score,
            "status": status,
            "risk_factors": factor_types,
            "duration_ms": duration_ms,
        },
    )
