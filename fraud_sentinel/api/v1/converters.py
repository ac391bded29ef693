"""Conversions between path parameters, ORM rows and response schemas"""

import uuid
from fastapi import HTTPException
from fraud_sentinel.api.v1.schemas import (
    AlertResponse,
    DeviceInfoSchema,
    RiskMetricsResponse,
    SecurityAlertResponse,
    TransactionResponse,
)
from fraud_sentinel.infrastructure.database.models import (
    FraudAlertRecord,
    RiskMetricsRecord,
    SecurityAlertRecord,
    TransactionRecord,
)


def parse_id(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")


def transaction_response(record: TransactionRecord) -> TransactionResponse:
    return TransactionResponse(
        transaction_id=str(record.id),
        account_id=record.account_id,
        amount_cents=record.amount_cents,
        currency=record.currency,
        payment_method=record.payment_method,
        merchant=record.merchant,
        country=record.country,
        city=record.city,
        ip_address=record.ip_address,
        device=DeviceInfoSchema(**record.device_info) if record.device_info else None,
        timestamp=record.timestamp.isoformat(),
        status=record.status,
        risk_score=record.risk_score,
        metadata=record.extra or {},
        scored_at=record.scored_at.isoformat() if record.scored_at else None,
    )


def alert_response(record: FraudAlertRecord) -> AlertResponse:
    return AlertResponse(
        alert_id=str(record.id),
        transaction_id=str(record.transaction_id),
        detection_method=record.detection_method,
        severity=record.severity,
        status=record.status,
        details=record.details or {},
        resolved_by=record.resolved_by,
        resolution_notes=record.resolution_notes,
        created_at=record.created_at.isoformat(),
        updated_at=record.updated_at.isoformat(),
    )


def metrics_response(record: RiskMetricsRecord) -> RiskMetricsResponse:
    return RiskMetricsResponse(
        account_id=record.account_id,
        overall_risk_score=record.overall_risk_score,
        transaction_risk_score=record.transaction_risk_score,
        location_risk_score=record.location_risk_score,
        device_risk_score=record.device_risk_score,
        behavior_risk_score=record.behavior_risk_score,
        flagged_transactions_count=record.flagged_transactions_count,
        fraud_attempts_count=record.fraud_attempts_count,
        unusual_activity_count=record.unusual_activity_count,
        version=record.version,
        calculated_at=record.calculated_at.isoformat(),
    )


def security_alert_response(record: SecurityAlertRecord) -> SecurityAlertResponse:
    return SecurityAlertResponse(
        alert_id=str(record.id),
        account_id=record.account_id,
        title=record.title,
        description=record.description,
        alert_type=record.alert_type,
        severity=record.severity,
        status=record.status,
        related_transaction_id=str(record.related_transaction_id) if record.related_transaction_id else None,
        timestamp=record.timestamp.isoformat(),
    )
