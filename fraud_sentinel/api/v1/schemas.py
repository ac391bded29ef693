"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from fraud_sentinel.domain.models import AlertSeverity, SecurityAlertType


class DeviceInfoSchema(BaseModel):
    """Device descriptor captured by the client"""

    browser: Optional[str] = None
    os: Optional[str] = None
    fingerprint: Optional[str] = None
    is_emulator: bool = False
    is_new_device: bool = False
    is_proxy: bool = False
    suspicious_fingerprint: bool = False


class TransactionRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    account_id: str = Field(..., min_length=1, description="Account identifier")
    amount_cents: int = Field(..., description="Transaction amount in cents")
    currency: str = Field("USD", description="ISO-4217 currency code")
    timestamp: Optional[datetime] = Field(None, description="Event time; defaults to now")
    payment_method: Optional[str] = None
    merchant: Optional[str] = None
    country: Optional[str] = Field(None, description="ISO-3166 alpha-2 country code")
    city: Optional[str] = None
    ip_address: Optional[str] = None
    device: Optional[DeviceInfoSchema] = None
    status: str = Field("pending", description="Submitted status; settled imports may pass completed")


class RiskFactorSchema(BaseModel):
    type: str
    points: int
    detail: Dict[str, Any] = {}


class TransactionScoreResponse(BaseModel):
    """Response for POST /v1/transactions"""

    transaction_id: str
    account_id: str
    risk_score: int
    status: str
    risk_factors: List[RiskFactorSchema]
    alert_id: Optional[str] = None
    alert_severity: Optional[str] = None


class TransactionResponse(BaseModel):
    """Response for GET /v1/transactions/{transaction_id}"""

    transaction_id: str
    account_id: str
    amount_cents: int
    currency: str
    payment_method: Optional[str] = None
    merchant: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    ip_address: Optional[str] = None
    device: Optional[DeviceInfoSchema] = None
    timestamp: str
    status: str
    risk_score: int
    metadata: Dict[str, Any] = {}
    scored_at: Optional[str] = None


class TransactionStatusUpdate(BaseModel):
    """Request body for PATCH /v1/transactions/{transaction_id}"""

    status: str = Field(..., pattern="^(approved|declined|flagged|completed|failed)$")


class ReputationCheckSchema(BaseModel):
    check: str
    risk_score: int
    details: Dict[str, Any] = {}


class ExternalCheckResponse(BaseModel):
    """Response for POST /v1/transactions/{transaction_id}/external-checks"""

    transaction_id: str
    external_risk_score: int
    checks: List[ReputationCheckSchema]
    checked_at: str
    alert_id: Optional[str] = None


class AlertResponse(BaseModel):
    alert_id: str
    transaction_id: str
    detection_method: str
    severity: str
    status: str
    details: Dict[str, Any] = {}
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    created_at: str
    updated_at: str


class AlertListResponse(BaseModel):
    alerts: List[AlertResponse]


class AlertUpdateRequest(BaseModel):
    """Request body for PATCH /v1/alerts/{alert_id}"""

    status: str = Field(..., description="investigating | resolved | false_positive")
    reviewer: Optional[str] = None
    notes: Optional[str] = None


class RiskMetricsResponse(BaseModel):
    account_id: str
    overall_risk_score: int
    transaction_risk_score: int
    location_risk_score: int
    device_risk_score: int
    behavior_risk_score: int
    flagged_transactions_count: int
    fraud_attempts_count: int
    unusual_activity_count: int
    version: int
    calculated_at: str


class ScanResponse(BaseModel):
    """Response for POST /v1/monitor/scan"""

    account_id: Optional[str] = None
    alerts_written: int
    alert_ids: List[str]


class SecurityAlertRequest(BaseModel):
    """Request body for POST /v1/security-alerts"""

    account_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    alert_type: SecurityAlertType
    severity: AlertSeverity
    related_transaction_id: Optional[str] = None


class SecurityAlertUpdate(BaseModel):
    status: str = Field(..., pattern="^(acknowledged|resolved|dismissed)$")


class SecurityAlertResponse(BaseModel):
    alert_id: str
    account_id: str
    title: str
    description: Optional[str] = None
    alert_type: str
    severity: str
    status: str
    related_transaction_id: Optional[str] = None
    timestamp: str


class SecurityAlertListResponse(BaseModel):
    account_id: str
    alerts: List[SecurityAlertResponse]
