"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional


class TransactionStatus(str, Enum):
    APPROVED = "approved"
    DECLINED = "declined"
    FLAGGED = "flagged"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    NEW = "new"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"


class DetectionMethod(str, Enum):
    """Tag identifying which subsystem raised an alert"""

    RISK_SCORING = "risk_scoring"
    EXTERNAL_CHECK = "external_check"
    STRUCTURING_PATTERN = "structuring_pattern"
    VELOCITY_PATTERN = "velocity_pattern"
    ROUND_AMOUNT_PATTERN = "round_amount_pattern"
    GEOGRAPHICAL_ANOMALY = "geographical_anomaly"


class SecurityAlertType(str, Enum):
    LOGIN = "login"
    TRANSACTION = "transaction"
    SETTINGS = "settings"
    DEVICE = "device"
    LOCATION = "location"


class SecurityAlertStatus(str, Enum):
    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


ACTIVE_ALERT_STATUSES = (AlertStatus.NEW.value, AlertStatus.INVESTIGATING.value)


@dataclass
class DeviceInfo:
    """Client device descriptor captured at submission"""

    browser: Optional[str] = None
    os: Optional[str] = None
    fingerprint: Optional[str] = None
    is_emulator: bool = False
    is_new_device: bool = False
    is_proxy: bool = False  # proxy or VPN egress
    suspicious_fingerprint: bool = False


@dataclass
class Transaction:
    """Payment transaction under evaluation"""

    transaction_id: str
    account_id: str
    amount_cents: int
    currency: str
    timestamp: datetime
    payment_method: Optional[str] = None
    merchant: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    ip_address: Optional[str] = None
    device: Optional[DeviceInfo] = None
    status: str = TransactionStatus.PENDING.value
    risk_score: int = 0
    # Submitter's offset from UTC when the timestamp carried one; timestamp itself is UTC
    utc_offset_minutes: Optional[int] = None

    @property
    def local_timestamp(self) -> datetime:
        if self.utc_offset_minutes is None:
            return self.timestamp
        return self.timestamp + timedelta(minutes=self.utc_offset_minutes)


@dataclass
class RiskFactor:
    """Single contribution to a risk score"""

    type: str
    points: int
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "points": self.points, "detail": self.detail}


@dataclass
class RiskAssessment:
    """Output of the risk scorer"""

    score: int
    factors: List[RiskFactor]

    @property
    def factor_types(self) -> List[str]:
        return [f.type for f in self.factors]


@dataclass
class RiskMetricsSnapshot:
    """Rolling per-account risk metrics"""

    account_id: str
    overall_risk_score: int
    transaction_risk_score: int
    location_risk_score: int
    device_risk_score: int
    behavior_risk_score: int
    flagged_transactions_count: int = 0
    fraud_attempts_count: int = 0
    unusual_activity_count: int = 0


@dataclass
class PatternMatch:
    """Group of transactions matched by the pattern monitor"""

    detection_method: DetectionMethod
    account_id: str
    transaction_ids: List[str]
    severity: AlertSeverity
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReputationCheck:
    """Result of one external reputation check"""

    check: str  # ip_reputation | device_reputation | aml | sanctions
    risk_score: int
    details: Dict[str, Any] = field(default_factory=dict)
