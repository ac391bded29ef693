"""SQLAlchemy ORM models for transactions, alerts and risk metrics"""

import uuid
from sqlalchemy import Column, BigInteger, DateTime, Integer, ForeignKey, Index, Text, JSON, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

ACTIVE_ALERT_CONDITION = "status IN ('new', 'investigating')"


class TransactionRecord(Base):
    """Submitted payment transaction with its risk score"""

    __tablename__ = "transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Text, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    currency = Column(Text, nullable=False, default="USD")
    payment_method = Column(Text, nullable=True)
    merchant = Column(Text, nullable=True)
    country = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    ip_address = Column(Text, nullable=True)
    device_info = Column(JSON, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime(timezone=False), nullable=False, index=True)
    utc_offset_minutes = Column(Integer, nullable=True)
    status = Column(Text, nullable=False, default="pending")
    risk_score = Column(Integer, nullable=False, default=0)
    scored_at = Column(DateTime(timezone=False), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    alerts = relationship("FraudAlertRecord", back_populates="transaction")

    __table_args__ = (Index("idx_transactions_account_timestamp", "account_id", "timestamp"),)


class FraudAlertRecord(Base):
    """Alert raised against a transaction for human review"""

    __tablename__ = "fraud_alerts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transaction_id = Column(UUID(as_uuid=True), ForeignKey("transactions.id"), nullable=False, index=True)
    detection_method = Column(Text, nullable=False)
    severity = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="new")
    details = Column(JSON, nullable=True)
    resolved_by = Column(Text, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=False), nullable=False)
    updated_at = Column(DateTime(timezone=False), nullable=False)

    transaction = relationship("TransactionRecord", back_populates="alerts")

    # Insert-if-absent guard: one active alert per transaction and detection method
    __table_args__ = (
        Index(
            "uq_fraud_alerts_active_transaction_method",
            "transaction_id",
            "detection_method",
            unique=True,
            postgresql_where=text(ACTIVE_ALERT_CONDITION),
            sqlite_where=text(ACTIVE_ALERT_CONDITION),
        ),
    )


class RiskMetricsRecord(Base):
    """Rolling risk metrics, one row per account"""

    __tablename__ = "risk_metrics"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Text, nullable=False, unique=True)
    overall_risk_score = Column(Integer, nullable=False, default=0)
    transaction_risk_score = Column(Integer, nullable=False, default=0)
    location_risk_score = Column(Integer, nullable=False, default=0)
    device_risk_score = Column(Integer, nullable=False, default=0)
    behavior_risk_score = Column(Integer, nullable=False, default=0)
    flagged_transactions_count = Column(Integer, nullable=False, default=0)
    fraud_attempts_count = Column(Integer, nullable=False, default=0)
    unusual_activity_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    calculated_at = Column(DateTime(timezone=False), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SecurityAlertRecord(Base):
    """Account-facing security notification (login, device, location, settings)"""

    __tablename__ = "security_alerts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Text, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    alert_type = Column(Text, nullable=False)
    severity = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="new")
    related_transaction_id = Column(UUID(as_uuid=True), nullable=True)
    timestamp = Column(DateTime(timezone=False), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
