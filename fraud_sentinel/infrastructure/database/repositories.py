"""Data access layer for transactions, alerts, risk metrics and security alerts"""

import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fraud_sentinel.infrastructure.database.models import (
    TransactionRecord,
    FraudAlertRecord,
    RiskMetricsRecord,
    SecurityAlertRecord,
)
from fraud_sentinel.domain.models import (
    ACTIVE_ALERT_STATUSES,
    DeviceInfo,
    SecurityAlertStatus,
    RiskMetricsSnapshot,
    Transaction,
)
from fraud_sentinel.domain.alerts import max_severity, merge_alert_details
from fraud_sentinel.utils.date_utils import utcnow


def _as_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def to_domain_transaction(record: TransactionRecord) -> Transaction:
    """Map an ORM row to the domain Transaction used by scoring and pattern detection"""
    device = DeviceInfo(**record.device_info) if record.device_info is not None else None
    return Transaction(
        transaction_id=str(record.id),
        account_id=record.account_id,
        amount_cents=record.amount_cents,
        currency=record.currency,
        timestamp=record.timestamp,
        payment_method=record.payment_method,
        merchant=record.merchant,
        country=record.country,
        city=record.city,
        ip_address=record.ip_address,
        device=device,
        status=record.status,
        risk_score=record.risk_score,
        utc_offset_minutes=record.utc_offset_minutes,
    )


def to_metrics_snapshot(record: RiskMetricsRecord) -> RiskMetricsSnapshot:
    return RiskMetricsSnapshot(
        account_id=record.account_id,
        overall_risk_score=record.overall_risk_score,
        transaction_risk_score=record.transaction_risk_score,
        location_risk_score=record.location_risk_score,
        device_risk_score=record.device_risk_score,
        behavior_risk_score=record.behavior_risk_score,
        flagged_transactions_count=record.flagged_transactions_count,
        fraud_attempts_count=record.fraud_attempts_count,
        unusual_activity_count=record.unusual_activity_count,
    )


class TransactionRepository:
    """Repository for submitted transactions"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(self, transaction: Transaction) -> TransactionRecord:
        """Persist a validated transaction before scoring"""
        db_transaction = TransactionRecord(
            id=_as_uuid(transaction.transaction_id),
            account_id=transaction.account_id,
            amount_cents=transaction.amount_cents,
            currency=transaction.currency.upper(),
            payment_method=transaction.payment_method,
            merchant=transaction.merchant,
            country=transaction.country.upper() if transaction.country else None,
            city=transaction.city,
            ip_address=transaction.ip_address,
            device_info=asdict(transaction.device) if transaction.device is not None else None,
            extra={},
            timestamp=transaction.timestamp,
            utc_offset_minutes=transaction.utc_offset_minutes,
            status=transaction.status,
            risk_score=0,
        )
        self.db.add(db_transaction)
        self.db.flush()
        return db_transaction

    def get_transaction(self, transaction_id: Any) -> Optional[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.id == _as_uuid(transaction_id))
            .first()
        )

    def list_for_account_between(self, account_id: str, start: datetime, end: datetime) -> List[Transaction]:
        """Account transactions with start <= timestamp <= end, oldest first"""
        records = (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.account_id == account_id,
                TransactionRecord.timestamp >= start,
                TransactionRecord.timestamp <= end,
            )
            .order_by(TransactionRecord.timestamp.asc())
            .all()
        )
        return [to_domain_transaction(r) for r in records]

    def list_since(self, since: datetime, account_id: Optional[str] = None) -> List[Transaction]:
        """Recent transactions across all accounts, or one account"""
        query = self.db.query(TransactionRecord).filter(TransactionRecord.timestamp >= since)
        if account_id is not None:
            query = query.filter(TransactionRecord.account_id == account_id)
        records = query.order_by(TransactionRecord.timestamp.asc()).all()
        return [to_domain_transaction(r) for r in records]

    def list_previous_located(self, account_id: str, before: datetime, exclude_id: Any, limit: int = 5) -> List[Transaction]:
        """Most recent earlier transactions of an account that carry a country, newest first"""
        records = (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.account_id == account_id,
                TransactionRecord.id != _as_uuid(exclude_id),
                TransactionRecord.timestamp <= before,
                TransactionRecord.country.isnot(None),
            )
            .order_by(TransactionRecord.timestamp.desc())
            .limit(limit)
            .all()
        )
        return [to_domain_transaction(r) for r in records]

    def update_risk(self, transaction_id: Any, risk_score: int, status: str) -> Optional[TransactionRecord]:
        """Write the scoring outcome onto the transaction"""
        db_transaction = self.get_transaction(transaction_id)
        if db_transaction is None:
            return None
        db_transaction.risk_score = risk_score
        db_transaction.status = status
        db_transaction.scored_at = utcnow()
        self.db.flush()
        return db_transaction

    def set_status(self, transaction_ids: List[str], status: str) -> int:
        ids = [_as_uuid(t) for t in transaction_ids]
        if not ids:
            return 0
        result = self.db.execute(
            update(TransactionRecord)
            .where(TransactionRecord.id.in_(ids))
            .values(status=status)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def merge_metadata(self, transaction_id: Any, key: str, value: Dict[str, Any]) -> Optional[TransactionRecord]:
        """Merge a section into the transaction metadata without dropping other sections"""
        db_transaction = self.get_transaction(transaction_id)
        if db_transaction is None:
            return None
        metadata = dict(db_transaction.extra or {})
        section = dict(metadata.get(key) or {})
        section.update(value)
        metadata[key] = section
        db_transaction.extra = metadata
        self.db.flush()
        return db_transaction


class AlertRepository:
    """Repository for fraud alerts"""

    def __init__(self, db: Session):
        self.db = db

    def get_alert(self, alert_id: Any) -> Optional[FraudAlertRecord]:
        return (
            self.db.query(FraudAlertRecord)
            .filter(FraudAlertRecord.id == _as_uuid(alert_id))
            .first()
        )

    def find_active(self, transaction_id: Any, detection_method: Optional[str] = None) -> Optional[FraudAlertRecord]:
        """Oldest active alert for a transaction, optionally restricted to one detection method"""
        query = self.db.query(FraudAlertRecord).filter(
            FraudAlertRecord.transaction_id == _as_uuid(transaction_id),
            FraudAlertRecord.status.in_(ACTIVE_ALERT_STATUSES),
        )
        if detection_method is not None:
            query = query.filter(FraudAlertRecord.detection_method == detection_method)
        return query.order_by(FraudAlertRecord.created_at.asc()).first()

    def _merge_into(self, alert: FraudAlertRecord, detection_method: str, severity: str, details: Dict[str, Any]) -> FraudAlertRecord:
        alert.details = merge_alert_details(alert.details, details, detection_method)
        alert.severity = max_severity(alert.severity, severity)
        alert.updated_at = utcnow()
        self.db.flush()
        return alert

    def upsert_active(
        self,
        transaction_id: Any,
        detection_method: str,
        severity: str,
        details: Dict[str, Any],
        same_method_only: bool = False,
    ) -> Tuple[FraudAlertRecord, bool]:
        """
        Insert a new alert, or merge into the transaction's active alert.

        With same_method_only the existing alert must share the detection method;
        otherwise any active alert on the transaction absorbs the update.
        A concurrent insert that wins the unique index is retried as an update,
        which rolls back any unflushed work in this session.

        Returns: (alert, created)
        """
        existing = self.find_active(transaction_id, detection_method if same_method_only else None)
        if existing is not None:
            return self._merge_into(existing, detection_method, severity, details), False

        now = utcnow()
        db_alert = FraudAlertRecord(
            transaction_id=_as_uuid(transaction_id),
            detection_method=detection_method,
            severity=severity,
            status="new",
            details=merge_alert_details(None, details, detection_method),
            created_at=now,
            updated_at=now,
        )
        self.db.add(db_alert)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.find_active(transaction_id, detection_method)
            if existing is None:
                raise
            return self._merge_into(existing, detection_method, severity, details), False
        return db_alert, True

    def list_alerts(
        self,
        status: Optional[str] = None,
        account_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[FraudAlertRecord]:
        """Fetch alerts newest first"""
        query = self.db.query(FraudAlertRecord)
        if account_id is not None:
            query = query.join(TransactionRecord).filter(TransactionRecord.account_id == account_id)
        if status is not None:
            query = query.filter(FraudAlertRecord.status == status)
        return query.order_by(FraudAlertRecord.created_at.desc()).limit(limit).all()

    def update_status(
        self,
        alert: FraudAlertRecord,
        status: str,
        reviewer: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> FraudAlertRecord:
        alert.status = status
        if status in ("resolved", "false_positive"):
            alert.resolved_by = reviewer
        if notes is not None:
            alert.resolution_notes = notes
        alert.updated_at = utcnow()
        self.db.flush()
        return alert


class MetricsRepository:
    """Repository for per-account risk metrics"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_account(self, account_id: str) -> Optional[RiskMetricsRecord]:
        return (
            self.db.query(RiskMetricsRecord)
            .filter(RiskMetricsRecord.account_id == account_id)
            .first()
        )

    def create_metrics(self, snapshot: RiskMetricsSnapshot) -> RiskMetricsRecord:
        """Insert the first metrics row; raises IntegrityError if another writer got there first"""
        db_metrics = RiskMetricsRecord(
            account_id=snapshot.account_id,
            overall_risk_score=snapshot.overall_risk_score,
            transaction_risk_score=snapshot.transaction_risk_score,
            location_risk_score=snapshot.location_risk_score,
            device_risk_score=snapshot.device_risk_score,
            behavior_risk_score=snapshot.behavior_risk_score,
            flagged_transactions_count=snapshot.flagged_transactions_count,
            fraud_attempts_count=snapshot.fraud_attempts_count,
            unusual_activity_count=snapshot.unusual_activity_count,
            version=1,
            calculated_at=utcnow(),
        )
        self.db.add(db_metrics)
        self.db.flush()
        return db_metrics

    def compare_and_swap(self, account_id: str, expected_version: int, snapshot: RiskMetricsSnapshot) -> bool:
        """
        Conditional update: only applies if the row still carries expected_version.

        Returns False when another writer updated the row first.
        """
        result = self.db.execute(
            update(RiskMetricsRecord)
            .where(
                RiskMetricsRecord.account_id == account_id,
                RiskMetricsRecord.version == expected_version,
            )
            .values(
                overall_risk_score=snapshot.overall_risk_score,
                transaction_risk_score=snapshot.transaction_risk_score,
                location_risk_score=snapshot.location_risk_score,
                device_risk_score=snapshot.device_risk_score,
                behavior_risk_score=snapshot.behavior_risk_score,
                flagged_transactions_count=snapshot.flagged_transactions_count,
                fraud_attempts_count=snapshot.fraud_attempts_count,
                unusual_activity_count=snapshot.unusual_activity_count,
                version=expected_version + 1,
                calculated_at=utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def increment_fraud_attempts(self, account_id: str) -> bool:
        """Server-side increment, safe against concurrent writers"""
        result = self.db.execute(
            update(RiskMetricsRecord)
            .where(RiskMetricsRecord.account_id == account_id)
            .values(
                fraud_attempts_count=RiskMetricsRecord.fraud_attempts_count + 1,
                version=RiskMetricsRecord.version + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1


class SecurityAlertRepository:
    """Repository for account-facing security alerts"""

    def __init__(self, db: Session):
        self.db = db

    def create_alert(
        self,
        account_id: str,
        title: str,
        alert_type: str,
        severity: str,
        description: Optional[str] = None,
        related_transaction_id: Optional[str] = None,
    ) -> SecurityAlertRecord:
        db_alert = SecurityAlertRecord(
            account_id=account_id,
            title=title,
            description=description,
            alert_type=alert_type,
            severity=severity,
            status=SecurityAlertStatus.NEW.value,
            related_transaction_id=_as_uuid(related_transaction_id) if related_transaction_id else None,
            timestamp=utcnow(),
        )
        self.db.add(db_alert)
        self.db.flush()
        return db_alert

    def get_alert(self, alert_id: Any) -> Optional[SecurityAlertRecord]:
        return (
            self.db.query(SecurityAlertRecord)
            .filter(SecurityAlertRecord.id == _as_uuid(alert_id))
            .first()
        )

    def list_for_account(self, account_id: str, status: Optional[str] = None, limit: int = 10) -> List[SecurityAlertRecord]:
        query = self.db.query(SecurityAlertRecord).filter(SecurityAlertRecord.account_id == account_id)
        if status is not None:
            query = query.filter(SecurityAlertRecord.status == status)
        return query.order_by(SecurityAlertRecord.timestamp.desc()).limit(limit).all()

    def update_status(self, alert: SecurityAlertRecord, status: str) -> SecurityAlertRecord:
        alert.status = status
        self.db.flush()
        return alert
