"""Fraud alert writes: risk-scoring, pattern and external-check alerts plus reviewer triage"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from fraud_sentinel.domain.alerts import (
    build_alert_details,
    determine_severity,
    should_alert,
    validate_status_transition,
)
from fraud_sentinel.domain.exceptions import AlertNotFoundError
from fraud_sentinel.domain.models import (
    AlertStatus,
    DetectionMethod,
    PatternMatch,
    RiskAssessment,
    Transaction,
    TransactionStatus,
)
from fraud_sentinel.infrastructure.database.models import FraudAlertRecord
from fraud_sentinel.infrastructure.database.repositories import (
    AlertRepository,
    MetricsRepository,
    TransactionRepository,
)
from fraud_sentinel.infrastructure.observability.metrics import record_alert
from fraud_sentinel.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class AlertOutcome:
    """What an upsert did, detached from the session"""

    alert_id: str
    transaction_id: str
    detection_method: str
    severity: str
    created: bool


class AlertPublisher:
    """Writes fraud alerts with one active alert per transaction and detection method"""

    def __init__(self, db: Session):
        self.db = db
        self.alerts = AlertRepository(db)
        self.transactions = TransactionRepository(db)

    def _outcome(self, alert: FraudAlertRecord, created: bool) -> AlertOutcome:
        outcome = AlertOutcome(
            alert_id=str(alert.id),
            transaction_id=str(alert.transaction_id),
            detection_method=alert.detection_method,
            severity=alert.severity,
            created=created,
        )
        record_alert(outcome.detection_method, outcome.severity, created)
        return outcome

    def publish(self, transaction: Transaction, assessment: RiskAssessment) -> Optional[AlertOutcome]:
        """
        Raise or update the risk-scoring alert for a scored transaction.

        Below the alert threshold this is a no-op. Persistence failures are logged
        and return None; they never touch the already committed score.
        """
        if not should_alert(assessment.score):
            return None

        severity = determine_severity(assessment.score).value
        details = build_alert_details(transaction, assessment)
        try:
            alert, created = self.alerts.upsert_active(
                transaction.transaction_id,
                DetectionMethod.RISK_SCORING.value,
                severity,
                details,
            )
            outcome = self._outcome(alert, created)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to write fraud alert: {e}",
                extra={"transaction_id": transaction.transaction_id},
            )
            return None
        return outcome

    def publish_pattern(self, match: PatternMatch) -> Optional[AlertOutcome]:
        """
        Alert on a pattern group and flag its transactions.

        The alert hangs off the group's first transaction; an active alert of the
        same detection method on that transaction is updated instead.
        """
        anchor_id = match.transaction_ids[0]
        details: Dict[str, Any] = {
            "description": match.description,
            "account_id": match.account_id,
            "transaction_ids": list(match.transaction_ids),
            "detection_timestamp": utcnow().isoformat(),
            **match.metadata,
        }
        try:
            alert, created = self.alerts.upsert_active(
                anchor_id,
                match.detection_method.value,
                match.severity.value,
                details,
                same_method_only=True,
            )
            self.transactions.set_status(match.transaction_ids, TransactionStatus.FLAGGED.value)
            outcome = self._outcome(alert, created)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to write pattern alert: {e}",
                extra={"account_id": match.account_id, "pattern": match.detection_method.value},
            )
            return None
        return outcome

    def publish_external(self, transaction_id: str, combined_score: int, checks: Dict[str, Any]) -> Optional[AlertOutcome]:
        """Merge an external-check finding into the transaction's active alert, or open one"""
        if not should_alert(combined_score):
            return None

        details = {
            "external_risk_score": combined_score,
            "external_checks": checks,
            "detection_timestamp": utcnow().isoformat(),
        }
        try:
            alert, created = self.alerts.upsert_active(
                transaction_id,
                DetectionMethod.EXTERNAL_CHECK.value,
                determine_severity(combined_score).value,
                details,
            )
            outcome = self._outcome(alert, created)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to write external check alert: {e}", extra={"transaction_id": transaction_id})
            return None
        return outcome

    def review(
        self,
        alert_id: str,
        status: str,
        reviewer: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> FraudAlertRecord:
        """
        Apply a reviewer status transition.

        Raises:
            AlertNotFoundError: Unknown alert id
            InvalidStatusTransitionError: Transition not allowed from the current status
        """
        alert = self.alerts.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(f"Alert {alert_id} not found")

        validate_status_transition(alert.status, status)
        self.alerts.update_status(alert, status, reviewer=reviewer, notes=notes)

        # Confirmed fraud counts against the owning account
        if status == AlertStatus.RESOLVED.value:
            MetricsRepository(self.db).increment_fraud_attempts(alert.transaction.account_id)

        self.db.commit()
        return alert
