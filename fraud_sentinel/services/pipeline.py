"""
Scoring pipeline for submitted transactions.

Flow:
1. Validate and persist the transaction (status pending, score 0)
2. Score it against the account's recent history
3. Write score and status onto the transaction
4. Raise or update the risk-scoring alert when the score is high enough
5. Fold the outcome into the account's risk metrics

Follow-up work (pattern scan, reputation checks, notifications) runs after the
response is sent, each piece with its own session.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from fraud_sentinel.domain.alerts import should_alert
from fraud_sentinel.domain.exceptions import HistoryLookupError
from fraud_sentinel.domain.models import (
    RiskFactor,
    RiskMetricsSnapshot,
    Transaction,
    TransactionStatus,
)
from fraud_sentinel.domain.scoring import RiskScorer
from fraud_sentinel.domain.validation import validate_transaction
from fraud_sentinel.infrastructure.clients.notifier import NotificationClient
from fraud_sentinel.infrastructure.database.repositories import TransactionRepository
from fraud_sentinel.infrastructure.observability.metrics import (
    history_lookup_failures_counter,
    record_assessment,
)
from fraud_sentinel.services.alert_publisher import AlertOutcome, AlertPublisher
from fraud_sentinel.services.external_checks import ExternalCheckService
from fraud_sentinel.services.metrics_aggregator import MetricsAggregator
from fraud_sentinel.services.pattern_monitor import PatternMonitor

logger = logging.getLogger(__name__)

# Submitted with one of these, a transaction keeps its status unless it scores high enough to flag
SETTLED_STATUSES = {
    TransactionStatus.COMPLETED.value,
    TransactionStatus.FAILED.value,
    TransactionStatus.DECLINED.value,
}


@dataclass
class ScoringOutcome:
    transaction_id: str
    account_id: str
    risk_score: int
    status: str
    factors: List[RiskFactor]
    alert: Optional[AlertOutcome] = None
    metrics: Optional[RiskMetricsSnapshot] = None
    created_alerts: List[AlertOutcome] = field(default_factory=list)


def status_after_scoring(submitted_status: str, score: int) -> str:
    if should_alert(score):
        return TransactionStatus.FLAGGED.value
    if submitted_status in SETTLED_STATUSES:
        return submitted_status
    return TransactionStatus.APPROVED.value


class ScoringPipeline:
    """Runs one submitted transaction through validation, scoring, alerting and metrics"""

    def __init__(self, db: Session):
        self.db = db
        self.transactions = TransactionRepository(db)
        self.scorer = RiskScorer(history_lookup=self._lookup_history)
        self.alert_publisher = AlertPublisher(db)
        self.metrics_aggregator = MetricsAggregator(db)

    def _lookup_history(self, account_id: str, start: datetime, end: datetime) -> List[Transaction]:
        try:
            return self.transactions.list_for_account_between(account_id, start, end)
        except SQLAlchemyError as e:
            self.db.rollback()
            history_lookup_failures_counter.inc()
            raise HistoryLookupError(f"History query failed: {e}") from e

    def submit(self, transaction: Transaction) -> ScoringOutcome:
        """
        Score a new transaction.

        Raises:
            InvalidTransactionDataError: Rejected before anything is stored
            SQLAlchemyError: The transaction itself could not be stored
        """
        validate_transaction(transaction)
        submitted_status = transaction.status
        transaction.status = TransactionStatus.PENDING.value
        transaction.risk_score = 0

        self.transactions.create_transaction(transaction)
        self.db.commit()

        assessment = self.scorer.score(transaction)
        status = status_after_scoring(submitted_status, assessment.score)

        outcome = ScoringOutcome(
            transaction_id=transaction.transaction_id,
            account_id=transaction.account_id,
            risk_score=assessment.score,
            status=status,
            factors=assessment.factors,
        )

        try:
            self.transactions.update_risk(transaction.transaction_id, assessment.score, status)
            self.db.commit()
            transaction.risk_score = assessment.score
            transaction.status = status
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to persist risk score: {e}",
                extra={"transaction_id": transaction.transaction_id},
            )
            outcome.status = TransactionStatus.PENDING.value

        outcome.alert = self.alert_publisher.publish(transaction, assessment)
        if outcome.alert is not None and outcome.alert.created:
            outcome.created_alerts.append(outcome.alert)

        outcome.metrics = self.metrics_aggregator.update(transaction, assessment)

        record_assessment(assessment.score, outcome.status)
        return outcome


async def run_follow_up(
    session_factory: Callable[[], Session],
    notifier: NotificationClient,
    external_checks: Optional[ExternalCheckService],
    outcome: ScoringOutcome,
) -> None:
    """
    Fire-and-forget work after a transaction is scored.

    Runs the account pattern scan and location check, the reputation checks
    when enabled, then notifies the dispatcher about every alert created along
    the way. Failures are logged; nothing is raised back to the request.
    """
    created = list(outcome.created_alerts)
    monitor = PatternMonitor(session_factory)

    try:
        created.extend(o for o in await asyncio.to_thread(monitor.scan, outcome.account_id) if o.created)
        location = await asyncio.to_thread(monitor.check_location, outcome.transaction_id)
        if location is not None and location.created:
            created.append(location)
    except Exception as e:
        logger.error(f"Follow-up pattern scan failed: {e}", extra={"transaction_id": outcome.transaction_id})

    if external_checks is not None:
        db = session_factory()
        try:
            result = await external_checks.run(db, outcome.transaction_id)
            if result.alert is not None and result.alert.created:
                created.append(result.alert)
        except Exception as e:
            logger.error(f"Follow-up external checks failed: {e}", extra={"transaction_id": outcome.transaction_id})
        finally:
            db.close()

    for alert in created:
        await notifier.send_alert_created(alert.alert_id, alert.transaction_id, alert.severity)
