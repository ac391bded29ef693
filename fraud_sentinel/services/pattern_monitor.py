"""Periodic and on-demand transaction pattern scans"""

import logging
from datetime import timedelta
from typing import Callable, List, Optional
from sqlalchemy.orm import Session
from fraud_sentinel.config import settings
from fraud_sentinel.domain.models import PatternMatch
from fraud_sentinel.domain.patterns import (
    GEO_LOOKBACK_TRANSACTIONS,
    detect_geographic_anomaly,
    scan_patterns,
)
from fraud_sentinel.infrastructure.database.repositories import TransactionRepository, to_domain_transaction
from fraud_sentinel.infrastructure.observability.metrics import pattern_matches_counter
from fraud_sentinel.services.alert_publisher import AlertOutcome, AlertPublisher
from fraud_sentinel.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class PatternMonitor:
    """
    Scans recent transactions for structuring, velocity and round-amount groups.

    Each scan opens its own session so it can run from a timer or a background
    task after the request that triggered it has finished.
    """

    def __init__(self, session_factory: Callable[[], Session], lookback_hours: Optional[int] = None):
        self.session_factory = session_factory
        self.lookback = timedelta(hours=lookback_hours or settings.monitor_lookback_hours)

    def scan(self, account_id: Optional[str] = None) -> List[AlertOutcome]:
        """Scan every account, or one account, and alert on each group found"""
        db = self.session_factory()
        try:
            since = utcnow() - self.lookback
            transactions = TransactionRepository(db).list_since(since, account_id=account_id)
            matches = scan_patterns(transactions)
            outcomes = self._publish(db, matches)
            logger.info(
                "Pattern scan complete",
                extra={
                    "account_id": account_id,
                    "transactions_scanned": len(transactions),
                    "patterns_found": len(matches),
                },
            )
            return outcomes
        finally:
            db.close()

    def check_location(self, transaction_id: str) -> Optional[AlertOutcome]:
        """Alert when a transaction comes from a country the account has not used recently"""
        db = self.session_factory()
        try:
            repository = TransactionRepository(db)
            record = repository.get_transaction(transaction_id)
            if record is None:
                return None
            transaction = to_domain_transaction(record)
            previous = repository.list_previous_located(
                transaction.account_id,
                transaction.timestamp,
                transaction.transaction_id,
                limit=GEO_LOOKBACK_TRANSACTIONS,
            )
            match = detect_geographic_anomaly(transaction, previous)
            if match is None:
                return None
            outcomes = self._publish(db, [match])
            return outcomes[0] if outcomes else None
        finally:
            db.close()

    def _publish(self, db: Session, matches: List[PatternMatch]) -> List[AlertOutcome]:
        publisher = AlertPublisher(db)
        outcomes = []
        for match in matches:
            pattern_matches_counter.labels(pattern=match.detection_method.value).inc()
            outcome = publisher.publish_pattern(match)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes
