"""Rolling per-account risk metrics with optimistic version checks"""

import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from fraud_sentinel.domain.metrics import blend_metrics, seed_metrics
from fraud_sentinel.domain.models import RiskAssessment, RiskMetricsSnapshot, Transaction
from fraud_sentinel.infrastructure.database.repositories import MetricsRepository, to_metrics_snapshot
from fraud_sentinel.infrastructure.observability.metrics import metrics_conflicts_counter

logger = logging.getLogger(__name__)

MAX_UPDATE_ATTEMPTS = 5


class MetricsAggregator:
    """Folds each scored transaction into its account's RiskMetrics row"""

    def __init__(self, db: Session, max_attempts: int = MAX_UPDATE_ATTEMPTS):
        self.db = db
        self.repository = MetricsRepository(db)
        self.max_attempts = max_attempts

    def update(self, transaction: Transaction, assessment: RiskAssessment) -> Optional[RiskMetricsSnapshot]:
        """
        Seed or blend the account's metrics.

        Each attempt reads the row, computes the new snapshot and writes it only
        if the version it read is still current. A lost race re-reads and
        re-applies, so no concurrent contribution is dropped. Returns None when
        persistence fails or every attempt lost its race.
        """
        account_id = transaction.account_id
        try:
            for _ in range(self.max_attempts):
                current = self.repository.get_for_account(account_id)

                if current is None:
                    snapshot = seed_metrics(account_id, transaction, assessment)
                    try:
                        self.repository.create_metrics(snapshot)
                        self.db.commit()
                        return snapshot
                    except IntegrityError:
                        # Another writer inserted first; take the update path
                        self.db.rollback()
                        metrics_conflicts_counter.inc()
                        continue

                snapshot = blend_metrics(to_metrics_snapshot(current), assessment)
                if self.repository.compare_and_swap(account_id, current.version, snapshot):
                    self.db.commit()
                    return snapshot

                self.db.rollback()
                metrics_conflicts_counter.inc()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update risk metrics: {e}", extra={"account_id": account_id})
            return None

        logger.warning(
            "Risk metrics update abandoned after repeated version conflicts",
            extra={"account_id": account_id, "attempts": self.max_attempts},
        )
        return None
