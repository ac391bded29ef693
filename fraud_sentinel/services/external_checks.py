"""External reputation checks for a stored transaction"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from fraud_sentinel.domain.exceptions import ReputationProviderError, TransactionNotFoundError
from fraud_sentinel.domain.models import ReputationCheck, Transaction
from fraud_sentinel.domain.reputation import (
    AML_SCREENING,
    DEVICE_REPUTATION,
    IP_REPUTATION,
    SANCTIONS_SCREENING,
    ReputationProvider,
    combine_reputation_checks,
)
from fraud_sentinel.infrastructure.database.repositories import TransactionRepository, to_domain_transaction
from fraud_sentinel.infrastructure.observability.metrics import reputation_failures_counter
from fraud_sentinel.services.alert_publisher import AlertOutcome, AlertPublisher
from fraud_sentinel.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

METADATA_KEY = "external_checks"


@dataclass
class ExternalCheckResult:
    transaction_id: str
    combined_score: int
    checks: List[ReputationCheck]
    alert: Optional[AlertOutcome] = None
    checked_at: str = field(default_factory=lambda: utcnow().isoformat())

    def checks_by_name(self) -> Dict[str, Any]:
        return {c.check: {"risk_score": c.risk_score, "details": c.details} for c in self.checks}


class ExternalCheckService:
    """Runs the four reputation checks through a swappable provider"""

    def __init__(self, provider: ReputationProvider):
        self.provider = provider

    async def _safe(self, check: str, call: Callable[[], Awaitable[ReputationCheck]]) -> ReputationCheck:
        try:
            return await call()
        except ReputationProviderError as e:
            reputation_failures_counter.labels(check=check).inc()
            logger.warning(f"Reputation check failed: {e}", extra={"check": check})
            return ReputationCheck(check=check, risk_score=0, details={"error": str(e)})

    async def evaluate(self, transaction: Transaction) -> List[ReputationCheck]:
        """Run all checks concurrently; a failing check scores 0"""
        return list(
            await asyncio.gather(
                self._safe(IP_REPUTATION, lambda: self.provider.check_ip(transaction.ip_address)),
                self._safe(DEVICE_REPUTATION, lambda: self.provider.check_device(transaction.device)),
                self._safe(AML_SCREENING, lambda: self.provider.screen_aml(transaction)),
                self._safe(SANCTIONS_SCREENING, lambda: self.provider.screen_sanctions(transaction)),
            )
        )

    async def run(self, db: Session, transaction_id: str) -> ExternalCheckResult:
        """
        Check a stored transaction and record the outcome.

        Results are merged into the transaction metadata; a combined score at or
        above the alert threshold merges into the transaction's active alert.

        Raises:
            TransactionNotFoundError: Unknown transaction id
        """
        repository = TransactionRepository(db)
        record = repository.get_transaction(transaction_id)
        if record is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        transaction = to_domain_transaction(record)

        checks = await self.evaluate(transaction)
        result = ExternalCheckResult(
            transaction_id=transaction.transaction_id,
            combined_score=combine_reputation_checks(checks),
            checks=checks,
        )

        try:
            repository.merge_metadata(
                transaction.transaction_id,
                METADATA_KEY,
                {
                    "combined_score": result.combined_score,
                    "checks": result.checks_by_name(),
                    "checked_at": result.checked_at,
                },
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store external check results: {e}", extra={"transaction_id": transaction_id})

        result.alert = AlertPublisher(db).publish_external(
            transaction.transaction_id,
            result.combined_score,
            result.checks_by_name(),
        )
        logger.info(
            "External checks complete",
            extra={"transaction_id": transaction_id, "external_risk_score": result.combined_score},
        )
        return result
