"""Transaction endpoints: submit for scoring, fetch, status updates, reputation checks"""

import time
import uuid
import logging
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from fraud_sentinel.api.v1.schemas import (
    ExternalCheckResponse,
    ReputationCheckSchema,
    RiskFactorSchema,
    TransactionRequest,
    TransactionResponse,
    TransactionScoreResponse,
    TransactionStatusUpdate,
)
from fraud_sentinel.api.v1.converters import parse_id, transaction_response
from fraud_sentinel.api.dependencies import (
    get_external_check_service,
    get_follow_up_checks,
    get_notification_client,
    get_request_id,
)
from fraud_sentinel.infrastructure.database.session import get_db, get_session_factory
from fraud_sentinel.infrastructure.database.repositories import TransactionRepository
from fraud_sentinel.infrastructure.clients.notifier import NotificationClient
from fraud_sentinel.infrastructure.observability.logging import log_assessment
from fraud_sentinel.domain.exceptions import InvalidTransactionDataError, TransactionNotFoundError
from fraud_sentinel.domain.models import DeviceInfo, Transaction
from fraud_sentinel.services.external_checks import ExternalCheckService
from fraud_sentinel.services.pipeline import ScoringPipeline, run_follow_up
from fraud_sentinel.utils.date_utils import to_utc_naive, utc_offset_minutes, utcnow

router = APIRouter()


def _to_domain(body: TransactionRequest) -> Transaction:
    return Transaction(
        transaction_id=str(uuid.uuid4()),
        account_id=body.account_id,
        amount_cents=body.amount_cents,
        currency=body.currency.upper(),
        timestamp=to_utc_naive(body.timestamp) if body.timestamp else utcnow(),
        payment_method=body.payment_method,
        merchant=body.merchant,
        country=body.country.upper() if body.country else None,
        city=body.city,
        ip_address=body.ip_address,
        device=DeviceInfo(**body.device.model_dump()) if body.device else None,
        status=body.status,
        utc_offset_minutes=utc_offset_minutes(body.timestamp) if body.timestamp else None,
    )


@router.post("/transactions", response_model=TransactionScoreResponse)
async def submit_transaction(
    request_body: TransactionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    notifier: NotificationClient = Depends(get_notification_client),
    external_checks: Optional[ExternalCheckService] = Depends(get_follow_up_checks),
):
    """
    Submit a transaction for fraud scoring.

    Flow:
    1. Validate and persist the transaction
    2. Score it against the account's last 24h of activity
    3. Store score and status, raise an alert at 70+
    4. Update the account's rolling risk metrics
    5. Schedule pattern scan, reputation checks and notifications
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        outcome = ScoringPipeline(db).submit(_to_domain(request_body))
    except InvalidTransactionDataError as e:
        db.rollback()
        logging.warning(f"Invalid transaction: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    background_tasks.add_task(run_follow_up, session_factory, notifier, external_checks, outcome)

    duration_ms = (time.time() - start_time) * 1000
    log_assessment(
        request_id,
        outcome.transaction_id,
        outcome.account_id,
        outcome.risk_score,
        outcome.status,
        [f.type for f in outcome.factors],
        duration_ms,
    )

    return TransactionScoreResponse(
        transaction_id=outcome.transaction_id,
        account_id=outcome.account_id,
        risk_score=outcome.risk_score,
        status=outcome.status,
        risk_factors=[RiskFactorSchema(**f.to_dict()) for f in outcome.factors],
        alert_id=outcome.alert.alert_id if outcome.alert else None,
        alert_severity=outcome.alert.severity if outcome.alert else None,
    )


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    record = TransactionRepository(db).get_transaction(parse_id(transaction_id, "transaction"))
    if not record:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction_response(record)


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction_status(
    transaction_id: str,
    request_body: TransactionStatusUpdate,
    db: Session = Depends(get_db),
):
    """Record a downstream status change such as settlement or decline"""
    tx_uuid = parse_id(transaction_id, "transaction")
    repository = TransactionRepository(db)
    if repository.set_status([str(tx_uuid)], request_body.status) == 0:
        raise HTTPException(status_code=404, detail="Transaction not found")
    db.commit()
    return transaction_response(repository.get_transaction(tx_uuid))


@router.post("/transactions/{transaction_id}/external-checks", response_model=ExternalCheckResponse)
async def run_external_checks(
    transaction_id: str,
    request: Request,
    db: Session = Depends(get_db),
    service: ExternalCheckService = Depends(get_external_check_service),
):
    """Run IP, device, AML and sanctions checks now and return the combined score"""
    tx_uuid = parse_id(transaction_id, "transaction")
    try:
        result = await service.run(db, str(tx_uuid))
    except TransactionNotFoundError:
        raise HTTPException(status_code=404, detail="Transaction not found")

    logging.info(
        "External checks requested",
        extra={"request_id": get_request_id(request), "transaction_id": transaction_id},
    )
    return ExternalCheckResponse(
        transaction_id=result.transaction_id,
        external_risk_score=result.combined_score,
        checks=[ReputationCheckSchema(check=c.check, risk_score=c.risk_score, details=c.details) for c in result.checks],
        checked_at=result.checked_at,
        alert_id=result.alert.alert_id if result.alert else None,
    )
