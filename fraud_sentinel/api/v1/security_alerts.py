"""Account-facing security alert endpoints"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fraud_sentinel.api.v1.schemas import (
    SecurityAlertListResponse,
    SecurityAlertRequest,
    SecurityAlertResponse,
    SecurityAlertUpdate,
)
from fraud_sentinel.api.v1.converters import parse_id, security_alert_response
from fraud_sentinel.infrastructure.database.session import get_db
from fraud_sentinel.infrastructure.database.repositories import SecurityAlertRepository

router = APIRouter()


@router.get("/security-alerts", response_model=SecurityAlertListResponse)
def list_security_alerts(
    account_id: str = Query(..., description="Account identifier"),
    status: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    alerts = SecurityAlertRepository(db).list_for_account(account_id, status=status, limit=limit)
    return SecurityAlertListResponse(
        account_id=account_id,
        alerts=[security_alert_response(a) for a in alerts],
    )


@router.post("/security-alerts", response_model=SecurityAlertResponse)
def create_security_alert(request_body: SecurityAlertRequest, db: Session = Depends(get_db)):
    related_id = None
    if request_body.related_transaction_id:
        related_id = str(parse_id(request_body.related_transaction_id, "transaction"))

    alert = SecurityAlertRepository(db).create_alert(
        account_id=request_body.account_id,
        title=request_body.title,
        alert_type=request_body.alert_type.value,
        severity=request_body.severity.value,
        description=request_body.description,
        related_transaction_id=related_id,
    )
    db.commit()
    return security_alert_response(alert)


@router.patch("/security-alerts/{alert_id}", response_model=SecurityAlertResponse)
def update_security_alert(alert_id: str, request_body: SecurityAlertUpdate, db: Session = Depends(get_db)):
    repository = SecurityAlertRepository(db)
    alert = repository.get_alert(parse_id(alert_id, "security alert"))
    if not alert:
        raise HTTPException(status_code=404, detail="Security alert not found")
    repository.update_status(alert, request_body.status)
    db.commit()
    return security_alert_response(alert)
