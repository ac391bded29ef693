"""Fraud alert endpoints: list, fetch and reviewer triage"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from fraud_sentinel.api.v1.schemas import AlertListResponse, AlertResponse, AlertUpdateRequest
from fraud_sentinel.api.v1.converters import alert_response, parse_id
from fraud_sentinel.api.dependencies import get_request_id
from fraud_sentinel.infrastructure.database.session import get_db
from fraud_sentinel.infrastructure.database.repositories import AlertRepository
from fraud_sentinel.domain.exceptions import AlertNotFoundError, InvalidStatusTransitionError
from fraud_sentinel.services.alert_publisher import AlertPublisher

router = APIRouter()


@router.get("/alerts", response_model=AlertListResponse)
def list_alerts(
    status: Optional[str] = Query(None, description="Filter by alert status"),
    account_id: Optional[str] = Query(None, description="Filter by owning account"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Most recent alerts first"""
    alerts = AlertRepository(db).list_alerts(status=status, account_id=account_id, limit=limit)
    return AlertListResponse(alerts=[alert_response(a) for a in alerts])


@router.get("/alerts/{alert_id}", response_model=AlertResponse)
def get_alert(alert_id: str, db: Session = Depends(get_db)):
    alert = AlertRepository(db).get_alert(parse_id(alert_id, "alert"))
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert_response(alert)


@router.patch("/alerts/{alert_id}", response_model=AlertResponse)
def review_alert(
    alert_id: str,
    request_body: AlertUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Move an alert through review: new -> investigating -> resolved | false_positive.

    Resolving as resolved counts a confirmed fraud attempt on the account.
    """
    alert_uuid = parse_id(alert_id, "alert")
    request_id = get_request_id(request)

    try:
        alert = AlertPublisher(db).review(
            str(alert_uuid),
            request_body.status,
            reviewer=request_body.reviewer,
            notes=request_body.notes,
        )
    except AlertNotFoundError:
        db.rollback()
        raise HTTPException(status_code=404, detail="Alert not found")
    except InvalidStatusTransitionError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    logging.info(
        "Alert reviewed",
        extra={"request_id": request_id, "alert_id": alert_id, "status": request_body.status},
    )
    return alert_response(alert)
