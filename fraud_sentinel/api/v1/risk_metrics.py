"""GET /v1/accounts/{account_id}/risk-metrics - Rolling account risk metrics"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fraud_sentinel.api.v1.schemas import RiskMetricsResponse
from fraud_sentinel.api.v1.converters import metrics_response
from fraud_sentinel.infrastructure.database.session import get_db
from fraud_sentinel.infrastructure.database.repositories import MetricsRepository

router = APIRouter()


@router.get("/accounts/{account_id}/risk-metrics", response_model=RiskMetricsResponse)
def get_risk_metrics(account_id: str, db: Session = Depends(get_db)):
    """
    Retrieve an account's risk metrics.

    Returns:
        Component scores, the weighted overall score and activity counters
    """
    metrics = MetricsRepository(db).get_for_account(account_id)
    if not metrics:
        raise HTTPException(status_code=404, detail="No risk metrics for account")
    return metrics_response(metrics)
