"""POST /v1/monitor/scan - Run the transaction pattern scan on demand"""

import asyncio
from typing import Optional
from fastapi import APIRouter, Depends, Query

from fraud_sentinel.api.v1.schemas import ScanResponse
from fraud_sentinel.api.dependencies import get_notification_client
from fraud_sentinel.infrastructure.clients.notifier import NotificationClient
from fraud_sentinel.infrastructure.database.session import get_session_factory
from fraud_sentinel.services.pattern_monitor import PatternMonitor

router = APIRouter()


@router.post("/monitor/scan", response_model=ScanResponse)
async def scan_patterns(
    account_id: Optional[str] = Query(None, description="Limit the scan to one account"),
    session_factory=Depends(get_session_factory),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """Scan recent transactions for structuring, velocity and round-amount patterns"""
    monitor = PatternMonitor(session_factory)
    outcomes = await asyncio.to_thread(monitor.scan, account_id)

    for outcome in outcomes:
        if outcome.created:
            await notifier.send_alert_created(outcome.alert_id, outcome.transaction_id, outcome.severity)

    return ScanResponse(
        account_id=account_id,
        alerts_written=len(outcomes),
        alert_ids=[o.alert_id for o in outcomes],
    )
