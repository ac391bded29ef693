"""Notification dispatcher webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional
import httpx
from fraud_sentinel.config import settings
from fraud_sentinel.infrastructure.observability.metrics import (
    notification_latency_histogram,
    notification_failure_counter,
)

logger = logging.getLogger(__name__)

ALERT_CREATED_EVENT = "FRAUD_ALERT_CREATED"


class NotificationClient:
    """Client for signalling the external notification dispatcher"""

    def __init__(self, webhook_url: Optional[str] = None):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.notification_max_retries
        self.backoff_base = settings.notification_backoff_base
        self.timeout = settings.http_timeout_seconds

    async def send_alert_created(self, alert_id: str, transaction_id: str, severity: str) -> bool:
        """
        Tell the dispatcher that a fraud alert was created.

        Retries 5xx responses and network failures with exponential backoff
        (base * 2^(attempt-1)). Delivery is best effort: after the final attempt
        the failure is logged and False is returned.
        """
        payload: Dict[str, Any] = {
            "event": ALERT_CREATED_EVENT,
            "alert_id": alert_id,
            "transaction_id": transaction_id,
            "severity": severity,
        }
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            "Alert notification failed",
                            extra={"alert_id": alert_id, "attempts": attempt, "error": str(e)},
                        )
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
        return False
