"""Unit tests for the notification dispatcher client"""

import httpx
from unittest.mock import AsyncMock, patch
from fraud_sentinel.infrastructure.clients.notifier import NotificationClient

WEBHOOK = "http://dispatcher.test/notify"


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", WEBHOOK))


@patch("httpx.AsyncClient.post")
async def test_sends_alert_created_event(mock_post: AsyncMock):
    mock_post.return_value = _response(202)

    delivered = await NotificationClient(webhook_url=WEBHOOK).send_alert_created("alert-1", "txn-1", "critical")

    assert delivered is True
    assert mock_post.call_args.kwargs["json"] == {
        "event": "FRAUD_ALERT_CREATED",
        "alert_id": "alert-1",
        "transaction_id": "txn-1",
        "severity": "critical",
    }


@patch("asyncio.sleep", new_callable=AsyncMock)
@patch("httpx.AsyncClient.post")
async def test_retries_with_exponential_backoff(mock_post: AsyncMock, mock_sleep: AsyncMock):
    mock_post.side_effect = [_response(500), httpx.ConnectError("refused"), _response(200)]
    client = NotificationClient(webhook_url=WEBHOOK)
    client.backoff_base = 1.0

    assert await client.send_alert_created("alert-1", "txn-1", "high") is True
    assert mock_post.call_count == 3
    assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


@patch("asyncio.sleep", new_callable=AsyncMock)
@patch("httpx.AsyncClient.post")
async def test_final_failure_is_not_raised(mock_post: AsyncMock, mock_sleep: AsyncMock):
    mock_post.return_value = _response(503)
    client = NotificationClient(webhook_url=WEBHOOK)
    client.max_retries = 3

    assert await client.send_alert_created("alert-1", "txn-1", "medium") is False
    assert mock_post.call_count == 3
    assert mock_sleep.call_count == 2
