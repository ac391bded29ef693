"""Dependency injection for FastAPI endpoints"""

from typing import Optional
from fastapi import Depends, Request
from fraud_sentinel.config import settings
from fraud_sentinel.domain.reputation import ReputationProvider
from fraud_sentinel.infrastructure.clients.notifier import NotificationClient
from fraud_sentinel.infrastructure.clients.reputation import HttpReputationProvider, StaticReputationProvider
from fraud_sentinel.services.external_checks import ExternalCheckService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_notification_client() -> NotificationClient:
    """Provide notification dispatcher client instance"""
    return NotificationClient()


def get_reputation_provider() -> ReputationProvider:
    """Vendor gateway when configured, local rules otherwise"""
    if settings.reputation_api_base:
        return HttpReputationProvider()
    return StaticReputationProvider()


def get_external_check_service(
    provider: ReputationProvider = Depends(get_reputation_provider),
) -> ExternalCheckService:
    return ExternalCheckService(provider)


def get_follow_up_checks(
    service: ExternalCheckService = Depends(get_external_check_service),
) -> Optional[ExternalCheckService]:
    """External checks to run after scoring, or None when disabled"""
    return service if settings.external_checks_enabled else None
