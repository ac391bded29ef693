"""Fraud alert rules: severity bands, detail payloads, reviewer status transitions"""

from typing import Any, Dict, Optional
from fraud_sentinel.domain.models import (
    AlertSeverity,
    AlertStatus,
    RiskAssessment,
    Transaction,
)
from fraud_sentinel.domain.exceptions import InvalidStatusTransitionError
from fraud_sentinel.domain.scoring import ALERT_THRESHOLD, normalize_payment_method
from fraud_sentinel.utils.date_utils import utcnow

SEVERITY_RANK = {
    AlertSeverity.LOW.value: 0,
    AlertSeverity.MEDIUM.value: 1,
    AlertSeverity.HIGH.value: 2,
    AlertSeverity.CRITICAL.value: 3,
}

# Allowed reviewer transitions; terminal statuses have no outgoing edges
STATUS_TRANSITIONS = {
    AlertStatus.NEW.value: {
        AlertStatus.INVESTIGATING.value,
        AlertStatus.RESOLVED.value,
        AlertStatus.FALSE_POSITIVE.value,
    },
    AlertStatus.INVESTIGATING.value: {
        AlertStatus.RESOLVED.value,
        AlertStatus.FALSE_POSITIVE.value,
    },
    AlertStatus.RESOLVED.value: set(),
    AlertStatus.FALSE_POSITIVE.value: set(),
}


def should_alert(score: int) -> bool:
    return score >= ALERT_THRESHOLD


def determine_severity(score: int) -> AlertSeverity:
    """
    Map an alerting score to a severity band.

    - 90+:   critical
    - 80-89: high
    - below: medium (only reached for scores >= ALERT_THRESHOLD)
    """
    if score >= 90:
        return AlertSeverity.CRITICAL
    elif score >= 80:
        return AlertSeverity.HIGH
    else:
        return AlertSeverity.MEDIUM


def max_severity(current: Optional[str], candidate: str) -> str:
    if current is None:
        return candidate
    return candidate if SEVERITY_RANK[candidate] > SEVERITY_RANK[current] else current


def build_alert_details(transaction: Transaction, assessment: RiskAssessment) -> Dict[str, Any]:
    """Details payload for a risk-scoring alert, embedding every contributing factor"""
    return {
        "risk_score": assessment.score,
        "risk_factors": [f.to_dict() for f in assessment.factors],
        "transaction_amount_cents": abs(transaction.amount_cents),
        "currency": transaction.currency,
        "payment_method": normalize_payment_method(transaction.payment_method) or "unknown",
        "merchant": transaction.merchant,
        "detection_timestamp": utcnow().isoformat(),
    }


def merge_alert_details(existing: Optional[Dict[str, Any]], update: Dict[str, Any], detection_method: str) -> Dict[str, Any]:
    """Merge a new detection into an alert's details, remembering every method that fired"""
    merged = dict(existing or {})
    merged.update(update)
    methods = list(merged.get("detection_methods") or [])
    if detection_method not in methods:
        methods.append(detection_method)
    merged["detection_methods"] = methods
    return merged


def validate_status_transition(current: str, target: str) -> None:
    if target not in STATUS_TRANSITIONS:
        raise InvalidStatusTransitionError(f"Unknown alert status: {target}")
    if target not in STATUS_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(f"Cannot move alert from {current} to {target}")
