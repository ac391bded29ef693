"""Rolling per-account risk metrics: seeding, blending and overall recomputation"""

from typing import List, Optional
from fraud_sentinel.domain.models import RiskAssessment, RiskMetricsSnapshot, Transaction
from fraud_sentinel.domain.scoring import ALERT_THRESHOLD

# Component weights for the overall score
TRANSACTION_WEIGHT = 0.4
LOCATION_WEIGHT = 0.2
DEVICE_WEIGHT = 0.2
BEHAVIOR_WEIGHT = 0.2

# Exponential smoothing: 70% stored value, 30% new observation
HISTORY_WEIGHT = 0.7
OBSERVATION_WEIGHT = 0.3

BASELINE_COMPONENT_SCORE = 10

LOCATION_FACTORS = ("geography",)
DEVICE_FACTORS = ("new_device", "proxy_vpn", "emulator", "suspicious_fingerprint")
BEHAVIOR_FACTORS = ("velocity", "frequency_24h", "frequency_1h")

# Always present on a scored transaction, so never unusual on its own
ROUTINE_FACTORS = ("payment_method",)


def compute_overall_score(transaction: int, location: int, device: int, behavior: int) -> int:
    """Overall score is always derived from the four components, never edited directly"""
    return int(round(
        transaction * TRANSACTION_WEIGHT
        + location * LOCATION_WEIGHT
        + device * DEVICE_WEIGHT
        + behavior * BEHAVIOR_WEIGHT
    ))


def blend(stored: int, observed: int) -> int:
    return int(round(stored * HISTORY_WEIGHT + observed * OBSERVATION_WEIGHT))


def is_unusual_activity(assessment: RiskAssessment) -> bool:
    return any(f.type not in ROUTINE_FACTORS for f in assessment.factors)


def _family_points(assessment: RiskAssessment, family: tuple) -> Optional[int]:
    """Points contributed by a factor family, or None when none of it fired"""
    points: List[int] = [f.points for f in assessment.factors if f.type in family]
    if not points:
        return None
    return min(sum(points), 100)


def seed_metrics(account_id: str, transaction: Transaction, assessment: RiskAssessment) -> RiskMetricsSnapshot:
    """First metrics record for an account, seeded from its first scored transaction"""
    transaction_score = assessment.score
    location_score = BASELINE_COMPONENT_SCORE if (transaction.country or transaction.city) else 0
    device_score = BASELINE_COMPONENT_SCORE if transaction.device is not None else 0
    behavior_score = BASELINE_COMPONENT_SCORE

    return RiskMetricsSnapshot(
        account_id=account_id,
        overall_risk_score=compute_overall_score(transaction_score, location_score, device_score, behavior_score),
        transaction_risk_score=transaction_score,
        location_risk_score=location_score,
        device_risk_score=device_score,
        behavior_risk_score=behavior_score,
        flagged_transactions_count=1 if assessment.score >= ALERT_THRESHOLD else 0,
        fraud_attempts_count=0,
        unusual_activity_count=1 if is_unusual_activity(assessment) else 0,
    )


def blend_metrics(current: RiskMetricsSnapshot, assessment: RiskAssessment) -> RiskMetricsSnapshot:
    """
    Fold a new assessment into stored metrics.

    The transaction component always blends with the new score. Location, device
    and behavior components blend with their factor family's points only when
    that family fired, otherwise they keep their stored value.
    """
    transaction_score = blend(current.transaction_risk_score, assessment.score)

    location_points = _family_points(assessment, LOCATION_FACTORS)
    location_score = (
        blend(current.location_risk_score, location_points)
        if location_points is not None
        else current.location_risk_score
    )

    device_points = _family_points(assessment, DEVICE_FACTORS)
    device_score = (
        blend(current.device_risk_score, device_points)
        if device_points is not None
        else current.device_risk_score
    )

    behavior_points = _family_points(assessment, BEHAVIOR_FACTORS)
    behavior_score = (
        blend(current.behavior_risk_score, behavior_points)
        if behavior_points is not None
        else current.behavior_risk_score
    )

    return RiskMetricsSnapshot(
        account_id=current.account_id,
        overall_risk_score=compute_overall_score(transaction_score, location_score, device_score, behavior_score),
        transaction_risk_score=transaction_score,
        location_risk_score=location_score,
        device_risk_score=device_score,
        behavior_risk_score=behavior_score,
        flagged_transactions_count=current.flagged_transactions_count + (1 if assessment.score >= ALERT_THRESHOLD else 0),
        fraud_attempts_count=current.fraud_attempts_count,
        unusual_activity_count=current.unusual_activity_count + (1 if is_unusual_activity(assessment) else 0),
    )
