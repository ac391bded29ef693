"""Unit tests for fraud alert rules and the alert publisher"""

import pytest
from datetime import datetime
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from fraud_sentinel.domain.alerts import (
    build_alert_details,
    determine_severity,
    max_severity,
    merge_alert_details,
    should_alert,
    validate_status_transition,
)
from fraud_sentinel.domain.exceptions import AlertNotFoundError, InvalidStatusTransitionError
from fraud_sentinel.domain.models import RiskAssessment, RiskFactor
from fraud_sentinel.domain.scoring import calculate_risk_score
from fraud_sentinel.infrastructure.database.models import FraudAlertRecord
from fraud_sentinel.infrastructure.database.repositories import (
    AlertRepository,
    MetricsRepository,
    TransactionRepository,
)
from fraud_sentinel.services.alert_publisher import AlertPublisher
from fraud_sentinel.services.metrics_aggregator import MetricsAggregator


def _store(db: Session, txn):
    TransactionRepository(db).create_transaction(txn)
    db.commit()
    return txn


def _assessment(score: int) -> RiskAssessment:
    return RiskAssessment(score=score, factors=[RiskFactor("amount", score)])


@pytest.mark.parametrize(
    "score,expected",
    [(70, "medium"), (79, "medium"), (80, "high"), (89, "high"), (90, "critical"), (100, "critical")],
)
def test_severity_bands(score, expected):
    assert determine_severity(score).value == expected


def test_alert_threshold():
    assert not should_alert(69)
    assert should_alert(70)


def test_max_severity_never_downgrades():
    assert max_severity("high", "medium") == "high"
    assert max_severity("medium", "critical") == "critical"
    assert max_severity(None, "low") == "low"


def test_alert_details_embed_factors(make_transaction):
    txn = make_transaction(amount_cents=600_000, payment_method="crypto", merchant="Bitmix Services")
    assessment = calculate_risk_score(txn, [])

    details = build_alert_details(txn, assessment)

    assert details["risk_score"] == assessment.score
    assert [f["type"] for f in details["risk_factors"]] == assessment.factor_types
    assert details["transaction_amount_cents"] == 600_000
    assert details["payment_method"] == "cryptocurrency"
    assert details["merchant"] == "Bitmix Services"
    assert "detection_timestamp" in details


def test_merge_alert_details_tracks_detection_methods():
    merged = merge_alert_details({"risk_score": 75}, {"risk_score": 88}, "risk_scoring")
    merged = merge_alert_details(merged, {"external_risk_score": 90}, "external_check")
    merged = merge_alert_details(merged, {"risk_score": 91}, "risk_scoring")

    assert merged["risk_score"] == 91
    assert merged["external_risk_score"] == 90
    assert merged["detection_methods"] == ["risk_scoring", "external_check"]


@pytest.mark.parametrize(
    "current,target",
    [
        ("new", "investigating"),
        ("new", "resolved"),
        ("new", "false_positive"),
        ("investigating", "resolved"),
        ("investigating", "false_positive"),
    ],
)
def test_allowed_status_transitions(current, target):
    validate_status_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("resolved", "investigating"),
        ("false_positive", "new"),
        ("investigating", "new"),
        ("new", "escalated"),
    ],
)
def test_rejected_status_transitions(current, target):
    with pytest.raises(InvalidStatusTransitionError):
        validate_status_transition(current, target)


def test_publish_below_threshold_is_noop(db: Session, make_transaction):
    txn = _store(db, make_transaction())
    assert AlertPublisher(db).publish(txn, _assessment(69)) is None
    assert AlertRepository(db).list_alerts() == []


def test_publish_twice_yields_one_alert(db: Session, make_transaction):
    txn = _store(db, make_transaction())
    publisher = AlertPublisher(db)

    first = publisher.publish(txn, _assessment(75))
    second = publisher.publish(txn, _assessment(75))

    assert first.created is True
    assert second.created is False
    assert first.alert_id == second.alert_id
    assert len(AlertRepository(db).list_alerts()) == 1


def test_republish_raises_severity_to_max(db: Session, make_transaction):
    txn = _store(db, make_transaction())
    publisher = AlertPublisher(db)

    publisher.publish(txn, _assessment(95))
    outcome = publisher.publish(txn, _assessment(72))

    alert = AlertRepository(db).get_alert(outcome.alert_id)
    assert alert.severity == "critical"
    assert alert.details["risk_score"] == 72


def test_terminal_alert_allows_a_new_active_alert(db: Session, make_transaction):
    txn = _store(db, make_transaction())
    publisher = AlertPublisher(db)

    first = publisher.publish(txn, _assessment(80))
    publisher.review(first.alert_id, "false_positive", reviewer="analyst@example.com")
    second = publisher.publish(txn, _assessment(80))

    assert second.created is True
    assert second.alert_id != first.alert_id


def test_losing_concurrent_insert_becomes_update(db: Session, make_transaction):
    """A unique-index violation on insert retries as an update of the winner's alert"""
    txn = _store(db, make_transaction())
    repository = AlertRepository(db)
    winner, _ = repository.upsert_active(txn.transaction_id, "risk_scoring", "medium", {"risk_score": 72})
    db.commit()

    with patch.object(repository, "find_active", side_effect=[None, winner]):
        alert, created = repository.upsert_active(txn.transaction_id, "risk_scoring", "high", {"risk_score": 85})
    db.commit()

    assert created is False
    assert alert.id == winner.id
    assert alert.severity == "high"
    assert db.query(FraudAlertRecord).count() == 1


def test_publish_swallows_persistence_errors(db: Session, make_transaction):
    txn = _store(db, make_transaction())
    publisher = AlertPublisher(db)

    with patch.object(publisher.alerts, "upsert_active", side_effect=OperationalError("stmt", {}, Exception("down"))):
        assert publisher.publish(txn, _assessment(90)) is None


def test_review_resolved_counts_fraud_attempt(db: Session, make_transaction):
    txn = _store(db, make_transaction())
    MetricsAggregator(db).update(txn, _assessment(90))
    publisher = AlertPublisher(db)
    outcome = publisher.publish(txn, _assessment(90))

    publisher.review(outcome.alert_id, "investigating")
    alert = publisher.review(outcome.alert_id, "resolved", reviewer="analyst@example.com", notes="confirmed with cardholder")

    assert alert.status == "resolved"
    assert alert.resolved_by == "analyst@example.com"
    assert alert.resolution_notes == "confirmed with cardholder"
    metrics = MetricsRepository(db).get_for_account(txn.account_id)
    db.refresh(metrics)
    assert metrics.fraud_attempts_count == 1


def test_review_unknown_alert(db: Session):
    with pytest.raises(AlertNotFoundError):
        AlertPublisher(db).review("00000000-0000-0000-0000-000000000000", "investigating")


def test_review_terminal_alert_rejected(db: Session, make_transaction):
    txn = _store(db, make_transaction(timestamp=datetime(2024, 3, 14, 12, 0)))
    publisher = AlertPublisher(db)
    outcome = publisher.publish(txn, _assessment(90))
    publisher.review(outcome.alert_id, "resolved")

    with pytest.raises(InvalidStatusTransitionError):
        publisher.review(outcome.alert_id, "investigating")
