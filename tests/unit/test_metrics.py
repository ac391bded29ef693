"""Unit tests for rolling account risk metrics"""

from datetime import datetime
from unittest.mock import patch
from sqlalchemy import update
from sqlalchemy.orm import Session
from fraud_sentinel.domain.metrics import (
    BASELINE_COMPONENT_SCORE,
    blend,
    blend_metrics,
    compute_overall_score,
    is_unusual_activity,
    seed_metrics,
)
from fraud_sentinel.domain.models import DeviceInfo, RiskAssessment, RiskFactor, RiskMetricsSnapshot
from fraud_sentinel.domain.scoring import calculate_risk_score
from fraud_sentinel.infrastructure.database.models import RiskMetricsRecord
from fraud_sentinel.infrastructure.database.repositories import MetricsRepository, to_metrics_snapshot
from fraud_sentinel.services.metrics_aggregator import MetricsAggregator


def _assessment(score, *factors):
    return RiskAssessment(score=score, factors=[RiskFactor(t, p) for t, p in factors])


def test_overall_score_weights():
    assert compute_overall_score(100, 0, 0, 0) == 40
    assert compute_overall_score(0, 50, 50, 50) == 30
    assert compute_overall_score(10, 10, 10, 10) == 10


def test_blend_is_70_30():
    assert blend(40, 80) == 52
    assert blend(0, 100) == 30


def test_seed_uses_baselines(make_transaction):
    txn = make_transaction(device=DeviceInfo(browser="Safari"))
    snapshot = seed_metrics(txn.account_id, txn, _assessment(35, ("time_of_day", 25), ("payment_method", 10)))

    assert snapshot.transaction_risk_score == 35
    assert snapshot.location_risk_score == BASELINE_COMPONENT_SCORE
    assert snapshot.device_risk_score == BASELINE_COMPONENT_SCORE
    assert snapshot.behavior_risk_score == BASELINE_COMPONENT_SCORE
    assert snapshot.flagged_transactions_count == 0
    assert snapshot.unusual_activity_count == 1
    assert snapshot.overall_risk_score == compute_overall_score(35, 10, 10, 10)


def test_seed_without_geography_or_device(make_transaction):
    txn = make_transaction(country=None, city=None, device=None)
    snapshot = seed_metrics(txn.account_id, txn, _assessment(75))

    assert snapshot.location_risk_score == 0
    assert snapshot.device_risk_score == 0
    assert snapshot.flagged_transactions_count == 1
    assert snapshot.unusual_activity_count == 0


def test_blend_only_moves_components_whose_factors_fired():
    current = RiskMetricsSnapshot(
        account_id="acct_001",
        overall_risk_score=compute_overall_score(40, 10, 0, 10),
        transaction_risk_score=40,
        location_risk_score=10,
        device_risk_score=0,
        behavior_risk_score=10,
        flagged_transactions_count=2,
        fraud_attempts_count=1,
        unusual_activity_count=3,
    )

    updated = blend_metrics(current, _assessment(80, ("geography", 40), ("frequency_24h", 30)))

    assert updated.transaction_risk_score == 52
    assert updated.location_risk_score == blend(10, 40)
    assert updated.device_risk_score == 0
    assert updated.behavior_risk_score == blend(10, 30)
    assert updated.flagged_transactions_count == 3
    assert updated.fraud_attempts_count == 1
    assert updated.unusual_activity_count == 4
    assert updated.overall_risk_score == compute_overall_score(52, 19, 0, 16)


def test_aggregator_seeds_then_blends(db: Session, make_transaction):
    aggregator = MetricsAggregator(db)
    txn = make_transaction()

    first = aggregator.update(txn, _assessment(30, ("payment_method", 10)))
    second = aggregator.update(txn, _assessment(90, ("amount", 30)))

    assert first.transaction_risk_score == 30
    assert second.transaction_risk_score == blend(30, 90)
    record = MetricsRepository(db).get_for_account(txn.account_id)
    assert record.version == 2
    assert record.flagged_transactions_count == 1


def test_stored_overall_matches_components(db: Session, make_transaction):
    aggregator = MetricsAggregator(db)
    txn = make_transaction(device=DeviceInfo(is_proxy=True))
    for assessment in (
        _assessment(45, ("proxy_vpn", 30)),
        _assessment(85, ("geography", 40), ("velocity", 35)),
        _assessment(20),
    ):
        aggregator.update(txn, assessment)

    record = MetricsRepository(db).get_for_account(txn.account_id)
    assert record.overall_risk_score == compute_overall_score(
        record.transaction_risk_score,
        record.location_risk_score,
        record.device_risk_score,
        record.behavior_risk_score,
    )


def test_stale_version_is_rejected(db: Session, make_transaction):
    txn = make_transaction()
    MetricsAggregator(db).update(txn, _assessment(30))
    repository = MetricsRepository(db)
    snapshot = to_metrics_snapshot(repository.get_for_account(txn.account_id))

    assert repository.compare_and_swap(txn.account_id, 99, snapshot) is False
    assert repository.compare_and_swap(txn.account_id, 1, snapshot) is True
    db.commit()
    assert repository.get_for_account(txn.account_id).version == 2


def test_lost_race_reapplies_on_fresh_row(db: Session, make_transaction):
    """A concurrent writer bumping the version forces a re-read; its contribution survives"""
    txn = make_transaction()
    aggregator = MetricsAggregator(db)
    aggregator.update(txn, _assessment(30))

    other = Session(bind=db.get_bind())
    real_get = aggregator.repository.get_for_account
    raced = []

    def get_then_race(account_id):
        record = real_get(account_id)
        if not raced:
            raced.append(True)
            other.execute(
                update(RiskMetricsRecord)
                .where(RiskMetricsRecord.account_id == account_id)
                .values(flagged_transactions_count=5, version=RiskMetricsRecord.version + 1)
            )
            other.commit()
        return record

    with patch.object(aggregator.repository, "get_for_account", side_effect=get_then_race):
        snapshot = aggregator.update(txn, _assessment(80))
    other.close()

    assert snapshot.flagged_transactions_count == 6
    record = MetricsRepository(db).get_for_account(txn.account_id)
    db.refresh(record)
    assert record.version == 3
    assert record.flagged_transactions_count == 6


def test_exhausted_retries_returns_none(db: Session, make_transaction):
    txn = make_transaction()
    aggregator = MetricsAggregator(db, max_attempts=2)
    aggregator.update(txn, _assessment(30))

    with patch.object(aggregator.repository, "compare_and_swap", return_value=False):
        assert aggregator.update(txn, _assessment(80)) is None


def test_payment_method_alone_is_not_unusual():
    assert not is_unusual_activity(_assessment(5, ("payment_method", 5)))
    assert is_unusual_activity(_assessment(30, ("payment_method", 5), ("time_of_day", 25)))


def test_routine_debit_card_purchases_do_not_count_as_unusual(db: Session, make_transaction):
    aggregator = MetricsAggregator(db)
    for minute in (0, 20, 40):
        txn = make_transaction(
            account_id="acct_groceries",
            amount_cents=2_000,
            payment_method="debit_card",
            timestamp=datetime(2024, 3, 14, 11, minute),
        )
        assessment = calculate_risk_score(txn, [])
        assert assessment.factor_types == ["payment_method"]
        snapshot = aggregator.update(txn, assessment)

    assert snapshot.unusual_activity_count == 0
    assert MetricsRepository(db).get_for_account("acct_groceries").unusual_activity_count == 0
