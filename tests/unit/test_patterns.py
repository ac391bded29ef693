"""Unit tests for pattern detection and the pattern monitor"""

from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from fraud_sentinel.domain.patterns import (
    detect_geographic_anomaly,
    detect_round_amounts,
    detect_structuring,
    detect_velocity,
    is_round_amount,
    scan_patterns,
    windowed_groups,
)
from fraud_sentinel.infrastructure.database.repositories import AlertRepository, TransactionRepository
from fraud_sentinel.services.pattern_monitor import PatternMonitor
from fraud_sentinel.utils.date_utils import utcnow

BASE = datetime(2024, 3, 14, 9, 0)


def test_structuring_needs_three_small_transactions(make_transaction):
    two = [make_transaction(amount_cents=90_000, timestamp=BASE + timedelta(hours=i)) for i in range(2)]
    three = two + [make_transaction(amount_cents=95_000, timestamp=BASE + timedelta(hours=5))]

    assert detect_structuring(two) == []
    matches = detect_structuring(three)
    assert len(matches) == 1
    assert matches[0].transaction_ids == [t.transaction_id for t in three]
    assert matches[0].severity.value == "high"
    assert matches[0].metadata["transaction_count"] == 3


def test_structuring_ignores_large_and_out_of_window(make_transaction):
    txns = [
        make_transaction(amount_cents=90_000, timestamp=BASE),
        make_transaction(amount_cents=150_000, timestamp=BASE + timedelta(hours=1)),  # not below $1000
        make_transaction(amount_cents=90_000, timestamp=BASE + timedelta(hours=2)),
        make_transaction(amount_cents=90_000, timestamp=BASE + timedelta(hours=30)),
    ]
    assert detect_structuring(txns) == []


def test_structuring_is_per_account(make_transaction):
    txns = [
        make_transaction(account_id=f"acct_{i % 2}", amount_cents=50_000, timestamp=BASE + timedelta(minutes=i))
        for i in range(4)
    ]
    assert detect_structuring(txns) == []


def test_groups_do_not_overlap(make_transaction):
    txns = [make_transaction(timestamp=BASE + timedelta(minutes=10 * i)) for i in range(7)]
    groups = windowed_groups(txns, timedelta(minutes=30), 3)

    assert [len(g) for g in groups] == [4, 3]
    seen = [t.transaction_id for g in groups for t in g]
    assert len(seen) == len(set(seen))


def test_velocity_burst_within_thirty_minutes(make_transaction):
    burst = [make_transaction(timestamp=BASE + timedelta(minutes=m)) for m in (0, 10, 25)]
    spread = [make_transaction(timestamp=BASE + timedelta(minutes=m)) for m in (0, 20, 45)]

    assert len(detect_velocity(burst)) == 1
    assert detect_velocity(spread) == []


def test_round_amounts_need_completed_transactions(make_transaction):
    assert is_round_amount(100_000)
    assert not is_round_amount(100_050)
    assert not is_round_amount(50_000)

    completed = [
        make_transaction(amount_cents=200_000, status="completed", timestamp=BASE),
        make_transaction(amount_cents=150_000, status="completed", timestamp=BASE + timedelta(days=2)),
    ]
    pending = [make_transaction(amount_cents=300_000, status="pending", timestamp=BASE)]

    matches = detect_round_amounts(completed + pending)
    assert len(matches) == 1
    assert matches[0].metadata["amounts_cents"] == [200_000, 150_000]
    assert detect_round_amounts(completed[:1] + pending) == []


def test_geographic_anomaly(make_transaction):
    previous = [make_transaction(country="US") for _ in range(3)] + [make_transaction(country=None)]

    match = detect_geographic_anomaly(make_transaction(country="ng"), previous)
    assert match.metadata["current_country"] == "NG"
    assert match.metadata["previous_countries"] == ["US"]
    assert match.severity.value == "high"

    assert detect_geographic_anomaly(make_transaction(country="US"), previous) is None
    assert detect_geographic_anomaly(make_transaction(country="NG"), []) is None
    assert detect_geographic_anomaly(make_transaction(country=None), previous) is None


def test_geographic_anomaly_only_compares_last_five(make_transaction):
    previous = [make_transaction(country="US") for _ in range(5)] + [make_transaction(country="NG")]
    assert detect_geographic_anomaly(make_transaction(country="NG"), previous) is not None


def test_geographic_anomaly_skips_unlocated_rows_before_taking_five(make_transaction):
    """Six newer payments without a country do not hide where the account was last seen"""
    previous = [make_transaction(country=None) for _ in range(6)] + [make_transaction(country="US")]

    assert detect_geographic_anomaly(make_transaction(country="US"), previous) is None
    match = detect_geographic_anomaly(make_transaction(country="BR"), previous)
    assert match.metadata["previous_countries"] == ["US"]


def test_scan_runs_every_detector(make_transaction):
    txns = [make_transaction(amount_cents=20_000, timestamp=BASE + timedelta(minutes=5 * i)) for i in range(3)]
    methods = sorted(m.detection_method.value for m in scan_patterns(txns))
    assert methods == ["structuring_pattern", "velocity_pattern"]


def _store_all(db: Session, txns):
    repository = TransactionRepository(db)
    for txn in txns:
        repository.create_transaction(txn)
    db.commit()


def test_monitor_alerts_and_flags_group(db: Session, session_factory, make_transaction):
    now = utcnow()
    txns = [
        make_transaction(account_id="acct_struct", amount_cents=90_000, timestamp=now - timedelta(hours=h))
        for h in (10, 6, 2)
    ]
    _store_all(db, txns)

    outcomes = PatternMonitor(session_factory, lookback_hours=24).scan("acct_struct")

    assert [o.detection_method for o in outcomes] == ["structuring_pattern"]
    assert outcomes[0].created
    assert outcomes[0].transaction_id == txns[0].transaction_id
    alert = AlertRepository(db).get_alert(outcomes[0].alert_id)
    assert alert.details["transaction_ids"] == [t.transaction_id for t in txns]
    for txn in txns:
        assert TransactionRepository(db).get_transaction(txn.transaction_id).status == "flagged"


def test_monitor_rescan_updates_existing_alert(db: Session, session_factory, make_transaction):
    now = utcnow()
    _store_all(
        db,
        [make_transaction(account_id="acct_rescan", amount_cents=40_000, timestamp=now - timedelta(hours=h)) for h in (5, 4, 3)],
    )
    monitor = PatternMonitor(session_factory, lookback_hours=24)

    first = monitor.scan()
    second = monitor.scan()

    assert [o.created for o in first] == [True]
    assert [o.created for o in second] == [False]
    assert first[0].alert_id == second[0].alert_id
    assert len(AlertRepository(db).list_alerts(account_id="acct_rescan")) == 1


def test_monitor_ignores_transactions_outside_lookback(db: Session, session_factory, make_transaction):
    old = utcnow() - timedelta(hours=48)
    _store_all(
        db,
        [make_transaction(account_id="acct_old", amount_cents=40_000, timestamp=old + timedelta(minutes=m)) for m in range(3)],
    )
    assert PatternMonitor(session_factory, lookback_hours=24).scan("acct_old") == []


def test_monitor_location_check(db: Session, session_factory, make_transaction):
    now = utcnow()
    history = [make_transaction(account_id="acct_geo", country="US", timestamp=now - timedelta(days=d)) for d in (3, 2, 1)]
    current = make_transaction(account_id="acct_geo", country="RU", timestamp=now)
    _store_all(db, history + [current])

    outcome = PatternMonitor(session_factory).check_location(current.transaction_id)

    assert outcome.detection_method == "geographical_anomaly"
    assert outcome.transaction_id == current.transaction_id
    assert PatternMonitor(session_factory).check_location(history[-1].transaction_id) is None
