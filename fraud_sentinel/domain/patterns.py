"""
Transaction pattern detection for the periodic monitor.

Detects, per account:
- Structuring: several small transactions inside a day
- Velocity: bursts of transactions inside half an hour
- Round amounts: repeated whole-dollar completed transactions of notable size
- Geographic anomaly: a transaction from a country the account has not used recently
"""

from datetime import timedelta
from typing import Dict, List, Optional
from fraud_sentinel.domain.models import (
    AlertSeverity,
    DetectionMethod,
    PatternMatch,
    Transaction,
    TransactionStatus,
)

STRUCTURING_CEILING_CENTS = 100_000  # each transaction below $1000
STRUCTURING_WINDOW = timedelta(hours=24)
STRUCTURING_MIN_TRANSACTIONS = 3

VELOCITY_WINDOW = timedelta(minutes=30)
VELOCITY_MIN_TRANSACTIONS = 3

ROUND_AMOUNT_THRESHOLD_CENTS = 100_000  # $1000 and above
ROUND_AMOUNT_MIN_TRANSACTIONS = 2

GEO_LOOKBACK_TRANSACTIONS = 5


def group_by_account(transactions: List[Transaction]) -> Dict[str, List[Transaction]]:
    """Bucket transactions per account, each bucket in timestamp order"""
    by_account: Dict[str, List[Transaction]] = {}
    for txn in transactions:
        by_account.setdefault(txn.account_id, []).append(txn)
    for account_txns in by_account.values():
        account_txns.sort(key=lambda t: t.timestamp)
    return by_account


def windowed_groups(transactions: List[Transaction], window: timedelta, min_count: int) -> List[List[Transaction]]:
    """
    Non-overlapping groups of at least min_count transactions spanning at most window.

    Expects transactions sorted by timestamp. Each group starts at the earliest
    transaction not already grouped and takes everything inside the window.
    """
    groups = []
    i = 0
    while i < len(transactions):
        anchor = transactions[i]
        group = [t for t in transactions[i:] if t.timestamp <= anchor.timestamp + window]
        if len(group) >= min_count:
            groups.append(group)
            i += len(group)
        else:
            i += 1
    return groups


def _span_minutes(group: List[Transaction]) -> float:
    return round((group[-1].timestamp - group[0].timestamp).total_seconds() / 60, 1)


def _group_metadata(group: List[Transaction]) -> dict:
    return {
        "transaction_count": len(group),
        "total_amount_cents": sum(abs(t.amount_cents) for t in group),
        "time_span_minutes": _span_minutes(group),
    }


def detect_structuring(transactions: List[Transaction]) -> List[PatternMatch]:
    patterns = []
    for account_id, account_txns in group_by_account(transactions).items():
        small = [t for t in account_txns if abs(t.amount_cents) < STRUCTURING_CEILING_CENTS]
        for group in windowed_groups(small, STRUCTURING_WINDOW, STRUCTURING_MIN_TRANSACTIONS):
            patterns.append(
                PatternMatch(
                    detection_method=DetectionMethod.STRUCTURING_PATTERN,
                    account_id=account_id,
                    transaction_ids=[t.transaction_id for t in group],
                    severity=AlertSeverity.HIGH,
                    description=(
                        f"{len(group)} transactions below ${STRUCTURING_CEILING_CENTS // 100:,} "
                        f"within {_span_minutes(group)} minutes"
                    ),
                    metadata={"pattern_type": "structuring", **_group_metadata(group)},
                )
            )
    return patterns


def detect_velocity(transactions: List[Transaction]) -> List[PatternMatch]:
    patterns = []
    for account_id, account_txns in group_by_account(transactions).items():
        for group in windowed_groups(account_txns, VELOCITY_WINDOW, VELOCITY_MIN_TRANSACTIONS):
            patterns.append(
                PatternMatch(
                    detection_method=DetectionMethod.VELOCITY_PATTERN,
                    account_id=account_id,
                    transaction_ids=[t.transaction_id for t in group],
                    severity=AlertSeverity.MEDIUM,
                    description=f"{len(group)} transactions within {_span_minutes(group)} minutes",
                    metadata={"pattern_type": "velocity", **_group_metadata(group)},
                )
            )
    return patterns


def is_round_amount(amount_cents: int) -> bool:
    return amount_cents % 100 == 0 and abs(amount_cents) >= ROUND_AMOUNT_THRESHOLD_CENTS


def detect_round_amounts(transactions: List[Transaction]) -> List[PatternMatch]:
    patterns = []
    for account_id, account_txns in group_by_account(transactions).items():
        group = [
            t for t in account_txns
            if t.status == TransactionStatus.COMPLETED.value and is_round_amount(t.amount_cents)
        ]
        if len(group) < ROUND_AMOUNT_MIN_TRANSACTIONS:
            continue
        patterns.append(
            PatternMatch(
                detection_method=DetectionMethod.ROUND_AMOUNT_PATTERN,
                account_id=account_id,
                transaction_ids=[t.transaction_id for t in group],
                severity=AlertSeverity.MEDIUM,
                description=f"{len(group)} completed round-amount transactions",
                metadata={
                    "pattern_type": "round_amounts",
                    "amounts_cents": [t.amount_cents for t in group],
                    **_group_metadata(group),
                },
            )
        )
    return patterns


def detect_geographic_anomaly(transaction: Transaction, previous: List[Transaction]) -> Optional[PatternMatch]:
    """
    Flag a transaction whose country is absent from the account's recent ones.

    previous is the account's earlier transactions, newest first. Rows without a
    country are skipped before the five most recent are taken, so this compares
    the last five *located* transactions, not the last five transactions. An
    account whose recent payments carry no geography is still checked against
    where it was last seen.
    """
    if not transaction.country:
        return None

    previous_countries = [
        t.country.upper()
        for t in previous
        if t.transaction_id != transaction.transaction_id and t.country
    ][:GEO_LOOKBACK_TRANSACTIONS]

    current = transaction.country.upper()
    if not previous_countries or current in previous_countries:
        return None

    return PatternMatch(
        detection_method=DetectionMethod.GEOGRAPHICAL_ANOMALY,
        account_id=transaction.account_id,
        transaction_ids=[transaction.transaction_id],
        severity=AlertSeverity.HIGH,
        description=f"Transaction from new location ({current}) detected",
        metadata={
            "pattern_type": "geographical_anomaly",
            "current_country": current,
            "previous_countries": sorted(set(previous_countries)),
        },
    )


def scan_patterns(transactions: List[Transaction]) -> List[PatternMatch]:
    """Run every batch detector over the same transaction set"""
    patterns: List[PatternMatch] = []
    patterns.extend(detect_structuring(transactions))
    patterns.extend(detect_velocity(transactions))
    patterns.extend(detect_round_amounts(transactions))
    return patterns
