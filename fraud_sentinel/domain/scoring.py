"""Risk scoring engine - fixed additive heuristics for transaction fraud risk"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from fraud_sentinel.domain.models import Transaction, RiskFactor, RiskAssessment
from fraud_sentinel.domain.exceptions import HistoryLookupError
from fraud_sentinel.utils.date_utils import trailing_window

logger = logging.getLogger(__name__)

# Score at or above which a fraud alert is raised
ALERT_THRESHOLD = 70

MAX_SCORE = 100

HISTORY_WINDOW = timedelta(hours=24)
BURST_WINDOW = timedelta(hours=1)

# Amount bands (cents), highest applicable band wins
AMOUNT_BANDS = [
    (500_000, 30),  # > $5000
    (100_000, 20),  # > $1000
    (10_000, 10),  # > $100
]

LATE_NIGHT_HOURS = range(0, 6)
LATE_NIGHT_POINTS = 25
LATE_EVENING_HOURS = (22, 23)
LATE_EVENING_POINTS = 15

HIGH_RISK_COUNTRIES = frozenset({"RU", "VE", "IR", "KP", "SY"})
HIGH_RISK_COUNTRY_POINTS = 40

# Trailing 24h spend bands (cents), highest applicable band wins
VELOCITY_LIMIT_CENTS = 1_000_000  # $10,000
VELOCITY_BANDS = [
    (VELOCITY_LIMIT_CENTS, 35),
    (VELOCITY_LIMIT_CENTS * 7 // 10, 25),  # 70% of limit
    (VELOCITY_LIMIT_CENTS // 2, 15),  # 50% of limit
]

DAILY_COUNT_THRESHOLD = 15
DAILY_COUNT_POINTS = 30
HOURLY_COUNT_THRESHOLD = 5
HOURLY_COUNT_POINTS = 25

NEW_DEVICE_POINTS = 20
PROXY_POINTS = 30
EMULATOR_POINTS = 35
SUSPICIOUS_FINGERPRINT_POINTS = 25

HIGH_RISK_MERCHANTS = frozenset(
    {
        "quickcash exchange",
        "bitmix services",
        "offshore casino royale",
        "anon gift cards",
        "fastwire remit",
    }
)
HIGH_RISK_MERCHANT_POINTS = 25

PAYMENT_METHOD_POINTS = {
    "cryptocurrency": 30,
    "wire_transfer": 20,
    "digital_wallet": 15,
    "credit_card": 10,
    "debit_card": 5,
}
UNKNOWN_PAYMENT_METHOD_POINTS = 15

PAYMENT_METHOD_ALIASES = {
    "crypto": "cryptocurrency",
    "wire": "wire_transfer",
    "paypal": "digital_wallet",
    "apple_pay": "digital_wallet",
    "google_pay": "digital_wallet",
    "wallet": "digital_wallet",
}

# Signature of the injected history lookup: (account_id, start, end) -> transactions
HistoryLookup = Callable[[str, datetime, datetime], List[Transaction]]


def normalize_payment_method(payment_method: Optional[str]) -> Optional[str]:
    if not payment_method:
        return None
    key = payment_method.strip().lower().replace(" ", "_").replace("-", "_")
    return PAYMENT_METHOD_ALIASES.get(key, key)


def _window(transaction: Transaction, history: List[Transaction], span: timedelta) -> List[Transaction]:
    """Transactions of the window ending at the evaluated one, itself included exactly once"""
    start, end = trailing_window(transaction.timestamp, span)
    others = [
        t for t in history
        if t.transaction_id != transaction.transaction_id and start <= t.timestamp <= end
    ]
    return others + [transaction]


def amount_factor(transaction: Transaction) -> Optional[RiskFactor]:
    amount = abs(transaction.amount_cents)
    for threshold, points in AMOUNT_BANDS:
        if amount > threshold:
            return RiskFactor("amount", points, {"amount_cents": amount, "threshold_cents": threshold})
    return None


def time_of_day_factor(transaction: Transaction) -> Optional[RiskFactor]:
    hour = transaction.local_timestamp.hour
    if hour in LATE_NIGHT_HOURS:
        return RiskFactor("time_of_day", LATE_NIGHT_POINTS, {"hour": hour})
    if hour in LATE_EVENING_HOURS:
        return RiskFactor("time_of_day", LATE_EVENING_POINTS, {"hour": hour})
    return None


def geography_factor(transaction: Transaction) -> Optional[RiskFactor]:
    country = (transaction.country or "").upper()
    if country in HIGH_RISK_COUNTRIES:
        return RiskFactor("geography", HIGH_RISK_COUNTRY_POINTS, {"country": country})
    return None


def velocity_factor(transaction: Transaction, history_24h: List[Transaction]) -> Optional[RiskFactor]:
    total = sum(abs(t.amount_cents) for t in _window(transaction, history_24h, HISTORY_WINDOW))
    for threshold, points in VELOCITY_BANDS:
        if total > threshold:
            return RiskFactor("velocity", points, {"total_24h_cents": total, "threshold_cents": threshold})
    return None


def frequency_factors(
    transaction: Transaction,
    history_24h: List[Transaction],
    history_1h: List[Transaction],
) -> List[RiskFactor]:
    factors = []

    daily_count = len(_window(transaction, history_24h, HISTORY_WINDOW))
    if daily_count >= DAILY_COUNT_THRESHOLD:
        factors.append(RiskFactor("frequency_24h", DAILY_COUNT_POINTS, {"count": daily_count}))

    hourly_count = len(_window(transaction, history_1h, BURST_WINDOW))
    if hourly_count >= HOURLY_COUNT_THRESHOLD:
        factors.append(RiskFactor("frequency_1h", HOURLY_COUNT_POINTS, {"count": hourly_count}))

    return factors


def device_factors(transaction: Transaction) -> List[RiskFactor]:
    device = transaction.device
    if device is None:
        return []

    factors = []
    if device.is_new_device:
        factors.append(RiskFactor("new_device", NEW_DEVICE_POINTS))
    if device.is_proxy:
        factors.append(RiskFactor("proxy_vpn", PROXY_POINTS, {"ip_address": transaction.ip_address}))
    if device.is_emulator:
        factors.append(RiskFactor("emulator", EMULATOR_POINTS))

    # Unknown user agents and modified OS builds count as tampered fingerprints
    suspicious = (
        device.suspicious_fingerprint
        or device.browser == "Unknown Browser"
        or (device.os is not None and "Modified" in device.os)
    )
    if suspicious:
        factors.append(
            RiskFactor(
                "suspicious_fingerprint",
                SUSPICIOUS_FINGERPRINT_POINTS,
                {"browser": device.browser, "os": device.os},
            )
        )
    return factors


def merchant_factor(transaction: Transaction) -> Optional[RiskFactor]:
    merchant = (transaction.merchant or "").strip().lower()
    if merchant in HIGH_RISK_MERCHANTS:
        return RiskFactor("merchant", HIGH_RISK_MERCHANT_POINTS, {"merchant": transaction.merchant})
    return None


def payment_method_factor(transaction: Transaction) -> RiskFactor:
    method = normalize_payment_method(transaction.payment_method)
    points = PAYMENT_METHOD_POINTS.get(method, UNKNOWN_PAYMENT_METHOD_POINTS)
    return RiskFactor("payment_method", points, {"payment_method": method or "unknown"})


def calculate_risk_score(
    transaction: Transaction,
    history_24h: Optional[List[Transaction]],
    history_1h: Optional[List[Transaction]] = None,
) -> RiskAssessment:
    """
    Score a transaction from 0 (no risk) to 100 (highest risk).

    Factors are independent and additive; the sum is rounded and clamped.
    history_24h is the account's other transactions over the trailing 24 hours.
    None means the history could not be loaded: velocity and frequency then
    contribute nothing. history_1h defaults to the last hour of history_24h.
    """
    factors: List[RiskFactor] = []

    for factor in (
        amount_factor(transaction),
        time_of_day_factor(transaction),
        geography_factor(transaction),
    ):
        if factor is not None:
            factors.append(factor)

    if history_24h is not None:
        if history_1h is None:
            history_1h = history_24h
        velocity = velocity_factor(transaction, history_24h)
        if velocity is not None:
            factors.append(velocity)
        factors.extend(frequency_factors(transaction, history_24h, history_1h))

    factors.extend(device_factors(transaction))

    merchant = merchant_factor(transaction)
    if merchant is not None:
        factors.append(merchant)

    factors.append(payment_method_factor(transaction))

    raw_score = sum(f.points for f in factors)
    score = max(0, min(int(round(raw_score)), MAX_SCORE))

    return RiskAssessment(score=score, factors=factors)


class RiskScorer:
    """Scores transactions, fetching recent account history through an injected lookup"""

    def __init__(self, history_lookup: Optional[HistoryLookup] = None):
        self.history_lookup = history_lookup

    def load_history(self, transaction: Transaction) -> Optional[List[Transaction]]:
        if self.history_lookup is None:
            return []

        start, end = trailing_window(transaction.timestamp, HISTORY_WINDOW)
        try:
            return self.history_lookup(transaction.account_id, start, end)
        except HistoryLookupError as e:
            logger.warning(
                f"History lookup failed, velocity and frequency factors skipped: {e}",
                extra={"transaction_id": transaction.transaction_id, "account_id": transaction.account_id},
            )
            return None

    def score(self, transaction: Transaction) -> RiskAssessment:
        history = self.load_history(transaction)
        return calculate_risk_score(transaction, history)
