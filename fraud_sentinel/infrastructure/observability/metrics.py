"""Prometheus metrics for scoring outcomes, alerts, pattern scans and outbound calls"""

from prometheus_client import Counter, Histogram

# Scoring metrics
transactions_scored_counter = Counter(
    "fraud_transactions_scored_total",
    "Transactions scored",
    ["outcome"],  # approved | flagged | pending
)

risk_score_histogram = Histogram(
    "fraud_risk_score",
    "Distribution of transaction risk scores",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)

history_lookup_failures_counter = Counter(
    "fraud_history_lookup_failures_total",
    "History lookups that failed and degraded velocity/frequency factors",
)

# Alerts and patterns
alerts_counter = Counter(
    "fraud_alerts_total",
    "Fraud alerts written",
    ["detection_method", "severity", "action"],  # action: created | updated
)

pattern_matches_counter = Counter(
    "fraud_pattern_matches_total",
    "Pattern groups detected by the monitor",
    ["pattern"],
)

metrics_conflicts_counter = Counter(
    "fraud_risk_metrics_conflicts_total",
    "Optimistic version conflicts on risk metrics updates",
)

# External reputation checks
reputation_failures_counter = Counter(
    "fraud_reputation_check_failures_total",
    "Failed reputation checks",
    ["check"],
)

# Notification webhook
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification dispatcher response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_assessment(risk_score: int, status: str) -> None:
    """Record scoring outcome and score distribution"""
    transactions_scored_counter.labels(outcome=status).inc()
    risk_score_histogram.observe(risk_score)


def record_alert(detection_method: str, severity: str, created: bool) -> None:
    alerts_counter.labels(
        detection_method=detection_method,
        severity=severity,
        action="created" if created else "updated",
    ).inc()
