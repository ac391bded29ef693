"""Submission-time validation of transaction data"""

from fraud_sentinel.domain.models import Transaction, TransactionStatus
from fraud_sentinel.domain.exceptions import InvalidTransactionDataError

VALID_STATUSES = {s.value for s in TransactionStatus}


def validate_transaction(transaction: Transaction) -> None:
    """
    Reject a transaction before scoring runs.

    Raises:
        InvalidTransactionDataError: On a missing account, zero amount,
            malformed currency code, missing timestamp or unknown status
    """
    if not transaction.account_id or not transaction.account_id.strip():
        raise InvalidTransactionDataError("account_id is required")

    if transaction.amount_cents == 0:
        raise InvalidTransactionDataError("amount must be non-zero")

    currency = transaction.currency or ""
    if len(currency) != 3 or not currency.isalpha():
        raise InvalidTransactionDataError(f"Invalid currency code: {transaction.currency!r}")

    if transaction.timestamp is None:
        raise InvalidTransactionDataError("timestamp is required")

    if transaction.status not in VALID_STATUSES:
        raise InvalidTransactionDataError(f"Invalid transaction status: {transaction.status!r}")
