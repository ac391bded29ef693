"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidTransactionDataError(DomainException):
    """Transaction data is malformed or invalid"""

    pass


class HistoryLookupError(DomainException):
    """Recent transaction history could not be loaded"""

    pass


class ReputationProviderError(DomainException):
    """Reputation provider returned an error or is unavailable"""

    pass


class TransactionNotFoundError(DomainException):
    """Referenced transaction does not exist"""

    pass


class AlertNotFoundError(DomainException):
    """Referenced fraud alert does not exist"""

    pass


class InvalidStatusTransitionError(DomainException):
    """Requested alert status change is not allowed from the current status"""

    pass
