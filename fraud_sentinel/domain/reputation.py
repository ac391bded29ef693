"""External reputation checks: provider interface and combined scoring"""

from abc import ABC, abstractmethod
from typing import List, Optional
from fraud_sentinel.domain.models import DeviceInfo, ReputationCheck, Transaction

IP_REPUTATION = "ip_reputation"
DEVICE_REPUTATION = "device_reputation"
AML_SCREENING = "aml"
SANCTIONS_SCREENING = "sanctions"

# Each check contributes a quarter of the combined score
REPUTATION_WEIGHTS = {
    IP_REPUTATION: 0.25,
    DEVICE_REPUTATION: 0.25,
    AML_SCREENING: 0.25,
    SANCTIONS_SCREENING: 0.25,
}


class ReputationProvider(ABC):
    """
    Capability interface for third-party reputation services.

    Every check returns a 0-100 risk score. Implementations raise
    ReputationProviderError when the underlying service fails.
    """

    @abstractmethod
    async def check_ip(self, ip_address: Optional[str]) -> ReputationCheck:
        ...

    @abstractmethod
    async def check_device(self, device: Optional[DeviceInfo]) -> ReputationCheck:
        ...

    @abstractmethod
    async def screen_aml(self, transaction: Transaction) -> ReputationCheck:
        ...

    @abstractmethod
    async def screen_sanctions(self, transaction: Transaction) -> ReputationCheck:
        ...


def combine_reputation_checks(checks: List[ReputationCheck]) -> int:
    """Weighted sum of check scores; missing or failed checks count as zero"""
    total = 0.0
    for check in checks:
        score = max(0, min(check.risk_score, 100))
        total += REPUTATION_WEIGHTS.get(check.check, 0.0) * score
    return max(0, min(int(round(total)), 100))
