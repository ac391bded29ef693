"""Reputation providers: deterministic local rules and an HTTP vendor gateway"""

from typing import Any, Dict, Optional
import httpx
from fraud_sentinel.config import settings
from fraud_sentinel.domain.exceptions import ReputationProviderError
from fraud_sentinel.domain.models import DeviceInfo, ReputationCheck, Transaction
from fraud_sentinel.domain.reputation import (
    AML_SCREENING,
    DEVICE_REPUTATION,
    IP_REPUTATION,
    SANCTIONS_SCREENING,
    ReputationProvider,
)
from fraud_sentinel.domain.scoring import HIGH_RISK_COUNTRIES

VPN_PREFIXES = ("185.",)
TOR_MARKERS = (".73.", ".101.")
PROXY_MARKERS = (".156.", ".22.")

SANCTIONED_MERCHANTS = {"bitmix services", "offshore casino royale"}
SANCTIONED_COUNTRIES = {"KP", "IR", "SY"}

AML_LARGE_AMOUNT_CENTS = 1_000_000  # $10,000 reporting threshold


class StaticReputationProvider(ReputationProvider):
    """
    Rule-based provider used when no vendor gateway is configured.

    Rules are deterministic so the same transaction always yields the same checks.
    """

    async def check_ip(self, ip_address: Optional[str]) -> ReputationCheck:
        if not ip_address:
            return ReputationCheck(check=IP_REPUTATION, risk_score=0, details={"reason": "no ip address"})

        is_vpn = ip_address.startswith(VPN_PREFIXES)
        is_tor = any(marker in ip_address for marker in TOR_MARKERS)
        is_proxy = any(marker in ip_address for marker in PROXY_MARKERS)
        risk = 85 if (is_vpn or is_tor or is_proxy) else 20
        return ReputationCheck(
            check=IP_REPUTATION,
            risk_score=risk,
            details={"ip_address": ip_address, "is_vpn": is_vpn, "is_tor": is_tor, "is_proxy": is_proxy},
        )

    async def check_device(self, device: Optional[DeviceInfo]) -> ReputationCheck:
        if device is None:
            return ReputationCheck(check=DEVICE_REPUTATION, risk_score=0, details={"reason": "no device"})

        risk = 0
        reasons = []
        if device.is_emulator or (device.browser or "") == "Unknown Browser":
            risk += 80
            reasons.append("emulator")
        if "Modified" in (device.os or ""):
            risk += 60
            reasons.append("modified_os")
        return ReputationCheck(
            check=DEVICE_REPUTATION,
            risk_score=min(risk, 100),
            details={"fingerprint": device.fingerprint, "reasons": reasons},
        )

    async def screen_aml(self, transaction: Transaction) -> ReputationCheck:
        risk = 0
        reasons = []
        if transaction.country and transaction.country.upper() in HIGH_RISK_COUNTRIES:
            risk += 40
            reasons.append("high_risk_jurisdiction")
        if abs(transaction.amount_cents) >= AML_LARGE_AMOUNT_CENTS:
            risk += 30
            reasons.append("large_amount")
        return ReputationCheck(check=AML_SCREENING, risk_score=min(risk, 100), details={"reasons": reasons})

    async def screen_sanctions(self, transaction: Transaction) -> ReputationCheck:
        merchant = (transaction.merchant or "").strip().lower()
        country = (transaction.country or "").upper()
        hit = merchant in SANCTIONED_MERCHANTS or country in SANCTIONED_COUNTRIES
        return ReputationCheck(
            check=SANCTIONS_SCREENING,
            risk_score=90 if hit else 0,
            details={"match": hit},
        )


class HttpReputationProvider(ReputationProvider):
    """Client for a vendor reputation gateway exposing one endpoint per check"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = base_url or settings.reputation_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def _post(self, check: str, path: str, body: Dict[str, Any]) -> ReputationCheck:
        """
        POST one check and parse {"risk_score": int, "details": {...}}.

        Raises:
            ReputationProviderError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(f"{self.base_url}{path}", json=body)
                response.raise_for_status()
                data = response.json()
                return ReputationCheck(
                    check=check,
                    risk_score=int(data["risk_score"]),
                    details=data.get("details") or {},
                )

            except httpx.TimeoutException as e:
                raise ReputationProviderError(f"Reputation API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ReputationProviderError(f"Reputation API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ReputationProviderError(f"Reputation API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise ReputationProviderError(f"Invalid reputation response: {e}") from e

    async def check_ip(self, ip_address: Optional[str]) -> ReputationCheck:
        return await self._post(IP_REPUTATION, "/ip", {"ip_address": ip_address})

    async def check_device(self, device: Optional[DeviceInfo]) -> ReputationCheck:
        body = {
            "fingerprint": device.fingerprint if device else None,
            "browser": device.browser if device else None,
            "os": device.os if device else None,
        }
        return await self._post(DEVICE_REPUTATION, "/device", body)

    async def screen_aml(self, transaction: Transaction) -> ReputationCheck:
        body = {
            "account_id": transaction.account_id,
            "amount_cents": transaction.amount_cents,
            "currency": transaction.currency,
            "country": transaction.country,
        }
        return await self._post(AML_SCREENING, "/aml", body)

    async def screen_sanctions(self, transaction: Transaction) -> ReputationCheck:
        body = {"merchant": transaction.merchant, "country": transaction.country}
        return await self._post(SANCTIONS_SCREENING, "/sanctions", body)
