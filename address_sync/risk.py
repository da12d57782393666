"""
Address Sync - Risk Providers.

A risk provider scores an address 0-100 from its account payload.
Scoring is pluggable; the default provider scores nothing.
"""

from abc import ABC, abstractmethod
from typing import Optional

from explorer_adapters.models import AccountInfo


SUSPICIOUS_LABEL_WORDS = ("phish", "scam", "exploit", "hack", "mixer", "tornado")


class RiskProvider(ABC):
    """Scores an address; None means no score is available."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def score(self, address: str, account: AccountInfo) -> Optional[int]:
        pass


class NullRiskProvider(RiskProvider):
    async def score(self, address: str, account: AccountInfo) -> Optional[int]:
        return None


class FlagRiskProvider(RiskProvider):
    """
    Deterministic heuristic over upstream flags.

    - scam flag or any sanction: 100
    - a label naming a known bad actor category: 75
    - otherwise: 0
    """

    async def score(self, address: str, account: AccountInfo) -> Optional[int]:
        if account.is_scam or account.sanctioned_by:
            return 100
        for label in account.labels:
            lowered = label.lower()
            if any(word in lowered for word in SUSPICIOUS_LABEL_WORDS):
                return 75
        return 0
