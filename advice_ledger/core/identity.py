"""
Identity providers - supply the owner address stamped on new records.
"""

from abc import ABC, abstractmethod
from typing import Optional


class IdentityProvider(ABC):
    """Abstract interface for the caller's identity."""

    @abstractmethod
    def current_address(self) -> Optional[str]:
        """Address of the connected account, or None when nobody is connected."""
        pass


class StaticIdentityProvider(IdentityProvider):
    """Fixed address, e.g. from LEDGER_OWNER_ADDRESS or a CLI flag."""

    def __init__(self, address: Optional[str] = None):
        self.address = address

    def current_address(self) -> Optional[str]:
        return self.address or None

    def connect(self, address: str) -> None:
        self.address = address

    def disconnect(self) -> None:
        self.address = None
