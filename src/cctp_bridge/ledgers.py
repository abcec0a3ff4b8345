"""Ledger collaborator interfaces used by the burn and mint clients."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class SourceLedger(ABC):
    """Abstract interface for the burn-side ledger."""

    name: str = "source"

    @abstractmethod
    async def get_address(self, credential: str) -> str:
        """Derive the account address controlled by a credential."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Token balance in minor units."""

    @abstractmethod
    async def get_decimals(self) -> int:
        """Token decimals."""

    @abstractmethod
    async def get_nonce(self, address: str) -> int:
        """Next account nonce (pending)."""

    @abstractmethod
    async def approve(self, credential: str, spender: str, amount: int) -> str:
        """Submit a token approval and wait for finality; returns tx id."""

    @abstractmethod
    async def deposit_for_burn(
        self,
        credential: str,
        amount: int,
        destination_domain: int,
        mint_recipient: bytes,
    ) -> Dict[str, Any]:
        """Submit depositForBurn and wait for finality; returns the receipt."""

    @abstractmethod
    async def get_transaction_receipt(self, tx_id: str) -> Optional[Dict[str, Any]]:
        """Receipt with ``logs`` (each with ``topics`` and ``data``), or None."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise TransportError if the ledger is unreachable."""

    async def close(self) -> None:
        pass


class DestinationLedger(ABC):
    """Abstract interface for the mint-side ledger."""

    name: str = "destination"

    @abstractmethod
    async def get_address(self, credential: str) -> str:
        """Derive the account address controlled by a credential."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Token balance in minor units (0 if the account cannot hold it yet)."""

    @abstractmethod
    async def get_decimals(self) -> int:
        """Token decimals."""

    @abstractmethod
    async def is_registered(self, address: str) -> bool:
        """Whether the account can already hold the asset."""

    @abstractmethod
    async def register(self, credential: str) -> str:
        """Register the asset for the credential's account; returns tx id."""

    @abstractmethod
    async def receive_message(
        self,
        credential: str,
        message: bytes,
        attestation: bytes,
    ) -> Dict[str, Any]:
        """Submit receive/mint and wait for finality; returns the tx result."""

    @abstractmethod
    async def get_transaction(self, tx_id: str) -> Optional[Dict[str, Any]]:
        """Transaction result with ``success`` and ``vm_status``, or None."""

    @abstractmethod
    async def get_account(self, address: str) -> Optional[Dict[str, Any]]:
        """Account info, or None if the account does not exist."""

    async def get_receive_events(self, address: str, limit: int = 10) -> List[Dict[str, Any]]:
        return []

    async def close(self) -> None:
        pass


__all__ = ["SourceLedger", "DestinationLedger"]
