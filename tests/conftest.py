"""
Pytest configuration for cctp-bridge tests.

Provides in-memory source/destination ledgers and a scripted attestation
client so the burn, attestation and mint paths run without a network.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from eth_abi import encode

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Keep developer .env files and shell exports out of the tests
for key in list(os.environ):
    if key.startswith("CCTP_BRIDGE_"):
        del os.environ[key]

from cctp_bridge.config import LoggingSettings
from cctp_bridge.constants import DEPOSIT_FOR_BURN_EVENT, MESSAGE_SENT_EVENT
from cctp_bridge.exceptions import TransportError
from cctp_bridge.ledgers import DestinationLedger, SourceLedger
from cctp_bridge.logging_utils import TransferLogger
from cctp_bridge.messages import event_topic
from cctp_bridge.models import AttestationRecord, AttestationStatus

SOURCE_KEY = "0x" + "11" * 32
DESTINATION_KEY = "0x" + "22" * 32
SOURCE_ADDRESS = "0x" + "aa" * 20
RECIPIENT = "0x" + "ab" * 32
TOKEN_MESSENGER = "0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5"
BURN_TX = "0x" + "b1" * 32
ATTESTATION = "0x" + "5a" * 65


def build_message(nonce: int = 42, source_domain: int = 6, destination_domain: int = 9) -> bytes:
    """CCTP message: version | source domain | destination domain | nonce | body."""
    return (
        (0).to_bytes(4, "big")
        + source_domain.to_bytes(4, "big")
        + destination_domain.to_bytes(4, "big")
        + nonce.to_bytes(8, "big")
        + b"\x01" * 64
    )


def message_sent_log(message: bytes) -> Dict[str, Any]:
    return {
        "topics": [event_topic(MESSAGE_SENT_EVENT)],
        "data": "0x" + encode(["bytes"], [message]).hex(),
    }


def deposit_for_burn_log(nonce: int, data: bytes = b"\x07" * 96) -> Dict[str, Any]:
    return {
        "topics": [event_topic(DEPOSIT_FOR_BURN_EVENT), "0x" + nonce.to_bytes(32, "big").hex()],
        "data": "0x" + data.hex(),
    }


def burn_receipt(logs: List[Dict[str, Any]], tx_hash: str = BURN_TX) -> Dict[str, Any]:
    return {"transactionHash": tx_hash, "status": "0x1", "from": SOURCE_ADDRESS, "logs": logs}


class FakeSourceLedger(SourceLedger):
    """In-memory EVM-like source ledger."""

    name = "fake-source"

    def __init__(
        self,
        balance: int = 100_000_000,
        decimals: int = 6,
        message: Optional[bytes] = None,
        logs: Optional[List[Dict[str, Any]]] = None,
    ):
        self.balance = balance
        self.decimals = decimals
        self.message = message if message is not None else build_message()
        self.logs = logs
        self.calls: List[str] = []
        self.approvals: List[tuple] = []
        self.burns: List[tuple] = []
        self.approve_errors: List[Exception] = []
        self.burn_errors: List[Exception] = []
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.reachable = True

    async def get_address(self, credential: str) -> str:
        self.calls.append("get_address")
        return SOURCE_ADDRESS

    async def get_balance(self, address: str) -> int:
        self.calls.append("get_balance")
        return self.balance

    async def get_decimals(self) -> int:
        self.calls.append("get_decimals")
        return self.decimals

    async def get_nonce(self, address: str) -> int:
        return len(self.approvals) + len(self.burns)

    async def approve(self, credential: str, spender: str, amount: int) -> str:
        self.calls.append("approve")
        if self.approve_errors:
            raise self.approve_errors.pop(0)
        self.approvals.append((spender, amount))
        return "0x" + "a1" * 32

    async def deposit_for_burn(
        self,
        credential: str,
        amount: int,
        destination_domain: int,
        mint_recipient: bytes,
    ) -> Dict[str, Any]:
        self.calls.append("deposit_for_burn")
        if self.burn_errors:
            raise self.burn_errors.pop(0)
        self.burns.append((amount, destination_domain, mint_recipient))
        self.balance -= amount
        logs = self.logs if self.logs is not None else [message_sent_log(self.message)]
        receipt = burn_receipt(logs)
        self.receipts[BURN_TX] = receipt
        return receipt

    async def get_transaction_receipt(self, tx_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append("get_transaction_receipt")
        return self.receipts.get(tx_id)

    async def ping(self) -> None:
        if not self.reachable:
            raise TransportError("source unreachable")


class FakeDestinationLedger(DestinationLedger):
    """
    In-memory Aptos-like destination ledger.

    Balances and coin stores are tracked per address. A successful mint
    credits the message's recipient (``RECIPIENT``), whoever signs it.
    """

    name = "fake-destination"

    def __init__(
        self,
        registered: bool = True,
        balance: int = 0,
        decimals: int = 6,
        mint_amount: int = 0,
        success: bool = True,
        signer: str = RECIPIENT,
    ):
        self.signer = signer
        self.stores = {RECIPIENT, signer} if registered else set()
        self.balances: Dict[str, int] = {RECIPIENT: balance}
        self.decimals = decimals
        self.mint_amount = mint_amount
        self.success = success
        self.calls: List[str] = []
        self.received: List[tuple] = []
        self.account_exists = True
        self.events: List[Dict[str, Any]] = []

    async def get_address(self, credential: str) -> str:
        self.calls.append("get_address")
        return self.signer

    async def get_balance(self, address: str) -> int:
        self.calls.append("get_balance")
        return self.balances.get(address, 0)

    async def get_decimals(self) -> int:
        return self.decimals

    async def is_registered(self, address: str) -> bool:
        self.calls.append("is_registered")
        return address in self.stores

    async def register(self, credential: str) -> str:
        self.calls.append("register")
        self.stores.add(self.signer)
        return "0x" + "e0" * 32

    async def receive_message(self, credential: str, message: bytes, attestation: bytes) -> Dict[str, Any]:
        self.calls.append("receive_message")
        self.received.append((message, attestation))
        if self.success:
            self.balances[RECIPIENT] = self.balances.get(RECIPIENT, 0) + self.mint_amount
            return {"hash": "0x" + "d1" * 32, "success": True, "vm_status": "Executed successfully"}
        return {"hash": "0x" + "d1" * 32, "success": False, "vm_status": "Move abort: EINVALID_ATTESTATION"}

    async def get_transaction(self, tx_id: str) -> Optional[Dict[str, Any]]:
        return None

    async def get_account(self, address: str) -> Optional[Dict[str, Any]]:
        if not self.account_exists:
            return None
        return {"sequence_number": "0", "authentication_key": address}

    async def get_receive_events(self, address: str, limit: int = 10) -> List[Dict[str, Any]]:
        return self.events[:limit]


class ScriptedAttestationClient:
    """Returns queued records (or raises queued errors); repeats the last one."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[str] = []
        self.closed = False

    async def fetch(self, message_hash: str) -> AttestationRecord:
        self.requests.append(message_hash)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, AttestationStatus):
            if response is AttestationStatus.COMPLETE:
                return AttestationRecord(response, message_hash, attestation=ATTESTATION)
            return AttestationRecord(response, message_hash)
        return response

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeSourceLedger()


@pytest.fixture
def destination():
    return FakeDestinationLedger()


@pytest.fixture
def transfer_logger():
    return TransferLogger(config=LoggingSettings())
