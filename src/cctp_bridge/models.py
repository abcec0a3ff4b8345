"""Data model for one cross-chain transfer attempt."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

ProgressSink = Callable[[str, Optional[Dict[str, Any]]], None]


class TransferState(str, Enum):
    """Orchestrator state machine."""
    INIT = "init"
    BURNING = "burning"
    ATTESTING = "attesting"
    MINTING = "minting"
    DONE = "done"
    FAILED = "failed"


class PollState(str, Enum):
    """Attestation poller state machine."""
    REQUESTED = "requested"
    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class AttestationStatus(str, Enum):
    """Status reported by the attestation authority."""
    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not AttestationStatus.PENDING


@dataclass(frozen=True)
class TransferRequest:
    """Immutable input for one transfer attempt."""
    amount: str
    recipient: str
    source_credential: str
    destination_credential: str
    deadline_seconds: Optional[float] = None
    on_progress: Optional[ProgressSink] = field(default=None, compare=False, repr=False)
    transfer_id: str = field(default_factory=lambda: f"xfer_{uuid.uuid4().hex[:16]}")

    def __repr__(self) -> str:
        return (
            f"TransferRequest(transfer_id={self.transfer_id!r}, amount={self.amount!r}, "
            f"recipient={self.recipient!r}, deadline_seconds={self.deadline_seconds!r})"
        )


@dataclass
class TransferReceipt:
    """Outcome of the burn stage."""
    source_tx_id: str
    nonce: str = "0"
    nonce_reliable: bool = False
    message_bytes: Optional[str] = None
    message_hash: Optional[str] = None
    amount_minor: int = 0

    def to_dict(self) -> dict:
        return {
            "source_tx_id": self.source_tx_id,
            "nonce": self.nonce,
            "nonce_reliable": self.nonce_reliable,
            "message_bytes": self.message_bytes,
            "message_hash": self.message_hash,
            "amount_minor": self.amount_minor,
        }


@dataclass(frozen=True)
class AttestationRecord:
    """Attestation for a burn message; terminal once complete or failed."""
    status: AttestationStatus
    message_hash: str
    message_bytes: str = ""
    attestation: str = ""

    @property
    def is_complete(self) -> bool:
        return self.status is AttestationStatus.COMPLETE

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_mintable(self) -> bool:
        """Complete with both message bytes and signature present."""
        return self.is_complete and bool(self.message_bytes) and bool(self.attestation)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "message_hash": self.message_hash,
            "message_bytes": self.message_bytes,
            "attestation": self.attestation,
        }


@dataclass
class MessageEvent:
    """Burn message extracted from a source transaction's logs."""
    message_hash: str
    message_bytes: str
    event_signature: str
    nonce: str = "0"
    nonce_reliable: bool = False
    sender: str = ""


@dataclass
class MintResult:
    """Outcome of the mint stage."""
    dest_tx_id: str
    success: bool
    minted_amount: int = 0
    registration_tx_id: Optional[str] = None
    vm_status: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "dest_tx_id": self.dest_tx_id,
            "success": self.success,
            "minted_amount": self.minted_amount,
            "registration_tx_id": self.registration_tx_id,
            "vm_status": self.vm_status,
        }


class StepLedger:
    """
    Append-only audit trail of stage outcomes within one attempt.

    A stage is present only if it was reached and produced an outcome.
    """

    STAGES = ("burn", "attestation", "mint")

    def __init__(self) -> None:
        self._entries: Dict[str, Any] = {}

    def record(self, stage: str, outcome: Any) -> None:
        if stage not in self.STAGES:
            raise ValueError(f"Unknown stage: {stage}")
        if stage in self._entries:
            raise ValueError(f"Stage {stage} already recorded")
        self._entries[stage] = outcome

    @property
    def burn(self) -> Optional[TransferReceipt]:
        return self._entries.get("burn")

    @property
    def attestation(self) -> Optional[AttestationRecord]:
        return self._entries.get("attestation")

    @property
    def mint(self) -> Optional[MintResult]:
        return self._entries.get("mint")

    @property
    def completed(self) -> list[str]:
        return [stage for stage in self.STAGES if stage in self._entries]

    @property
    def is_complete(self) -> bool:
        return len(self._entries) == len(self.STAGES)

    def __contains__(self, stage: str) -> bool:
        return stage in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def to_dict(self) -> dict:
        return {stage: outcome.to_dict() for stage, outcome in self._entries.items()}


@dataclass
class TransferResult:
    """Final report of one transfer attempt, successful or not."""
    transfer_id: str
    success: bool = False
    state: TransferState = TransferState.INIT
    source_tx_id: Optional[str] = None
    dest_tx_id: Optional[str] = None
    final_amount: Optional[str] = None
    final_amount_minor: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    steps: StepLedger = field(default_factory=StepLedger)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "transfer_id": self.transfer_id,
            "success": self.success,
            "state": self.state.value,
            "source_tx_id": self.source_tx_id,
            "dest_tx_id": self.dest_tx_id,
            "final_amount": self.final_amount,
            "final_amount_minor": self.final_amount_minor,
            "error": self.error,
            "error_code": self.error_code,
            "steps": self.steps.to_dict(),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class PrerequisiteReport:
    """Advisory pre-flight check result."""
    issues: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


@dataclass
class TransferEstimate:
    """Expected duration and fee hints for one transfer."""
    source_chain: str
    destination_chain: str
    finality_seconds: int
    attestation_seconds: int
    source_fee_hint: str
    destination_fee_hint: str

    @property
    def total_seconds(self) -> int:
        return self.finality_seconds + self.attestation_seconds


@dataclass
class HistoryEntry:
    """A receive event observed on the destination ledger."""
    sequence_number: str
    recipient: str
    amount: str
    message_hash: str
    tx_version: str


__all__ = [
    "ProgressSink",
    "TransferState",
    "PollState",
    "AttestationStatus",
    "TransferRequest",
    "TransferReceipt",
    "AttestationRecord",
    "MessageEvent",
    "MintResult",
    "StepLedger",
    "TransferResult",
    "PrerequisiteReport",
    "TransferEstimate",
    "HistoryEntry",
]
