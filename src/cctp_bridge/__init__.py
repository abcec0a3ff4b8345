"""Cross-chain USDC transfer coordinator: burn, attest, mint."""

from .attestation import AttestationClient, AttestationPoller
from .burn import BurnClient
from .config import BridgeSettings, get_settings
from .exceptions import (
    AttestationFailed,
    AttestationTimeout,
    BridgeError,
    InsufficientBalance,
    InvalidAddressFormat,
    InvalidAmount,
    InvalidAttestationInput,
    InvalidCredential,
    MessageNotFound,
    NonceExpired,
    RecipientNotRegistered,
    TransactionFailed,
    TransportError,
)
from .ledgers import DestinationLedger, SourceLedger
from .mint import MintClient
from .models import (
    AttestationRecord,
    AttestationStatus,
    MintResult,
    PollState,
    TransferReceipt,
    TransferRequest,
    TransferResult,
    TransferState,
)
from .orchestrator import TransferOrchestrator

__all__ = [
    "AttestationClient",
    "AttestationPoller",
    "BurnClient",
    "MintClient",
    "TransferOrchestrator",
    "SourceLedger",
    "DestinationLedger",
    "BridgeSettings",
    "get_settings",
    "TransferRequest",
    "TransferReceipt",
    "TransferResult",
    "TransferState",
    "AttestationRecord",
    "AttestationStatus",
    "PollState",
    "MintResult",
    "BridgeError",
    "InsufficientBalance",
    "InvalidAddressFormat",
    "InvalidAmount",
    "InvalidCredential",
    "InvalidAttestationInput",
    "MessageNotFound",
    "AttestationFailed",
    "AttestationTimeout",
    "TransactionFailed",
    "RecipientNotRegistered",
    "TransportError",
    "NonceExpired",
]
