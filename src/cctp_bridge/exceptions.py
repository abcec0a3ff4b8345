"""
Error taxonomy for cross-chain transfers.

Validation errors (balance, address, amount, credential) are raised before
any network call and are never retried. TransportError and its NonceExpired
subclass are the only retryable classes, and only inside the burn client's
nonce-retry loop and the attestation poller's own loop.
"""
from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base exception for all transfer errors."""

    code: str = "bridge_error"
    retryable: bool = False

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class InsufficientBalance(BridgeError):
    """Raised when the source account cannot cover the transfer amount."""

    code = "insufficient_balance"

    def __init__(self, address: str, balance: str, required: str):
        self.address = address
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient balance for {address}: have {balance}, need {required}"
        )


class InvalidAddressFormat(BridgeError):
    """Raised when an address does not match the ledger's fixed width."""

    code = "invalid_address_format"

    def __init__(self, address: str, expected_bytes: int):
        self.address = address
        self.expected_bytes = expected_bytes
        super().__init__(
            f"Invalid address {address!r}: expected 0x followed by "
            f"{expected_bytes * 2} hex characters"
        )


class InvalidAmount(BridgeError):
    """Raised when an amount is not a positive, exactly representable decimal."""

    code = "invalid_amount"


class InvalidCredential(BridgeError):
    """Raised when a signing credential is malformed."""

    code = "invalid_credential"


class InvalidAttestationInput(BridgeError):
    """Raised when mint is called with empty or malformed message/attestation."""

    code = "invalid_attestation_input"


class MessageNotFound(BridgeError):
    """Raised when no known burn event is present in a transaction's logs."""

    code = "message_not_found"

    def __init__(self, tx_id: str, topics: Optional[list[str]] = None):
        self.tx_id = tx_id
        self.topics = topics or []
        super().__init__(
            f"No MessageSent or DepositForBurn event in transaction {tx_id}"
        )


class AttestationFailed(BridgeError):
    """Raised when the attestation authority reports status 'failed'."""

    code = "attestation_failed"

    def __init__(self, message_hash: str):
        self.message_hash = message_hash
        super().__init__(f"Attestation failed for message {message_hash}")


class AttestationTimeout(BridgeError):
    """Raised when the poll exceeds its wall-clock or attempt bound."""

    code = "attestation_timeout"

    def __init__(self, message_hash: str, attempts: int, elapsed_seconds: float):
        self.message_hash = message_hash
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Attestation for {message_hash} not available after "
            f"{attempts} attempts / {elapsed_seconds:.0f}s"
        )


class TransactionFailed(BridgeError):
    """Raised when a ledger rejects a transaction."""

    code = "transaction_failed"

    def __init__(self, tx_id: str, reason: Optional[str] = None):
        self.tx_id = tx_id
        self.reason = reason
        message = f"Transaction {tx_id or '<unsent>'} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class RecipientNotRegistered(BridgeError):
    """Raised when the recipient cannot hold the asset and the signer cannot register it."""

    code = "recipient_not_registered"

    def __init__(self, address: str):
        self.address = address
        super().__init__(
            f"Recipient {address} has no store for the asset; only its owner can register one"
        )


class TransportError(BridgeError):
    """Network-level failure talking to a ledger or the authority."""

    code = "transport_error"
    retryable = True


class NonceExpired(TransportError):
    """Account nonce race: the submitted nonce was already used."""

    code = "nonce_expired"


__all__ = [
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
