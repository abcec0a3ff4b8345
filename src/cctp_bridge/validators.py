"""
Input validation for addresses, credentials and attestation payloads.

Every check here runs before any network call and raises a BridgeError
subclass on failure. The ``check_*`` variants return a human-readable issue
string (or None) instead of raising, for advisory pre-flight reports.

Usage:
    from cctp_bridge.validators import validate_destination_address

    recipient = validate_destination_address(recipient)  # Raises InvalidAddressFormat
"""
from __future__ import annotations

import re
from typing import Optional, Pattern

from .constants import APTOS_ADDRESS_BYTES, EVM_ADDRESS_BYTES, MESSAGE_HASH_HEX_LENGTH
from .exceptions import (
    InvalidAddressFormat,
    InvalidAttestationInput,
    InvalidCredential,
)

# =============================================================================
# Regex Patterns
# =============================================================================

EVM_ADDRESS_PATTERN: Pattern[str] = re.compile(r"^0x[a-fA-F0-9]{40}$")

# Aptos account address (0x followed by exactly 64 hex chars)
APTOS_ADDRESS_PATTERN: Pattern[str] = re.compile(r"^0x[a-fA-F0-9]{64}$")

# 32-byte private key (secp256k1 or ed25519), 0x prefix optional
PRIVATE_KEY_PATTERN: Pattern[str] = re.compile(r"^(0x)?[a-fA-F0-9]{64}$")

MESSAGE_HASH_PATTERN: Pattern[str] = re.compile(r"^0x[a-fA-F0-9]{64}$")

HEX_BYTES_PATTERN: Pattern[str] = re.compile(r"^0x([a-fA-F0-9]{2})+$")


def validate_destination_address(value: str) -> str:
    """Validate a destination (Aptos) account address.

    Args:
        value: The address to validate

    Returns:
        The address, lower-cased

    Raises:
        InvalidAddressFormat: If the address is not 0x + 64 hex characters
    """
    if not isinstance(value, str) or not APTOS_ADDRESS_PATTERN.match(value):
        raise InvalidAddressFormat(str(value), APTOS_ADDRESS_BYTES)
    return value.lower()


def validate_evm_address(value: str) -> str:
    """Validate a source (EVM) address; returns it unchanged."""
    if not isinstance(value, str) or not EVM_ADDRESS_PATTERN.match(value):
        raise InvalidAddressFormat(str(value), EVM_ADDRESS_BYTES)
    return value


def validate_private_key(value: str, field_name: str = "private_key") -> str:
    """Validate a 32-byte hex private key.

    Args:
        value: The key to validate
        field_name: Name used in the error message

    Returns:
        The key with a 0x prefix

    Raises:
        InvalidCredential: If the key is not 32 bytes of hex
    """
    if not isinstance(value, str) or not PRIVATE_KEY_PATTERN.match(value):
        raise InvalidCredential(f"{field_name} must be 32 bytes of hex (64 characters)")
    return value if value.startswith("0x") else f"0x{value}"


def validate_hex_payload(value: str, field_name: str) -> bytes:
    """Decode a non-empty 0x-prefixed hex payload.

    Raises:
        InvalidAttestationInput: If the value is empty or not hex bytes
    """
    if not value or not isinstance(value, str):
        raise InvalidAttestationInput(f"{field_name} is empty")
    if not HEX_BYTES_PATTERN.match(value):
        raise InvalidAttestationInput(f"{field_name} is not 0x-prefixed hex bytes")
    return bytes.fromhex(value[2:])


def is_valid_message_hash(value: str) -> bool:
    return (
        isinstance(value, str)
        and len(value) == MESSAGE_HASH_HEX_LENGTH
        and bool(MESSAGE_HASH_PATTERN.match(value))
    )


def evm_to_destination_address(evm_address: str) -> str:
    """Left-pad a 20-byte EVM address to a 32-byte destination address."""
    clean = validate_evm_address(evm_address).lower().removeprefix("0x")
    return "0x" + clean.zfill(APTOS_ADDRESS_BYTES * 2)


def destination_address_to_bytes32(address: str) -> bytes:
    """Convert a destination address to the bytes32 mint recipient."""
    return bytes.fromhex(validate_destination_address(address)[2:])


def check_destination_address(value: str) -> Optional[str]:
    try:
        validate_destination_address(value)
    except InvalidAddressFormat as e:
        return f"Destination address format is invalid: {e}"
    return None


def check_private_key(value: str, label: str) -> Optional[str]:
    try:
        validate_private_key(value, label)
    except InvalidCredential as e:
        return f"{label} format is invalid: {e}"
    return None


__all__ = [
    "EVM_ADDRESS_PATTERN",
    "APTOS_ADDRESS_PATTERN",
    "PRIVATE_KEY_PATTERN",
    "MESSAGE_HASH_PATTERN",
    "validate_destination_address",
    "validate_evm_address",
    "validate_private_key",
    "validate_hex_payload",
    "is_valid_message_hash",
    "evm_to_destination_address",
    "destination_address_to_bytes32",
    "check_destination_address",
    "check_private_key",
]
