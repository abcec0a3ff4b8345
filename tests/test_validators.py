"""
Tests for cctp_bridge.validators.
"""
from __future__ import annotations

import pytest

from cctp_bridge.exceptions import InvalidAddressFormat, InvalidAttestationInput, InvalidCredential
from cctp_bridge.validators import (
    check_destination_address,
    check_private_key,
    destination_address_to_bytes32,
    evm_to_destination_address,
    is_valid_message_hash,
    validate_destination_address,
    validate_evm_address,
    validate_hex_payload,
    validate_private_key,
)


class TestDestinationAddress:
    """Tests for destination address validation."""

    def test_accepts_32_byte_address(self):
        """Should accept 0x + 64 hex and lower-case it."""
        address = "0x" + "AB" * 32
        assert validate_destination_address(address) == "0x" + "ab" * 32

    @pytest.mark.parametrize("address", [
        "0x" + "ab" * 5,
        "0x" + "ab" * 20,
        "0x" + "ab" * 33,
        "ab" * 32,
        "0x" + "zz" * 32,
        "",
    ])
    def test_rejects_wrong_width(self, address):
        """Should reject anything that is not exactly 32 bytes of hex."""
        with pytest.raises(InvalidAddressFormat) as exc_info:
            validate_destination_address(address)
        assert exc_info.value.expected_bytes == 32
        assert exc_info.value.code == "invalid_address_format"

    def test_to_bytes32(self):
        """Should convert to the raw 32-byte mint recipient."""
        assert destination_address_to_bytes32("0x" + "01" * 32) == b"\x01" * 32

    def test_evm_to_destination(self):
        """Should left-pad a 20-byte address to 32 bytes."""
        padded = evm_to_destination_address("0x" + "Ab" * 20)
        assert padded == "0x" + "00" * 12 + "ab" * 20

    def test_evm_address(self):
        """Should reject short EVM addresses."""
        assert validate_evm_address("0x" + "12" * 20) == "0x" + "12" * 20
        with pytest.raises(InvalidAddressFormat):
            validate_evm_address("0x1234")

    def test_check_returns_issue(self):
        """Should report instead of raising."""
        assert check_destination_address("0x" + "ab" * 32) is None
        assert "invalid" in check_destination_address("0x1234")


class TestPrivateKey:
    """Tests for credential validation."""

    def test_adds_prefix(self):
        """Should normalize to a 0x prefix."""
        assert validate_private_key("11" * 32) == "0x" + "11" * 32

    @pytest.mark.parametrize("key", ["", "0x1234", "0x" + "gg" * 32])
    def test_rejects_malformed(self, key):
        """Should reject keys that are not 32 bytes of hex."""
        with pytest.raises(InvalidCredential):
            validate_private_key(key)

    def test_check_private_key(self):
        """Should label the issue with the credential name."""
        assert check_private_key("0x" + "11" * 32, "Source credential") is None
        assert check_private_key("nope", "Source credential").startswith("Source credential")


class TestHexPayload:
    """Tests for attestation payload validation."""

    def test_decodes(self):
        """Should decode 0x hex bytes."""
        assert validate_hex_payload("0x0102", "message") == b"\x01\x02"

    @pytest.mark.parametrize("value", ["", "0x", "0x123", "0102", None])
    def test_rejects(self, value):
        """Should reject empty, odd-length or unprefixed payloads."""
        with pytest.raises(InvalidAttestationInput):
            validate_hex_payload(value, "message")

    def test_message_hash(self):
        """Should require 0x + 64 hex."""
        assert is_valid_message_hash("0x" + "ab" * 32)
        assert not is_valid_message_hash("0x" + "ab" * 31)
        assert not is_valid_message_hash(None)
