"""
Tests for burn message extraction from receipt logs.

Tests cover:
- Event signature priority (MessageSent before DepositForBurn)
- DepositForBurn raw-data fallback
- Nonce sources and their reliability flags
- Missing events
"""
from __future__ import annotations

import pytest
from eth_utils import keccak

from cctp_bridge.constants import DEPOSIT_FOR_BURN_EVENT, MESSAGE_SENT_EVENT
from cctp_bridge.exceptions import MessageNotFound
from cctp_bridge.messages import (
    UNKNOWN_NONCE,
    event_topic,
    extract_message,
    extract_nonce,
    message_hash,
    to_hex,
)

from conftest import BURN_TX, build_message, burn_receipt, deposit_for_burn_log, message_sent_log


class TestHelpers:
    """Tests for hex and hashing helpers."""

    def test_to_hex(self):
        """Should normalize bytes and strings."""
        assert to_hex(b"\x01\xab") == "0x01ab"
        assert to_hex("ABCD") == "0xabcd"
        assert to_hex("0xAB") == "0xab"

    def test_event_topic(self):
        """Should be keccak256 of the event signature."""
        assert event_topic(MESSAGE_SENT_EVENT) == "0x" + keccak(text=MESSAGE_SENT_EVENT).hex()

    def test_message_hash(self):
        """Should be keccak256 of the message bytes."""
        assert message_hash(b"hello") == "0x" + keccak(b"hello").hex()


class TestExtractMessage:
    """Tests for extract_message."""

    def test_message_sent(self):
        """Should decode the MessageSent payload and hash it."""
        message = build_message(nonce=7)
        event = extract_message(burn_receipt([message_sent_log(message)]), BURN_TX)

        assert event.event_signature == MESSAGE_SENT_EVENT
        assert event.message_bytes == "0x" + message.hex()
        assert event.message_hash == message_hash(message)
        assert event.nonce == "7"
        assert event.nonce_reliable is True

    def test_message_sent_wins_over_deposit_for_burn(self):
        """Should prefer MessageSent when both events are present."""
        message = build_message(nonce=9)
        receipt = burn_receipt([deposit_for_burn_log(9), message_sent_log(message)])

        event = extract_message(receipt, BURN_TX)

        assert event.event_signature == MESSAGE_SENT_EVENT
        assert event.message_hash == message_hash(message)

    def test_deposit_for_burn_uses_raw_data(self):
        """Should fall back to DepositForBurn raw data as the message."""
        data = b"\x05" * 128
        event = extract_message(burn_receipt([deposit_for_burn_log(3, data)]), BURN_TX)

        assert event.event_signature == DEPOSIT_FOR_BURN_EVENT
        assert event.message_bytes == "0x" + data.hex()
        assert event.nonce == "3"
        assert event.nonce_reliable is True

    def test_no_known_event(self):
        """Should raise MessageNotFound listing the topics seen."""
        receipt = burn_receipt([{"topics": ["0x" + "99" * 32], "data": "0x"}])

        with pytest.raises(MessageNotFound) as exc_info:
            extract_message(receipt, BURN_TX)
        assert exc_info.value.tx_id == BURN_TX
        assert exc_info.value.topics == ["0x" + "99" * 32]

    def test_empty_logs(self):
        """Should raise MessageNotFound for a receipt without logs."""
        with pytest.raises(MessageNotFound):
            extract_message(burn_receipt([]), BURN_TX)

    def test_malformed_message_sent(self):
        """Should raise MessageNotFound when the payload cannot be decoded."""
        log = {"topics": [event_topic(MESSAGE_SENT_EVENT)], "data": "0x1234"}
        with pytest.raises(MessageNotFound):
            extract_message(burn_receipt([log]), BURN_TX)


class TestExtractNonce:
    """Tests for extract_nonce."""

    def test_unknown_layout_is_unreliable(self):
        """Should take the first log's second topic and flag it unreliable."""
        logs = [{"topics": ["0x" + "01" * 32, "0x" + "00" * 31 + "2a"], "data": "0x"}]
        nonce, reliable = extract_nonce(logs)

        assert nonce == "0x" + "00" * 31 + "2a"
        assert reliable is False

    def test_no_logs(self):
        """Should return the sentinel when nothing is available."""
        assert extract_nonce([]) == (UNKNOWN_NONCE, False)
