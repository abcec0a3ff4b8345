"""
Tests for MintClient.
"""
from __future__ import annotations

import pytest

from cctp_bridge.exceptions import (
    InvalidAttestationInput,
    InvalidCredential,
    RecipientNotRegistered,
    TransactionFailed,
)
from cctp_bridge.mint import MintClient

from conftest import ATTESTATION, DESTINATION_KEY, RECIPIENT, FakeDestinationLedger

MESSAGE = "0x" + "01" * 120
SIGNER = "0x" + "cd" * 32


class TestMintInputs:
    """Tests for input validation before any ledger call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message,attestation", [
        ("", ATTESTATION),
        (MESSAGE, ""),
        ("", ""),
        ("not-hex", ATTESTATION),
    ])
    async def test_rejects_empty_or_malformed(self, destination, message, attestation):
        """Should fail before calling the destination ledger."""
        with pytest.raises(InvalidAttestationInput):
            await MintClient(destination).mint(message, attestation, DESTINATION_KEY)
        assert destination.calls == []

    @pytest.mark.asyncio
    async def test_rejects_bad_credential(self, destination):
        """Should reject a malformed destination key."""
        with pytest.raises(InvalidCredential):
            await MintClient(destination).mint(MESSAGE, ATTESTATION, "0xabc")
        assert destination.calls == []


class TestMint:
    """Tests for the mint flow."""

    @pytest.mark.asyncio
    async def test_registered_account(self):
        """Should skip registration and report the balance delta."""
        destination = FakeDestinationLedger(registered=True, balance=250_000, mint_amount=1_000_000)

        result = await MintClient(destination).mint(MESSAGE, ATTESTATION, DESTINATION_KEY)

        assert result.success is True
        assert result.minted_amount == 1_000_000
        assert result.registration_tx_id is None
        assert "register" not in destination.calls
        assert destination.received == [(bytes.fromhex(MESSAGE[2:]), bytes.fromhex(ATTESTATION[2:]))]

    @pytest.mark.asyncio
    async def test_registers_first(self):
        """Should register the asset store before minting."""
        destination = FakeDestinationLedger(registered=False, mint_amount=10_000_000)

        result = await MintClient(destination).mint(MESSAGE, ATTESTATION, DESTINATION_KEY)

        assert result.registration_tx_id == "0x" + "e0" * 32
        assert destination.calls.index("register") < destination.calls.index("receive_message")
        assert result.minted_amount == 10_000_000

    @pytest.mark.asyncio
    async def test_rejected_on_chain(self):
        """Should raise TransactionFailed with the VM status."""
        destination = FakeDestinationLedger(success=False)

        with pytest.raises(TransactionFailed) as exc_info:
            await MintClient(destination).mint(MESSAGE, ATTESTATION, DESTINATION_KEY)

        assert "EINVALID_ATTESTATION" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_ensure_registered_noop(self, destination):
        """Should return None when already registered."""
        assert await MintClient(destination).ensure_registered("0x" + "ab" * 32, DESTINATION_KEY) is None


class TestMintRecipient:
    """Tests for minting to a recipient other than the signer."""

    @pytest.mark.asyncio
    async def test_measures_recipient_balance(self):
        """Should report the delta on the recipient, not the signing account."""
        destination = FakeDestinationLedger(signer=SIGNER, balance=5, mint_amount=1_000_000)

        result = await MintClient(destination).mint(
            MESSAGE, ATTESTATION, DESTINATION_KEY, recipient=RECIPIENT
        )

        assert result.minted_amount == 1_000_000
        assert destination.balances.get(SIGNER, 0) == 0

    @pytest.mark.asyncio
    async def test_unregistered_recipient(self):
        """Should refuse to mint when the recipient has no store and is not the signer."""
        destination = FakeDestinationLedger(registered=False, signer=SIGNER, mint_amount=1_000_000)

        with pytest.raises(RecipientNotRegistered):
            await MintClient(destination).mint(MESSAGE, ATTESTATION, DESTINATION_KEY, recipient=RECIPIENT)

        assert "register" not in destination.calls
        assert destination.received == []

    @pytest.mark.asyncio
    async def test_check_recipient(self):
        """Should pass for the signer or a registered recipient only."""
        client = MintClient(FakeDestinationLedger(registered=False, signer=SIGNER))
        await client.check_recipient(SIGNER, DESTINATION_KEY)
        with pytest.raises(RecipientNotRegistered):
            await client.check_recipient(RECIPIENT, DESTINATION_KEY)

        await MintClient(FakeDestinationLedger(signer=SIGNER)).check_recipient(RECIPIENT, DESTINATION_KEY)
