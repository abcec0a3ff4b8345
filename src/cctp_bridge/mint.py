"""Destination-chain mint client: register if needed, receive message, measure delta."""
from __future__ import annotations

import logging
from typing import Optional

from .exceptions import RecipientNotRegistered, TransactionFailed
from .ledgers import DestinationLedger
from .models import MintResult
from .validators import validate_destination_address, validate_hex_payload, validate_private_key

logger = logging.getLogger(__name__)


class MintClient:
    """
    Mints on the destination ledger from a burn message and its attestation.

    The minted amount is the recipient's balance delta across the mint, not a
    value read from the transaction, since the receiver's event layout is not
    stable across contract versions. The recipient is the message's mint
    recipient, which need not be the signing account. Failures are terminal;
    retrying a whole attempt is the caller's decision.
    """

    def __init__(self, destination: DestinationLedger):
        self._destination = destination

    @property
    def destination(self) -> DestinationLedger:
        return self._destination

    async def mint(
        self,
        message_bytes: str,
        attestation: str,
        credential: str,
        recipient: Optional[str] = None,
    ) -> MintResult:
        """
        Submit the receive/mint transaction.

        Args:
            message_bytes: Burn message (0x hex)
            attestation: Authority signature (0x hex)
            credential: Destination signing key
            recipient: Mint recipient encoded in the message; defaults to the signer

        Raises:
            InvalidAttestationInput: Empty or non-hex message/attestation
            InvalidCredential: Malformed signing key
            InvalidAddressFormat: Malformed recipient
            RecipientNotRegistered: Recipient cannot hold the asset
            TransactionFailed: Registration or mint rejected on-chain
        """
        message = validate_hex_payload(message_bytes, "message bytes")
        signature = validate_hex_payload(attestation, "attestation")
        validate_private_key(credential, "destination credential")
        if recipient is not None:
            recipient = validate_destination_address(recipient)

        address = recipient or await self._destination.get_address(credential)
        registration_tx = await self.ensure_registered(address, credential)

        balance_before = await self._destination.get_balance(address)
        logger.info(f"Minting to {address} (balance before: {balance_before})")

        result = await self._destination.receive_message(credential, message, signature)
        tx_id = str(result.get("hash", ""))
        if not result.get("success", False):
            vm_status = result.get("vm_status")
            logger.error(f"Mint transaction {tx_id} rejected: {vm_status}")
            raise TransactionFailed(tx_id, vm_status)

        balance_after = await self._destination.get_balance(address)
        minted = balance_after - balance_before
        logger.info(f"Mint confirmed: {tx_id} (+{minted} minor units)")

        return MintResult(
            dest_tx_id=tx_id,
            success=True,
            minted_amount=minted,
            registration_tx_id=registration_tx,
            vm_status=result.get("vm_status"),
        )

    async def ensure_registered(self, address: str, credential: str) -> Optional[str]:
        """
        Register the asset for ``address`` unless it already is; returns the tx id if run.

        Only the signing account can register itself, so an unregistered
        ``address`` owned by someone else raises RecipientNotRegistered.
        """
        if await self._destination.is_registered(address):
            logger.debug(f"{address} already registered for the asset")
            return None
        signer = await self._destination.get_address(credential)
        if not _same_address(address, signer):
            raise RecipientNotRegistered(address)
        logger.info(f"Registering asset store for {address}")
        return await self._destination.register(credential)

    async def check_recipient(self, recipient: str, credential: str) -> None:
        """
        Read-only check that a mint to ``recipient`` can land.

        Passes when the signer is the recipient (registration happens at mint
        time) or the recipient already holds a store for the asset.
        """
        signer = await self._destination.get_address(credential)
        if _same_address(recipient, signer):
            return
        if not await self._destination.is_registered(recipient):
            raise RecipientNotRegistered(recipient)


def _same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


__all__ = ["MintClient"]
