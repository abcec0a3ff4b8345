"""Source-chain burn client: approve + depositForBurn + receipt extraction."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .amounts import from_minor_units, to_minor_units
from .exceptions import InsufficientBalance, MessageNotFound, NonceExpired
from .ledgers import SourceLedger
from .messages import extract_message, extract_nonce, to_hex
from .models import TransferReceipt
from .validators import (
    destination_address_to_bytes32,
    validate_destination_address,
    validate_private_key,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BurnClient:
    """
    Burns tokens on the source ledger for minting on the destination.

    Only account-nonce races (NonceExpired) are retried, separately for the
    approval and for the burn, each up to ``retry_attempts`` attempts with a
    fixed backoff. Everything else propagates on the first failure.
    """

    def __init__(
        self,
        source: SourceLedger,
        *,
        token_messenger: str,
        destination_domain: int,
        retry_attempts: int = 3,
        backoff_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._source = source
        self._token_messenger = token_messenger
        self._destination_domain = destination_domain
        self._retry_attempts = max(1, retry_attempts)
        self._backoff = backoff_seconds
        self._sleep = sleep

    @property
    def source(self) -> SourceLedger:
        return self._source

    async def burn(self, amount: str, recipient: str, credential: str) -> TransferReceipt:
        """
        Approve and burn ``amount`` for ``recipient`` on the destination chain.

        Args:
            amount: Human-readable amount, e.g. "1.0"
            recipient: Destination address (0x + 64 hex)
            credential: Source signing key

        Returns:
            TransferReceipt for the finalized burn transaction

        Raises:
            InvalidAddressFormat: Recipient has the wrong width
            InvalidCredential: Malformed signing key
            InvalidAmount: Non-positive or over-precise amount
            InsufficientBalance: Source balance below amount
            NonceExpired: Nonce race persisted through every retry
            TransactionFailed: Ledger rejected the approval or burn
        """
        mint_recipient = destination_address_to_bytes32(validate_destination_address(recipient))
        validate_private_key(credential, "source credential")

        decimals = await self._source.get_decimals()
        amount_minor = to_minor_units(amount, decimals)

        sender = await self._source.get_address(credential)
        balance = await self._source.get_balance(sender)
        if balance < amount_minor:
            raise InsufficientBalance(sender, from_minor_units(balance, decimals), amount)

        approve_tx = await self._with_nonce_retry(
            "approve",
            lambda: self._source.approve(credential, self._token_messenger, amount_minor),
        )
        logger.info(f"Approved {amount} to {self._token_messenger} in {approve_tx}")

        receipt = await self._with_nonce_retry(
            "depositForBurn",
            lambda: self._source.deposit_for_burn(
                credential,
                amount_minor,
                self._destination_domain,
                mint_recipient,
            ),
        )
        return self._build_receipt(receipt, amount_minor)

    async def _with_nonce_retry(self, operation: str, submit: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await submit()
            except NonceExpired as e:
                if attempt >= self._retry_attempts:
                    logger.error(f"{operation} nonce race persisted after {attempt} attempts: {e}")
                    raise
                logger.warning(
                    f"{operation} nonce race (attempt {attempt}/{self._retry_attempts}), "
                    f"retrying in {self._backoff}s: {e}"
                )
                await self._sleep(self._backoff)
                attempt += 1

    @staticmethod
    def _build_receipt(receipt: Dict[str, Any], amount_minor: int) -> TransferReceipt:
        tx_id = to_hex(receipt.get("transactionHash") or receipt.get("tx_hash") or "")
        logs = receipt.get("logs") or []

        message_bytes: Optional[str] = None
        message_hash: Optional[str] = None
        try:
            event = extract_message(receipt, tx_id)
        except MessageNotFound:
            logger.warning(f"No burn message in receipt for {tx_id}; attestation will re-extract")
            nonce, reliable = extract_nonce(logs)
        else:
            message_bytes = event.message_bytes
            message_hash = event.message_hash
            nonce, reliable = event.nonce, event.nonce_reliable

        logger.info(f"Burn confirmed: {tx_id} (nonce={nonce}, reliable={reliable})")
        return TransferReceipt(
            source_tx_id=tx_id,
            nonce=nonce,
            nonce_reliable=reliable,
            message_bytes=message_bytes,
            message_hash=message_hash,
            amount_minor=amount_minor,
        )


__all__ = ["BurnClient"]
