"""
Transfer orchestrator: burn on source, wait for attestation, mint on destination.

State machine:
    INIT -> BURNING -> ATTESTING -> MINTING -> {DONE | FAILED}

Each stage starts only after the previous one reached a terminal outcome.
A failure at any stage ends the attempt; the StepLedger in the returned
TransferResult shows how far it got. Whole-attempt retry is left to callers.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .amounts import from_minor_units, parse_amount, rescale_minor_units, to_minor_units
from .attestation import AttestationPoller
from .burn import BurnClient
from .config import BridgeSettings, get_settings
from .constants import get_finality_estimate_seconds
from .exceptions import (
    AttestationFailed,
    BridgeError,
    InvalidAmount,
    InvalidAttestationInput,
    RecipientNotRegistered,
)
from .logging_utils import TransferLogger
from .mint import MintClient
from .models import (
    AttestationRecord,
    HistoryEntry,
    PrerequisiteReport,
    TransferEstimate,
    TransferReceipt,
    TransferRequest,
    TransferResult,
    TransferState,
)
from .validators import (
    check_destination_address,
    check_private_key,
    validate_destination_address,
    validate_private_key,
)

logger = logging.getLogger(__name__)

# Typical Circle attestation latency on testnet (1-3 minutes)
TYPICAL_ATTESTATION_SECONDS = 180


class TransferOrchestrator:
    """Drives one or more independent transfer attempts through the three stages."""

    def __init__(
        self,
        burn_client: BurnClient,
        poller: AttestationPoller,
        mint_client: MintClient,
        *,
        source_chain: str = "base_sepolia",
        destination_chain: str = "aptos_testnet",
        default_deadline_seconds: Optional[float] = None,
        transfer_logger: Optional[TransferLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._burn = burn_client
        self._poller = poller
        self._mint = mint_client
        self._source_chain = source_chain
        self._destination_chain = destination_chain
        self._default_deadline = default_deadline_seconds
        self._log = transfer_logger or TransferLogger()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Optional[BridgeSettings] = None) -> "TransferOrchestrator":
        """Build an orchestrator wired to the EVM source and Aptos destination ledgers."""
        from .aptos import AptosDestinationLedger
        from .evm import EVMSourceLedger

        settings = settings or get_settings()
        source = EVMSourceLedger.from_settings(settings.source)
        destination = AptosDestinationLedger.from_settings(settings.destination)
        burn_client = BurnClient(
            source,
            token_messenger=settings.source.token_messenger,
            destination_domain=settings.destination.domain,
            retry_attempts=settings.retry.attempts,
            backoff_seconds=settings.retry.backoff_seconds,
        )
        return cls(
            burn_client,
            AttestationPoller.from_settings(settings.attestation),
            MintClient(destination),
            source_chain=settings.source.name,
            destination_chain=settings.destination.name,
            default_deadline_seconds=settings.default_deadline_seconds,
            transfer_logger=TransferLogger(config=settings.logging),
        )

    async def execute(self, request: TransferRequest) -> TransferResult:
        """
        Run one transfer attempt.

        Never raises for stage failures: the returned result carries
        ``success=False``, the error, and every stage outcome reached.
        """
        result = TransferResult(transfer_id=request.transfer_id)
        deadline_seconds = request.deadline_seconds or self._default_deadline
        deadline = self._clock() + deadline_seconds if deadline_seconds else None

        self._emit(request, "transfer started", {
            "amount": request.amount,
            "recipient": self._log.mask(request.recipient),
        })

        try:
            self._preflight(request)

            # Stage 1: burn on source
            result.state = TransferState.BURNING
            # Everything the mint side needs is read before funds leave the source
            source_decimals = await self._burn.source.get_decimals()
            destination_decimals = await self._mint.destination.get_decimals()
            expected_minted = rescale_minor_units(
                to_minor_units(request.amount, source_decimals), source_decimals, destination_decimals
            )
            await self._mint.check_recipient(request.recipient, request.destination_credential)
            self._emit(request, "burn submitted", {"amount": request.amount})
            async with self._log.stage_context("burn", request.transfer_id) as ctx:
                receipt = await self._burn.burn(
                    request.amount, request.recipient, request.source_credential
                )
                ctx.metadata["tx"] = receipt.source_tx_id
            result.steps.record("burn", receipt)
            result.source_tx_id = receipt.source_tx_id
            self._emit(request, "burn confirmed", {
                "tx_id": receipt.source_tx_id,
                "nonce": receipt.nonce,
                "nonce_reliable": receipt.nonce_reliable,
            })

            # Stage 2: attestation
            result.state = TransferState.ATTESTING
            self._emit(request, "awaiting attestation", {"tx_id": receipt.source_tx_id})
            async with self._log.stage_context("attestation", request.transfer_id) as ctx:
                record = await self._attest(receipt, self._remaining(deadline))
                ctx.metadata["message_hash"] = record.message_hash
            result.steps.record("attestation", record)
            self._emit(request, "attestation received", {
                "message_hash": record.message_hash,
                "attestation_length": len(record.attestation),
            })

            if not record.is_mintable:
                raise InvalidAttestationInput(
                    f"Attestation for {record.message_hash} is missing message bytes or signature"
                )

            # Stage 3: mint on destination
            result.state = TransferState.MINTING
            self._emit(request, "mint submitted", {"message_hash": record.message_hash})
            async with self._log.stage_context("mint", request.transfer_id) as ctx:
                mint_result = await self._mint.mint(
                    record.message_bytes,
                    record.attestation,
                    request.destination_credential,
                    recipient=request.recipient,
                )
                ctx.metadata["tx"] = mint_result.dest_tx_id
            result.steps.record("mint", mint_result)
            result.dest_tx_id = mint_result.dest_tx_id
            result.final_amount_minor = mint_result.minted_amount
            result.final_amount = from_minor_units(mint_result.minted_amount, destination_decimals)
            if mint_result.minted_amount != expected_minted:
                logger.warning(
                    f"[{request.transfer_id}] minted {mint_result.minted_amount} minor units, "
                    f"expected {expected_minted}"
                )
            self._emit(request, "mint confirmed", {
                "tx_id": mint_result.dest_tx_id,
                "amount": result.final_amount,
            })

            result.success = result.steps.is_complete and mint_result.success
            result.state = TransferState.DONE
            self._emit(request, "transfer completed", {
                "source_tx_id": result.source_tx_id,
                "dest_tx_id": result.dest_tx_id,
                "final_amount": result.final_amount,
            })

        except BridgeError as e:
            if isinstance(e, AttestationFailed) and "attestation" not in result.steps:
                failed = self._poller.get_record(e.message_hash)
                if failed is not None:
                    result.steps.record("attestation", failed)
            self._fail(request, result, e.message, e.code)

        except Exception as e:
            logger.exception(f"[{request.transfer_id}] unexpected error in {result.state.value}")
            self._fail(request, result, str(e), "internal_error")

        finally:
            result.finished_at = datetime.now(timezone.utc)
            self._log.log_result(result.to_dict())

        return result

    async def _attest(self, receipt: TransferReceipt, max_wait: Optional[float]) -> AttestationRecord:
        source = self._burn.source
        if receipt.message_hash:
            return await self._poller.poll(
                receipt.message_hash,
                source_tx_id=receipt.source_tx_id,
                source=source,
                known_message_bytes=receipt.message_bytes,
                max_wait_seconds=max_wait,
            )
        return await self._poller.poll_transaction(
            receipt.source_tx_id, source, max_wait_seconds=max_wait
        )

    def _preflight(self, request: TransferRequest) -> None:
        """Format checks that must fail before any network call."""
        validate_destination_address(request.recipient)
        parse_amount(request.amount)
        validate_private_key(request.source_credential, "source credential")
        validate_private_key(request.destination_credential, "destination credential")
        if request.deadline_seconds is not None and request.deadline_seconds <= 0:
            raise InvalidAmount("deadline_seconds must be positive")

    def _remaining(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return max(0.0, deadline - self._clock())

    def _fail(self, request: TransferRequest, result: TransferResult, error: str, code: str) -> None:
        result.success = False
        result.error = error
        result.error_code = code
        failed_in = result.state
        result.state = TransferState.FAILED
        self._emit(request, "transfer failed", {
            "stage": failed_in.value,
            "error": error,
            "code": code,
            "completed_steps": result.steps.completed,
        })

    def _emit(self, request: TransferRequest, event: str, details: Optional[Dict[str, Any]] = None) -> None:
        logger.info(f"[{request.transfer_id}] {event}")
        if request.on_progress is None:
            return
        try:
            request.on_progress(event, details)
        except Exception as e:
            logger.warning(f"[{request.transfer_id}] progress sink raised on '{event}': {e}")

    async def check_prerequisites(self, request: TransferRequest) -> PrerequisiteReport:
        """
        Advisory pre-flight report. Mutates nothing and never raises.

        Checks source balance, destination address format, credential
        formats, and reachability of both ledgers.
        """
        report = PrerequisiteReport()
        source = self._burn.source
        destination = self._mint.destination

        issue = check_destination_address(request.recipient)
        if issue:
            report.issues.append(issue)
        for credential, label in (
            (request.source_credential, "Source credential"),
            (request.destination_credential, "Destination credential"),
        ):
            issue = check_private_key(credential, label)
            if issue:
                report.issues.append(issue)

        try:
            await source.ping()
        except Exception as e:
            report.issues.append(f"Cannot reach source ledger {self._source_chain}: {e}")
        else:
            if check_private_key(request.source_credential, "Source credential") is None:
                await self._check_source_balance(request, report)

        try:
            if check_destination_address(request.recipient) is None:
                account = await destination.get_account(request.recipient)
                if account is None:
                    report.issues.append(
                        f"Destination account {request.recipient} does not exist on {self._destination_chain}"
                    )
                elif check_private_key(request.destination_credential, "Destination credential") is None:
                    await self._mint.check_recipient(request.recipient, request.destination_credential)
        except RecipientNotRegistered as e:
            report.issues.append(e.message)
        except Exception as e:
            report.issues.append(f"Cannot reach destination ledger {self._destination_chain}: {e}")

        return report

    async def _check_source_balance(self, request: TransferRequest, report: PrerequisiteReport) -> None:
        source = self._burn.source
        try:
            decimals = await source.get_decimals()
            required = to_minor_units(request.amount, decimals)
            address = await source.get_address(request.source_credential)
            balance = await source.get_balance(address)
        except InvalidAmount as e:
            report.issues.append(f"Amount is invalid: {e}")
            return
        except Exception as e:
            report.issues.append(f"Could not read source balance: {e}")
            return
        if balance < required:
            report.issues.append(
                f"Insufficient source balance: have {from_minor_units(balance, decimals)}, "
                f"need {request.amount}"
            )

    def estimate_transfer(self) -> TransferEstimate:
        """Expected duration and fee hints for a transfer."""
        return TransferEstimate(
            source_chain=self._source_chain,
            destination_chain=self._destination_chain,
            finality_seconds=get_finality_estimate_seconds(self._source_chain, self._destination_chain),
            attestation_seconds=TYPICAL_ATTESTATION_SECONDS,
            source_fee_hint="~0.001 ETH (gas)",
            destination_fee_hint="~0.01 APT (gas)",
        )

    async def get_history(self, address: str, limit: int = 10) -> List[HistoryEntry]:
        """Receive events for ``address`` on the destination ledger; empty on error."""
        try:
            events = await self._mint.destination.get_receive_events(address, limit)
        except BridgeError as e:
            logger.warning(f"Could not load transfer history for {address}: {e}")
            return []
        history = []
        for event in events:
            data = event.get("data") or {}
            history.append(HistoryEntry(
                sequence_number=str(event.get("sequence_number", "")),
                recipient=str(data.get("recipient", "")),
                amount=str(data.get("amount", "")),
                message_hash=str(data.get("message_hash", "")),
                tx_version=str(event.get("transaction_version", "") or ""),
            ))
        return history

    async def monitor(
        self,
        source_tx_id: str,
        callback: Callable[[str, Optional[Dict[str, Any]]], None],
        *,
        max_wait_seconds: Optional[float] = None,
    ) -> Optional[AttestationRecord]:
        """
        Follow an already-submitted burn through attestation.

        Reports ``source_confirming``, ``waiting_attestation``, then
        ``attestation_complete`` or ``error``. Returns the complete record,
        or None on error.
        """
        source = self._burn.source
        callback("source_confirming", {"tx_id": source_tx_id})
        try:
            event = await self._poller.extract_from_transaction(source_tx_id, source)
            callback("waiting_attestation", {"message_hash": event.message_hash})
            record = await self._poller.poll(
                event.message_hash,
                source_tx_id=source_tx_id,
                source=source,
                known_message_bytes=event.message_bytes,
                max_wait_seconds=max_wait_seconds,
            )
        except BridgeError as e:
            callback("error", {"error": e.message, "code": e.code})
            return None
        callback("attestation_complete", {"message_hash": record.message_hash})
        return record

    async def close(self) -> None:
        await self._poller.client.close()
        await self._burn.source.close()
        await self._mint.destination.close()

    async def __aenter__(self) -> "TransferOrchestrator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


__all__ = ["TransferOrchestrator", "TYPICAL_ATTESTATION_SECONDS"]
