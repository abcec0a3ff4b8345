"""
Circle attestation authority client and bounded poller.

Poll state machine:
    REQUESTED -> PENDING -> {COMPLETE | FAILED | TIMED_OUT}

The poll loop has two independent exits, an attempt ceiling and a wall-clock
limit. Pending responses and transport errors consume the same attempt
counter. Terminal records are cached per message hash, so polling a message
that already reached COMPLETE or FAILED never contacts the authority again.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

import httpx

from .config import AttestationSettings
from .exceptions import (
    AttestationFailed,
    AttestationTimeout,
    MessageNotFound,
    TransportError,
)
from .ledgers import SourceLedger
from .messages import extract_message, to_hex
from .models import AttestationRecord, AttestationStatus, MessageEvent, PollState
from .validators import is_valid_message_hash

logger = logging.getLogger(__name__)


class AttestationClient:
    """HTTP client for ``GET /v1/attestations/{messageHash}``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=5.0),
                headers={"Accept": "application/json"},
            )
        return self._http_client

    async def fetch(self, message_hash: str) -> AttestationRecord:
        """
        Query the authority once.

        Returns a PENDING record on HTTP 404.

        Raises:
            TransportError: On network errors, non-404 HTTP errors or bad JSON
        """
        client = await self._get_client()
        url = f"{self._base_url}/v1/attestations/{message_hash}"
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise TransportError(f"Attestation request failed: {e}") from e

        if response.status_code == 404:
            return AttestationRecord(AttestationStatus.PENDING, message_hash)
        if response.status_code >= 400:
            raise TransportError(
                f"Attestation API error: {response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Attestation API returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise TransportError(
                f"Attestation API returned {type(data).__name__}, expected an object"
            )

        status = str(data.get("status", "pending")).lower()
        attestation = data.get("attestation") or ""
        message = data.get("message") or ""

        if status == AttestationStatus.FAILED.value:
            return AttestationRecord(AttestationStatus.FAILED, message_hash)
        if status == AttestationStatus.COMPLETE.value and attestation and attestation != "PENDING":
            return AttestationRecord(
                AttestationStatus.COMPLETE,
                message_hash,
                message_bytes=to_hex(message) if message else "",
                attestation=to_hex(attestation),
            )
        return AttestationRecord(AttestationStatus.PENDING, message_hash)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None


class AttestationPoller:
    """
    Polls the authority until an attestation is complete, failed or timed out.

    Terminal records are kept for the most recent ``max_cached_records``
    messages; older ones are evicted first.
    """

    MAX_CACHED_RECORDS = 1000

    def __init__(
        self,
        client: AttestationClient,
        *,
        poll_interval_seconds: float = 2.0,
        max_wait_seconds: float = 300.0,
        max_attempts: int = 150,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_cached_records: int = MAX_CACHED_RECORDS,
    ):
        self._client = client
        self._poll_interval = poll_interval_seconds
        self._max_wait = max_wait_seconds
        self._max_attempts = max_attempts
        self._clock = clock
        self._sleep = sleep
        self._max_cached = max_cached_records
        self._terminal: Dict[str, AttestationRecord] = {}
        self._states: Dict[str, PollState] = {}

    @classmethod
    def from_settings(
        cls,
        settings: AttestationSettings,
        client: Optional[AttestationClient] = None,
    ) -> "AttestationPoller":
        client = client or AttestationClient(
            settings.api_url, timeout_seconds=settings.request_timeout_seconds
        )
        return cls(
            client,
            poll_interval_seconds=settings.poll_interval_seconds,
            max_wait_seconds=settings.max_wait_seconds,
            max_attempts=settings.max_attempts,
        )

    @property
    def client(self) -> AttestationClient:
        return self._client

    def state(self, message_hash: str) -> Optional[PollState]:
        return self._states.get(message_hash.lower())

    def get_record(self, message_hash: str) -> Optional[AttestationRecord]:
        """Cached terminal record, if the message already reached one."""
        return self._terminal.get(message_hash.lower())

    async def check_status(self, message_hash: str) -> AttestationRecord:
        """Single non-blocking status query (cached if terminal)."""
        cached = self.get_record(message_hash)
        if cached is not None:
            return cached
        record = await self._client.fetch(message_hash)
        if record.status is AttestationStatus.FAILED:
            self._remember(record)
        return record

    async def poll(
        self,
        message_hash: str,
        *,
        source_tx_id: Optional[str] = None,
        source: Optional[SourceLedger] = None,
        known_message_bytes: Optional[str] = None,
        max_wait_seconds: Optional[float] = None,
    ) -> AttestationRecord:
        """
        Poll until the attestation for ``message_hash`` is terminal.

        Args:
            message_hash: Burn message hash (0x + 64 hex)
            source_tx_id: Burn transaction, for message-byte re-extraction
            source: Source ledger, for message-byte re-extraction
            known_message_bytes: Message bytes already extracted by the caller
            max_wait_seconds: Tighter wall-clock bound (e.g. a caller deadline)

        Returns:
            A COMPLETE record with non-empty message bytes and attestation

        Raises:
            AttestationFailed: Authority reported status 'failed'
            AttestationTimeout: Attempt or wall-clock bound exceeded
            MessageNotFound: Message bytes could not be recovered
        """
        key = message_hash.lower()
        cached = self._terminal.get(key)
        if cached is not None:
            if cached.status is AttestationStatus.FAILED:
                raise AttestationFailed(message_hash)
            return cached

        wait_limit = self._max_wait
        if max_wait_seconds is not None:
            wait_limit = max(0.0, min(wait_limit, max_wait_seconds))

        self._set_state(key, PollState.REQUESTED)
        started = self._clock()
        attempts = 0
        logger.info(f"Polling attestation for {message_hash}")

        while True:
            elapsed = self._clock() - started
            if attempts >= self._max_attempts or elapsed >= wait_limit:
                self._set_state(key, PollState.TIMED_OUT)
                logger.error(
                    f"Attestation for {message_hash} timed out after "
                    f"{attempts} attempts / {elapsed:.1f}s"
                )
                raise AttestationTimeout(message_hash, attempts, elapsed)

            attempts += 1
            try:
                record = await self._client.fetch(message_hash)
            except TransportError as e:
                logger.warning(f"Attestation attempt {attempts} failed, retrying: {e}")
                record = None

            if record is not None and record.status is AttestationStatus.COMPLETE:
                message_bytes = record.message_bytes or known_message_bytes
                if not message_bytes:
                    message_bytes = await self._recover_message_bytes(source_tx_id, source)
                final = AttestationRecord(
                    AttestationStatus.COMPLETE,
                    message_hash,
                    message_bytes=message_bytes,
                    attestation=record.attestation,
                )
                self._remember(final)
                logger.info(f"Attestation for {message_hash} complete after {attempts} attempts")
                return final

            if record is not None and record.status is AttestationStatus.FAILED:
                self._remember(record)
                logger.error(f"Attestation authority reported failure for {message_hash}")
                raise AttestationFailed(message_hash)

            self._set_state(key, PollState.PENDING)
            logger.debug(f"Attestation for {message_hash} pending (attempt {attempts})")

            remaining = wait_limit - (self._clock() - started)
            if attempts < self._max_attempts and remaining > 0:
                await self._sleep(min(self._poll_interval, remaining))

    async def poll_transaction(
        self,
        source_tx_id: str,
        source: SourceLedger,
        *,
        max_wait_seconds: Optional[float] = None,
    ) -> AttestationRecord:
        """Extract the burn message from a transaction, then poll for it."""
        event = await self.extract_from_transaction(source_tx_id, source)
        return await self.poll(
            event.message_hash,
            source_tx_id=source_tx_id,
            source=source,
            known_message_bytes=event.message_bytes,
            max_wait_seconds=max_wait_seconds,
        )

    async def extract_from_transaction(self, source_tx_id: str, source: SourceLedger) -> MessageEvent:
        receipt = await source.get_transaction_receipt(source_tx_id)
        if not receipt:
            raise MessageNotFound(source_tx_id)
        return extract_message(receipt, source_tx_id)

    @staticmethod
    def validate_record(record: AttestationRecord) -> bool:
        """Whether a record is complete and usable for minting."""
        return (
            record.status is AttestationStatus.COMPLETE
            and is_valid_message_hash(record.message_hash)
            and len(record.message_bytes) > 0
            and len(record.attestation) > 0
        )

    async def _recover_message_bytes(
        self,
        source_tx_id: Optional[str],
        source: Optional[SourceLedger],
    ) -> str:
        if not source_tx_id or source is None:
            raise MessageNotFound(source_tx_id or "<unknown>")
        logger.info(f"Authority omitted message bytes; re-extracting from {source_tx_id}")
        event = await self.extract_from_transaction(source_tx_id, source)
        return event.message_bytes

    def _remember(self, record: AttestationRecord) -> None:
        key = record.message_hash.lower()
        self._terminal[key] = record
        self._set_state(
            key,
            PollState.COMPLETE if record.status is AttestationStatus.COMPLETE else PollState.FAILED,
        )

    def _set_state(self, key: str, state: PollState) -> None:
        # Most recently touched last; evict from the front
        self._states.pop(key, None)
        self._states[key] = state
        while len(self._states) > self._max_cached:
            evicted = next(iter(self._states))
            del self._states[evicted]
            self._terminal.pop(evicted, None)


__all__ = [
    "AttestationClient",
    "AttestationPoller",
]
