"""
Burn message extraction from source-chain event logs.

The authority's event shape differs across contract versions, so extraction
walks an ordered list of matchers and uses the first one whose topic appears
in the receipt's logs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from .constants import DEPOSIT_FOR_BURN_EVENT, MESSAGE_SENT_EVENT
from .exceptions import MessageNotFound
from .models import MessageEvent

logger = logging.getLogger(__name__)

# CCTP message header: version(4) | sourceDomain(4) | destinationDomain(4) | nonce(8)
_NONCE_OFFSET = 12
_NONCE_LENGTH = 8

UNKNOWN_NONCE = "0"


def to_hex(value: Any) -> str:
    """Normalize bytes / HexBytes / str to a lower-case 0x hex string."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value).lower()
    return text if text.startswith("0x") else f"0x{text}"


def _data_bytes(log: Dict[str, Any]) -> bytes:
    return bytes.fromhex(to_hex(log.get("data", "0x"))[2:])


def event_topic(signature: str) -> str:
    return "0x" + keccak(text=signature).hex()


def _decode_message_sent(log: Dict[str, Any]) -> bytes:
    (message,) = decode(["bytes"], _data_bytes(log))
    return message


def _decode_deposit_for_burn(log: Dict[str, Any]) -> bytes:
    # No standalone message in this event; the raw event data stands in for it.
    return _data_bytes(log)


@dataclass(frozen=True)
class EventMatcher:
    """One known burn event shape."""
    signature: str
    decode_message: Callable[[Dict[str, Any]], bytes]

    @property
    def topic(self) -> str:
        return event_topic(self.signature)

    def find(self, logs: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        topic = self.topic
        for log in logs:
            topics = log.get("topics") or []
            if topics and to_hex(topics[0]) == topic:
                return log
        return None


# Priority order matters: the first matcher with a hit wins.
EVENT_MATCHERS: Tuple[EventMatcher, ...] = (
    EventMatcher(MESSAGE_SENT_EVENT, _decode_message_sent),
    EventMatcher(DEPOSIT_FOR_BURN_EVENT, _decode_deposit_for_burn),
)


def message_hash(message: bytes) -> str:
    return "0x" + keccak(message).hex()


def extract_nonce(logs: List[Dict[str, Any]]) -> Tuple[str, bool]:
    """
    Best-effort authority nonce from a burn receipt's logs.

    Returns (nonce, reliable). The DepositForBurn indexed nonce and the
    MessageSent header nonce are reliable; the first-log-topic fallback is
    not, and neither is the "0" sentinel.
    """
    deposit = EVENT_MATCHERS[1].find(logs)
    if deposit is not None:
        topics = deposit.get("topics") or []
        if len(topics) > 1:
            return str(int(to_hex(topics[1]), 16)), True

    sent = EVENT_MATCHERS[0].find(logs)
    if sent is not None:
        try:
            message = _decode_message_sent(sent)
        except DecodingError as e:
            logger.debug(f"Could not decode MessageSent for nonce: {e}")
        else:
            if len(message) >= _NONCE_OFFSET + _NONCE_LENGTH:
                nonce = int.from_bytes(message[_NONCE_OFFSET:_NONCE_OFFSET + _NONCE_LENGTH], "big")
                return str(nonce), True

    if logs:
        topics = logs[0].get("topics") or []
        if len(topics) > 1:
            logger.warning("Burn event layout not recognized; nonce taken from first log topic is unreliable")
            return to_hex(topics[1]), False

    return UNKNOWN_NONCE, False


def extract_message(receipt: Dict[str, Any], tx_id: str) -> MessageEvent:
    """
    Extract the burn message from a transaction receipt.

    Raises:
        MessageNotFound: If no known event signature matches any log
    """
    logs = receipt.get("logs") or []
    for matcher in EVENT_MATCHERS:
        log = matcher.find(logs)
        if log is None:
            continue
        try:
            message = matcher.decode_message(log)
        except DecodingError as e:
            logger.error(f"Malformed {matcher.signature} log in {tx_id}: {e}")
            raise MessageNotFound(tx_id, [matcher.topic]) from e
        nonce, reliable = extract_nonce(logs)
        logger.debug(f"Found {matcher.signature} in {tx_id} ({len(message)} message bytes)")
        return MessageEvent(
            message_hash=message_hash(message),
            message_bytes=to_hex(message),
            event_signature=matcher.signature,
            nonce=nonce,
            nonce_reliable=reliable,
            sender=str(receipt.get("from", "")),
        )

    topics = [to_hex(log["topics"][0]) for log in logs if log.get("topics")]
    raise MessageNotFound(tx_id, topics)


__all__ = [
    "EventMatcher",
    "EVENT_MATCHERS",
    "UNKNOWN_NONCE",
    "event_topic",
    "extract_message",
    "extract_nonce",
    "message_hash",
    "to_hex",
]
