"""
Aptos destination ledger over the node REST API.

Transactions are built as JSON entry-function payloads, turned into a
signing message by the node's ``/transactions/encode_submission`` endpoint,
signed locally with ed25519 (PyNaCl) and submitted as JSON.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from nacl.signing import SigningKey

from .config import DestinationChainSettings
from .constants import USDC_DECIMALS
from .exceptions import TransactionFailed, TransportError
from .ledgers import DestinationLedger
from .validators import validate_private_key

logger = logging.getLogger(__name__)

COIN_REGISTER_FUNCTION = "0x1::coin::register"

# Single-key ed25519 authentication scheme byte
ED25519_SCHEME = b"\x00"


class AptosAccount:
    """An ed25519 Aptos account derived from a 32-byte private key."""

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key

    @classmethod
    def load(cls, private_key: str) -> "AptosAccount":
        key = validate_private_key(private_key, "destination credential")
        return cls(SigningKey(bytes.fromhex(key[2:])))

    @classmethod
    def generate(cls) -> "AptosAccount":
        return cls(SigningKey.generate())

    @property
    def private_key(self) -> str:
        return "0x" + bytes(self._signing_key).hex()

    @property
    def public_key(self) -> str:
        return "0x" + bytes(self._signing_key.verify_key).hex()

    @property
    def address(self) -> str:
        auth_key = hashlib.sha3_256(bytes(self._signing_key.verify_key) + ED25519_SCHEME)
        return "0x" + auth_key.hexdigest()

    def sign(self, message: bytes) -> bytes:
        return self._signing_key.sign(message).signature


class AptosRestClient:
    """Minimal client for the Aptos fullnode REST API (``/v1``)."""

    def __init__(
        self,
        node_url: str,
        *,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._node_url = node_url.rstrip("/")
        self._timeout = timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        return self._http_client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        allow_404: bool = False,
    ) -> Any:
        client = await self._get_client()
        url = f"{self._node_url}{path}"
        try:
            response = await client.request(method, url, json=json, params=params)
        except httpx.HTTPError as e:
            raise TransportError(f"Aptos {method} {path} failed: {e}") from e

        if response.status_code == 404 and allow_404:
            return None
        if response.status_code >= 400:
            raise TransportError(
                f"Aptos API error on {path}: {response.status_code} {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Aptos API returned invalid JSON on {path}: {e}") from e

    async def get_account(self, address: str) -> Optional[Dict[str, Any]]:
        return await self._request("GET", f"/accounts/{address}", allow_404=True)

    async def get_account_resource(self, address: str, resource_type: str) -> Optional[Dict[str, Any]]:
        return await self._request(
            "GET", f"/accounts/{address}/resource/{resource_type}", allow_404=True
        )

    async def get_account_transactions(self, address: str, limit: int = 25) -> List[Dict[str, Any]]:
        result = await self._request(
            "GET", f"/accounts/{address}/transactions", params={"limit": limit}, allow_404=True
        )
        return result or []

    async def encode_submission(self, request: Dict[str, Any]) -> bytes:
        """Ask the node for the BCS signing message of an unsigned transaction."""
        encoded = await self._request("POST", "/transactions/encode_submission", json=request)
        return bytes.fromhex(encoded[2:] if encoded.startswith("0x") else encoded)

    async def submit_transaction(self, signed_request: Dict[str, Any]) -> str:
        result = await self._request("POST", "/transactions", json=signed_request)
        return result["hash"]

    async def get_transaction_by_hash(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self._request("GET", f"/transactions/by_hash/{tx_hash}", allow_404=True)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None


class AptosDestinationLedger(DestinationLedger):
    """USDC coin on Aptos, minted through the CCTP receiver module."""

    name = "aptos"

    def __init__(
        self,
        rest: AptosRestClient,
        *,
        coin_type: str,
        receive_function: str,
        receive_event_type: str,
        max_gas_amount: int = 200_000,
        gas_unit_price: int = 100,
        expiration_seconds: int = 600,
        confirmation_timeout_seconds: float = 60.0,
        confirmation_poll_seconds: float = 1.0,
    ):
        self._rest = rest
        self._coin_type = coin_type
        self._receive_function = receive_function
        self._receive_event_type = receive_event_type
        self._max_gas_amount = max_gas_amount
        self._gas_unit_price = gas_unit_price
        self._expiration_seconds = expiration_seconds
        self._confirmation_timeout = confirmation_timeout_seconds
        self._poll_interval = confirmation_poll_seconds
        self._decimals: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: DestinationChainSettings) -> "AptosDestinationLedger":
        return cls(
            AptosRestClient(settings.node_url, timeout_seconds=settings.request_timeout_seconds),
            coin_type=settings.usdc_coin_type,
            receive_function=settings.receive_function,
            receive_event_type=settings.receive_event_type,
            max_gas_amount=settings.max_gas_amount,
            gas_unit_price=settings.gas_unit_price,
            expiration_seconds=settings.expiration_seconds,
            confirmation_timeout_seconds=settings.confirmation_timeout_seconds,
            confirmation_poll_seconds=settings.confirmation_poll_seconds,
        )

    @property
    def rest(self) -> AptosRestClient:
        return self._rest

    @property
    def coin_store_type(self) -> str:
        return f"0x1::coin::CoinStore<{self._coin_type}>"

    async def get_address(self, credential: str) -> str:
        return AptosAccount.load(credential).address

    async def get_balance(self, address: str) -> int:
        store = await self._rest.get_account_resource(address, self.coin_store_type)
        if store is None:
            return 0
        return int(store["data"]["coin"]["value"])

    async def get_decimals(self) -> int:
        if self._decimals is None:
            coin_address = self._coin_type.split("::", 1)[0]
            info = await self._rest.get_account_resource(
                coin_address, f"0x1::coin::CoinInfo<{self._coin_type}>"
            )
            if info is None:
                logger.warning(f"No CoinInfo for {self._coin_type}; assuming {USDC_DECIMALS} decimals")
                self._decimals = USDC_DECIMALS
            else:
                self._decimals = int(info["data"]["decimals"])
        return self._decimals

    async def is_registered(self, address: str) -> bool:
        return await self._rest.get_account_resource(address, self.coin_store_type) is not None

    async def register(self, credential: str) -> str:
        account = AptosAccount.load(credential)
        tx = await self._submit_entry_function(
            account, COIN_REGISTER_FUNCTION, [self._coin_type], []
        )
        if not tx.get("success", False):
            raise TransactionFailed(tx["hash"], tx.get("vm_status"))
        logger.info(f"Registered {self._coin_type} store for {account.address}: {tx['hash']}")
        return tx["hash"]

    async def receive_message(self, credential: str, message: bytes, attestation: bytes) -> Dict[str, Any]:
        account = AptosAccount.load(credential)
        tx = await self._submit_entry_function(
            account,
            self._receive_function,
            [],
            ["0x" + message.hex(), "0x" + attestation.hex()],
        )
        return {
            "hash": tx["hash"],
            "success": bool(tx.get("success", False)),
            "vm_status": tx.get("vm_status"),
        }

    async def get_transaction(self, tx_id: str) -> Optional[Dict[str, Any]]:
        return await self._rest.get_transaction_by_hash(tx_id)

    async def get_account(self, address: str) -> Optional[Dict[str, Any]]:
        return await self._rest.get_account(address)

    async def get_receive_events(self, address: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Receive events emitted by ``address``'s own transactions, newest first."""
        transactions = await self._rest.get_account_transactions(address, limit=max(limit, 25))
        events = []
        for tx in transactions:
            for event in tx.get("events") or []:
                if event.get("type") == self._receive_event_type:
                    events.append({**event, "transaction_version": tx.get("version")})
        events.reverse()
        return events[:limit]

    async def close(self) -> None:
        await self._rest.close()

    async def _submit_entry_function(
        self,
        account: AptosAccount,
        function: str,
        type_arguments: List[str],
        arguments: List[Any],
    ) -> Dict[str, Any]:
        """Build, sign, submit and wait for one entry-function transaction."""
        info = await self._rest.get_account(account.address)
        if info is None:
            raise TransactionFailed("", f"sender account {account.address} does not exist")

        request = {
            "sender": account.address,
            "sequence_number": str(info["sequence_number"]),
            "max_gas_amount": str(self._max_gas_amount),
            "gas_unit_price": str(self._gas_unit_price),
            "expiration_timestamp_secs": str(int(time.time()) + self._expiration_seconds),
            "payload": {
                "type": "entry_function_payload",
                "function": function,
                "type_arguments": type_arguments,
                "arguments": arguments,
            },
        }
        signing_message = await self._rest.encode_submission(request)
        signed_request = {
            **request,
            "signature": {
                "type": "ed25519_signature",
                "public_key": account.public_key,
                "signature": "0x" + account.sign(signing_message).hex(),
            },
        }
        tx_hash = await self._rest.submit_transaction(signed_request)
        logger.info(f"Submitted {function} from {account.address}: {tx_hash}")
        return await self._wait_for_transaction(tx_hash)

    async def _wait_for_transaction(self, tx_hash: str) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            tx = await self._rest.get_transaction_by_hash(tx_hash)
            if tx is not None and tx.get("type") != "pending_transaction":
                return tx

            if loop.time() - start_time > self._confirmation_timeout:
                raise TransportError(
                    f"Aptos transaction {tx_hash} not committed after {self._confirmation_timeout}s"
                )
            await asyncio.sleep(self._poll_interval)


__all__ = [
    "AptosAccount",
    "AptosRestClient",
    "AptosDestinationLedger",
    "COIN_REGISTER_FUNCTION",
]
