"""
EVM source ledger over JSON-RPC.

Signs locally with eth_account and talks to the node with plain JSON-RPC
over httpx. Node errors about stale or duplicate nonces surface as
NonceExpired so the burn client can retry them.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from eth_abi import decode, encode
from eth_account import Account
from web3 import Web3

from .config import SourceChainSettings
from .constants import (
    DEPOSIT_FOR_BURN_SELECTOR,
    ERC20_APPROVE_SELECTOR,
    ERC20_BALANCE_OF_SELECTOR,
    ERC20_DECIMALS_SELECTOR,
)
from .exceptions import NonceExpired, TransactionFailed, TransportError
from .ledgers import SourceLedger
from .validators import validate_private_key

logger = logging.getLogger(__name__)

# Node error fragments that mean the nonce we signed with is no longer usable
NONCE_ERROR_MARKERS = (
    "nonce too low",
    "replacement transaction underpriced",
    "already known",
    "nonce has already been used",
)

DEFAULT_PRIORITY_FEE_WEI = 1_000_000_000  # 1 gwei


def is_nonce_error(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in NONCE_ERROR_MARKERS)


class EVMRPCClient:
    """JSON-RPC client for an EVM node."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._rpc_url = rpc_url
        self._timeout = timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None
        self._request_id = 0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make JSON-RPC call."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        client = await self._get_client()
        try:
            response = await client.post(
                self._rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"RPC {method} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"RPC {method} returned invalid JSON: {e}") from e

        if "error" in result:
            error = result["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            if is_nonce_error(message):
                raise NonceExpired(f"RPC {method} rejected nonce: {message}")
            raise TransportError(f"RPC error in {method}: {message}")

        return result.get("result")

    async def chain_id(self) -> int:
        result = await self._call("eth_chainId")
        return int(result, 16)

    async def get_gas_price(self) -> int:
        """Get current gas price in wei."""
        result = await self._call("eth_gasPrice")
        return int(result, 16)

    async def get_max_priority_fee(self) -> int:
        """Get max priority fee for EIP-1559."""
        try:
            result = await self._call("eth_maxPriorityFeePerGas")
            return int(result, 16)
        except TransportError:
            # Fallback for chains that don't support this
            return DEFAULT_PRIORITY_FEE_WEI

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        """Estimate gas for a transaction."""
        result = await self._call("eth_estimateGas", [tx])
        return int(result, 16)

    async def get_nonce(self, address: str) -> int:
        """Get transaction count (nonce) for address."""
        result = await self._call("eth_getTransactionCount", [address, "pending"])
        return int(result, 16)

    async def call(self, to: str, data: str) -> str:
        return await self._call("eth_call", [{"to": to, "data": data}, "latest"])

    async def send_raw_transaction(self, signed_tx: str) -> str:
        """Broadcast signed transaction."""
        return await self._call("eth_sendRawTransaction", [signed_tx])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Get transaction receipt."""
        return await self._call("eth_getTransactionReceipt", [tx_hash])

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None


class EVMSourceLedger(SourceLedger):
    """USDC on an EVM chain, burned through the CCTP TokenMessenger."""

    name = "evm"

    def __init__(
        self,
        rpc: EVMRPCClient,
        *,
        chain_id: int,
        usdc_address: str,
        token_messenger: str,
        confirmation_timeout_seconds: float = 120.0,
        confirmation_poll_seconds: float = 2.0,
        gas_limit_buffer_percent: int = 20,
    ):
        self._rpc = rpc
        self._chain_id = chain_id
        self._usdc = Web3.to_checksum_address(usdc_address)
        self._token_messenger = Web3.to_checksum_address(token_messenger)
        self._confirmation_timeout = confirmation_timeout_seconds
        self._poll_interval = confirmation_poll_seconds
        self._gas_buffer = gas_limit_buffer_percent
        self._decimals: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: SourceChainSettings) -> "EVMSourceLedger":
        return cls(
            EVMRPCClient(settings.rpc_url, timeout_seconds=settings.request_timeout_seconds),
            chain_id=settings.chain_id,
            usdc_address=settings.usdc_address,
            token_messenger=settings.token_messenger,
            confirmation_timeout_seconds=settings.confirmation_timeout_seconds,
            confirmation_poll_seconds=settings.confirmation_poll_seconds,
            gas_limit_buffer_percent=settings.gas_limit_buffer_percent,
        )

    @property
    def rpc(self) -> EVMRPCClient:
        return self._rpc

    async def get_address(self, credential: str) -> str:
        return Account.from_key(validate_private_key(credential, "source credential")).address

    async def get_balance(self, address: str) -> int:
        data = ERC20_BALANCE_OF_SELECTOR + encode(
            ["address"], [Web3.to_checksum_address(address)]
        ).hex()
        result = await self._rpc.call(self._usdc, data)
        return decode(["uint256"], _hex_bytes(result))[0]

    async def get_decimals(self) -> int:
        if self._decimals is None:
            result = await self._rpc.call(self._usdc, ERC20_DECIMALS_SELECTOR)
            self._decimals = decode(["uint8"], _hex_bytes(result))[0]
        return self._decimals

    async def get_nonce(self, address: str) -> int:
        return await self._rpc.get_nonce(address)

    async def approve(self, credential: str, spender: str, amount: int) -> str:
        data = ERC20_APPROVE_SELECTOR + encode(
            ["address", "uint256"], [Web3.to_checksum_address(spender), amount]
        ).hex()
        receipt = await self._transact(credential, self._usdc, data, "approve")
        return receipt["transactionHash"]

    async def deposit_for_burn(
        self,
        credential: str,
        amount: int,
        destination_domain: int,
        mint_recipient: bytes,
    ) -> Dict[str, Any]:
        data = DEPOSIT_FOR_BURN_SELECTOR + encode(
            ["uint256", "uint32", "bytes32", "address"],
            [amount, destination_domain, mint_recipient, self._usdc],
        ).hex()
        return await self._transact(credential, self._token_messenger, data, "depositForBurn")

    async def get_transaction_receipt(self, tx_id: str) -> Optional[Dict[str, Any]]:
        return await self._rpc.get_transaction_receipt(tx_id)

    async def ping(self) -> None:
        chain_id = await self._rpc.chain_id()
        if chain_id != self._chain_id:
            raise TransportError(
                f"RPC endpoint serves chain {chain_id}, expected {self._chain_id}"
            )

    async def close(self) -> None:
        await self._rpc.close()

    async def _transact(self, credential: str, to: str, data: str, label: str) -> Dict[str, Any]:
        """Sign, broadcast and wait for one contract call."""
        account = Account.from_key(validate_private_key(credential, "source credential"))
        nonce = await self._rpc.get_nonce(account.address)
        gas = await self._rpc.estimate_gas({"from": account.address, "to": to, "data": data})
        gas_limit = gas * (100 + self._gas_buffer) // 100
        gas_price = await self._rpc.get_gas_price()
        priority_fee = await self._rpc.get_max_priority_fee()

        tx = {
            "type": 2,
            "chainId": self._chain_id,
            "nonce": nonce,
            "to": to,
            "value": 0,
            "data": data,
            "gas": gas_limit,
            "maxFeePerGas": gas_price * 2 + priority_fee,
            "maxPriorityFeePerGas": priority_fee,
        }
        signed = account.sign_transaction(tx)
        raw = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction")
        raw_hex = raw.hex()
        if not raw_hex.startswith("0x"):
            raw_hex = "0x" + raw_hex

        logger.info(f"Broadcasting {label} from {account.address} (nonce={nonce})")
        tx_hash = await self._rpc.send_raw_transaction(raw_hex)
        return await self._wait_for_confirmation(tx_hash, label)

    async def _wait_for_confirmation(self, tx_hash: str, label: str) -> Dict[str, Any]:
        """Wait until the transaction is mined; raise if it reverted."""
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            receipt = await self._rpc.get_transaction_receipt(tx_hash)
            if receipt:
                status = int(receipt.get("status", "0x0"), 16)
                if status == 0:
                    raise TransactionFailed(tx_hash, f"{label} reverted")
                logger.info(f"{label} confirmed: {tx_hash}")
                return receipt

            elapsed = loop.time() - start_time
            if elapsed > self._confirmation_timeout:
                raise TransportError(
                    f"{label} transaction {tx_hash} not confirmed after {self._confirmation_timeout}s"
                )
            await asyncio.sleep(self._poll_interval)


def _hex_bytes(value: Optional[str]) -> bytes:
    if not value or value == "0x":
        raise TransportError("eth_call returned no data")
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


__all__ = [
    "EVMRPCClient",
    "EVMSourceLedger",
    "is_nonce_error",
]
