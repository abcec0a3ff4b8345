"""Circle CCTP domain mappings, testnet contract addresses and event signatures.

Defaults target Base Sepolia as the source chain and Aptos testnet as the
destination chain.

Reference: https://developers.circle.com/cctp/evm-smart-contracts
"""
from __future__ import annotations

# CCTP Domain IDs (assigned by Circle)
CCTP_DOMAINS: dict[str, int] = {
    "ethereum": 0,
    "avalanche": 1,
    "optimism": 2,
    "arbitrum": 3,
    "solana": 5,
    "base": 6,
    "polygon": 7,
    "sui": 8,
    "aptos": 9,
    "unichain": 10,
}

# Base Sepolia CCTP contracts
BASE_SEPOLIA_CHAIN_ID = 84532
BASE_SEPOLIA_RPC_URL = "https://sepolia.base.org"
BASE_SEPOLIA_TOKEN_MESSENGER = "0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5"
BASE_SEPOLIA_USDC = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"

# Aptos testnet CCTP packages and objects
APTOS_TESTNET_NODE_URL = "https://fullnode.testnet.aptoslabs.com/v1"
APTOS_USDC_ADDRESS = "0x69091fbab5f7d635ee7ac5098cf0c1efbe31d68fec0f2cd565e8d168daf52832"
APTOS_USDC_COIN_TYPE = f"{APTOS_USDC_ADDRESS}::coin::USDC"
APTOS_RECEIVER_MODULE = "0xba916e9cbf294e552e4281dfc227fadbd3413d81c2fc233816f85dd89d53f54c"
APTOS_RECEIVE_FUNCTION = f"{APTOS_RECEIVER_MODULE}::cctp_receiver::receive_cctp_usdc"
APTOS_RECEIVE_EVENT_TYPE = f"{APTOS_RECEIVER_MODULE}::cctp_receiver::CCTPReceiveEvent"

# Circle Attestation API (V1 path layout: /v1/attestations/{messageHash})
CIRCLE_ATTESTATION_API_URL = "https://iris-api.circle.com"
CIRCLE_ATTESTATION_API_SANDBOX_URL = "https://iris-api-sandbox.circle.com"

# Attestation polling bounds
ATTESTATION_POLL_INTERVAL_SECONDS = 2.0
ATTESTATION_MAX_WAIT_SECONDS = 300.0
ATTESTATION_MAX_ATTEMPTS = 150

# Burn/approval nonce-race retry bounds
NONCE_RETRY_ATTEMPTS = 3
NONCE_RETRY_BACKOFF_SECONDS = 2.0

# Address widths in bytes
EVM_ADDRESS_BYTES = 20
APTOS_ADDRESS_BYTES = 32
MESSAGE_HASH_HEX_LENGTH = 66

# Token decimals
USDC_DECIMALS = 6

# Burn events, in the order they are tried when extracting the message.
MESSAGE_SENT_EVENT = "MessageSent(bytes)"
DEPOSIT_FOR_BURN_EVENT = (
    "DepositForBurn(uint64,address,uint256,address,bytes32,uint32,bytes32,bytes32)"
)

# ERC-20 / CCTP function selectors
ERC20_APPROVE_SELECTOR = "0x095ea7b3"
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"
ERC20_DECIMALS_SELECTOR = "0x313ce567"
DEPOSIT_FOR_BURN_SELECTOR = "0x6fd3504e"

# Typical finality times (in seconds)
ESTIMATED_FINALITY_TIMES: dict[str, int] = {
    "ethereum": 1200,  # ~20 min (L1 finality)
    "optimism": 780,
    "arbitrum": 780,
    "base": 780,
    "base_sepolia": 20,
    "polygon": 900,
    "aptos": 5,
    "aptos_testnet": 5,
}


def get_finality_estimate_seconds(source_chain: str, destination_chain: str) -> int:
    """Estimate on-chain time in seconds from source and destination finality."""
    return (
        ESTIMATED_FINALITY_TIMES.get(source_chain, 900)
        + ESTIMATED_FINALITY_TIMES.get(destination_chain, 900)
    )


__all__ = [
    "CCTP_DOMAINS",
    "BASE_SEPOLIA_CHAIN_ID",
    "BASE_SEPOLIA_RPC_URL",
    "BASE_SEPOLIA_TOKEN_MESSENGER",
    "BASE_SEPOLIA_USDC",
    "APTOS_TESTNET_NODE_URL",
    "APTOS_USDC_ADDRESS",
    "APTOS_USDC_COIN_TYPE",
    "APTOS_RECEIVER_MODULE",
    "APTOS_RECEIVE_FUNCTION",
    "APTOS_RECEIVE_EVENT_TYPE",
    "CIRCLE_ATTESTATION_API_URL",
    "CIRCLE_ATTESTATION_API_SANDBOX_URL",
    "ATTESTATION_POLL_INTERVAL_SECONDS",
    "ATTESTATION_MAX_WAIT_SECONDS",
    "ATTESTATION_MAX_ATTEMPTS",
    "NONCE_RETRY_ATTEMPTS",
    "NONCE_RETRY_BACKOFF_SECONDS",
    "EVM_ADDRESS_BYTES",
    "APTOS_ADDRESS_BYTES",
    "MESSAGE_HASH_HEX_LENGTH",
    "USDC_DECIMALS",
    "MESSAGE_SENT_EVENT",
    "DEPOSIT_FOR_BURN_EVENT",
    "ERC20_APPROVE_SELECTOR",
    "ERC20_BALANCE_OF_SELECTOR",
    "ERC20_DECIMALS_SELECTOR",
    "DEPOSIT_FOR_BURN_SELECTOR",
    "ESTIMATED_FINALITY_TIMES",
    "get_finality_estimate_seconds",
]
