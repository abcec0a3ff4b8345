"""
Configuration for cctp-bridge.

Settings load from environment variables with prefix CCTP_BRIDGE_ and
nested delimiter "__", e.g. CCTP_BRIDGE_SOURCE__RPC_URL or
CCTP_BRIDGE_ATTESTATION__MAX_WAIT_SECONDS.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from .constants import (
    APTOS_RECEIVE_EVENT_TYPE,
    APTOS_RECEIVE_FUNCTION,
    APTOS_TESTNET_NODE_URL,
    APTOS_USDC_COIN_TYPE,
    ATTESTATION_MAX_ATTEMPTS,
    ATTESTATION_MAX_WAIT_SECONDS,
    ATTESTATION_POLL_INTERVAL_SECONDS,
    BASE_SEPOLIA_CHAIN_ID,
    BASE_SEPOLIA_RPC_URL,
    BASE_SEPOLIA_TOKEN_MESSENGER,
    BASE_SEPOLIA_USDC,
    CCTP_DOMAINS,
    CIRCLE_ATTESTATION_API_SANDBOX_URL,
    CIRCLE_ATTESTATION_API_URL,
    NONCE_RETRY_ATTEMPTS,
    NONCE_RETRY_BACKOFF_SECONDS,
)


class SourceChainSettings(BaseModel):
    """EVM source chain (burn side)."""
    name: str = "base_sepolia"
    rpc_url: str = BASE_SEPOLIA_RPC_URL
    chain_id: int = BASE_SEPOLIA_CHAIN_ID
    domain: int = CCTP_DOMAINS["base"]
    token_messenger: str = BASE_SEPOLIA_TOKEN_MESSENGER
    usdc_address: str = BASE_SEPOLIA_USDC
    request_timeout_seconds: float = 30.0
    confirmation_timeout_seconds: float = 120.0
    confirmation_poll_seconds: float = 2.0
    gas_limit_buffer_percent: int = 20


class DestinationChainSettings(BaseModel):
    """Aptos destination chain (mint side)."""
    name: str = "aptos_testnet"
    node_url: str = APTOS_TESTNET_NODE_URL
    domain: int = CCTP_DOMAINS["aptos"]
    usdc_coin_type: str = APTOS_USDC_COIN_TYPE
    receive_function: str = APTOS_RECEIVE_FUNCTION
    receive_event_type: str = APTOS_RECEIVE_EVENT_TYPE
    max_gas_amount: int = 200_000
    gas_unit_price: int = 100
    expiration_seconds: int = 600
    request_timeout_seconds: float = 30.0
    confirmation_timeout_seconds: float = 60.0
    confirmation_poll_seconds: float = 1.0


class AttestationSettings(BaseModel):
    """Circle attestation authority polling."""
    sandbox: bool = True
    base_url: str = ""
    poll_interval_seconds: float = ATTESTATION_POLL_INTERVAL_SECONDS
    max_wait_seconds: float = ATTESTATION_MAX_WAIT_SECONDS
    max_attempts: int = ATTESTATION_MAX_ATTEMPTS
    request_timeout_seconds: float = 10.0

    @property
    def api_url(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return CIRCLE_ATTESTATION_API_SANDBOX_URL if self.sandbox else CIRCLE_ATTESTATION_API_URL

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v


class RetrySettings(BaseModel):
    """Nonce-race retry policy for approval and burn submissions."""
    attempts: int = NONCE_RETRY_ATTEMPTS
    backoff_seconds: float = NONCE_RETRY_BACKOFF_SECONDS


class LoggingSettings(BaseModel):
    """Logging output."""
    level: str = "INFO"
    json_format: bool = False
    mask_addresses: bool = False


class BridgeSettings(BaseSettings):
    """Main cctp-bridge configuration."""

    source: SourceChainSettings = Field(default_factory=SourceChainSettings)
    destination: DestinationChainSettings = Field(default_factory=DestinationChainSettings)
    attestation: AttestationSettings = Field(default_factory=AttestationSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # Signing credentials, normally supplied via environment only
    source_private_key: str = ""
    destination_private_key: str = ""

    # End-to-end deadline applied when a request does not carry one
    default_deadline_seconds: float | None = None

    class Config:
        env_prefix = "CCTP_BRIDGE_"
        env_nested_delimiter = "__"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> BridgeSettings:
    """Get cached settings instance."""
    return BridgeSettings()


__all__ = [
    "SourceChainSettings",
    "DestinationChainSettings",
    "AttestationSettings",
    "RetrySettings",
    "LoggingSettings",
    "BridgeSettings",
    "get_settings",
]
