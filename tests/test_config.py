"""
Tests for cctp_bridge.config.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from cctp_bridge.config import AttestationSettings, BridgeSettings, get_settings
from cctp_bridge.constants import (
    CIRCLE_ATTESTATION_API_SANDBOX_URL,
    CIRCLE_ATTESTATION_API_URL,
    get_finality_estimate_seconds,
)


class TestDefaults:
    """Tests for default settings."""

    def test_testnet_defaults(self):
        """Should target Base Sepolia -> Aptos testnet."""
        settings = BridgeSettings()

        assert settings.source.chain_id == 84532
        assert settings.source.domain == 6
        assert settings.destination.domain == 9
        assert settings.attestation.poll_interval_seconds == 2.0
        assert settings.attestation.max_wait_seconds == 300.0
        assert settings.attestation.max_attempts == 150
        assert settings.retry.attempts == 3
        assert settings.default_deadline_seconds is None

    def test_get_settings_cached(self):
        """Should return the same instance."""
        assert get_settings() is get_settings()


class TestEnvironment:
    """Tests for environment overrides."""

    def test_nested_override(self, monkeypatch):
        """Should read nested values with the __ delimiter."""
        monkeypatch.setenv("CCTP_BRIDGE_ATTESTATION__MAX_WAIT_SECONDS", "60")
        monkeypatch.setenv("CCTP_BRIDGE_SOURCE__RPC_URL", "http://localhost:8545")
        settings = BridgeSettings()

        assert settings.attestation.max_wait_seconds == 60.0
        assert settings.source.rpc_url == "http://localhost:8545"

    def test_credentials(self, monkeypatch):
        """Should read signing keys from the environment."""
        monkeypatch.setenv("CCTP_BRIDGE_SOURCE_PRIVATE_KEY", "0x" + "11" * 32)
        assert BridgeSettings().source_private_key == "0x" + "11" * 32


class TestAttestationSettings:
    """Tests for AttestationSettings."""

    def test_api_url(self):
        """Should resolve sandbox, production and explicit URLs."""
        assert AttestationSettings(sandbox=True).api_url == CIRCLE_ATTESTATION_API_SANDBOX_URL
        assert AttestationSettings(sandbox=False).api_url == CIRCLE_ATTESTATION_API_URL
        assert AttestationSettings(base_url="http://iris.local/").api_url == "http://iris.local"

    def test_rejects_zero_attempts(self):
        """Should require at least one attempt."""
        with pytest.raises(ValidationError):
            AttestationSettings(max_attempts=0)


class TestFinality:
    """Tests for finality estimates."""

    def test_finality(self):
        """Should sum source and destination finality."""
        assert get_finality_estimate_seconds("base_sepolia", "aptos_testnet") == 25
