"""
Tests for the cctp-bridge CLI.
"""
from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from cctp_bridge import cli as cli_module
from cctp_bridge.attestation import AttestationPoller
from cctp_bridge.burn import BurnClient
from cctp_bridge.config import LoggingSettings, get_settings
from cctp_bridge.logging_utils import TransferLogger
from cctp_bridge.mint import MintClient
from cctp_bridge.models import AttestationStatus
from cctp_bridge.orchestrator import TransferOrchestrator

from conftest import (
    DESTINATION_KEY,
    RECIPIENT,
    SOURCE_KEY,
    TOKEN_MESSENGER,
    FakeClock,
    FakeDestinationLedger,
    FakeSourceLedger,
    ScriptedAttestationClient,
)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    monkeypatch.setenv("CCTP_BRIDGE_SOURCE_PRIVATE_KEY", SOURCE_KEY)
    monkeypatch.setenv("CCTP_BRIDGE_DESTINATION_PRIVATE_KEY", DESTINATION_KEY)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def fake_orchestrator(status=AttestationStatus.COMPLETE) -> TransferOrchestrator:
    clock = FakeClock()
    return TransferOrchestrator(
        BurnClient(FakeSourceLedger(), token_messenger=TOKEN_MESSENGER, destination_domain=9, sleep=clock.sleep),
        AttestationPoller(ScriptedAttestationClient(status), max_attempts=3, clock=clock, sleep=clock.sleep),
        MintClient(FakeDestinationLedger(mint_amount=1_000_000)),
        transfer_logger=TransferLogger(config=LoggingSettings()),
        clock=clock,
    )


def patch_orchestrator(monkeypatch, orchestrator):
    monkeypatch.setattr(
        cli_module.TransferOrchestrator, "from_settings", classmethod(lambda cls, settings=None: orchestrator)
    )


class TestTransferCommand:
    """Tests for `cctp-bridge transfer`."""

    def test_success_with_report(self, monkeypatch, tmp_path):
        """Should print the result and write a JSON report."""
        patch_orchestrator(monkeypatch, fake_orchestrator())
        report = tmp_path / "report.json"

        result = CliRunner().invoke(
            cli_module.cli,
            ["transfer", "--amount", "1.0", "--recipient", RECIPIENT, "--report", str(report)],
        )

        assert result.exit_code == 0, result.output
        assert "Transfer completed" in result.output
        data = json.loads(report.read_text())
        assert data["success"] is True
        assert data["final_amount"] == "1"

    def test_failure_exit_code(self, monkeypatch):
        """Should exit 1 when the transfer fails."""
        patch_orchestrator(monkeypatch, fake_orchestrator(AttestationStatus.FAILED))

        result = CliRunner().invoke(cli_module.cli, ["transfer", "--amount", "1.0", "--recipient", RECIPIENT])

        assert result.exit_code == 1
        assert "attestation_failed" in result.output


class TestOtherCommands:
    """Tests for auxiliary commands."""

    def test_check(self, monkeypatch):
        """Should report satisfied prerequisites."""
        patch_orchestrator(monkeypatch, fake_orchestrator())

        result = CliRunner().invoke(cli_module.cli, ["check", "--amount", "1.0", "--recipient", RECIPIENT])

        assert result.exit_code == 0, result.output
        assert "All prerequisites satisfied" in result.output

    def test_check_bad_recipient(self, monkeypatch):
        """Should list issues and exit 1."""
        patch_orchestrator(monkeypatch, fake_orchestrator())

        result = CliRunner().invoke(cli_module.cli, ["check", "--amount", "1.0", "--recipient", "0x1234"])

        assert result.exit_code == 1
        assert "Destination address format is invalid" in result.output

    def test_attestation_bad_hash(self):
        """Should reject malformed message hashes."""
        result = CliRunner().invoke(cli_module.cli, ["attestation", "0x1234"])
        assert result.exit_code == 2

    def test_estimate(self, monkeypatch):
        """Should print the estimate table."""
        patch_orchestrator(monkeypatch, fake_orchestrator())

        result = CliRunner().invoke(cli_module.cli, ["estimate"])

        assert result.exit_code == 0
        assert "Attestation" in result.output

    def test_create_account(self):
        """Should print a fresh address and key."""
        result = CliRunner().invoke(cli_module.cli, ["create-account"])

        assert result.exit_code == 0
        assert "Address:" in result.output
        assert "CCTP_BRIDGE_DESTINATION_PRIVATE_KEY" in result.output
