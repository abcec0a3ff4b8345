"""
cctp-bridge command-line interface.

Usage:
    cctp-bridge [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .aptos import AptosAccount
from .attestation import AttestationPoller
from .config import get_settings
from .logging_utils import setup_logging
from .models import AttestationStatus, TransferRequest, TransferResult
from .orchestrator import TransferOrchestrator
from .validators import is_valid_message_hash

console = Console()


@click.group()
@click.version_option(package_name="cctp-bridge", message="%(prog)s %(version)s")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, verbose: bool):
    """Cross-chain USDC transfers from Base Sepolia to Aptos via Circle CCTP."""
    ctx.ensure_object(dict)
    settings = get_settings()
    level = "DEBUG" if verbose else settings.logging.level
    setup_logging(level=level, json_format=settings.logging.json_format)
    ctx.obj["settings"] = settings


def _build_request(settings, amount: str, recipient: str, deadline: float | None, on_progress=None) -> TransferRequest:
    return TransferRequest(
        amount=amount,
        recipient=recipient,
        source_credential=settings.source_private_key,
        destination_credential=settings.destination_private_key,
        deadline_seconds=deadline,
        on_progress=on_progress,
    )


def _print_progress(event: str, details: dict | None) -> None:
    colour = "red" if event == "transfer failed" else "cyan"
    console.print(f"[{colour}]• {event}[/{colour}]")
    if details:
        for key, value in details.items():
            console.print(f"    {key}: {value}")


def _print_steps(result: TransferResult) -> None:
    table = Table(title="Transfer steps")
    table.add_column("Stage")
    table.add_column("Outcome")
    table.add_column("Reference", style="cyan")

    burn = result.steps.burn
    attestation = result.steps.attestation
    mint = result.steps.mint
    table.add_row("burn", "confirmed" if burn else "-", burn.source_tx_id if burn else "")
    table.add_row(
        "attestation",
        attestation.status.value if attestation else "-",
        attestation.message_hash if attestation else "",
    )
    table.add_row(
        "mint",
        ("success" if mint.success else "failed") if mint else "-",
        mint.dest_tx_id if mint else "",
    )
    console.print(table)


@cli.command()
@click.option("--amount", required=True, help="USDC amount, e.g. 1.0")
@click.option("--recipient", required=True, help="Aptos recipient address (0x + 64 hex)")
@click.option("--deadline", type=float, help="End-to-end deadline in seconds")
@click.option("--report", "report_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the transfer result as JSON to this file")
@click.pass_context
def transfer(ctx, amount: str, recipient: str, deadline: float | None, report_path: Path | None):
    """Burn on Base Sepolia, wait for attestation, and mint on Aptos."""
    settings = ctx.obj["settings"]
    request = _build_request(settings, amount, recipient, deadline, on_progress=_print_progress)

    console.print("\n[bold blue]Cross-chain USDC transfer[/bold blue]\n")
    console.print(f"Transfer ID: [cyan]{request.transfer_id}[/cyan]")
    console.print(f"Amount: {amount} USDC -> {recipient}\n")

    async def run() -> TransferResult:
        async with TransferOrchestrator.from_settings(settings) as orchestrator:
            return await orchestrator.execute(request)

    result = asyncio.run(run())
    console.print()
    _print_steps(result)

    if report_path is not None:
        report_path.write_text(json.dumps(result.to_dict(), indent=2, default=str))
        console.print(f"Report written to [cyan]{report_path}[/cyan]")

    if result.success:
        console.print(f"\n[green]✓ Transfer completed: {result.final_amount} USDC minted[/green]")
        console.print(f"  Source TX: [cyan]{result.source_tx_id}[/cyan]")
        console.print(f"  Destination TX: [cyan]{result.dest_tx_id}[/cyan]")
    else:
        console.print(f"\n[red]✗ Transfer failed ({result.error_code}): {result.error}[/red]")
        ctx.exit(1)


@cli.command()
@click.option("--amount", required=True, help="USDC amount, e.g. 1.0")
@click.option("--recipient", required=True, help="Aptos recipient address (0x + 64 hex)")
@click.pass_context
def check(ctx, amount: str, recipient: str):
    """Check transfer prerequisites without moving funds."""
    settings = ctx.obj["settings"]
    request = _build_request(settings, amount, recipient, None)

    async def run():
        async with TransferOrchestrator.from_settings(settings) as orchestrator:
            return await orchestrator.check_prerequisites(request)

    report = asyncio.run(run())
    if report.valid:
        console.print("[green]✓ All prerequisites satisfied[/green]")
        return
    console.print("[yellow]Prerequisite issues:[/yellow]")
    for issue in report.issues:
        console.print(f"  • {issue}")
    ctx.exit(1)


@cli.command()
@click.argument("message_hash")
@click.pass_context
def attestation(ctx, message_hash: str):
    """Query attestation status once for MESSAGE_HASH."""
    if not is_valid_message_hash(message_hash):
        console.print("[red]Message hash must be 0x followed by 64 hex characters[/red]")
        ctx.exit(2)

    poller = AttestationPoller.from_settings(ctx.obj["settings"].attestation)

    async def run():
        try:
            return await poller.check_status(message_hash)
        finally:
            await poller.client.close()

    record = asyncio.run(run())
    status_emoji = {
        AttestationStatus.PENDING: "⏳",
        AttestationStatus.COMPLETE: "✅",
        AttestationStatus.FAILED: "❌",
    }
    console.print(f"Message: [cyan]{message_hash}[/cyan]")
    console.print(f"Status: {status_emoji[record.status]} {record.status.value}")
    if record.attestation:
        console.print(f"Attestation: {record.attestation[:42]}...")


@cli.command()
@click.pass_context
def estimate(ctx):
    """Show expected transfer time and fees."""
    settings = ctx.obj["settings"]
    orchestrator = TransferOrchestrator.from_settings(settings)
    result = orchestrator.estimate_transfer()

    table = Table(title=f"{result.source_chain} -> {result.destination_chain}")
    table.add_column("Item")
    table.add_column("Estimate", style="cyan")
    table.add_row("Source finality", f"~{result.finality_seconds}s")
    table.add_row("Attestation", f"~{result.attestation_seconds}s")
    table.add_row("Total", f"~{result.total_seconds}s")
    table.add_row("Source fee", result.source_fee_hint)
    table.add_row("Destination fee", result.destination_fee_hint)
    console.print(table)


@cli.command()
@click.argument("address")
@click.option("--limit", default=10, show_default=True, help="Maximum entries")
@click.pass_context
def history(ctx, address: str, limit: int):
    """List received transfers for an Aptos ADDRESS."""
    settings = ctx.obj["settings"]

    async def run():
        async with TransferOrchestrator.from_settings(settings) as orchestrator:
            return await orchestrator.get_history(address, limit)

    entries = asyncio.run(run())
    if not entries:
        console.print("[yellow]No transfers found[/yellow]")
        return

    table = Table(title=f"Transfers to {address}")
    table.add_column("Seq")
    table.add_column("Amount", style="green")
    table.add_column("Message hash", style="cyan")
    table.add_column("Version")
    for entry in entries:
        table.add_row(entry.sequence_number, entry.amount, entry.message_hash, entry.tx_version)
    console.print(table)


@cli.command()
@click.argument("source_tx_id")
@click.pass_context
def monitor(ctx, source_tx_id: str):
    """Follow a submitted burn SOURCE_TX_ID until its attestation is terminal."""
    settings = ctx.obj["settings"]

    async def run():
        async with TransferOrchestrator.from_settings(settings) as orchestrator:
            return await orchestrator.monitor(source_tx_id, _print_progress)

    record = asyncio.run(run())
    if record is None:
        ctx.exit(1)
    console.print(f"[green]✓ Attestation ready for {record.message_hash}[/green]")


@cli.command("create-account")
def create_account():
    """Generate a fresh Aptos test account."""
    account = AptosAccount.generate()
    console.print("\n[bold blue]New Aptos account[/bold blue]\n")
    console.print(f"Address: [cyan]{account.address}[/cyan]")
    console.print(f"Public key: {account.public_key}")
    console.print(f"Private key: [yellow]{account.private_key}[/yellow]")
    console.print("\nFund it from the Aptos testnet faucet before use:")
    console.print("  https://aptoslabs.com/testnet-faucet")
    console.print("Then export it as CCTP_BRIDGE_DESTINATION_PRIVATE_KEY.\n")


if __name__ == "__main__":
    cli()
