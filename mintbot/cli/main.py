"""Command-line interface for mintbot.

Provides commands for minting, previewing the fee escalation schedule and
showing the effective configuration.
"""

from typing import List, Optional

import click
import structlog
from rich.console import Console
from rich.table import Table

from mintbot.chain import (
    SubmitterFactory,
    Web3FeeSource,
    abi_for_mode,
    build_contract,
    connect,
    signing_units,
)
from mintbot.config import (
    MODES,
    ConfigurationError,
    Settings,
    configure_logging,
    get_dry_run_status,
    load_settings,
    preflight_check,
)
from mintbot.engine import (
    CallOptions,
    FeeOverrides,
    FeeQuoteResolver,
    RetryEngine,
    RetryExhaustedError,
    RetryPolicy,
    SubmissionBatchRunner,
    UnitResult,
    plan_attempts,
)
from mintbot.metrics import get_metrics_collector

console = Console()
logger = structlog.get_logger(__name__)


def build_runner(settings: Settings) -> SubmissionBatchRunner:
    """Wire the web3 client, fee resolver and retry engine from settings."""
    w3 = connect(settings.RPC_URL, settings.RPC_TIMEOUT_SECONDS)
    abi, function_name = abi_for_mode(settings.MODE, settings.MINT_FUNC, settings.ABI_OVERRIDE)
    contract = build_contract(w3, settings.CONTRACT_ADDRESS, abi)

    engine = RetryEngine(
        RetryPolicy.from_settings(settings),
        FeeQuoteResolver(FeeOverrides.from_settings(settings)),
    )
    factory = SubmitterFactory(
        w3,
        contract,
        function_name,
        chain_id=settings.CHAIN_ID,
        confirmation_timeout=settings.CONFIRMATION_TIMEOUT_SECONDS,
        poll_seconds=settings.CONFIRMATION_POLL_SECONDS,
    )
    return SubmissionBatchRunner(
        engine,
        factory,
        Web3FeeSource(w3),
        CallOptions.from_settings(settings),
    )


def _load(ctx: click.Context, **overrides) -> Settings:
    settings = load_settings(ctx.obj.get("config_path"), **overrides)
    level = "DEBUG" if ctx.obj.get("verbose") else settings.LOG_LEVEL
    configure_logging(level, settings.LOG_FILE, settings.LOG_JSON)
    return settings


def _print_schedule(settings: Settings, runner: SubmissionBatchRunner) -> None:
    policy = runner.engine.policy
    start_fee = runner.engine.resolver.resolve(runner.fee_source)

    table = Table(title=f"Fee escalation ({start_fee.fee_model}, +{policy.bump_percent}% per retry)")
    table.add_column("Attempt", style="cyan", justify="right")
    table.add_column("Fee", style="green")
    table.add_column("Backoff after failure (ms)", justify="right")
    for plan in plan_attempts(policy, start_fee):
        table.add_row(
            str(plan.number),
            plan.fee.describe(),
            str(plan.backoff_ms) if plan.backoff_ms is not None else "-",
        )
    console.print(table)

    options = runner.call_options
    console.print(
        f"  Contract: {settings.CONTRACT_ADDRESS}\n"
        f"  Quantity: {options.quantity}\n"
        f"  Value: {options.value_wei} wei\n"
        f"  Gas limit: {options.gas_limit or 'estimated'}"
    )


def _print_results(results: List[UnitResult]) -> None:
    table = Table(title="Mint Results")
    table.add_column("Wallet", style="cyan")
    table.add_column("Address", style="blue")
    table.add_column("Status")
    table.add_column("Transaction / Error")
    table.add_column("Block", justify="right")

    for r in results:
        if r.ok:
            table.add_row(
                str(r.index + 1),
                r.address or "",
                "[green]confirmed[/green]",
                r.result.transaction_id,
                str(r.result.block_number),
            )
        else:
            table.add_row(str(r.index + 1), r.address or "", "[red]failed[/red]", str(r.error), "")

    console.print(table)

    confirmed = sum(1 for r in results if r.ok)
    failed = len(results) - confirmed
    console.print(f"\n[green]Confirmed: {confirmed}[/green]")
    if failed > 0:
        console.print(f"[red]Failed: {failed}[/red]")


@click.group()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="YAML file with settings (environment variables take precedence)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[str]) -> None:
    """mintbot command-line interface."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option(
    "--mode",
    type=click.Choice(MODES),
    help="Override MODE (simple, single or multi)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Resolve fees and show the retry plan without sending anything",
)
@click.pass_context
def mint(ctx: click.Context, mode: Optional[str], dry_run: bool) -> None:
    """Submit the mint transaction for the configured wallet(s)."""
    try:
        settings = _load(ctx, **({"MODE": mode} if mode else {}))
        preflight_check(settings)

        if settings.ENABLE_METRICS:
            get_metrics_collector().start_server(settings.METRICS_PORT)

        runner = build_runner(settings)
        units = signing_units(settings.private_keys)

        is_dry_run, reason = get_dry_run_status(settings, dry_run)
        if is_dry_run:
            console.print(f"[yellow]Dry run ({reason}): nothing will be sent[/yellow]")
            _print_schedule(settings, runner)
            return

        logger.info("mint_started", mode=settings.MODE, wallets=len(units))

        if settings.MODE == "multi":
            console.print(f"[cyan]Minting from {len(units)} wallet(s)...[/cyan]")
            results = runner.run_batch(units, settings.TX_DELAY_MS)
            _print_results(results)
            # A sole wallet that failed fails the process.
            if len(results) == 1 and not results[0].ok:
                ctx.exit(1)
        else:
            console.print(f"[cyan]Minting ({settings.MODE} mode)...[/cyan]")
            confirmed = runner.run_single(units[0])
            console.print(
                f"[green]✓ Mint confirmed[/green]\n"
                f"  Transaction: {confirmed.transaction_id}\n"
                f"  Block: {confirmed.block_number}"
            )

    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        logger.error("cli_configuration_error", error=str(e))
        ctx.exit(1)
    except RetryExhaustedError as e:
        console.print(f"[red]✗ Mint failed: {e}[/red]")
        logger.error("cli_mint_exhausted", attempts=e.attempts, error=str(e.last_error))
        ctx.exit(1)


@cli.command()
@click.pass_context
def fees(ctx: click.Context) -> None:
    """Show the starting fee quote and the escalation schedule."""
    try:
        settings = _load(ctx)
        preflight_check(settings, require_signer=False)
        _print_schedule(settings, build_runner(settings))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        logger.error("cli_configuration_error", error=str(e))
        ctx.exit(1)


@cli.command(name="config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the effective settings (private keys masked)."""
    try:
        settings = _load(ctx)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        ctx.exit(1)

    table = Table(title="Effective Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.masked_dump().items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
