#!/usr/bin/env python3
"""
vestledger CLI Commands - Ledger Management Interface

Drives a Cw20Ledger backed by a JSON state file:
- Instantiate the token and grant vesting schedules
- Mint, burn, transfer and delegate through allowances
- Claim vested tokens and inspect schedules and category rollups
"""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any

import click
from pydantic import ValidationError as SchemaValidationError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vestledger.core import config
from vestledger.core.contracts import Cw20Ledger, Env, Response
from vestledger.core.input_validation_schemas import InstantiateMsg, VestingGrantInput
from vestledger.core.ledger_exceptions import LedgerError, get_error_context
from vestledger.core.logging_config import setup_logging, shutdown_logging
from vestledger.core.state import Expiration
from vestledger.core.storage import JsonFileStore
from vestledger.core.vesting import cliff_end_timestamp, vesting_end_timestamp

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, extra={"event": "cli.error", **get_error_context(exc)})
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _ledger(ctx: click.Context) -> Cw20Ledger:
    if "ledger" not in ctx.obj:
        try:
            ctx.obj["ledger"] = Cw20Ledger(JsonFileStore(ctx.obj["store_path"]))
        except LedgerError as exc:
            _handle_cli_error(exc)
    return ctx.obj["ledger"]


def _env(sender: str, at: int | None, height: int = 0) -> Env:
    return Env(sender=sender, time=int(time.time()) if at is None else at, height=height)


def _load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _emit(ctx: click.Context, payload: dict[str, Any], title: str) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return
    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in payload.items():
        table.add_row(f"[bold cyan]{key}", "-" if value is None else str(value))
    console.print(Panel(table, title=f"[bold green]{title}", border_style="green"))


def _emit_response(ctx: click.Context, response: Response) -> None:
    _emit(ctx, response.to_dict(), response.action)


def _run(ctx: click.Context, action, *args, **kwargs) -> None:
    try:
        response = action(*args, **kwargs)
    except LedgerError as exc:
        _handle_cli_error(exc)
    else:
        _emit_response(ctx, response)


sender_option = click.option("--sender", required=True, help="Authenticated caller address")
time_option = click.option(
    "--time", "at", type=int, default=None, help="Block time in seconds (default: now)"
)
height_option = click.option(
    "--height", type=click.IntRange(min=0), default=0, show_default=True, help="Block height"
)


@click.group()
@click.option(
    "--store",
    "store_path",
    default=lambda: config.STORE_PATH,
    show_default="$VESTLEDGER_STORE_PATH",
    help="Ledger state file",
)
@click.option("--json-output", is_flag=True, help="Print machine-readable JSON")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=lambda: config.LOG_LEVEL,
    help="Logging level",
)
@click.pass_context
def cli(ctx: click.Context, store_path: str, json_output: bool, log_level: str):
    """vestledger - CW20 token ledger with vesting schedules."""
    ctx.ensure_object(dict)
    ctx.obj["store_path"] = store_path
    ctx.obj["json_output"] = json_output
    setup_logging(
        name="vestledger",
        log_file=config.LOG_FILE,
        level=log_level,
        environment=config.ENVIRONMENT,
    )
    ctx.call_on_close(shutdown_logging)


# ==================== Execute ====================


@cli.command("instantiate")
@sender_option
@time_option
@height_option
@click.option("--msg", "msg_file", required=True, type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def instantiate(ctx: click.Context, sender: str, at: int | None, height: int, msg_file: str):
    """
    Create the token from an instantiate message (JSON file).

    Example:
        vestledger instantiate --sender issuer --msg token.json
    """
    try:
        msg = InstantiateMsg.model_validate(_load_json(msg_file))
    except (OSError, json.JSONDecodeError, SchemaValidationError) as exc:
        _handle_cli_error(exc)
    _run(ctx, _ledger(ctx).instantiate, _env(sender, at, height), msg)


@cli.command("mint")
@sender_option
@click.argument("recipient")
@click.argument("amount", type=int)
@click.pass_context
def mint(ctx: click.Context, sender: str, recipient: str, amount: int):
    """Mint AMOUNT new tokens to RECIPIENT (minter only)."""
    _run(ctx, _ledger(ctx).mint, _env(sender, None), recipient, amount)


@cli.command("burn")
@sender_option
@click.argument("amount", type=int)
@click.pass_context
def burn(ctx: click.Context, sender: str, amount: int):
    """Burn AMOUNT tokens from the sender's balance."""
    _run(ctx, _ledger(ctx).burn, _env(sender, None), amount)


@cli.command("transfer")
@sender_option
@click.argument("recipient")
@click.argument("amount", type=int)
@click.pass_context
def transfer(ctx: click.Context, sender: str, recipient: str, amount: int):
    """Transfer AMOUNT tokens from the sender to RECIPIENT."""
    _run(ctx, _ledger(ctx).transfer, _env(sender, None), recipient, amount)


@cli.command("approve")
@sender_option
@time_option
@height_option
@click.argument("spender")
@click.argument("amount", type=int)
@click.option("--expires-at-time", type=int, default=None, help="Expire at this block time")
@click.option("--expires-at-height", type=int, default=None, help="Expire at this block height")
@click.pass_context
def approve(
    ctx: click.Context,
    sender: str,
    at: int | None,
    height: int,
    spender: str,
    amount: int,
    expires_at_time: int | None,
    expires_at_height: int | None,
):
    """Allow SPENDER to move up to AMOUNT of the sender's tokens."""
    if expires_at_time is not None and expires_at_height is not None:
        raise click.UsageError("Use only one of --expires-at-time and --expires-at-height")
    expires = None
    if expires_at_time is not None:
        expires = Expiration.at_time(expires_at_time)
    elif expires_at_height is not None:
        expires = Expiration.at_height(expires_at_height)
    _run(ctx, _ledger(ctx).approve, _env(sender, at, height), spender, amount, expires)


@cli.command("transfer-from")
@sender_option
@time_option
@height_option
@click.argument("owner")
@click.argument("recipient")
@click.argument("amount", type=int)
@click.pass_context
def transfer_from(
    ctx: click.Context,
    sender: str,
    at: int | None,
    height: int,
    owner: str,
    recipient: str,
    amount: int,
):
    """Move AMOUNT from OWNER to RECIPIENT using the sender's allowance."""
    _run(ctx, _ledger(ctx).transfer_from, _env(sender, at, height), owner, recipient, amount)


@cli.command("grant-vesting")
@sender_option
@click.option("--grant", "grant_file", required=True, type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def grant_vesting(ctx: click.Context, sender: str, grant_file: str):
    """Allocate a vesting schedule described by a JSON file (minter only)."""
    try:
        grant = VestingGrantInput.model_validate(_load_json(grant_file))
    except (OSError, json.JSONDecodeError, SchemaValidationError) as exc:
        _handle_cli_error(exc)
    _run(ctx, _ledger(ctx).grant_vesting, _env(sender, None), grant)


@cli.command("claim")
@sender_option
@time_option
@height_option
@click.pass_context
def claim(ctx: click.Context, sender: str, at: int | None, height: int):
    """Claim all vested tokens of the sender."""
    _run(ctx, _ledger(ctx).claim_vested, _env(sender, at, height))


# ==================== Queries ====================


def _query(action, *args):
    try:
        return action(*args)
    except LedgerError as exc:
        _handle_cli_error(exc)


@cli.command("balance")
@click.argument("address")
@click.pass_context
def balance(ctx: click.Context, address: str):
    """Show the unlocked balance of ADDRESS."""
    amount = _query(_ledger(ctx).query_balance, address)
    _emit(ctx, {"address": address.lower(), "balance": str(amount)}, "Balance")


@cli.command("allowance")
@click.argument("owner")
@click.argument("spender")
@click.pass_context
def allowance(ctx: click.Context, owner: str, spender: str):
    """Show what SPENDER may still move from OWNER."""
    record = _query(_ledger(ctx).query_allowance, owner, spender)
    _emit(ctx, record.to_dict(), "Allowance")


@cli.command("token-info")
@click.pass_context
def token_info(ctx: click.Context):
    """Show token metadata, supply and minter."""
    info = _query(_ledger(ctx).query_token_info)
    _emit(ctx, info.to_dict(), f"{info.name} ({info.symbol})")


@cli.command("vesting")
@click.argument("address")
@click.pass_context
def vesting_details(ctx: click.Context, address: str):
    """Show the vesting schedule of ADDRESS."""
    schedule = _query(_ledger(ctx).query_vesting, address)
    payload = schedule.to_dict()
    payload["cliff_end_timestamp"] = cliff_end_timestamp(schedule)
    payload["vesting_end_timestamp"] = vesting_end_timestamp(schedule)
    _emit(ctx, payload, "Vesting Schedule")


@cli.command("claimable")
@click.argument("address")
@time_option
@click.pass_context
def claimable(ctx: click.Context, address: str, at: int | None):
    """Show what ADDRESS could claim at --time without claiming it."""
    now = int(time.time()) if at is None else at
    amount = _query(_ledger(ctx).query_claimable, address, now)
    _emit(ctx, {"address": address.lower(), "time": now, "claimable": str(amount)}, "Claimable")


@cli.command("rollup")
@click.argument("category")
@click.pass_context
def rollup(ctx: click.Context, category: str):
    """Aggregate the vesting schedules filed under CATEGORY."""
    result = _query(_ledger(ctx).query_category_rollup, category)
    _emit(ctx, result.to_dict(), "Category Rollup")


@cli.command("supply-check")
@click.pass_context
def supply_check(ctx: click.Context):
    """Verify total supply against balances and unclaimed vesting."""
    report = _query(_ledger(ctx).check_supply_invariant)
    payload = {
        "total_supply": str(report["total_supply"]),
        "balances": str(report["balances"]),
        "unclaimed_vesting": str(report["unclaimed_vesting"]),
        "consistent": report["consistent"],
    }
    _emit(ctx, payload, "Supply Check")
    if not report["consistent"]:
        sys.exit(2)
