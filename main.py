"""
Command line entry point for the RPS ledger client.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict

import click
from dotenv import load_dotenv

from blockchain import from_ledger_units
from client import RPSClient
from config import ClientConfig
from database import TransactionJournal
from errors import RPSClientError
from game_manager import FlowResult


class ColoredFormatter(logging.Formatter):
    """Custom colored formatter for client logs."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }

    # Component colors
    COMPONENT_COLORS = {
        'client': '\033[94m',        # Blue
        'game_manager': '\033[93m',  # Yellow
        'tracker': '\033[95m',       # Magenta
        'transactions': '\033[92m',  # Green
        'watcher': '\033[96m',       # Cyan
        'events': '\033[92m',        # Green
        'connection': '\033[92m',    # Green
        'database': '\033[90m',      # Dark gray
    }

    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        level_color = self.COLORS.get(record.levelname, '')

        component_name = record.name.split('.')[-1] if '.' in record.name else record.name
        component_color = self.COMPONENT_COLORS.get(component_name, '')

        timestamp = self.formatTime(record)

        if level_color or component_color:
            formatted = f"{self.BOLD}{level_color}[{record.levelname}]{self.RESET} "
            formatted += f"{component_color}[{component_name}]{self.RESET} "
            formatted += f"{timestamp} - {record.getMessage()}"
        else:
            formatted = f"[{record.levelname}] [{component_name}] {timestamp} - {record.getMessage()}"

        return formatted


def setup_logging(verbose: bool = False):
    """Setup colored logging on stderr, keeping stdout for results."""
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    root_logger.addHandler(console_handler)

    # Quiet noisy loggers
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('web3').setLevel(logging.WARNING)


def confirm_transaction(transaction: Dict[str, Any]) -> bool:
    """Ask the user to approve signing, standing in for a wallet prompt."""
    value = transaction.get('value', 0)
    click.echo(
        f"Transaction to {transaction.get('to')}: value {from_ledger_units(value)} ETH, "
        f"gas limit {transaction.get('gas')}, nonce {transaction.get('nonce')}",
        err=True,
    )
    return click.confirm("Sign and send?", default=False, err=True)


def _echo(payload: Dict[str, Any]):
    click.echo(json.dumps(payload, indent=2, default=str))


def _report(ctx: click.Context, result: FlowResult):
    _echo(result.to_dict())
    if not result.ok:
        ctx.exit(1)


def _config() -> ClientConfig:
    try:
        return ClientConfig.from_env()
    except KeyError as exc:
        raise click.ClickException(f"Missing environment variable {exc}")


def _client(ctx: click.Context) -> RPSClient:
    config = _config()
    approve = None if ctx.obj["yes"] else confirm_transaction
    try:
        return RPSClient(config, approve=approve)
    except RPSClientError as exc:
        _echo({"ok": False, "errorKind": exc.kind, "message": str(exc)})
        ctx.exit(1)


@click.group()
@click.option("--yes", "-y", is_flag=True, help="Sign transactions without asking.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx, yes, verbose):
    """Rock-Paper-Scissors ledger client."""
    setup_logging(verbose)
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["yes"] = yes


@cli.command()
@click.option("--stake", required=True, help="Stake in ETH, e.g. 0.01")
@click.pass_context
def create(ctx, stake):
    """Create a new game."""
    client = _client(ctx)
    _report(ctx, asyncio.run(client.game_manager.create_game(stake)))


@cli.command()
@click.argument("game_id")
@click.option("--stake", required=True, help="Stake in ETH, must equal the creator's stake")
@click.pass_context
def join(ctx, game_id, stake):
    """Join an open game."""
    client = _client(ctx)
    _report(ctx, asyncio.run(client.game_manager.join_game(game_id, stake)))


@cli.command()
@click.argument("game_id")
@click.argument("choice", type=click.Choice(["rock", "paper", "scissors"], case_sensitive=False))
@click.pass_context
def play(ctx, game_id, choice):
    """Play a move in a joined game."""
    client = _client(ctx)
    _report(ctx, asyncio.run(client.game_manager.play(game_id, choice)))


@cli.command()
@click.argument("game_id")
@click.pass_context
def timeout(ctx, game_id):
    """Claim a timeout against an unresponsive opponent."""
    client = _client(ctx)
    _report(ctx, asyncio.run(client.game_manager.handle_timeout(game_id)))


@cli.command()
@click.argument("tx_hash")
@click.option("--timeout", "timeout_seconds", type=float, default=None, help="Seconds to wait.")
@click.pass_context
def watch(ctx, tx_hash, timeout_seconds):
    """Resume waiting on a transaction whose confirmation timed out."""
    client = _client(ctx)
    _report(ctx, asyncio.run(client.game_manager.rewatch(tx_hash, timeout_seconds)))


@cli.command()
@click.argument("game_id")
@click.pass_context
def status(ctx, game_id):
    """Show a game's state rebuilt from ledger history."""
    client = _client(ctx)
    try:
        game = asyncio.run(client.game_manager.refresh_game(game_id))
    except RPSClientError as exc:
        _echo({"ok": False, "errorKind": exc.kind, "message": str(exc)})
        ctx.exit(1)
    if game is None:
        _echo({"ok": False, "errorKind": "NotFound", "message": f"Game {game_id} not found"})
        ctx.exit(1)
    _echo({"ok": True, "game": game.to_dict()})


@cli.command()
@click.pass_context
def counter(ctx):
    """Show the contract's game counter."""
    client = _client(ctx)
    try:
        value = asyncio.run(client.game_manager.game_counter())
    except RPSClientError as exc:
        _echo({"ok": False, "errorKind": exc.kind, "message": str(exc)})
        ctx.exit(1)
    _echo({"ok": True, "gameCounter": value})


@cli.command()
def pending():
    """List transactions whose outcome is still unknown."""
    journal = TransactionJournal(_config().db_path)
    _echo({"ok": True, "transactions": [
        {"txHash": e.tx_hash, "flow": e.flow, "gameId": e.game_id, "status": e.status}
        for e in journal.get_unresolved()
    ]})


@cli.command()
@click.option("--limit", default=20, show_default=True)
def history(limit):
    """Show submitted transactions, newest first."""
    journal = TransactionJournal(_config().db_path)
    _echo({"ok": True, "transactions": journal.get_history(limit)})


@cli.command()
def stats():
    """Show transaction counts per flow and status."""
    journal = TransactionJournal(_config().db_path)
    _echo({"ok": True, **journal.get_statistics()})


if __name__ == "__main__":
    cli()
