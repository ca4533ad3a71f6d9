"""
VOTECHAIN CLI — Package init.

Re-exports the main CLI group and shared utilities.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import click
from rich.console import Console

from votechain import __version__
from votechain.storage import open_gateway

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def run_async(coro):
    """Helper to run async coroutines from sync CLI."""
    return asyncio.run(coro)


@asynccontextmanager
async def gateway_session(db: str | None):
    """Open the configured block store for one command."""
    gateway = await open_gateway(db)
    try:
        yield gateway
    finally:
        await gateway.close()


# ─── Main Group ──────────────────────────────────────────────────

@click.group()
@click.version_option(__version__, prog_name="votechain")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """VOTECHAIN — Verifiable Vote Ledger."""
    setup_logging(verbose)


# ─── Register all sub-modules ───────────────────────────────────
from votechain.cli import core  # noqa: E402, F401
from votechain.cli import ledger_cmds  # noqa: E402, F401

# ─── Registration ────────────────────────────────────────────────
from votechain.cli.ledger_cmds import ledger  # noqa: E402

cli.add_command(ledger)


if __name__ == "__main__":
    cli()
