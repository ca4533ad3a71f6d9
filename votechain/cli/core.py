"""CLI commands: init, vote, serve."""

from __future__ import annotations

import sys

import click
from rich.panel import Panel

from votechain import __version__
from votechain.cli import cli, console, gateway_session, run_async
from votechain.exceptions import PersistenceError
from votechain.recorder import VoteRecorder


@cli.command()
@click.option("--db", default=None, help="Database path (local storage)")
def init(db) -> None:
    """Write the genesis block if the ledger is empty."""

    async def _init_async():
        async with gateway_session(db) as gateway:
            return await VoteRecorder(gateway).initialize_chain()

    try:
        created = run_async(_init_async())
    except PersistenceError as e:
        console.print(f"[red]✗ Block store unavailable:[/] {e}")
        sys.exit(1)

    message = "Genesis block written" if created else "Ledger already initialized"
    console.print(
        Panel(
            f"[bold green]✓ VOTECHAIN v{__version__}[/]\n{message}",
            title="⛓ VOTECHAIN",
            border_style="green",
        )
    )


@cli.command()
@click.argument("election_id")
@click.argument("candidate_id")
@click.option("--voter", "-u", required=True, help="Voter identity (stored only as a digest)")
@click.option("--db", default=None, help="Database path (local storage)")
def vote(election_id, candidate_id, voter, db) -> None:
    """Cast a vote for CANDIDATE_ID in ELECTION_ID."""
    candidate = int(candidate_id) if candidate_id.isdigit() else candidate_id

    async def _vote_async():
        async with gateway_session(db) as gateway:
            return await VoteRecorder(gateway).record_vote(election_id, candidate, voter)

    try:
        with console.status("[bold yellow]Mining vote block...[/]"):
            receipt = run_async(_vote_async())
    except PersistenceError as e:
        console.print(f"[red]✗ Block store unavailable:[/] {e}")
        sys.exit(1)

    if not receipt.success:
        console.print(f"[red]✗ Vote not recorded ({receipt.error_kind.value}):[/] {receipt.error}")
        sys.exit(1)

    console.print(
        f"[green]✓[/] Vote for candidate [bold]{candidate}[/] in election [bold]{election_id}[/] "
        f"sealed in block [bold]#{receipt.block_index}[/].\n"
        f"   [dim]Hash: {receipt.transaction_hash}[/]"
    )


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8484, type=int, help="Bind port")
def serve(host, port) -> None:
    """Run the REST API."""
    import uvicorn

    uvicorn.run("votechain.api:app", host=host, port=port)
