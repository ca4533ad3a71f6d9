"""CLI commands: ledger status, verify, votes, audit."""

from __future__ import annotations

import sys
from datetime import datetime, timezone

import click
from rich.panel import Panel
from rich.table import Table

from votechain.chain.sync import load_ledger
from votechain.cli import cli, console, gateway_session, run_async
from votechain.exceptions import PersistenceError
from votechain.integrity import IntegrityChecker


def _parse_expectations(pairs: tuple[str, ...]) -> dict[str, int]:
    expected = {}
    for pair in pairs:
        candidate, sep, count = pair.partition("=")
        if not sep or not candidate or not count.isdigit():
            raise click.BadParameter(f"expected CANDIDATE=COUNT, got {pair!r}", param_hint="--expect")
        expected[candidate] = int(count)
    return expected


def _fmt_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _run_or_exit(coro):
    try:
        return run_async(coro)
    except PersistenceError as e:
        console.print(f"[red]✗ Block store unavailable:[/] {e}")
        sys.exit(1)


@cli.group()
def ledger():
    """Inspect and audit the vote ledger."""
    pass


@ledger.command("status")
@click.option("--db", default=None, help="Database path (local storage)")
def ledger_status(db):
    """Show the current height and tip of the ledger."""

    async def _status_async():
        async with gateway_session(db) as gateway:
            return await load_ledger(gateway, seed=False)

    chain = _run_or_exit(_status_async())
    if not len(chain):
        console.print("[yellow]⚠ Ledger is empty. Run 'votechain init'.[/]")
        return

    tip = chain.latest()
    console.print(
        Panel(
            f"[bold cyan]Height:[/] {len(chain)} blocks\n"
            f"[bold cyan]Vote blocks:[/] {len(chain.votes())}\n"
            f"[bold cyan]Difficulty:[/] {chain.difficulty}\n"
            f"[bold cyan]Latest block:[/] #{tip.index} at {_fmt_ms(tip.timestamp)}\n"
            f"[bold cyan]Latest hash:[/] {tip.hash}",
            title="📊 Ledger Status",
            border_style="cyan",
        )
    )


@ledger.command("verify")
@click.option("--db", default=None, help="Database path (local storage)")
def ledger_verify(db):
    """Verify the hash chain of the stored ledger."""

    async def _verify_async():
        async with gateway_session(db) as gateway:
            return await IntegrityChecker(gateway).verify_chain()

    with console.status("[bold blue]Verifying ledger hash chain...[/]"):
        report = _run_or_exit(_verify_async())

    if report.valid:
        console.print(f"[green]✅ Hash chain integrity: OK[/] ({report.block_count} blocks)")
        return

    console.print("[red]❌ Hash chain integrity: FAILED[/]")
    for v in report.violations:
        console.print(f"  [red]✗[/] {v['type']} at block #{v['index']}")
    sys.exit(1)


@ledger.command("votes")
@click.argument("election_id")
@click.option("--db", default=None, help="Database path (local storage)")
def ledger_votes(election_id, db):
    """List the vote blocks recorded for ELECTION_ID."""

    async def _votes_async():
        async with gateway_session(db) as gateway:
            return await IntegrityChecker(gateway).election_votes(election_id)

    records = _run_or_exit(_votes_async())
    if not records:
        console.print(f"[yellow]No votes recorded for election {election_id}.[/]")
        return

    table = Table(title=f"Votes — {election_id}")
    table.add_column("Block", justify="right", style="bold")
    table.add_column("Candidate")
    table.add_column("Cast at")
    table.add_column("Vote hash", style="dim")
    for r in records:
        table.add_row(f"#{r.block_index}", str(r.candidate_id), _fmt_ms(r.timestamp), r.vote_hash[:16])
    console.print(table)


@ledger.command("audit")
@click.argument("election_id")
@click.option("--expect", "-e", multiple=True, help="Expected count as CANDIDATE=COUNT (repeatable)")
@click.option("--db", default=None, help="Database path (local storage)")
def ledger_audit(election_id, expect, db):
    """Reconcile the on-chain tally of ELECTION_ID against expected counts."""
    expected = _parse_expectations(expect)

    async def _audit_async():
        async with gateway_session(db) as gateway:
            return await IntegrityChecker(gateway).verify(election_id, expected)

    report = _run_or_exit(_audit_async())

    table = Table(title=f"Tally audit — {election_id}")
    table.add_column("Candidate", style="bold")
    table.add_column("Ledger", justify="right")
    table.add_column("Expected", justify="right")
    for candidate in sorted(set(report.tally) | set(expected)):
        on_chain = report.tally.get(candidate, 0)
        wanted = expected.get(candidate, 0)
        style = "red" if candidate in report.mismatches else "green"
        table.add_row(candidate, f"[{style}]{on_chain}[/]", str(wanted))
    console.print(table)

    chain = "[green]valid[/]" if report.chain_valid else "[red]INVALID[/]"
    counts = "[green]match[/]" if report.counts_match else "[red]MISMATCH[/]"
    console.print(f"Chain: {chain} ({report.block_count} blocks) | Counts: {counts}")

    if not (report.chain_valid and report.counts_match):
        sys.exit(1)
