"""CLI commands for the waste/return decision queue."""

from __future__ import annotations

import click

from pantry.application.auto_expire import AutoExpireHandler
from pantry.application.list_waste_decisions import ListPendingWasteDecisionsHandler
from pantry.application.resolve_waste_decision import ResolveWasteDecisionHandler
from pantry.application.waste_queue_stats import WasteQueueStatsHandler
from pantry.domain.exceptions import DomainException
from pantry.infrastructure import bootstrap


@click.command("pending")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
def kitchen_pending(tenant_id: int, branch_id: int | None) -> None:
    """List released ingredients awaiting a decision, oldest first."""
    handler = ListPendingWasteDecisionsHandler(waste_queue=bootstrap.waste_queue())
    rows = handler.handle(tenant_id, branch_id)

    if not rows:
        click.echo("Nothing awaiting a decision.")
        return

    click.echo(f"{'ID':>5} {'Order':>6} {'Item':<24} {'Quantity':>14} {'Age (h)':>8}")
    click.echo("-" * 61)
    for row in rows:
        click.echo(
            f"{row.id:>5} {row.order_id:>6} {row.item_name:<24} "
            f"{row.quantity:>14} {row.age_hours:>8}"
        )


@click.command("decide")
@click.option("--id", "decisions", multiple=True, required=True, help="'RowId:waste' or 'RowId:return'.")
@click.option("--by", "decided_by", type=int, default=None, help="Staff user ID.")
def kitchen_decide(decisions: tuple[str, ...], decided_by: int | None) -> None:
    """Resolve one or more queue rows as waste or return."""
    parsed: list[tuple[int, str]] = []
    for raw in decisions:
        row_id, sep, decision = raw.partition(":")
        if not sep:
            raise click.BadParameter(f"Invalid decision '{raw}'. Expected 'RowId:waste'.")
        try:
            parsed.append((int(row_id), decision))
        except ValueError:
            raise click.BadParameter(f"Invalid row ID '{row_id}'.")

    handler = ResolveWasteDecisionHandler(waste_queue=bootstrap.waste_queue())

    if len(parsed) == 1:
        try:
            dto = handler.handle(parsed[0][0], parsed[0][1], decided_by)
        except DomainException as exc:
            raise click.ClickException(str(exc))
        click.echo(f"#{dto.id} {dto.item_name}: {dto.decision}")
        return

    result = handler.handle_batch(parsed, decided_by)
    click.echo(f"{result.processed} resolved.")
    for error in result.errors:
        click.echo(f"  error: {error}")
    if result.errors:
        raise click.ClickException(f"{len(result.errors)} decision(s) failed")


@click.command("expire")
def kitchen_expire() -> None:
    """Write off every row left undecided past its deadline as waste."""
    handler = AutoExpireHandler(waste_queue=bootstrap.waste_queue())
    result = handler.handle()

    click.echo(f"{result.processed} expired row(s) written off as waste.")
    for error in result.errors:
        click.echo(f"  error: {error}")


@click.command("stats")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
def kitchen_stats(tenant_id: int, branch_id: int | None) -> None:
    """Summarize the pending queue."""
    handler = WasteQueueStatsHandler(waste_queue=bootstrap.waste_queue())
    stats = handler.handle(tenant_id, branch_id)

    click.echo(f"Pending:        {stats.pending_count}")
    click.echo(f"Expiring soon:  {stats.expiring_soon_count}")
    oldest = stats.oldest_pending_hours
    click.echo(f"Oldest (hours): {oldest if oldest is not None else '-'}")
