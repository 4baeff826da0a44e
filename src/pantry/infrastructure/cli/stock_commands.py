"""CLI commands for branch stock."""

from __future__ import annotations

import click

from pantry.application.adjust_stock import AdjustStockHandler, ReceiveStockHandler
from pantry.application.dto import StockDTO
from pantry.application.show_stock import ShowStockHandler
from pantry.domain.exceptions import DomainException
from pantry.infrastructure import bootstrap


def _echo_stock(dto: StockDTO) -> None:
    click.echo(
        f"{dto.item_name}: {dto.quantity} on hand, {dto.reserved_quantity} reserved, "
        f"{dto.available_quantity} available"
    )


@click.command("receive")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
@click.option("--item", "item_id", required=True, type=int, help="Item ID.")
@click.option("--quantity", required=True, help="Quantity received.")
@click.option("--unit", default=None, help="Unit of --quantity (default: storage unit).")
@click.option("--unit-cost", default=None, help="Invoice price per storage unit.")
def stock_receive(
    tenant_id: int,
    branch_id: int | None,
    item_id: int,
    quantity: str,
    unit: str | None,
    unit_cost: str | None,
) -> None:
    """Book a delivery into stock."""
    handler = ReceiveStockHandler(
        catalog_repo=bootstrap.catalog_repository(),
        stock_repo=bootstrap.stock_repository(),
        cost_repo=bootstrap.cost_repository(),
        ledger=bootstrap.reservation_ledger(),
        calculator=bootstrap.cost_calculator(),
        cascade=bootstrap.cost_cascade(),
    )

    try:
        dto = handler.handle(tenant_id, branch_id, item_id, quantity, unit, unit_cost)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _echo_stock(dto)


@click.command("adjust")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
@click.option("--item", "item_id", required=True, type=int, help="Item ID.")
@click.option("--delta", required=True, help="Signed correction, e.g. -0.5.")
@click.option("--reason", required=True, help="Why the count changed.")
@click.option("--unit", default=None, help="Unit of --delta (default: storage unit).")
def stock_adjust(
    tenant_id: int,
    branch_id: int | None,
    item_id: int,
    delta: str,
    reason: str,
    unit: str | None,
) -> None:
    """Correct on-hand stock after a count or spoilage."""
    handler = AdjustStockHandler(
        catalog_repo=bootstrap.catalog_repository(),
        stock_repo=bootstrap.stock_repository(),
        ledger=bootstrap.reservation_ledger(),
    )

    try:
        dto = handler.handle(tenant_id, branch_id, item_id, delta, reason, unit)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _echo_stock(dto)


@click.command("show")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
def stock_show(tenant_id: int, branch_id: int | None) -> None:
    """Show current stock levels."""
    handler = ShowStockHandler(
        catalog_repo=bootstrap.catalog_repository(),
        stock_repo=bootstrap.stock_repository(),
    )
    lines = handler.handle(tenant_id, branch_id)

    if not lines:
        click.echo("No stock records found.")
        return

    click.echo(f"{'Item':<24} {'On hand':>14} {'Reserved':>14} {'Available':>14}")
    click.echo("-" * 69)
    for line in lines:
        click.echo(
            f"{line.item_name:<24} {line.quantity:>14} "
            f"{line.reserved_quantity:>14} {line.available_quantity:>14}"
        )


@click.command("movements")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
@click.option("--item", "item_id", type=int, default=None, help="Only this item.")
@click.option("--limit", type=int, default=20, show_default=True)
def stock_movements(
    tenant_id: int, branch_id: int | None, item_id: int | None, limit: int
) -> None:
    """Show the ledger audit trail, newest first."""
    handler = ShowStockHandler(
        catalog_repo=bootstrap.catalog_repository(),
        stock_repo=bootstrap.stock_repository(),
    )
    rows = handler.movements(tenant_id, branch_id, item_id, limit)

    if not rows:
        click.echo("No movements recorded.")
        return

    for row in rows:
        ref = f" order #{row.order_ref}" if row.order_ref is not None else ""
        click.echo(
            f"{row.created_at}  item #{row.item_id} {row.kind:<10} {row.quantity:>10}  "
            f"on hand {row.quantity_before} -> {row.quantity_after}, "
            f"reserved {row.reserved_before} -> {row.reserved_after}{ref}"
        )
