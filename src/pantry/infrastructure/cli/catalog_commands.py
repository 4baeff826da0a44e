"""CLI commands for the catalog: items, costs and availability."""

from __future__ import annotations

import click

from pantry.application.add_item import AddItemHandler
from pantry.application.check_fulfillability import CheckFulfillabilityHandler
from pantry.application.link_component import LinkComponentHandler
from pantry.application.storefront_availability import StorefrontAvailabilityHandler
from pantry.application.update_item_cost import UpdateItemCostHandler
from pantry.domain.exceptions import DomainException
from pantry.infrastructure import bootstrap
from pantry.infrastructure.cli.order_commands import parse_item_spec


@click.command("add-item")
@click.option("--name", required=True, help="Item name.")
@click.option("--serving-unit", required=True, help="Unit recipes use, e.g. grams.")
@click.option("--storage-unit", default=None, help="Unit stock is counted in, e.g. Kg.")
@click.option("--cost", "cost_per_unit", default="0", help="Cost per serving unit.")
@click.option("--tenant", "tenant_id", type=int, default=None, help="Owner; omit for shared.")
@click.option("--type", "item_type", default="food", type=click.Choice(["food", "non_food"]))
@click.option("--composite", is_flag=True, default=False, help="Produced in batches.")
@click.option("--batch-quantity", default=None, help="Batch yield (composites).")
@click.option("--batch-unit", default=None, help="Unit of the batch yield.")
@click.option("--clone-of", "base_item_id", type=int, default=None, help="Shared item to shadow.")
def catalog_add_item(
    name: str,
    serving_unit: str,
    storage_unit: str | None,
    cost_per_unit: str,
    tenant_id: int | None,
    item_type: str,
    composite: bool,
    batch_quantity: str | None,
    batch_unit: str | None,
    base_item_id: int | None,
) -> None:
    """Add an item to the catalog."""
    handler = AddItemHandler(catalog_repo=bootstrap.catalog_repository())

    try:
        item = handler.handle(
            name=name,
            serving_unit=serving_unit,
            storage_unit=storage_unit,
            cost_per_unit=cost_per_unit,
            tenant_id=tenant_id,
            item_type=item_type,
            is_composite=composite,
            batch_quantity=batch_quantity,
            batch_unit=batch_unit,
            base_item_id=base_item_id,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"Item #{item.id} '{item.name}' added  "
        f"({item.storage_unit.value} / {item.serving_unit.value}, {item.scope})"
    )


@click.command("link")
@click.option("--composite", "composite_id", required=True, type=int, help="Composite item ID.")
@click.option("--component", "component_id", required=True, type=int, help="Component item ID.")
@click.option("--quantity", required=True, help="Per batch, in the component's serving unit.")
def catalog_link(composite_id: int, component_id: int, quantity: str) -> None:
    """Add a component to a composite item's batch recipe."""
    handler = LinkComponentHandler(
        catalog_repo=bootstrap.catalog_repository(),
        cascade=bootstrap.cost_cascade(),
    )

    try:
        item = handler.handle(composite_id, component_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"'{item.name}' now has {len(item.components)} component(s).")


@click.command("cost")
@click.option("--item", "item_id", required=True, type=int, help="Item ID.")
@click.option("--cost", required=True, help="New cost per serving unit.")
@click.option("--tenant", "tenant_id", type=int, default=None, help="Tenant override; omit for default.")
def catalog_cost(item_id: int, cost: str, tenant_id: int | None) -> None:
    """Change an item's cost and recompute everything that depends on it."""
    handler = UpdateItemCostHandler(
        catalog_repo=bootstrap.catalog_repository(),
        cost_repo=bootstrap.cost_repository(),
        calculator=bootstrap.cost_calculator(),
        cascade=bootstrap.cost_cascade(),
    )

    try:
        dto = handler.handle(item_id, cost, tenant_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Item #{dto.item_id} now costs {dto.effective_cost} per serving unit.")
    for composite_id, value in sorted(dto.composites.items()):
        click.echo(f"  composite #{composite_id}: {value}")
    for product_ref, value in sorted(dto.products.items()):
        click.echo(f"  product {product_ref}: {value}")


@click.command("availability")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
def catalog_availability(tenant_id: int, branch_id: int | None) -> None:
    """How many of each product can still be sold."""
    handler = StorefrontAvailabilityHandler(
        catalog_repo=bootstrap.catalog_repository(),
        availability=bootstrap.availability_calculator(),
        sentinel=bootstrap.settings().max_orderable_sentinel,
    )
    rows = handler.handle(tenant_id, branch_id)

    if not rows:
        click.echo("No products found.")
        return

    for row in rows:
        count = "unlimited" if row.unlimited else str(row.max_orderable)
        click.echo(f"{row.product_id:>5}  {row.name:<28} {count:>10}")


@click.command("check")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
@click.option("--type", "order_type", default=None, help="Order type, for accessories.")
@click.option("--item", "items", multiple=True, help="'ProductId[/VariantId]:Qty[@+ModId,-ModId]'.")
@click.option("--bundle", "bundles", multiple=True, help="'BundleId:Qty'.")
def catalog_check(
    tenant_id: int,
    branch_id: int | None,
    order_type: str | None,
    items: tuple[str, ...],
    bundles: tuple[str, ...],
) -> None:
    """Check whether a cart could be made right now."""
    specs = [parse_item_spec(raw) for raw in items] + [parse_item_spec(raw, bundle=True) for raw in bundles]
    handler = CheckFulfillabilityHandler(
        item_builder=bootstrap.order_item_builder(),
        availability=bootstrap.availability_calculator(),
    )

    try:
        dto = handler.handle(tenant_id, branch_id, specs, order_type)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if dto.can_fulfill:
        click.echo("Can fulfill.")
        return
    for line in dto.shortages:
        click.echo(f"  short: {line}")
    for line in dto.unverifiable:
        click.echo(f"  unverifiable: {line}")
    raise click.ClickException("Cannot fulfill")
