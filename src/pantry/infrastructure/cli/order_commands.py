"""CLI commands for the Order aggregate."""

from __future__ import annotations

from datetime import datetime

import click

from pantry.application.accept_order import AcceptOrderHandler
from pantry.application.cancel_order import CancelOrderHandler
from pantry.application.complete_order import CompleteOrderHandler
from pantry.application.create_order import CreateOrderHandler
from pantry.application.dto import ModifierSpec, OrderDTO, OrderItemSpec
from pantry.application.edit_order import EditOrderHandler
from pantry.application.pickup_order import PickupOrderHandler
from pantry.application.refund_order import RefundOrderHandler
from pantry.application.reject_order import RejectOrderHandler
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import DomainException
from pantry.infrastructure import bootstrap


# --- Parsing ------------------------------------------------------------------


def _parse_modifiers(raw: str) -> tuple[ModifierSpec, ...]:
    """Parse '+12,-14,+15x2' into ModifierSpecs (+ extra, - removal)."""
    specs: list[ModifierSpec] = []
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        if token[0] not in "+-":
            raise click.BadParameter(
                f"Invalid modifier '{token}'. Expected '+ID' (extra) or '-ID' (removal)."
            )
        kind = "extra" if token[0] == "+" else "removal"
        body, _, times = token[1:].partition("x")
        try:
            specs.append(ModifierSpec(int(body), kind, int(times) if times else 1))
        except ValueError:
            raise click.BadParameter(f"Invalid modifier '{token}'.")
    return tuple(specs)


def parse_item_spec(raw: str, bundle: bool = False) -> OrderItemSpec:
    """Parse 'PRODUCT[/VARIANT]:QTY[@MODIFIERS]' (or 'BUNDLE:QTY')."""
    body, _, modifiers = raw.partition("@")
    if ":" not in body:
        raise click.BadParameter(
            f"Invalid item format '{raw}'. Expected 'ProductId[/VariantId]:Quantity'."
        )
    ref, qty_str = body.rsplit(":", 1)
    product_str, _, variant_str = ref.partition("/")
    try:
        qty = int(qty_str)
        ref_id = int(product_str)
        variant_id = int(variant_str) if variant_str else None
    except ValueError:
        raise click.BadParameter(f"Invalid item '{raw}'.")
    if bundle:
        if variant_id is not None or modifiers:
            raise click.BadParameter(f"Bundle '{raw}' takes no variant or modifiers.")
        return OrderItemSpec(quantity=qty, bundle_id=ref_id)
    return OrderItemSpec(
        quantity=qty,
        product_id=ref_id,
        variant_id=variant_id,
        modifiers=_parse_modifiers(modifiers),
    )


# --- Display ------------------------------------------------------------------


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    edited = "  [edited]" if dto.is_edited else ""
    click.echo(f"Order #{dto.id}  (status={dto.status}, payment={dto.payment_status}){edited}")
    click.echo(f"Type:     {dto.order_type} via {dto.source}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo()
    click.echo(f"  {'#':>3} {'Item':<28} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*59}")
    for item in dto.items:
        click.echo(
            f"  {item.id:>3} {item.name:<28} {item.quantity:>5} "
            f"{item.unit_price:>10} {item.line_total:>10}"
        )
        for modifier in item.modifiers:
            click.echo(f"  {'':>3}   {modifier}")
    click.echo(f"  {'-'*59}")
    click.echo(f"  {'Order Total':<35} {dto.total:>23}")
    click.echo(f"  {'Paid':<35} {dto.paid_amount:>23}")
    click.echo(f"  {'Remaining':<35} {dto.remaining_amount:>23}")


def _edit_handler() -> EditOrderHandler:
    return EditOrderHandler(
        order_repo=bootstrap.order_repository(),
        item_builder=bootstrap.order_item_builder(),
        resolver=bootstrap.bom_resolver(),
        ledger=bootstrap.reservation_ledger(),
        waste_queue=bootstrap.waste_queue(),
    )


# --- Lifecycle ----------------------------------------------------------------


@click.command("create")
@click.option("--tenant", "tenant_id", required=True, type=int, help="Tenant ID.")
@click.option("--branch", "branch_id", type=int, default=None, help="Branch ID.")
@click.option(
    "--type", "order_type", default="dine_in",
    type=click.Choice(["dine_in", "takeaway", "delivery"]), help="Order type.",
)
@click.option("--item", "items", multiple=True, help="'ProductId[/VariantId]:Qty[@+ModId,-ModId]'.")
@click.option("--bundle", "bundles", multiple=True, help="'BundleId:Qty'.")
@click.option("--source", default="pos", help="pos, phone, walk_in or delivery_partner.")
@click.option("--payment", "payment_method", default=None, help="Payment method, e.g. cash.")
@click.option("--pay-later", is_flag=True, default=False, help="Dine-in, pay at the end.")
@click.option("--partner", "delivery_partner_id", type=int, default=None, help="Delivery partner ID.")
@click.option("--scheduled-for", type=click.DateTime(), default=None, help="Schedule for later.")
def order_create(
    tenant_id: int,
    branch_id: int | None,
    order_type: str,
    items: tuple[str, ...],
    bundles: tuple[str, ...],
    source: str,
    payment_method: str | None,
    pay_later: bool,
    delivery_partner_id: int | None,
    scheduled_for: datetime | None,
) -> None:
    """Create a new order (refused if any ingredient is short)."""
    specs = [parse_item_spec(raw) for raw in items] + [parse_item_spec(raw, bundle=True) for raw in bundles]
    if not specs:
        raise click.UsageError("Give at least one --item or --bundle.")

    handler = CreateOrderHandler(
        order_repo=bootstrap.order_repository(),
        item_builder=bootstrap.order_item_builder(),
        availability=bootstrap.availability_calculator(),
        resolver=bootstrap.bom_resolver(),
        dispatcher=bootstrap.reservation_dispatcher(),
    )

    try:
        dto = handler.handle(
            tenant_id=tenant_id,
            branch_id=branch_id,
            order_type=order_type,
            item_specs=specs,
            source=source,
            payment_method=payment_method,
            is_pay_later=pay_later,
            delivery_partner_id=delivery_partner_id,
            scheduled_for=scheduled_for,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{dto.id} created  (status={dto.status})")
    click.echo()
    _display_order(dto)


@click.command("show")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to display.")
@click.option("--history", is_flag=True, default=False, help="Also print status history.")
def order_show(order_id: int, history: bool) -> None:
    """Show details of an existing order."""
    handler = ShowOrderHandler(order_repo=bootstrap.order_repository())

    try:
        dto = handler.handle(order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)
    if history:
        click.echo()
        for line in dto.history:
            click.echo(f"  {line}")


@click.command("accept")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to accept.")
def order_accept(order_id: int) -> None:
    """Accept a scheduled order (reserves its ingredients)."""
    handler = AcceptOrderHandler(
        order_repo=bootstrap.order_repository(),
        resolver=bootstrap.bom_resolver(),
        ledger=bootstrap.reservation_ledger(),
    )

    try:
        handler.handle(order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{order_id} accepted — ingredients reserved.")


@click.command("complete")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to complete.")
def order_complete(order_id: int) -> None:
    """Complete an order (consumes its reserved ingredients)."""
    handler = CompleteOrderHandler(
        order_repo=bootstrap.order_repository(),
        resolver=bootstrap.bom_resolver(),
        ledger=bootstrap.reservation_ledger(),
    )

    try:
        handler.handle(order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{order_id} completed.")


@click.command("pickup")
@click.option("--id", "order_id", required=True, type=int, help="Delivery order ID.")
def order_pickup(order_id: int) -> None:
    """Mark a completed delivery order as picked up by the driver."""
    handler = PickupOrderHandler(order_repo=bootstrap.order_repository())

    try:
        handler.handle(order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{order_id} picked up.")


@click.command("cancel")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to cancel.")
@click.option("--reason", default=None, help="Cancellation reason.")
def order_cancel(order_id: int, reason: str | None) -> None:
    """Cancel an order (released ingredients await a waste/return decision)."""
    handler = CancelOrderHandler(
        order_repo=bootstrap.order_repository(),
        waste_queue=bootstrap.waste_queue(),
    )

    try:
        handler.handle(order_id, reason)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{order_id} cancelled.")


@click.command("reject")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to reject.")
@click.option("--reason", default=None, help="Rejection reason.")
def order_reject(order_id: int, reason: str | None) -> None:
    """Reject an in-progress order (ingredients return to stock)."""
    handler = RejectOrderHandler(
        order_repo=bootstrap.order_repository(),
        resolver=bootstrap.bom_resolver(),
        ledger=bootstrap.reservation_ledger(),
    )

    try:
        handler.handle(order_id, reason)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{order_id} rejected.")


@click.command("refund")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to refund.")
@click.option("--reason", required=True, help="Refund reason.")
@click.option("--amount", default=None, help="Partial amount; defaults to the order total.")
def order_refund(order_id: int, reason: str, amount: str | None) -> None:
    """Refund a completed order."""
    handler = RefundOrderHandler(order_repo=bootstrap.order_repository())

    try:
        dto = handler.handle(order_id, reason, amount)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{order_id} refunded  (payment={dto.payment_status}).")


# --- Edits --------------------------------------------------------------------


@click.command("add-item")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option("--item", "item", default=None, help="'ProductId[/VariantId]:Qty[@+ModId,-ModId]'.")
@click.option("--bundle", "bundle", default=None, help="'BundleId:Qty'.")
def order_add_item(order_id: int, item: str | None, bundle: str | None) -> None:
    """Add an item to an in-progress order."""
    if bool(item) == bool(bundle):
        raise click.UsageError("Give exactly one of --item or --bundle.")
    spec = parse_item_spec(item) if item else parse_item_spec(bundle or "", bundle=True)

    try:
        dto = _edit_handler().add_item(order_id, spec)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("remove-item")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option("--line", "order_item_id", required=True, type=int, help="Order item number.")
def order_remove_item(order_id: int, order_item_id: int) -> None:
    """Remove an item from an in-progress order."""
    try:
        dto = _edit_handler().remove_item(order_id, order_item_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("set-quantity")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option("--line", "order_item_id", required=True, type=int, help="Order item number.")
@click.option("--quantity", required=True, type=int, help="New quantity.")
def order_set_quantity(order_id: int, order_item_id: int, quantity: int) -> None:
    """Change the quantity of an order item."""
    try:
        dto = _edit_handler().change_quantity(order_id, order_item_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("set-modifiers")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option("--line", "order_item_id", required=True, type=int, help="Order item number.")
@click.option("--modifiers", default="", help="'+ModId,-ModId,+ModIdx2'; empty clears them.")
def order_set_modifiers(order_id: int, order_item_id: int, modifiers: str) -> None:
    """Replace the modifiers of an order item."""
    specs = list(_parse_modifiers(modifiers))

    try:
        dto = _edit_handler().replace_modifiers(order_id, order_item_id, specs)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)
