import click

from pantry.infrastructure import bootstrap
from pantry.infrastructure.cli.catalog_commands import (
    catalog_add_item,
    catalog_availability,
    catalog_check,
    catalog_cost,
    catalog_link,
)
from pantry.infrastructure.cli.kitchen_commands import (
    kitchen_decide,
    kitchen_expire,
    kitchen_pending,
    kitchen_stats,
)
from pantry.infrastructure.cli.order_commands import (
    order_accept,
    order_add_item,
    order_cancel,
    order_complete,
    order_create,
    order_pickup,
    order_refund,
    order_reject,
    order_remove_item,
    order_set_modifiers,
    order_set_quantity,
    order_show,
)
from pantry.infrastructure.cli.stock_commands import (
    stock_adjust,
    stock_movements,
    stock_receive,
    stock_show,
)
from pantry.infrastructure.logging_setup import configure_logging


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Pantry — inventory-aware order fulfillment"""
    configure_logging(bootstrap.settings().log_level)
    # Waits for background reservations before the process exits
    ctx.call_on_close(bootstrap.reset)


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def stock() -> None:
    """Manage branch stock."""


@cli.group()
def kitchen() -> None:
    """Waste/return decisions for released ingredients."""


@cli.group()
def catalog() -> None:
    """Manage items, costs and availability."""


# Register subcommands
order.add_command(order_accept)
order.add_command(order_add_item)
order.add_command(order_cancel)
order.add_command(order_complete)
order.add_command(order_create)
order.add_command(order_pickup)
order.add_command(order_refund)
order.add_command(order_reject)
order.add_command(order_remove_item)
order.add_command(order_set_modifiers)
order.add_command(order_set_quantity)
order.add_command(order_show)
stock.add_command(stock_adjust)
stock.add_command(stock_movements)
stock.add_command(stock_receive)
stock.add_command(stock_show)
kitchen.add_command(kitchen_decide)
kitchen.add_command(kitchen_expire)
kitchen.add_command(kitchen_pending)
kitchen.add_command(kitchen_stats)
catalog.add_command(catalog_add_item)
catalog.add_command(catalog_availability)
catalog.add_command(catalog_check)
catalog.add_command(catalog_cost)
catalog.add_command(catalog_link)
