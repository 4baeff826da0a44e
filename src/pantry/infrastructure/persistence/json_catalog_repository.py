"""JSON-file-backed implementation of CatalogRepository.

The whole catalog lives in one document with a list per entity kind.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from pathlib import Path

from pantry.domain.model.item import CompositeComponent, Item, ItemScope, ItemType
from pantry.domain.model.product import (
    ALWAYS,
    Bundle,
    BundleItem,
    Product,
    ProductAccessory,
    ProductIngredient,
    ProductModifier,
    Variant,
)
from pantry.domain.model.units import Unit
from pantry.domain.model.value_objects import Money
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.infrastructure.persistence.json_files import read_json, write_json

_SECTIONS = ("items", "products", "bundles", "ingredients", "modifiers", "accessories")


class JsonCatalogRepository(CatalogRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._file_lock = threading.RLock()
        self._ensure_file()

    # --- Items ----------------------------------------------------------------

    def get_item(self, item_id: int) -> Item | None:
        for raw in self._load_raw()["items"]:
            if raw["id"] == item_id:
                return self._item_to_domain(raw)
        return None

    def list_items(self) -> list[Item]:
        return [self._item_to_domain(raw) for raw in self._load_raw()["items"]]

    def save_item(self, item: Item) -> None:
        with self._file_lock:
            data = self._load_raw()
            items = data["items"]
            if item.id is None:
                item.id = max((r["id"] for r in items), default=0) + 1
            _upsert(items, self._item_to_raw(item))
            self._persist_raw(data)

    # --- Products -------------------------------------------------------------

    def get_product(self, product_id: int) -> Product | None:
        for raw in self._load_raw()["products"]:
            if raw["id"] == product_id:
                return self._product_to_domain(raw)
        return None

    def list_products(self) -> list[Product]:
        return [self._product_to_domain(raw) for raw in self._load_raw()["products"]]

    def save_product(self, product: Product) -> None:
        with self._file_lock:
            data = self._load_raw()
            _upsert(data["products"], self._product_to_raw(product))
            self._persist_raw(data)

    def get_bundle(self, bundle_id: int) -> Bundle | None:
        for raw in self._load_raw()["bundles"]:
            if raw["id"] == bundle_id:
                return self._bundle_to_domain(raw)
        return None

    # --- Recipe edges ---------------------------------------------------------

    def list_ingredients(self) -> list[ProductIngredient]:
        return [
            ProductIngredient(
                product_id=raw["product_id"],
                item_id=raw["item_id"],
                quantity=Decimal(raw["quantity"]),
                variant_id=raw.get("variant_id"),
                removable=raw.get("removable", False),
            )
            for raw in self._load_raw()["ingredients"]
        ]

    def list_modifiers(self) -> list[ProductModifier]:
        return [
            ProductModifier(
                id=raw["id"],
                product_id=raw["product_id"],
                name=raw["name"],
                item_id=raw.get("item_id"),
                quantity=Decimal(raw.get("quantity", "0")),
                extra_price=_money(raw.get("extra_price", "0")),
                removable=raw.get("removable", False),
                addable=raw.get("addable", True),
            )
            for raw in self._load_raw()["modifiers"]
        ]

    def list_accessories(self) -> list[ProductAccessory]:
        return [
            ProductAccessory(
                product_id=raw["product_id"],
                item_id=raw["item_id"],
                quantity=Decimal(raw["quantity"]),
                applicable_order_types=frozenset(raw.get("applicable_order_types", [ALWAYS])),
                variant_id=raw.get("variant_id"),
            )
            for raw in self._load_raw()["accessories"]
        ]

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _item_to_raw(item: Item) -> dict:
        return {
            "id": item.id,
            "name": item.name,
            "serving_unit": item.serving_unit.value,
            "storage_unit": item.storage_unit.value,
            "cost_per_unit": str(item.cost_per_unit),
            "tenant_id": item.scope.tenant_id,
            "item_type": item.item_type.value,
            "is_composite": item.is_composite,
            "batch_quantity": None if item.batch_quantity is None else str(item.batch_quantity),
            "batch_unit": None if item.batch_unit is None else item.batch_unit.value,
            "components": [
                {"item_id": c.component_item_id, "quantity": str(c.quantity)}
                for c in item.components
            ],
            "base_item_id": item.base_item_id,
        }

    @staticmethod
    def _item_to_domain(raw: dict) -> Item:
        batch_quantity = raw.get("batch_quantity")
        batch_unit = raw.get("batch_unit")
        return Item(
            id=raw["id"],
            name=raw["name"],
            serving_unit=Unit(raw["serving_unit"]),
            storage_unit=Unit(raw["storage_unit"]),
            cost_per_unit=Decimal(raw.get("cost_per_unit", "0")),
            scope=ItemScope(raw.get("tenant_id")),
            item_type=ItemType(raw.get("item_type", "food")),
            is_composite=raw.get("is_composite", False),
            batch_quantity=None if batch_quantity is None else Decimal(batch_quantity),
            batch_unit=None if batch_unit is None else Unit(batch_unit),
            components=[
                CompositeComponent(c["item_id"], Decimal(c["quantity"]))
                for c in raw.get("components", [])
            ],
            base_item_id=raw.get("base_item_id"),
        )

    @staticmethod
    def _product_to_raw(product: Product) -> dict:
        return {
            "id": product.id,
            "name": product.name,
            "price": str(product.price.amount),
            "currency": product.price.currency,
            "tenant_id": product.tenant_id,
            "has_variants": product.has_variants,
            "is_active": product.is_active,
            "variants": [
                {
                    "id": v.id,
                    "name": v.name,
                    "price": None if v.price is None else str(v.price.amount),
                }
                for v in product.variants
            ],
        }

    @staticmethod
    def _product_to_domain(raw: dict) -> Product:
        currency = raw.get("currency", "USD")
        return Product(
            id=raw["id"],
            name=raw["name"],
            price=Money(Decimal(raw["price"]), currency),
            tenant_id=raw.get("tenant_id"),
            has_variants=raw.get("has_variants", False),
            is_active=raw.get("is_active", True),
            variants=[
                Variant(
                    id=v["id"],
                    name=v["name"],
                    price=None if v.get("price") is None else Money(Decimal(v["price"]), currency),
                )
                for v in raw.get("variants", [])
            ],
        )

    @staticmethod
    def _bundle_to_domain(raw: dict) -> Bundle:
        return Bundle(
            id=raw["id"],
            name=raw["name"],
            price=_money(raw["price"]),
            items=[
                BundleItem(
                    product_id=b["product_id"],
                    quantity=b.get("quantity", 1),
                    variant_id=b.get("variant_id"),
                )
                for b in raw.get("items", [])
            ],
            tenant_id=raw.get("tenant_id"),
            is_active=raw.get("is_active", True),
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> dict:
        with self._file_lock:
            data = read_json(self._file_path)
        for section in _SECTIONS:
            data.setdefault(section, [])
        return data

    def _persist_raw(self, data: dict) -> None:
        with self._file_lock:
            write_json(self._file_path, data)

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._persist_raw({section: [] for section in _SECTIONS})


def _money(raw: str) -> Money:
    return Money(Decimal(raw))


def _upsert(rows: list[dict], row: dict) -> None:
    for i, existing in enumerate(rows):
        if existing["id"] == row["id"]:
            rows[i] = row
            return
    rows.append(row)
