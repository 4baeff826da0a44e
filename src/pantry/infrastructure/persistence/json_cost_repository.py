"""JSON-file-backed implementation of CostRepository."""

from __future__ import annotations

import threading
from decimal import Decimal
from pathlib import Path

from pantry.domain.repository.cost_repository import CostRepository
from pantry.infrastructure.persistence.json_files import read_json, write_json

_SECTIONS = ("overrides", "composites", "products")


class JsonCostRepository(CostRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._file_lock = threading.RLock()
        self._ensure_file()

    # --- CostRepository interface ---------------------------------------------

    def get_override(self, tenant_id: int, item_id: int) -> Decimal | None:
        return self._find("overrides", tenant_id=tenant_id, item_id=item_id)

    def set_override(self, tenant_id: int, item_id: int, cost: Decimal) -> None:
        self._store("overrides", cost, tenant_id=tenant_id, item_id=item_id)

    def get_composite_cost(self, tenant_id: int | None, item_id: int) -> Decimal | None:
        return self._find("composites", tenant_id=tenant_id, item_id=item_id)

    def save_composite_cost(self, tenant_id: int | None, item_id: int, cost: Decimal) -> None:
        self._store("composites", cost, tenant_id=tenant_id, item_id=item_id)

    def get_product_cost(
        self, tenant_id: int | None, product_id: int, variant_id: int | None
    ) -> Decimal | None:
        return self._find(
            "products", tenant_id=tenant_id, product_id=product_id, variant_id=variant_id
        )

    def save_product_cost(
        self,
        tenant_id: int | None,
        product_id: int,
        variant_id: int | None,
        cost: Decimal,
    ) -> None:
        self._store(
            "products", cost, tenant_id=tenant_id, product_id=product_id, variant_id=variant_id
        )

    def tenants(self) -> set[int]:
        data = self._load_raw()
        return {
            row["tenant_id"]
            for section in _SECTIONS
            for row in data[section]
            if row["tenant_id"] is not None
        }

    # --- Row helpers ----------------------------------------------------------

    def _find(self, section: str, **match) -> Decimal | None:
        for row in self._load_raw()[section]:
            if all(row.get(k) == v for k, v in match.items()):
                return Decimal(row["cost"])
        return None

    def _store(self, section: str, cost: Decimal, **match) -> None:
        with self._file_lock:
            data = self._load_raw()
            rows = data[section]
            for row in rows:
                if all(row.get(k) == v for k, v in match.items()):
                    row["cost"] = str(cost)
                    break
            else:
                rows.append({**match, "cost": str(cost)})
            self._persist_raw(data)

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
