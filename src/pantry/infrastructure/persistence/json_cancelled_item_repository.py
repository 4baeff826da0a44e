"""JSON-file-backed implementation of CancelledItemRepository."""

from __future__ import annotations

import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from pantry.domain.model.cancelled_item import (
    CancellationSource,
    CancelledOrderItem,
    WasteDecision,
)
from pantry.domain.model.units import Unit
from pantry.domain.repository.cancelled_item_repository import CancelledItemRepository
from pantry.infrastructure.persistence.json_files import read_json, write_json


class JsonCancelledItemRepository(CancelledItemRepository):

    def __init__(self, file_path: Path) -> None:
        super().__init__()
        self._file_path = file_path
        self._file_lock = threading.RLock()
        self._ensure_file()

    # --- CancelledItemRepository interface ------------------------------------

    def get_by_id(self, record_id: int) -> CancelledOrderItem | None:
        for raw in self._load_raw():
            if raw["id"] == record_id:
                return self._to_domain(raw)
        return None

    def list_all(self) -> list[CancelledOrderItem]:
        return [self._to_domain(raw) for raw in self._load_raw()]

    def add_all(self, records: list[CancelledOrderItem]) -> None:
        with self._file_lock:
            rows = self._load_raw()
            next_id = max((r["id"] for r in rows), default=0) + 1
            for record in records:
                record.id = next_id
                next_id += 1
                rows.append(self._to_raw(record))
            self._persist_raw(rows)

    def save(self, record: CancelledOrderItem) -> None:
        with self._file_lock:
            rows = self._load_raw()
            for i, raw in enumerate(rows):
                if raw["id"] == record.id:
                    rows[i] = self._to_raw(record)
                    break
            else:
                rows.append(self._to_raw(record))
            self._persist_raw(rows)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(record: CancelledOrderItem) -> dict:
        return {
            "id": record.id,
            "tenant_id": record.tenant_id,
            "branch_id": record.branch_id,
            "order_id": record.order_id,
            "order_item_id": record.order_item_id,
            "product_id": record.product_id,
            "item_id": record.item_id,
            "item_name": record.item_name,
            "quantity": str(record.quantity),
            "unit": record.unit.value,
            "source": record.source.value,
            "decision": record.decision.value if record.decision else None,
            "decided_by": record.decided_by,
            "decided_at": record.decided_at.isoformat() if record.decided_at else None,
            "created_at": record.created_at.isoformat(),
        }

    @staticmethod
    def _to_domain(raw: dict) -> CancelledOrderItem:
        decided_at = raw.get("decided_at")
        return CancelledOrderItem(
            id=raw["id"],
            tenant_id=raw["tenant_id"],
            branch_id=raw.get("branch_id"),
            order_id=raw["order_id"],
            item_id=raw["item_id"],
            quantity=Decimal(raw["quantity"]),
            unit=Unit(raw["unit"]),
            source=CancellationSource(raw["source"]),
            order_item_id=raw.get("order_item_id"),
            product_id=raw.get("product_id"),
            item_name=raw.get("item_name"),
            decision=WasteDecision(raw["decision"]) if raw.get("decision") else None,
            decided_by=raw.get("decided_by"),
            decided_at=datetime.fromisoformat(decided_at) if decided_at else None,
            created_at=datetime.fromisoformat(raw["created_at"]),
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        with self._file_lock:
            return read_json(self._file_path)

    def _persist_raw(self, rows: list[dict]) -> None:
        with self._file_lock:
            write_json(self._file_path, rows)

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._persist_raw([])
