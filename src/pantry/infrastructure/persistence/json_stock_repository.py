"""JSON-file-backed implementation of StockRepository.

Rows, movements and anomalies share one document so ``save_batch`` is a
single file write.
"""

from __future__ import annotations

import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from pantry.domain.model.stock import (
    InventoryMovement,
    LedgerAnomaly,
    MovementKind,
    StockKey,
    StockRecord,
)
from pantry.domain.repository.stock_repository import StockRepository
from pantry.infrastructure.persistence.json_files import read_json, write_json


class JsonStockRepository(StockRepository):

    def __init__(self, file_path: Path) -> None:
        super().__init__()
        self._file_path = file_path
        # Row locks cover one key each; the file itself is shared by all keys.
        self._file_lock = threading.RLock()
        self._ensure_file()

    # --- StockRepository interface --------------------------------------------

    def get(self, key: StockKey) -> StockRecord | None:
        for raw in self._load_raw()["records"]:
            if _key_matches(raw, key):
                return self._record_to_domain(raw)
        return None

    def list_for_branch(self, tenant_id: int, branch_id: int | None) -> list[StockRecord]:
        return [
            self._record_to_domain(raw)
            for raw in self._load_raw()["records"]
            if raw["tenant_id"] == tenant_id and raw["branch_id"] == branch_id
        ]

    def save_batch(
        self,
        records: list[StockRecord],
        movements: list[InventoryMovement],
        anomalies: list[LedgerAnomaly],
    ) -> None:
        with self._file_lock:
            data = self._load_raw()
            rows = data["records"]
            for record in records:
                for i, raw in enumerate(rows):
                    if _key_matches(raw, record.key):
                        rows[i] = self._record_to_raw(record)
                        break
                else:
                    rows.append(self._record_to_raw(record))
            data["movements"].extend(self._movement_to_raw(m) for m in movements)
            data["anomalies"].extend(self._anomaly_to_raw(a) for a in anomalies)
            self._persist_raw(data)

    def movements(self, key: StockKey | None = None) -> list[InventoryMovement]:
        return [
            self._movement_to_domain(raw)
            for raw in self._load_raw()["movements"]
            if key is None or _key_matches(raw, key)
        ]

    def anomalies(self) -> list[LedgerAnomaly]:
        return [self._anomaly_to_domain(raw) for raw in self._load_raw()["anomalies"]]

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _record_to_raw(record: StockRecord) -> dict:
        return {
            **_key_to_raw(record.key),
            "quantity": str(record.quantity),
            "reserved_quantity": str(record.reserved_quantity),
        }

    @staticmethod
    def _record_to_domain(raw: dict) -> StockRecord:
        return StockRecord(
            key=_key_to_domain(raw),
            quantity=Decimal(raw["quantity"]),
            reserved_quantity=Decimal(raw.get("reserved_quantity", "0")),
        )

    @staticmethod
    def _movement_to_raw(movement: InventoryMovement) -> dict:
        return {
            **_key_to_raw(movement.key),
            "kind": movement.kind.value,
            "quantity": str(movement.quantity),
            "quantity_before": str(movement.quantity_before),
            "quantity_after": str(movement.quantity_after),
            "reserved_before": str(movement.reserved_before),
            "reserved_after": str(movement.reserved_after),
            "order_ref": movement.order_ref,
            "reason": movement.reason,
            "created_at": movement.created_at.isoformat(),
        }

    @staticmethod
    def _movement_to_domain(raw: dict) -> InventoryMovement:
        return InventoryMovement(
            key=_key_to_domain(raw),
            kind=MovementKind(raw["kind"]),
            quantity=Decimal(raw["quantity"]),
            quantity_before=Decimal(raw["quantity_before"]),
            quantity_after=Decimal(raw["quantity_after"]),
            reserved_before=Decimal(raw["reserved_before"]),
            reserved_after=Decimal(raw["reserved_after"]),
            order_ref=raw.get("order_ref"),
            reason=raw.get("reason"),
            created_at=datetime.fromisoformat(raw["created_at"]),
        )

    @staticmethod
    def _anomaly_to_raw(anomaly: LedgerAnomaly) -> dict:
        return {
            **_key_to_raw(anomaly.key),
            "operation": anomaly.operation.value,
            "expected": str(anomaly.expected),
            "actual": str(anomaly.actual),
            "order_ref": anomaly.order_ref,
            "detail": anomaly.detail,
            "created_at": anomaly.created_at.isoformat(),
        }

    @staticmethod
    def _anomaly_to_domain(raw: dict) -> LedgerAnomaly:
        return LedgerAnomaly(
            key=_key_to_domain(raw),
            operation=MovementKind(raw["operation"]),
            expected=Decimal(raw["expected"]),
            actual=Decimal(raw["actual"]),
            order_ref=raw.get("order_ref"),
            detail=raw.get("detail", ""),
            created_at=datetime.fromisoformat(raw["created_at"]),
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> dict:
        with self._file_lock:
            data = read_json(self._file_path)
        for section in ("records", "movements", "anomalies"):
            data.setdefault(section, [])
        return data

    def _persist_raw(self, data: dict) -> None:
        with self._file_lock:
            write_json(self._file_path, data)

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._persist_raw({"records": [], "movements": [], "anomalies": []})


def _key_to_raw(key: StockKey) -> dict:
    return {"tenant_id": key.tenant_id, "branch_id": key.branch_id, "item_id": key.item_id}


def _key_to_domain(raw: dict) -> StockKey:
    return StockKey(raw["tenant_id"], raw.get("branch_id"), raw["item_id"])


def _key_matches(raw: dict, key: StockKey) -> bool:
    return (
        raw["tenant_id"] == key.tenant_id
        and raw.get("branch_id") == key.branch_id
        and raw["item_id"] == key.item_id
    )
