"""Unit tests for the reservation ledger."""

import threading
from decimal import Decimal

import pytest

from pantry.domain.exceptions import LedgerTimeout, ReservationConflict, ValidationError
from pantry.domain.model.stock import MovementKind, StockKey
from pantry.domain.model.units import Unit
from pantry.domain.service.reservation_ledger import LedgerLine, ReservationLedger
from tests.kitchen import BRANCH, BUN, CHEESE, TENANT, build_stock


def _setup(levels: dict[int, str] | None = None, timeout: float = 1.0):
    stock = build_stock(levels if levels is not None else {CHEESE: "2", BUN: "10"})
    return ReservationLedger(stock, lock_timeout=timeout), stock


def _cheese(kg: str) -> LedgerLine:
    return LedgerLine(CHEESE, Decimal(kg), Unit.KG, Unit.GRAMS, "Cheese")


def _buns(count: str) -> LedgerLine:
    return LedgerLine(BUN, Decimal(count), Unit.PIECE, Unit.PIECE, "Bun")


def _row(stock, item_id: int = CHEESE):
    return stock.get(StockKey(TENANT, BRANCH, item_id))


class TestReserve:

    def test_reserve_reduces_available_only(self):
        ledger, stock = _setup()
        ledger.reserve(TENANT, BRANCH, [_cheese("0.15")], order_ref=1)

        row = _row(stock)
        assert row.quantity == Decimal("2")
        assert row.reserved_quantity == Decimal("0.15")
        assert row.available_quantity == Decimal("1.85")

    def test_conflict_reports_shortfall_in_serving_units(self):
        ledger, stock = _setup()
        ledger.reserve(TENANT, BRANCH, [_cheese("0.15")], order_ref=1)

        with pytest.raises(ReservationConflict) as exc_info:
            ledger.reserve(TENANT, BRANCH, [_cheese("1.9")], order_ref=2)

        [shortage] = exc_info.value.shortages
        assert shortage.unit is Unit.GRAMS
        assert shortage.shortfall == Decimal("50")
        assert exc_info.value.retryable

    def test_all_or_nothing(self):
        ledger, stock = _setup()
        with pytest.raises(ReservationConflict):
            ledger.reserve(TENANT, BRANCH, [_buns("2"), _cheese("5")], order_ref=1)

        assert _row(stock, BUN).reserved_quantity == Decimal("0")
        assert stock.batches == 0

    def test_duplicate_lines_merged(self):
        ledger, stock = _setup()
        receipt = ledger.reserve(TENANT, BRANCH, [_cheese("0.1"), _cheese("0.2")], order_ref=1)

        assert len(receipt.movements) == 1
        assert _row(stock).reserved_quantity == Decimal("0.3")

    def test_one_write_per_call(self):
        ledger, stock = _setup()
        ledger.reserve(TENANT, BRANCH, [_cheese("0.1"), _buns("1")], order_ref=1)
        assert stock.batches == 1

    def test_missing_row_is_a_shortage(self):
        ledger, _ = _setup({})
        with pytest.raises(ReservationConflict, match="Cheese"):
            ledger.reserve(TENANT, BRANCH, [_cheese("0.1")], order_ref=1)

    def test_negative_quantity_rejected(self):
        ledger, _ = _setup()
        with pytest.raises(ValidationError, match="negative"):
            ledger.reserve(TENANT, BRANCH, [_cheese("-1")], order_ref=1)

    def test_concurrent_reservations_never_oversell(self):
        ledger, stock = _setup()
        outcomes: list[bool] = []

        def attempt():
            try:
                ledger.reserve(TENANT, BRANCH, [_cheese("0.3")], order_ref=None)
            except ReservationConflict:
                outcomes.append(False)
            else:
                outcomes.append(True)

        threads = [threading.Thread(target=attempt) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count(True) == 6
        assert _row(stock).reserved_quantity == Decimal("1.8")

    def test_lock_timeout(self):
        ledger, stock = _setup(timeout=0.05)
        with stock.lock([StockKey(TENANT, BRANCH, CHEESE)], timeout=1.0):
            with pytest.raises(LedgerTimeout):
                ledger.reserve(TENANT, BRANCH, [_cheese("0.1")], order_ref=1)


class TestConsumeAndRelease:

    def test_consume_spends_reservation(self):
        ledger, stock = _setup()
        ledger.reserve(TENANT, BRANCH, [_cheese("0.15")], order_ref=1)
        receipt = ledger.consume(TENANT, BRANCH, [_cheese("0.15")], order_ref=1)

        row = _row(stock)
        assert row.quantity == Decimal("1.85")
        assert row.reserved_quantity == Decimal("0")
        assert receipt.anomalies == []

    def test_consume_without_reservation_clamps_and_records(self):
        ledger, stock = _setup()
        receipt = ledger.consume(TENANT, BRANCH, [_cheese("0.15")], order_ref=7)

        assert _row(stock).reserved_quantity == Decimal("0")
        [anomaly] = receipt.anomalies
        assert anomaly.operation is MovementKind.CONSUME
        assert anomaly.order_ref == 7
        assert stock.anomalies() == [anomaly]

    def test_release_returns_to_available(self):
        ledger, stock = _setup()
        ledger.reserve(TENANT, BRANCH, [_cheese("0.5")], order_ref=1)
        ledger.release_reservation(TENANT, BRANCH, [_cheese("0.5")], 1, "Order cancelled")

        row = _row(stock)
        assert row.available_quantity == Decimal("2")
        assert stock.movements()[-1].reason == "Order cancelled"

    def test_over_release_clamps_at_zero(self):
        ledger, stock = _setup()
        ledger.reserve(TENANT, BRANCH, [_cheese("0.1")], order_ref=1)
        receipt = ledger.release_reservation(TENANT, BRANCH, [_cheese("0.3")], 1, "Order cancelled")

        assert _row(stock).reserved_quantity == Decimal("0")
        assert receipt.anomalies[0].discrepancy == Decimal("0.2")

    def test_missing_row_recorded_not_raised(self):
        ledger, stock = _setup({})
        receipt = ledger.consume(TENANT, BRANCH, [_cheese("0.1")], order_ref=1)
        assert receipt.anomalies[0].detail == "no stock record"
        assert receipt.movements == []


class TestWasteAndAdjust:

    def test_waste_leaves_other_reservations_alone(self):
        ledger, stock = _setup({CHEESE: "0.5"})
        ledger.reserve(TENANT, BRANCH, [_cheese("0.4")], order_ref=1)
        receipt = ledger.deduct_waste_only(TENANT, BRANCH, [_cheese("0.2")], 2, "waste")

        row = _row(stock)
        assert row.quantity == Decimal("0.4")
        assert row.reserved_quantity == Decimal("0.4")
        assert receipt.anomalies[0].actual == Decimal("0.1")

    def test_adjust_receives_stock(self):
        ledger, stock = _setup()
        movement = ledger.adjust(TENANT, BRANCH, CHEESE, Decimal("1.5"), "Delivery")

        assert _row(stock).quantity == Decimal("3.5")
        assert movement.kind is MovementKind.ADJUSTMENT
        assert movement.quantity_before == Decimal("2")

    def test_adjust_creates_missing_row(self):
        ledger, stock = _setup({})
        ledger.adjust(TENANT, BRANCH, CHEESE, Decimal("1"), "Opening count")
        assert _row(stock).quantity == Decimal("1")

    def test_adjust_cannot_cut_into_reservations(self):
        ledger, _ = _setup()
        ledger.reserve(TENANT, BRANCH, [_cheese("1.5")], order_ref=1)
        with pytest.raises(ValidationError, match="reserved by open orders"):
            ledger.adjust(TENANT, BRANCH, CHEESE, Decimal("-1"), "Spoiled")

    def test_adjust_missing_row_negative(self):
        ledger, _ = _setup({})
        with pytest.raises(ValidationError, match="No stock"):
            ledger.adjust(TENANT, BRANCH, CHEESE, Decimal("-1"), "Spoiled")
