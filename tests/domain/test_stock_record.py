"""Unit tests for StockRecord arithmetic."""

from decimal import Decimal

import pytest

from pantry.domain.exceptions import ValidationError
from pantry.domain.model.stock import StockKey, StockRecord


def _make_record(quantity: str = "2", reserved: str = "0") -> StockRecord:
    return StockRecord(StockKey(1, 1, 1), Decimal(quantity), Decimal(reserved))


class TestReserve:

    def test_reserve_reduces_available(self):
        record = _make_record("2")
        record.reserve(Decimal("0.15"))
        assert record.available_quantity == Decimal("1.85")
        assert record.quantity == Decimal("2")

    def test_reserve_beyond_available_rejected(self):
        record = _make_record("2", "1.9")
        with pytest.raises(ValidationError, match="Insufficient stock"):
            record.reserve(Decimal("0.2"))


class TestRelease:

    def test_release_returns_missing_part(self):
        record = _make_record("2", "0.1")
        assert record.release(Decimal("0.15")) == Decimal("0.05")
        assert record.reserved_quantity == Decimal("0")


class TestConsume:

    def test_consume_drops_both(self):
        record = _make_record("2", "0.15")
        assert record.consume(Decimal("0.15")) == (Decimal("0"), Decimal("0"))
        assert record.quantity == Decimal("1.85")
        assert record.reserved_quantity == Decimal("0")

    def test_consume_clamps_at_zero(self):
        record = _make_record("0.1", "0.05")
        missing_reservation, missing_stock = record.consume(Decimal("0.15"))
        assert missing_reservation == Decimal("0.10")
        assert missing_stock == Decimal("0.05")
        assert record.quantity == Decimal("0")
        assert record.reserved_quantity == Decimal("0")


class TestWaste:

    def test_only_unreserved_stock_is_deducted(self):
        record = _make_record("1", "0.8")
        assert record.deduct_unreserved(Decimal("0.5")) == Decimal("0.3")
        assert record.quantity == Decimal("0.8")
        assert record.reserved_quantity == Decimal("0.8")


class TestAdjust:

    def test_receive(self):
        record = _make_record("1")
        record.adjust(Decimal("4"))
        assert record.quantity == Decimal("5")

    def test_cannot_go_below_reserved(self):
        record = _make_record("1", "0.6")
        with pytest.raises(ValidationError, match="reserved by open orders"):
            record.adjust(Decimal("-0.5"))

    def test_cannot_go_negative(self):
        with pytest.raises(ValidationError, match="on hand"):
            _make_record("1").adjust(Decimal("-2"))
