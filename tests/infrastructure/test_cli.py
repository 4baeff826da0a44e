"""End-to-end tests for the CLI against a temporary JSON data directory."""

import json
import logging
from decimal import Decimal

import pytest
from click.testing import CliRunner

from pantry.domain.model.stock import StockKey, StockRecord
from pantry.infrastructure import bootstrap
from pantry.infrastructure.cli.main import cli
from pantry.infrastructure.persistence.json_stock_repository import JsonStockRepository

CATALOG = {
    "items": [
        {"id": 1, "name": "Cheese", "serving_unit": "grams", "storage_unit": "Kg", "cost_per_unit": "0.02"},
        {"id": 2, "name": "Bun", "serving_unit": "piece", "storage_unit": "piece", "cost_per_unit": "0.50"},
    ],
    "products": [
        {"id": 1, "name": "Burger", "price": "10.00"},
        {"id": 2, "name": "Soda", "price": "2.00"},
    ],
    "ingredients": [
        {"product_id": 1, "item_id": 1, "quantity": "150"},
        {"product_id": 1, "item_id": 2, "quantity": "1"},
    ],
}


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    level = logging.getLogger().level
    monkeypatch.setenv("PANTRY_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PANTRY_LOG_LEVEL", "WARNING")
    bootstrap.reset()
    (tmp_path / "catalog.json").write_text(json.dumps(CATALOG))
    JsonStockRepository(tmp_path / "stock.json").save_batch(
        [
            StockRecord(StockKey(1, 1, 1), Decimal("2")),
            StockRecord(StockKey(1, 1, 2), Decimal("100")),
        ],
        [],
        [],
    )
    yield tmp_path
    bootstrap.reset()
    root = logging.getLogger()
    root.setLevel(level)
    for handler in [h for h in root.handlers if getattr(h, "_pantry", False)]:
        root.removeHandler(handler)


def _run(*args):
    return CliRunner().invoke(cli, list(args))


def _stock(data_dir, item_id=1):
    return JsonStockRepository(data_dir / "stock.json").get(StockKey(1, 1, item_id))


class TestOrderCommands:

    def test_create_reserves_stock(self, data_dir):
        result = _run("order", "create", "--tenant", "1", "--branch", "1", "--item", "1:2")

        assert result.exit_code == 0, result.output
        assert "Order #1 created  (status=in_progress)" in result.output
        assert "$20.00" in result.output
        assert _stock(data_dir).reserved_quantity == Decimal("0.3")

    def test_shortage_refused(self, data_dir):
        result = _run("order", "create", "--tenant", "1", "--branch", "1", "--item", "1:14")

        assert result.exit_code == 1
        assert "needs 2100 grams of Cheese, only 2000 available" in result.output
        assert json.loads((data_dir / "orders.json").read_text()) == []

    def test_bad_item_format(self, data_dir):
        result = _run("order", "create", "--tenant", "1", "--item", "burger")
        assert result.exit_code == 2
        assert "Invalid item format" in result.output

    def test_complete_consumes(self, data_dir):
        _run("order", "create", "--tenant", "1", "--branch", "1", "--item", "1:1")
        result = _run("order", "complete", "--id", "1")

        assert result.exit_code == 0, result.output
        assert _stock(data_dir).quantity == Decimal("1.85")
        assert _stock(data_dir).reserved_quantity == Decimal("0")

    def test_show_with_history(self, data_dir):
        _run("order", "create", "--tenant", "1", "--branch", "1", "--item", "1:1")
        result = _run("order", "show", "--id", "1", "--history")

        assert result.exit_code == 0, result.output
        assert "Burger" in result.output
        assert "in_progress (Order created)" in result.output

    def test_unknown_order(self, data_dir):
        result = _run("order", "show", "--id", "99")
        assert result.exit_code == 1
        assert "Order #99 not found" in result.output


class TestKitchenCommands:

    def test_cancel_then_decide_waste(self, data_dir):
        _run("order", "create", "--tenant", "1", "--branch", "1", "--item", "1:1")
        _run("order", "cancel", "--id", "1", "--reason", "Customer left")

        pending = _run("kitchen", "pending", "--tenant", "1", "--branch", "1")
        assert "Cheese" in pending.output
        assert "0.150 Kg" in pending.output

        result = _run("kitchen", "decide", "--id", "1:waste", "--by", "7")
        assert result.exit_code == 0, result.output
        assert "#1 Cheese: waste" in result.output
        assert _stock(data_dir).quantity == Decimal("1.85")

    def test_batch_decide_reports_errors(self, data_dir):
        _run("order", "create", "--tenant", "1", "--branch", "1", "--item", "1:1")
        _run("order", "cancel", "--id", "1")

        result = _run("kitchen", "decide", "--id", "1:return", "--id", "2:maybe")

        assert result.exit_code == 1
        assert "1 resolved." in result.output
        assert "Invalid decision 'maybe'" in result.output

    def test_stats(self, data_dir):
        result = _run("kitchen", "stats", "--tenant", "1")
        assert result.exit_code == 0, result.output
        assert "Pending:        0" in result.output


class TestStockAndCatalogCommands:

    def test_adjust(self, data_dir):
        result = _run(
            "stock", "adjust", "--tenant", "1", "--branch", "1", "--item", "1",
            "--delta", "-500", "--unit", "grams", "--reason", "Spoiled",
        )
        assert result.exit_code == 0, result.output
        assert "Cheese: 1.500 Kg on hand" in result.output

    def test_availability(self, data_dir):
        result = _run("catalog", "availability", "--tenant", "1", "--branch", "1")

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert any("Burger" in line and line.rstrip().endswith("13") for line in lines)
        assert any("Soda" in line and "unlimited" in line for line in lines)

    def test_cost_cascade(self, data_dir):
        result = _run("catalog", "cost", "--item", "1", "--cost", "0.03")

        assert result.exit_code == 0, result.output
        assert "Item #1 now costs 0.03 per serving unit." in result.output
        assert "product 1: 5.00" in result.output

    def test_check_reports_shortage(self, data_dir):
        result = _run("catalog", "check", "--tenant", "1", "--branch", "1", "--item", "1:20")
        assert result.exit_code == 1
        assert "short: Burger: needs 3000 grams of Cheese" in result.output
