"""Tests for background reservation of new orders."""

from decimal import Decimal

from pantry.application.reservation_dispatcher import ReservationDispatcher
from pantry.domain.exceptions import ReservationConflict
from pantry.domain.model.units import Unit
from pantry.domain.service.reservation_ledger import LedgerLine, ReservationLedger
from tests.fakes import InlineExecutor
from tests.kitchen import BRANCH, CHEESE, TENANT, build_stock


def _cheese(kg: str) -> list[LedgerLine]:
    return [LedgerLine(CHEESE, Decimal(kg), Unit.KG, Unit.GRAMS, "Cheese")]


def _ledger():
    return ReservationLedger(build_stock({CHEESE: "1"}), lock_timeout=1.0)


class TestReservationDispatcher:

    def test_successful_reservation(self):
        dispatcher = ReservationDispatcher(_ledger(), executor=InlineExecutor())
        future = dispatcher.dispatch(TENANT, BRANCH, _cheese("0.5"), order_ref=1)

        assert len(future.result().movements) == 1
        assert dispatcher.anomaly_count == 0

    def test_failure_is_counted_not_raised(self, caplog):
        dispatcher = ReservationDispatcher(_ledger(), executor=InlineExecutor())
        future = dispatcher.dispatch(TENANT, BRANCH, _cheese("2"), order_ref=7)

        assert isinstance(future.exception(), ReservationConflict)
        assert dispatcher.anomaly_count == 1
        assert "Background reservation failed for order 7" in caplog.text

    def test_thread_pool_drains_on_shutdown(self):
        ledger = _ledger()
        dispatcher = ReservationDispatcher(ledger, max_workers=2)
        futures = [
            dispatcher.dispatch(TENANT, BRANCH, _cheese("0.1"), order_ref=n)
            for n in range(5)
        ]
        dispatcher.shutdown(wait=True)

        assert all(f.done() for f in futures)
        assert dispatcher.anomaly_count == 0
