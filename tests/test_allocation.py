import math

import pytest

from almoxarifado.domain.allocation import AllocationEngine, fifo_order, plan_fifo, round_qty, validate_quantity
from almoxarifado.domain.errors import ValidationError
from almoxarifado.domain.models import LedgerSnapshot

from conftest import lot, registrar


def test_paper_ream_plan():
    lots = [lot("L2", "Papel A4", 15, 12.0, minuto=5), lot("L1", "Papel A4", 20, 10.0, minuto=1)]
    plan = plan_fifo(lots, "Papel A4", 25)
    assert [(a.lot_id, a.quantity) for a in plan.allocations] == [("L1", 20), ("L2", 5)]
    assert plan.unsatisfied_quantity == 0
    assert plan.is_feasible
    assert plan.total_value == pytest.approx(260.0)


def test_fifo_ignores_other_products_and_empty_lots():
    lots = [
        lot("A", "Caneta", 50, minuto=0),
        lot("B", "Papel A4", 0, minuto=1),
        lot("C", "Papel A4", 7, minuto=2),
        lot("D", "papel a4", 9, minuto=3),
    ]
    assert [x.id for x in fifo_order(lots, "Papel A4")] == ["C"]


def test_fifo_tie_broken_by_lot_id():
    lots = [lot("P-2-001", "Clips", 3, minuto=0), lot("P-2-000", "Clips", 3, minuto=0)]
    plan = plan_fifo(lots, "Clips", 4)
    assert [(a.lot_id, a.quantity) for a in plan.allocations] == [("P-2-000", 3), ("P-2-001", 1)]


def test_insufficient_stock_reports_unsatisfied():
    lots = [lot("L1", "Toner", 2, minuto=0), lot("L2", "Toner", 1, minuto=1)]
    plan = plan_fifo(lots, "Toner", 5)
    assert plan.allocated_quantity == 3
    assert plan.unsatisfied_quantity == 2
    assert not plan.is_feasible


def test_unknown_product_is_fully_unsatisfied():
    plan = plan_fifo([lot("L1", "Toner", 2)], "Grampeador", 4)
    assert plan.allocations == ()
    assert plan.unsatisfied_quantity == 4


@pytest.mark.parametrize("requested", [1, 3.5, 10, 17, 30])
def test_conservation(requested):
    lots = [lot("L1", "Cola", 4, minuto=0), lot("L2", "Cola", 6.5, minuto=1), lot("L3", "Cola", 6, minuto=2)]
    plan = plan_fifo(lots, "Cola", requested)
    assert plan.allocated_quantity + plan.unsatisfied_quantity == pytest.approx(requested)
    by_id = {x.id: x for x in lots}
    for a in plan.allocations:
        assert 0 < a.quantity <= by_id[a.lot_id].current_balance


def test_plan_does_not_touch_lots():
    lots = [lot("L1", "Cola", 4)]
    plan_fifo(lots, "Cola", 3)
    plan_fifo(lots, "Cola", 3)
    assert lots[0].current_balance == 4


@pytest.mark.parametrize("bad", [0, -1, "abc", None, True, math.nan, math.inf])
def test_invalid_quantity(bad):
    with pytest.raises(ValidationError):
        plan_fifo([lot("L1", "Cola", 4)], "Cola", bad)


def test_empty_product_name():
    with pytest.raises(ValidationError):
        plan_fifo([lot("L1", "Cola", 4)], "  ", 1)


def test_validate_quantity_returns_float():
    assert validate_quantity("2.5") == 2.5


class _Cache:
    def __init__(self, snapshot):
        self._snapshot = snapshot

    def snapshot(self):
        return self._snapshot


def test_engine_plans_from_cache():
    engine = AllocationEngine(_Cache(LedgerSnapshot(lots=[lot("L1", "Cola", 4)])))
    plan = engine.plan("Cola", 2)
    assert plan.allocations[0].lot_id == "L1"


def test_fractional_request_takes_whole_balances():
    lots = [lot("L1", "Cola", 0.1, minuto=0), lot("L2", "Cola", 0.2, minuto=1)]
    plan = plan_fifo(lots, "Cola", 0.3)
    assert [(a.lot_id, a.quantity) for a in plan.allocations] == [("L1", 0.1), ("L2", 0.2)]
    assert plan.unsatisfied_quantity == 0
    assert round_qty(0.1 + 0.2) == 0.3


def test_plan_through_service_is_idempotent(svc):
    registrar(svc, "NE-1", ("Cola", 4, 2.0))
    registrar(svc, "NE-2", ("Cola", 6, 2.5))
    first = svc.plan_distribution("Cola", 7)
    second = svc.plan_distribution("Cola", 7)
    assert first == second
    assert [a.quantity for a in first.allocations] == [4, 3]
