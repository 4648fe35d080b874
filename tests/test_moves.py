from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from order_flow import (
    Area,
    ManualMoveStateMachine,
    MovePreconditions,
    OrderNotFound,
    OrderSource,
    PreconditionBlocked,
    ValidationFailure,
)
from order_flow.config import Settings
from order_flow.domain import ProductionState
from order_flow.moves import MoveDirection, classify_move
from order_flow.repository import AppendOnlyLog, InMemoryRepository


@pytest.fixture
def machine(mappings, make_order):
    orders = InMemoryRepository()
    orders.add("W1", make_order("W1", "GMPS", current_area=Area.WAREHOUSE))
    orders.add("P1", make_order("P1", "PRC", current_area=Area.PRODUCTION))
    orders.add("O1", make_order("O1", "CRTD"))
    audit = AppendOnlyLog(lambda entry: entry.order_id)
    return ManualMoveStateMachine(orders, audit, lambda: mappings, Settings())


def test_classify_move():
    assert classify_move(Area.WAREHOUSE, Area.PRODUCTION) is MoveDirection.NEXT_STEP
    assert classify_move(Area.WAREHOUSE, Area.ORDERS) is MoveDirection.MOVE_BACK
    with pytest.raises(ValidationFailure):
        classify_move(Area.ORDERS, Area.PRODUCTION)
    with pytest.raises(ValidationFailure):
        classify_move(Area.LOGISTICS, Area.LOGISTICS)


def test_next_step_needs_no_justification(machine):
    moved_at = datetime(2024, 3, 4, 8, 30, tzinfo=timezone.utc)
    result = machine.move("W1", Area.PRODUCTION, actor="alice", now=moved_at)

    assert result.order_id == "W1"
    assert result.previous_area is Area.WAREHOUSE
    assert result.current_area is Area.PRODUCTION
    assert result.source is OrderSource.MANUAL
    assert result.moved_at == moved_at
    assert result.moved_by == "alice"

    order = machine.orders.get("W1")
    assert order.current_area is Area.PRODUCTION
    assert order.source is OrderSource.MANUAL
    assert order.sap_area is Area.WAREHOUSE
    assert order.discrepancy is True

    [entry] = machine.audit_log.for_key("W1")
    assert entry.from_area is Area.WAREHOUSE
    assert entry.to_area is Area.PRODUCTION
    assert entry.justification is None
    assert entry.actor == "alice"
    assert entry.timestamp == moved_at


def test_move_back_requires_five_characters(machine):
    with pytest.raises(ValidationFailure):
        machine.move("W1", "Orders", "ok", actor="bob")
    with pytest.raises(ValidationFailure):
        machine.move("W1", "Orders", "   abc   ", actor="bob")
    with pytest.raises(ValidationFailure):
        machine.move("W1", "Orders", None, actor="bob")
    assert machine.orders.get("W1").source is OrderSource.SYSTEM
    assert len(machine.audit_log) == 0

    result = machine.move("W1", "Orders", "  needs rework ", actor="bob")
    assert result.current_area is Area.ORDERS
    assert machine.audit_log.for_key("W1")[0].justification == "needs rework"
    # sap area is still Warehouse
    assert machine.orders.get("W1").discrepancy is True


def test_unknown_order(machine):
    with pytest.raises(OrderNotFound):
        machine.move("NOPE", Area.WAREHOUSE, actor="bob")


def test_non_adjacent_target_is_rejected(machine):
    with pytest.raises(ValidationFailure):
        machine.move("O1", Area.LOGISTICS, actor="bob")
    with pytest.raises(ValidationFailure):
        machine.move("O1", "Shipping", actor="bob")


def test_blocked_reason_refuses_without_mutation(machine):
    before = machine.orders.get("W1")
    with pytest.raises(PreconditionBlocked) as excinfo:
        machine.move(
            "W1",
            Area.PRODUCTION,
            actor="bob",
            blocked_reason="Cannot move to Production: 1 open issue(s) must be closed first.",
        )
    assert excinfo.value.reason.startswith("Cannot move to Production")
    assert machine.orders.get("W1") == before
    assert len(machine.audit_log) == 0


def test_open_issues_block_leaving_warehouse(machine):
    with pytest.raises(PreconditionBlocked) as excinfo:
        machine.move(
            "W1", Area.PRODUCTION, actor="bob",
            preconditions=MovePreconditions(open_issue_count=2),
        )
    assert str(excinfo.value) == (
        "Cannot move to Production: 2 open issue(s) must be closed first."
    )
    machine.move(
        "W1", Area.PRODUCTION, actor="bob",
        preconditions=MovePreconditions(open_issue_count=0),
    )
    assert machine.orders.get("W1").current_area is Area.PRODUCTION


def test_production_must_be_completed_before_logistics(machine):
    for status in (None, ProductionState.PENDING, ProductionState.IN_PROGRESS):
        with pytest.raises(PreconditionBlocked):
            machine.move(
                "P1", Area.LOGISTICS, actor="bob",
                preconditions=MovePreconditions(production_status=status),
            )
    machine.move(
        "P1", Area.LOGISTICS, actor="bob",
        preconditions=MovePreconditions(production_status=ProductionState.COMPLETED),
    )
    assert machine.orders.get("P1").current_area is Area.LOGISTICS


def test_move_back_ignores_next_step_preconditions(machine):
    machine.move(
        "W1", Area.ORDERS, "wrong material staged", actor="bob",
        preconditions=MovePreconditions(open_issue_count=3),
    )
    assert machine.orders.get("W1").current_area is Area.ORDERS


def test_each_successful_move_appends_one_entry(machine):
    machine.move("O1", Area.WAREHOUSE, actor="a")
    machine.move("O1", Area.PRODUCTION, actor="b")
    machine.move("O1", Area.WAREHOUSE, "back to staging", actor="c")
    entries = machine.audit_log.for_key("O1")
    assert [(e.from_area, e.to_area) for e in entries] == [
        (Area.ORDERS, Area.WAREHOUSE),
        (Area.WAREHOUSE, Area.PRODUCTION),
        (Area.PRODUCTION, Area.WAREHOUSE),
    ]
    assert machine.orders.get("O1").discrepancy is True


class _BrokenLog(AppendOnlyLog):
    def append(self, entry):
        raise RuntimeError("audit store unavailable")


def test_failed_audit_append_restores_the_order(mappings, make_order):
    orders = InMemoryRepository()
    before = make_order("W1", "GMPS", current_area=Area.WAREHOUSE)
    orders.add("W1", before)
    audit = _BrokenLog(lambda entry: entry.order_id)
    machine = ManualMoveStateMachine(orders, audit, lambda: mappings, Settings())

    with pytest.raises(RuntimeError, match="audit store unavailable"):
        machine.move("W1", Area.PRODUCTION, actor="alice")

    assert orders.get("W1") == before
    assert orders.get("W1").source is OrderSource.SYSTEM
    assert len(audit) == 0


def test_audit_entries_cannot_be_rewritten(machine):
    machine.move("W1", Area.PRODUCTION, actor="alice")
    [entry] = machine.audit_log.for_key("W1")
    with pytest.raises(FrozenInstanceError):
        entry.to_area = Area.LOGISTICS
    with pytest.raises(FrozenInstanceError):
        entry.actor = "mallory"
    assert machine.audit_log.for_key("W1")[0].actor == "alice"
