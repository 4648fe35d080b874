"""Recomputes the area of every order from its status and source."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List

from .domain import Order, OrderSource
from .logger import get_logger
from .repository import InMemoryRepository
from .resolver import MappingSource, as_table

log = get_logger("assignment")


def assign_area(order: Order, mappings: MappingSource) -> Order:
    """Return a copy of ``order`` placed according to ``mappings``."""

    sap_area = as_table(mappings).derive_area(order.raw_status)
    if order.source is OrderSource.SYSTEM:
        return replace(order, current_area=sap_area, sap_area=sap_area, discrepancy=False)
    return replace(order, sap_area=sap_area, discrepancy=sap_area != order.current_area)


def apply_status_mappings(orders: Iterable[Order], mappings: MappingSource) -> List[Order]:
    """Build the next order snapshot. The input orders are not modified."""

    table = as_table(mappings)
    return [assign_area(order, table) for order in orders]


@dataclass(slots=True)
class AssignmentSummary:
    processed: int
    area_changed: int
    discrepancies: int


class OrderAreaAssignmentEngine:
    """Applies a mapping table to every order in one pass."""

    def __init__(self, order_repo: InMemoryRepository[Order]) -> None:
        self.orders = order_repo

    def apply(self, mappings: MappingSource) -> AssignmentSummary:
        current = self.orders.list()
        updated = apply_status_mappings(current, mappings)
        self.orders.upsert_many((order.order_id, order) for order in updated)
        summary = AssignmentSummary(
            processed=len(updated),
            area_changed=sum(
                1
                for before, after in zip(current, updated)
                if before.current_area != after.current_area
            ),
            discrepancies=sum(1 for order in updated if order.discrepancy),
        )
        log.info(
            "Status mappings applied: processed=%s area_changed=%s discrepancies=%s",
            summary.processed,
            summary.area_changed,
            summary.discrepancies,
        )
        return summary


__all__ = [
    "assign_area",
    "apply_status_mappings",
    "AssignmentSummary",
    "OrderAreaAssignmentEngine",
]
