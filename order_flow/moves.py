"""Operator initiated area moves.

An order is either *system-tracked* (its area follows the SAP status) or
*manually placed*. A successful move always leaves the order manually placed
in the target area and appends one entry to the move audit log. Two moves are
possible from any area: a next step to the adjacent downstream area and a move
back to the adjacent upstream area. Moving back needs a written
justification.

Area preconditions for a next step are checked here:

* leaving Warehouse requires that no issue on the order is still open;
* leaving Production requires the production status COMPLETED.

Callers may additionally pass a free-text ``blocked_reason``; when present the
move is refused with that text.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union
from uuid import uuid4

from .config import Settings, load_settings
from .domain import (
    AREA_SEQUENCE,
    Area,
    MoveAuditEntry,
    Order,
    OrderSource,
    ProductionState,
    coerce_enum,
    utc_now,
)
from .exceptions import OrderNotFound, PreconditionBlocked, ValidationFailure
from .logger import get_logger
from .repository import AppendOnlyLog, InMemoryRepository, RecordNotFoundError
from .resolver import MappingSource, as_table

log = get_logger("moves")


class MoveDirection(str, Enum):
    NEXT_STEP = "NEXT_STEP"
    MOVE_BACK = "MOVE_BACK"


def classify_move(from_area: Area, to_area: Area) -> MoveDirection:
    """Return the direction of a move or raise if the areas are not adjacent."""

    step = AREA_SEQUENCE.index(to_area) - AREA_SEQUENCE.index(from_area)
    if step == 1:
        return MoveDirection.NEXT_STEP
    if step == -1:
        return MoveDirection.MOVE_BACK
    raise ValidationFailure(
        f"Cannot move from {from_area.value} to {to_area.value}: "
        "only the adjacent area up- or downstream is allowed"
    )


@dataclass(slots=True)
class MovePreconditions:
    """Facts about the order gathered from the issue and production collaborators."""

    open_issue_count: Optional[int] = None
    production_status: Optional[ProductionState] = None


@dataclass(slots=True)
class MoveResult:
    order_id: str
    previous_area: Area
    current_area: Area
    source: OrderSource
    moved_at: datetime
    moved_by: str


def check_next_step(order: Order, target: Area, preconditions: MovePreconditions) -> None:
    if order.current_area is Area.WAREHOUSE:
        count = preconditions.open_issue_count
        if count is None:
            raise PreconditionBlocked(
                f"Cannot move to {target.value}: open issue count is unknown."
            )
        if count > 0:
            raise PreconditionBlocked(
                f"Cannot move to {target.value}: {count} open issue(s) must be closed first."
            )
    elif order.current_area is Area.PRODUCTION:
        status = preconditions.production_status
        if status is not ProductionState.COMPLETED:
            shown = status.value if status is not None else "unknown"
            raise PreconditionBlocked(
                f"Cannot move to {target.value}: production status is {shown}, "
                "it must be COMPLETED first."
            )


class ManualMoveStateMachine:
    """Validates and applies manual moves, recording each one in the audit log."""

    def __init__(
        self,
        order_repo: InMemoryRepository[Order],
        audit_log: AppendOnlyLog[MoveAuditEntry],
        mappings: Callable[[], MappingSource],
        settings: Optional[Settings] = None,
    ) -> None:
        self.orders = order_repo
        self.audit_log = audit_log
        self._mappings = mappings
        self.settings = settings or load_settings()

    def move(
        self,
        order_id: str,
        target_area: Union[Area, str],
        justification: Optional[str] = None,
        *,
        actor: str,
        preconditions: Optional[MovePreconditions] = None,
        blocked_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MoveResult:
        try:
            order = self.orders.get(order_id)
        except RecordNotFoundError as exc:
            raise OrderNotFound(order_id) from exc

        target = coerce_enum(Area, target_area, "target_area")
        direction = classify_move(order.current_area, target)

        note = (justification or "").strip()
        if direction is MoveDirection.MOVE_BACK:
            minimum = self.settings.min_justification_length
            if len(note) < minimum:
                log.warning(
                    "Move back of %s rejected: justification shorter than %s characters",
                    order_id,
                    minimum,
                )
                raise ValidationFailure(
                    f"Moving back requires a justification of at least {minimum} characters"
                )

        if blocked_reason:
            log.warning("Move of %s blocked by caller: %s", order_id, blocked_reason)
            raise PreconditionBlocked(blocked_reason)
        if direction is MoveDirection.NEXT_STEP and preconditions is not None:
            try:
                check_next_step(order, target, preconditions)
            except PreconditionBlocked as exc:
                log.warning("Move of %s blocked: %s", order_id, exc.reason)
                raise

        moved_at = now or utc_now()
        sap_area = as_table(self._mappings()).derive_area(order.raw_status)
        moved = replace(
            order,
            current_area=target,
            source=OrderSource.MANUAL,
            sap_area=sap_area,
            discrepancy=sap_area != target,
        )
        entry = MoveAuditEntry(
            id=str(uuid4()),
            order_id=order_id,
            from_area=order.current_area,
            to_area=target,
            timestamp=moved_at,
            actor=actor,
            justification=note or None,
        )
        self.orders.upsert(order_id, moved)
        try:
            self.audit_log.append(entry)
        except Exception:
            self.orders.upsert(order_id, order)
            raise

        log.info(
            "Order %s moved %s -> %s (%s) by %s",
            order_id,
            order.current_area.value,
            target.value,
            direction.value,
            actor,
        )
        return MoveResult(
            order_id=order_id,
            previous_area=order.current_area,
            current_area=target,
            source=OrderSource.MANUAL,
            moved_at=moved_at,
            moved_by=actor,
        )


__all__ = [
    "MoveDirection",
    "MovePreconditions",
    "MoveResult",
    "ManualMoveStateMachine",
    "classify_move",
    "check_next_step",
]
