"""Service layer that implements the order flow use-cases."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import uuid4

from .assignment import AssignmentSummary, OrderAreaAssignmentEngine, assign_area
from .classifier import compute_flow_errors, filter_flow_errors, summarize_flow_errors
from .config import Settings, load_settings
from .domain import (
    AREA_SEQUENCE,
    Area,
    AreaMode,
    ErrorCategory,
    FlowError,
    Issue,
    IssueHistoryEntry,
    IssueStatus,
    IssueType,
    LogisticsStatus,
    MoveAuditEntry,
    Order,
    OrderChange,
    OrderSource,
    ProductionState,
    ProductionStatus,
    StatusMapping,
    UploadResult,
    coerce_enum,
    utc_now,
)
from .exceptions import (
    IssueNotFound,
    MappingNotFound,
    OrderNotFound,
    ValidationFailure,
)
from .logger import get_logger
from .modes import AreaModeRegistry
from .moves import ManualMoveStateMachine, MovePreconditions, MoveResult
from .product_types import ProductType, ProductTypeRule, ProductTypeRuleBook, classify_material
from .repository import AppendOnlyLog, InMemoryRepository, RecordNotFoundError
from .resolver import StatusMappingTable

log = get_logger("service")

# Upload column -> Order attribute
UPLOAD_COLUMNS: Dict[str, str] = {
    "Order": "order_id",
    "Plant": "plant",
    "Material": "material",
    "Material_description": "material_description",
    "Start_date_sched": "start_date",
    "Scheduled_finish_date": "finish_date",
    "Order_quantity": "order_quantity",
    "Delivered_quantity": "delivered_quantity",
    "System_Status": "raw_status",
    "User_Status": "user_status",
    "Priority": "priority",
}
REQUIRED_COLUMNS: Tuple[str, ...] = ("Order", "Plant", "Material", "Order_quantity")
NUMERIC_COLUMNS: Tuple[str, ...] = ("Order_quantity", "Delivered_quantity")
OPTIONAL_COLUMNS: Tuple[str, ...] = ("Priority",)


def _parse_number(value: Any) -> Union[int, float]:
    number = float(value)
    return int(number) if number.is_integer() else number


class OrderFlowService:
    """Facade that exposes the order flow use-cases to clients.

    The service is the only writer of the order table. Every mutating call runs
    under one lock and writes a fully computed snapshot, so readers never see a
    half applied mapping pass or move.
    """

    def __init__(
        self,
        order_repo: Optional[InMemoryRepository[Order]] = None,
        mapping_repo: Optional[InMemoryRepository[StatusMapping]] = None,
        document_repo: Optional[InMemoryRepository[dict]] = None,
        move_log: Optional[AppendOnlyLog[MoveAuditEntry]] = None,
        issue_repo: Optional[InMemoryRepository[Issue]] = None,
        issue_history: Optional[AppendOnlyLog[IssueHistoryEntry]] = None,
        production_repo: Optional[InMemoryRepository[ProductionStatus]] = None,
        logistics_repo: Optional[InMemoryRepository[LogisticsStatus]] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.orders = order_repo if order_repo is not None else InMemoryRepository()
        self.status_mappings = (
            mapping_repo if mapping_repo is not None else InMemoryRepository()
        )
        self.move_log = (
            move_log if move_log is not None else AppendOnlyLog(lambda e: e.order_id)
        )
        self.issues = issue_repo if issue_repo is not None else InMemoryRepository()
        self.issue_history = (
            issue_history
            if issue_history is not None
            else AppendOnlyLog(lambda e: e.issue_id)
        )
        self.production_status = (
            production_repo if production_repo is not None else InMemoryRepository()
        )
        self.logistics_status = (
            logistics_repo if logistics_repo is not None else InMemoryRepository()
        )
        self.area_modes = AreaModeRegistry(document_repo)
        self.product_type_rules = ProductTypeRuleBook(document_repo)
        self.assignment = OrderAreaAssignmentEngine(self.orders)
        self.state_machine = ManualMoveStateMachine(
            self.orders, self.move_log, self.mapping_table, self.settings
        )
        self._lock = threading.RLock()

    @classmethod
    def from_database(cls, database, *, settings: Optional[Settings] = None) -> "OrderFlowService":
        return cls(
            order_repo=database.orders,
            mapping_repo=database.status_mappings,
            document_repo=database.documents,
            move_log=database.move_log,
            issue_repo=database.issues,
            issue_history=database.issue_history,
            production_repo=database.production_status,
            logistics_repo=database.logistics_status,
            settings=settings,
        )

    # ------------------------------------------------------------------
    # Status mappings and area modes
    # ------------------------------------------------------------------
    def mapping_table(self) -> StatusMappingTable:
        return StatusMappingTable(self.status_mappings.list())

    def get_status_mapping(self, mapping_id: str) -> StatusMapping:
        try:
            return self.status_mappings.get(mapping_id)
        except RecordNotFoundError as exc:
            raise MappingNotFound(mapping_id) from exc

    @staticmethod
    def validate_status_mappings(mappings: Sequence[StatusMapping]) -> None:
        seen_ids = set()
        for index, mapping in enumerate(mappings, start=1):
            if not mapping.id:
                raise ValidationFailure(f"Mapping row {index}: id must not be empty")
            if mapping.id in seen_ids:
                raise ValidationFailure(f"Mapping row {index}: duplicate id {mapping.id!r}")
            seen_ids.add(mapping.id)
            if mapping.status_value.split() != [mapping.status_value]:
                raise ValidationFailure(
                    f"Mapping row {index}: status value must be a single token"
                )
        duplicates = StatusMappingTable(mappings).duplicate_active_values()
        if duplicates:
            raise ValidationFailure(
                "Status values must be unique among active mappings: " + ", ".join(duplicates)
            )

    def update_status_mappings(self, mappings: Sequence[StatusMapping]) -> AssignmentSummary:
        """Replace the mapping table and recompute the area of every order."""

        mappings = list(mappings)
        self.validate_status_mappings(mappings)
        with self._lock:
            self.status_mappings.replace_all((m.id, m) for m in mappings)
            log.info("Status mapping table replaced: %s rows", len(mappings))
            return self.assignment.apply(self.mapping_table())

    def apply_status_mappings(self) -> AssignmentSummary:
        with self._lock:
            return self.assignment.apply(self.mapping_table())

    def get_area_modes(self) -> Dict[Area, AreaMode]:
        return self.area_modes.get()

    def set_area_modes(self, modes: Mapping[Union[Area, str], Union[AreaMode, str]]) -> Dict[Area, AreaMode]:
        with self._lock:
            updated = self.area_modes.set(modes)
        log.info(
            "Area modes updated: %s",
            ", ".join(f"{area.value}={mode.value}" for area, mode in updated.items()),
        )
        return updated

    def get_product_type_rules(self) -> List[ProductTypeRule]:
        return self.product_type_rules.list()

    def update_product_type_rules(self, rules: Sequence[ProductTypeRule]) -> List[ProductTypeRule]:
        with self._lock:
            saved = self.product_type_rules.save(rules)
        log.info("Product type rules replaced: %s rules", len(saved))
        return saved

    def product_type_for(self, order_id: str) -> Optional[ProductType]:
        """FG/SFG classification of the order's material, ``None`` when unclassified."""

        return self.product_type_rules.classify(self.get_order(order_id).material)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def get_order(self, order_id: str) -> Order:
        try:
            return self.orders.get(order_id)
        except RecordNotFoundError as exc:
            raise OrderNotFound(order_id) from exc

    def _order_from_row(self, row: Mapping[str, Any], row_number: int) -> Order:
        for column in REQUIRED_COLUMNS:
            value = row.get(column)
            if value is None or str(value).strip() == "":
                raise ValidationFailure(f'Row {row_number}: Missing required field "{column}"')
        values: Dict[str, Any] = {}
        for column, attribute in UPLOAD_COLUMNS.items():
            value = row.get(column)
            if column in NUMERIC_COLUMNS:
                if value is None or str(value).strip() == "":
                    value = 0
                try:
                    value = _parse_number(value)
                except (TypeError, ValueError) as exc:
                    raise ValidationFailure(
                        f'Row {row_number}: Invalid number in field "{column}"'
                    ) from exc
            else:
                value = "" if value is None else str(value).strip()
                if column in OPTIONAL_COLUMNS and not value:
                    value = None
            values[attribute] = value
        return Order(**values)

    def ingest_orders(self, rows: Iterable[Mapping[str, Any]]) -> UploadResult:
        """Load an order upload.

        Rows use the upload column names. New orders start system tracked;
        known orders keep their placement and get their changed fields
        flagged. Row numbers in messages count the header as row 1.
        """

        upload_id = str(uuid4())
        errors: List[str] = []
        parsed: Dict[str, Order] = {}
        failed = 0
        for row_number, row in enumerate(rows, start=2):
            try:
                order = self._order_from_row(row, row_number)
            except ValidationFailure as exc:
                failed += 1
                errors.append(str(exc))
                continue
            parsed[order.order_id] = order

        with self._lock:
            table = self.mapping_table()
            changes: List[OrderChange] = []
            snapshot: List[Order] = []
            for order_id, incoming in parsed.items():
                if order_id not in self.orders:
                    snapshot.append(assign_area(incoming, table))
                    continue
                existing = self.orders.get(order_id)
                changed_fields = set()
                for column, attribute in UPLOAD_COLUMNS.items():
                    before = getattr(existing, attribute)
                    after = getattr(incoming, attribute)
                    if before != after:
                        changed_fields.add(column)
                        changes.append(
                            OrderChange(
                                order_id=order_id,
                                material=incoming.material,
                                field=column,
                                before=before,
                                after=after,
                            )
                        )
                updated = replace(
                    incoming,
                    current_area=existing.current_area,
                    source=existing.source,
                    sap_area=existing.sap_area,
                    discrepancy=existing.discrepancy,
                    changed_fields=frozenset(changed_fields),
                    has_changes=bool(changed_fields),
                )
                snapshot.append(assign_area(updated, table))
            self.orders.upsert_many((order.order_id, order) for order in snapshot)

        log.info(
            "Upload %s: loaded=%s failed=%s changes=%s",
            upload_id,
            len(snapshot),
            failed,
            len(changes),
        )
        return UploadResult(
            upload_id=upload_id,
            rows_loaded=len(snapshot),
            rows_failed=failed,
            validation_errors=errors,
            changes=changes,
        )

    def list_orders(
        self,
        *,
        area: Optional[Union[Area, str]] = None,
        status: Optional[str] = None,
        q: Optional[str] = None,
        plant: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        product_type: Optional[Union[ProductType, str]] = None,
    ) -> List[Order]:
        orders = self.orders.list()
        if product_type:
            product_type = coerce_enum(ProductType, product_type, "product_type")
            rules = self.product_type_rules.list()
            orders = [o for o in orders if classify_material(o.material, rules) is product_type]
        if area:
            area = coerce_enum(Area, area, "area")
            orders = [o for o in orders if o.current_area is area]
        if status:
            orders = [o for o in orders if status in o.raw_status.split()]
        if plant:
            orders = [o for o in orders if o.plant == plant]
        if q:
            needle = q.lower()
            orders = [
                o
                for o in orders
                if needle in o.order_id.lower()
                or needle in o.material.lower()
                or needle in o.material_description.lower()
            ]
        if date_from:
            orders = [o for o in orders if o.start_date >= date_from]
        if date_to:
            orders = [o for o in orders if o.finish_date <= date_to]
        return orders

    def unique_plants(self) -> List[str]:
        return sorted({order.plant for order in self.orders})

    def area_summary(self) -> Dict[Area, Dict[str, int]]:
        """Count orders per area, grouped by the label of their effective status."""

        table = self.mapping_table()
        result: Dict[Area, Dict[str, int]] = {area: {} for area in AREA_SEQUENCE}
        for order in self.orders:
            label = table.label_for(order.raw_status)
            bucket = result[order.current_area]
            bucket[label] = bucket.get(label, 0) + 1
        return result

    # ------------------------------------------------------------------
    # Manual moves
    # ------------------------------------------------------------------
    def _preconditions(self, order_id: str) -> MovePreconditions:
        return MovePreconditions(
            open_issue_count=self.open_issue_count(order_id),
            production_status=self.get_production_status(order_id).status,
        )

    def move_order(
        self,
        order_id: str,
        target_area: Union[Area, str],
        justification: Optional[str] = None,
        *,
        actor: Optional[str] = None,
        blocked_reason: Optional[str] = None,
    ) -> MoveResult:
        with self._lock:
            return self.state_machine.move(
                order_id,
                target_area,
                justification,
                actor=actor or self.settings.default_actor,
                preconditions=self._preconditions(order_id),
                blocked_reason=blocked_reason,
            )

    def mark_order_ready(self, order_id: str, *, actor: Optional[str] = None) -> MoveResult:
        """Warehouse "mark ready": the next step to Production."""

        with self._lock:
            order = self.get_order(order_id)
            if order.current_area is not Area.WAREHOUSE:
                raise ValidationFailure(
                    f"Only Warehouse orders can be marked ready; {order_id} is in {order.current_area.value}"
                )
            return self.move_order(order_id, Area.PRODUCTION, actor=actor)

    def move_history(self, order_id: str) -> List[MoveAuditEntry]:
        self.get_order(order_id)
        return self.move_log.for_key(order_id)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------
    def create_issue(
        self,
        order_id: str,
        pn: str,
        issue_type: Union[IssueType, str],
        comment: str,
        *,
        actor: Optional[str] = None,
    ) -> Issue:
        self.get_order(order_id)
        actor = actor or self.settings.default_actor
        issue = Issue(
            id=str(uuid4()),
            order_id=order_id,
            pn=pn,
            issue_type=coerce_enum(IssueType, issue_type, "issue_type"),
            comment=comment,
            created_by=actor,
        )
        with self._lock:
            self.issues.add(issue.id, issue)
            self._record_issue_history(issue.id, "CREATED", actor, "Issue created.")
        return issue

    def update_issue(
        self,
        issue_id: str,
        *,
        status: Optional[Union[IssueStatus, str]] = None,
        comment: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Issue:
        actor = actor or self.settings.default_actor
        with self._lock:
            try:
                issue = self.issues.get(issue_id)
            except RecordNotFoundError as exc:
                raise IssueNotFound(issue_id) from exc
            new_status = (
                coerce_enum(IssueStatus, status, "status") if status is not None else issue.status
            )
            updated = replace(
                issue,
                status=new_status,
                comment=comment if comment is not None else issue.comment,
                updated_at=utc_now(),
            )
            self.issues.upsert(issue_id, updated)
            if new_status is not issue.status:
                self._record_issue_history(
                    issue_id,
                    "STATUS_CHANGE",
                    actor,
                    f"Status changed from {issue.status.value} to {new_status.value}.",
                )
            if comment is not None and comment != issue.comment:
                self._record_issue_history(issue_id, "EDITED", actor, "Comment updated.")
        return updated

    def _record_issue_history(self, issue_id: str, action: str, actor: str, details: str) -> None:
        self.issue_history.append(
            IssueHistoryEntry(
                id=str(uuid4()),
                issue_id=issue_id,
                action=action,
                changed_by=actor,
                changed_at=utc_now(),
                details=details,
            )
        )

    def issues_for_order(self, order_id: str) -> List[Issue]:
        return [issue for issue in self.issues if issue.order_id == order_id]

    def issue_history_for(self, issue_id: str) -> List[IssueHistoryEntry]:
        if issue_id not in self.issues:
            raise IssueNotFound(issue_id)
        return self.issue_history.for_key(issue_id)

    def open_issue_count(self, order_id: str) -> int:
        return sum(
            1 for issue in self.issues_for_order(order_id) if issue.status is IssueStatus.OPEN
        )

    # ------------------------------------------------------------------
    # Production and logistics status
    # ------------------------------------------------------------------
    def get_production_status(self, order_id: str) -> ProductionStatus:
        try:
            return self.production_status.get(order_id)
        except RecordNotFoundError:
            return ProductionStatus(order_id=order_id)

    def set_production_status(
        self,
        order_id: str,
        status: Union[ProductionState, str],
        *,
        actor: Optional[str] = None,
    ) -> ProductionStatus:
        self.get_order(order_id)
        record = ProductionStatus(
            order_id=order_id,
            status=coerce_enum(ProductionState, status, "production status"),
            updated_at=utc_now(),
            updated_by=actor or self.settings.default_actor,
        )
        with self._lock:
            self.production_status.upsert(order_id, record)
        log.info("Production status of %s set to %s", order_id, record.status.value)
        return record

    def get_logistics_status(self, order_id: str) -> LogisticsStatus:
        try:
            return self.logistics_status.get(order_id)
        except RecordNotFoundError:
            return LogisticsStatus(order_id=order_id)

    def update_logistics_status(
        self,
        order_id: str,
        *,
        received_from_production: Optional[bool] = None,
        delivered: Optional[bool] = None,
        actor: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LogisticsStatus:
        self.get_order(order_id)
        actor = actor or self.settings.default_actor
        now = now or utc_now()
        with self._lock:
            record = self.get_logistics_status(order_id)
            if received_from_production and not record.received_from_production:
                record = replace(
                    record, received_from_production=True, received_at=now, received_by=actor
                )
            if delivered and not record.delivered:
                record = replace(record, delivered=True, delivered_at=now, delivered_by=actor)
            self.logistics_status.upsert(order_id, record)
        return record

    # ------------------------------------------------------------------
    # Errors and discrepancies
    # ------------------------------------------------------------------
    def flow_errors(
        self,
        *,
        category: Optional[Union[ErrorCategory, str]] = None,
        q: str = "",
    ) -> List[FlowError]:
        errors = compute_flow_errors(self.orders.list(), self.mapping_table())
        if category:
            category = coerce_enum(ErrorCategory, category, "category")
        return filter_flow_errors(errors, category, q)

    def flow_error_summary(self) -> Dict[ErrorCategory, int]:
        return summarize_flow_errors(
            compute_flow_errors(self.orders.list(), self.mapping_table())
        )


__all__ = ["OrderFlowService", "UPLOAD_COLUMNS", "REQUIRED_COLUMNS"]
