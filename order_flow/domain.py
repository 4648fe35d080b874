"""Core data structures for the order flow tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple, Type, TypeVar, Union

from .exceptions import ValidationFailure

E = TypeVar("E", bound=Enum)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Area(str, Enum):
    """Pipeline stages an order passes through."""

    ORDERS = "Orders"
    WAREHOUSE = "Warehouse"
    PRODUCTION = "Production"
    LOGISTICS = "Logistics"


AREA_SEQUENCE: Tuple[Area, ...] = (
    Area.ORDERS,
    Area.WAREHOUSE,
    Area.PRODUCTION,
    Area.LOGISTICS,
)

# Orders is always AUTO and therefore has no mode entry.
MODE_AREAS: Tuple[Area, ...] = (Area.WAREHOUSE, Area.PRODUCTION, Area.LOGISTICS)


class AreaMode(str, Enum):
    """Placement mode of an area."""

    AUTO = "AUTO"
    MANUAL = "MANUAL"


class OrderSource(str, Enum):
    """Who decided the order's current area."""

    SYSTEM = "system"
    MANUAL = "manual"


class ErrorCategory(str, Enum):
    """Categories reported by the discrepancy classifier."""

    E1_DISCREPANCY = "E1_DISCREPANCY"
    E2_REGRESS = "E2_REGRESS"
    E3_MISSING = "E3_MISSING"
    E4_INVALID = "E4_INVALID"

    @property
    def label(self) -> str:
        return ERROR_CATEGORY_META[self][0]

    @property
    def description(self) -> str:
        return ERROR_CATEGORY_META[self][1]


ERROR_CATEGORY_META = {
    ErrorCategory.E1_DISCREPANCY: (
        "Discrepancy",
        "Manually placed order whose SAP status maps to a different area.",
    ),
    ErrorCategory.E2_REGRESS: (
        "Status Change",
        "System status changed in the latest upload.",
    ),
    ErrorCategory.E3_MISSING: (
        "Missing Order",
        "Order present in the previous upload but absent from the current one.",
    ),
    ErrorCategory.E4_INVALID: (
        "Invalid Data",
        "Order data violates a consistency rule (dates or quantities).",
    ),
}


class IssueStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class IssueType(str, Enum):
    MISSING_MATERIAL = "MISSING_MATERIAL"
    QUANTITY_MISMATCH = "QUANTITY_MISMATCH"
    DAMAGED_GOODS = "DAMAGED_GOODS"
    WRONG_ITEM = "WRONG_ITEM"
    DOCUMENTATION_ERROR = "DOCUMENTATION_ERROR"
    OTHER = "OTHER"


class ProductionState(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


def coerce_enum(enum_type: Type[E], value: Union[E, str], field_name: str) -> E:
    """Convert ``value`` to ``enum_type`` or raise ``ValidationFailure``."""

    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationFailure(
            f"Invalid {field_name} {value!r}; expected one of: {allowed}"
        ) from exc


@dataclass(slots=True)
class StatusMapping:
    """Maps one SAP status token to an area."""

    id: str
    status_value: str
    area: Area
    label: str
    sort_order: int
    is_active: bool = True

    def __post_init__(self) -> None:
        self.area = coerce_enum(Area, self.area, "area")


@dataclass(slots=True)
class Order:
    """A manufacturing order as tracked across the four areas."""

    order_id: str
    plant: str = ""
    material: str = ""
    material_description: str = ""
    start_date: str = ""
    finish_date: str = ""
    order_quantity: float = 0
    delivered_quantity: float = 0
    raw_status: str = ""
    user_status: str = ""
    current_area: Area = Area.ORDERS
    source: OrderSource = OrderSource.SYSTEM
    sap_area: Optional[Area] = None
    discrepancy: bool = False
    changed_fields: FrozenSet[str] = field(default_factory=frozenset)
    has_changes: bool = False
    priority: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.order_id or not str(self.order_id).strip():
            raise ValidationFailure("Order id must not be empty")
        self.current_area = coerce_enum(Area, self.current_area, "current_area")
        self.source = coerce_enum(OrderSource, self.source, "source")
        if self.sap_area is None:
            self.sap_area = self.current_area
        else:
            self.sap_area = coerce_enum(Area, self.sap_area, "sap_area")
        self.changed_fields = frozenset(self.changed_fields)
        if self.order_quantity is None or self.delivered_quantity is None:
            raise ValidationFailure("Order quantities must be numbers")
        if self.source is OrderSource.SYSTEM and self.current_area is not self.sap_area:
            raise ValidationFailure(
                f"Order {self.order_id}: a system tracked order must sit in its SAP area "
                f"({self.sap_area.value}), not {self.current_area.value}"
            )
        if self.discrepancy != (self.sap_area is not self.current_area):
            raise ValidationFailure(
                f"Order {self.order_id}: discrepancy flag does not match "
                f"{self.current_area.value} vs SAP area {self.sap_area.value}"
            )

    @property
    def is_manual(self) -> bool:
        return self.source is OrderSource.MANUAL


@dataclass(frozen=True, slots=True)
class MoveAuditEntry:
    """Immutable record of a manual area move."""

    id: str
    order_id: str
    from_area: Area
    to_area: Area
    timestamp: datetime
    actor: str
    justification: Optional[str] = None


@dataclass(slots=True)
class FlowError:
    """A classified problem found on an order. Recomputed, never stored."""

    category: ErrorCategory
    order_id: str
    description: str
    current_area: Optional[Area] = None
    sap_area: Optional[Area] = None
    plant: str = ""
    material: str = ""
    system_status: str = ""


@dataclass(slots=True)
class OrderChange:
    """One changed field reported by an order upload."""

    order_id: str
    material: str
    field: str
    before: Union[str, float]
    after: Union[str, float]


@dataclass(slots=True)
class UploadResult:
    upload_id: str
    rows_loaded: int
    rows_failed: int
    validation_errors: List[str] = field(default_factory=list)
    changes: List[OrderChange] = field(default_factory=list)


@dataclass(slots=True)
class Issue:
    """Warehouse issue raised against an order."""

    id: str
    order_id: str
    pn: str
    issue_type: IssueType
    comment: str
    status: IssueStatus = IssueStatus.OPEN
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    created_by: str = ""


@dataclass(frozen=True, slots=True)
class IssueHistoryEntry:
    id: str
    issue_id: str
    action: str
    changed_by: str
    changed_at: datetime
    details: str


@dataclass(slots=True)
class ProductionStatus:
    order_id: str
    status: ProductionState = ProductionState.PENDING
    updated_at: Optional[datetime] = None
    updated_by: str = ""


@dataclass(slots=True)
class LogisticsStatus:
    order_id: str
    received_from_production: bool = False
    received_at: Optional[datetime] = None
    received_by: str = ""
    delivered: bool = False
    delivered_at: Optional[datetime] = None
    delivered_by: str = ""


__all__ = [
    "Area",
    "AREA_SEQUENCE",
    "MODE_AREAS",
    "AreaMode",
    "OrderSource",
    "ErrorCategory",
    "ERROR_CATEGORY_META",
    "IssueStatus",
    "IssueType",
    "ProductionState",
    "coerce_enum",
    "utc_now",
    "StatusMapping",
    "Order",
    "MoveAuditEntry",
    "FlowError",
    "OrderChange",
    "UploadResult",
    "Issue",
    "IssueHistoryEntry",
    "ProductionStatus",
    "LogisticsStatus",
]
