"""Order flow tracker for a four-stage manufacturing pipeline.

Orders move through Orders, Warehouse, Production and Logistics. Their area is
derived from SAP status codes unless an operator has placed them manually;
differences between the two, and inconsistent order data, are reported as
flow errors.
"""

from .domain import (
    Area,
    AreaMode,
    ErrorCategory,
    FlowError,
    MoveAuditEntry,
    Order,
    OrderSource,
    StatusMapping,
)
from .exceptions import (
    NotFound,
    OrderFlowError,
    OrderNotFound,
    PreconditionBlocked,
    ValidationFailure,
)
from .resolver import StatusMappingTable, derive_area, get_effective_status
from .assignment import apply_status_mappings
from .classifier import compute_flow_errors
from .moves import ManualMoveStateMachine, MovePreconditions, MoveResult
from .modes import AreaModeRegistry
from .services import OrderFlowService

__all__ = [
    "Area",
    "AreaMode",
    "ErrorCategory",
    "FlowError",
    "MoveAuditEntry",
    "Order",
    "OrderSource",
    "StatusMapping",
    "NotFound",
    "OrderFlowError",
    "OrderNotFound",
    "PreconditionBlocked",
    "ValidationFailure",
    "StatusMappingTable",
    "derive_area",
    "get_effective_status",
    "apply_status_mappings",
    "compute_flow_errors",
    "ManualMoveStateMachine",
    "MovePreconditions",
    "MoveResult",
    "AreaModeRegistry",
    "OrderFlowService",
]
