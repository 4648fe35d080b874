"""Read-only classification of orders into flow error categories."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Union

from .domain import ErrorCategory, FlowError, Order
from .resolver import MappingSource, StatusMappingTable, as_table

STATUS_FIELD = "System_Status"


def _base(order: Order, category: ErrorCategory, description: str, **extra) -> FlowError:
    return FlowError(
        category=category,
        order_id=order.order_id,
        description=description,
        plant=order.plant,
        material=order.material,
        system_status=order.raw_status,
        **extra,
    )


def _discrepancy(order: Order, table: StatusMappingTable) -> Optional[FlowError]:
    # compare against the live table, the cached sap_area may be stale
    if not order.is_manual:
        return None
    sap_area = table.derive_area(order.raw_status)
    if sap_area == order.current_area:
        return None
    return _base(
        order,
        ErrorCategory.E1_DISCREPANCY,
        f"Manually placed in {order.current_area.value} but SAP status maps to {sap_area.value}.",
        current_area=order.current_area,
        sap_area=sap_area,
    )


def _status_changed(order: Order) -> Optional[FlowError]:
    if not (order.has_changes and STATUS_FIELD in order.changed_fields):
        return None
    return _base(
        order,
        ErrorCategory.E2_REGRESS,
        "System status changed in the latest upload.",
        current_area=order.current_area,
    )


def _missing_orders() -> List[FlowError]:
    """E3_MISSING needs the previous upload snapshot, which ingestion does not keep yet."""

    return []


def _invalid_data(order: Order) -> List[FlowError]:
    errors = []
    if order.start_date and order.finish_date and order.start_date > order.finish_date:
        errors.append(
            _base(
                order,
                ErrorCategory.E4_INVALID,
                f"Start date {order.start_date} is after finish date {order.finish_date}.",
                current_area=order.current_area,
            )
        )
    if order.order_quantity <= 0:
        errors.append(
            _base(
                order,
                ErrorCategory.E4_INVALID,
                f"Order quantity {order.order_quantity:g} is not positive.",
                current_area=order.current_area,
            )
        )
    if order.delivered_quantity > order.order_quantity:
        errors.append(
            _base(
                order,
                ErrorCategory.E4_INVALID,
                f"Delivered quantity {order.delivered_quantity:g} exceeds "
                f"order quantity {order.order_quantity:g}.",
                current_area=order.current_area,
            )
        )
    return errors


def compute_flow_errors(orders: Iterable[Order], mappings: MappingSource) -> List[FlowError]:
    """Classify ``orders`` against the current mapping table. Inputs are not modified."""

    table = as_table(mappings)
    errors: List[FlowError] = []
    for order in orders:
        discrepancy = _discrepancy(order, table)
        if discrepancy is not None:
            errors.append(discrepancy)
        changed = _status_changed(order)
        if changed is not None:
            errors.append(changed)
        errors.extend(_invalid_data(order))
    errors.extend(_missing_orders())
    return errors


def summarize_flow_errors(errors: Iterable[FlowError]) -> Dict[ErrorCategory, int]:
    counts = {category: 0 for category in ErrorCategory}
    for error in errors:
        counts[error.category] += 1
    return counts


def filter_flow_errors(
    errors: Sequence[FlowError],
    category: Optional[Union[ErrorCategory, str]] = None,
    query: str = "",
) -> List[FlowError]:
    q = (query or "").strip().lower()
    result = []
    for error in errors:
        if category and error.category != category:
            continue
        if q and not any(
            q in str(value).lower()
            for value in (error.order_id, error.material, error.plant, error.description)
        ):
            continue
        result.append(error)
    return result


__all__ = ["compute_flow_errors", "summarize_flow_errors", "filter_flow_errors"]
