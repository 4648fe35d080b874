"""Demonstration script for the order flow tracker."""

from __future__ import annotations

from datetime import date, timedelta
from pprint import pprint
from typing import Dict, List

from . import Area, OrderFlowService, StatusMapping
from .product_types import ProductTypeRule

DEFAULT_STATUS_MAPPINGS: List[StatusMapping] = [
    StatusMapping("1", "CRTD", Area.ORDERS, "Created", 1),
    StatusMapping("2", "REL", Area.ORDERS, "Released", 2),
    StatusMapping("3", "PREL", Area.ORDERS, "Pre-Released", 3),
    StatusMapping("4", "GMPS", Area.WAREHOUSE, "Goods Movement Start", 4),
    StatusMapping("5", "MSTC", Area.WAREHOUSE, "Material Staged", 5),
    StatusMapping("6", "MSPT", Area.WAREHOUSE, "Material Split", 6),
    StatusMapping("7", "PRC", Area.PRODUCTION, "In Production", 7),
    StatusMapping("8", "PCNF", Area.PRODUCTION, "Partially Confirmed", 8),
    StatusMapping("9", "CNF", Area.PRODUCTION, "Confirmed", 9),
    StatusMapping("10", "DLV", Area.LOGISTICS, "Delivered", 10),
    StatusMapping("11", "TECO", Area.LOGISTICS, "Technically Complete", 11),
    StatusMapping("12", "CLSD", Area.LOGISTICS, "Closed", 12, is_active=False),
]

DEFAULT_PRODUCT_TYPE_RULES: List[ProductTypeRule] = [
    ProductTypeRule("PREFIX", "9", "SFG", 10, note="Default: material starting with 9 = semifinished"),
    ProductTypeRule("PREFIX", "MAT-", "FG", 100),
]

_PLANTS = ["PLANT-A", "PLANT-B", "PLANT-C", "PLANT-D"]
_MATERIALS = [
    ("MAT-001", "Steel Frame Assembly 500x300"),
    ("MAT-002", "Hydraulic Pump Module HX-200"),
    ("MAT-003", "Electronic Control Unit ECU-7"),
    ("MAT-004", "Bearing Set SKF 6205-2RS"),
    ("MAT-005", "Gear Housing Cast Iron GH-44"),
    ("MAT-006", "Conveyor Belt Rubber 800mm"),
    ("MAT-007", "Motor Drive VFD-22kW"),
]
_STATUS_POOL = [
    "CRTD",
    "REL",
    "REL PRT",
    "GMPS",
    "REL MSTC",
    "MSPT",
    "REL PRT PRC",
    "REL PRT PCNF",
    "CNF",
    "DLV",
    "CNF TECO",
]


def demo_upload_rows(count: int = 24, *, today: date | None = None) -> List[Dict[str, object]]:
    """Deterministic upload rows spread over every area."""

    today = today or date.today()
    rows = []
    for index in range(count):
        material, description = _MATERIALS[index % len(_MATERIALS)]
        start = today + timedelta(days=index % 9 - 4)
        finish = start + timedelta(days=5 + index % 4)
        quantity = 50 * (1 + index % 5)
        rows.append(
            {
                "Order": f"ORD-{100101 + index}",
                "Plant": _PLANTS[index % len(_PLANTS)],
                "Material": material,
                "Material_description": description,
                "Start_date_sched": start.isoformat(),
                "Scheduled_finish_date": finish.isoformat(),
                "Order_quantity": quantity,
                "Delivered_quantity": quantity if index % 11 == 9 else 0,
                "System_Status": _STATUS_POOL[index % len(_STATUS_POOL)],
                "User_Status": "",
                "Priority": "HIGH" if index % 6 == 0 else "",
            }
        )
    # one broken row so the error view has something to show
    rows[-1]["Delivered_quantity"] = rows[-1]["Order_quantity"] + 25
    return rows


def main() -> None:
    service = OrderFlowService()
    service.update_status_mappings(DEFAULT_STATUS_MAPPINGS)
    service.update_product_type_rules(DEFAULT_PRODUCT_TYPE_RULES)
    upload = service.ingest_orders(demo_upload_rows())
    print(f"Loaded {upload.rows_loaded} orders ({upload.rows_failed} failed)")

    warehouse_order = service.list_orders(area=Area.WAREHOUSE)[0]
    service.create_issue(
        warehouse_order.order_id, "PN-4711", "MISSING_MATERIAL", "Bearing set not staged"
    )
    print("Open issues:", service.open_issue_count(warehouse_order.order_id))

    issue = service.issues_for_order(warehouse_order.order_id)[0]
    service.update_issue(issue.id, status="CLOSED")
    result = service.move_order(warehouse_order.order_id, Area.PRODUCTION, actor="demo")
    pprint(result)

    production_order = service.list_orders(area=Area.PRODUCTION)[-1]
    service.move_order(
        production_order.order_id,
        Area.WAREHOUSE,
        "Material shortage on line 2",
        actor="demo",
    )

    print("\nArea summary:")
    for area, labels in service.area_summary().items():
        print(f"  {area.value}: {labels}")

    print("\nFlow errors:")
    for error in service.flow_errors():
        print(f"  {error.category.value:15} {error.order_id}  {error.description}")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
