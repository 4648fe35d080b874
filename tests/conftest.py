import os

# keep test runs from writing log files into the package directory
os.environ["ORDER_FLOW_LOG_DIR"] = ""
os.environ["ORDER_FLOW_ENV"] = "TEST"

import pytest

from order_flow import Area, Order, OrderFlowService, StatusMapping


@pytest.fixture
def mappings():
    return [
        StatusMapping("1", "CRTD", Area.ORDERS, "Created", 1),
        StatusMapping("2", "REL", Area.ORDERS, "Released", 2),
        StatusMapping("4", "GMPS", Area.WAREHOUSE, "Goods Movement Start", 4),
        StatusMapping("5", "MSTC", Area.WAREHOUSE, "Material Staged", 5),
        StatusMapping("7", "PRC", Area.PRODUCTION, "In Production", 7),
        StatusMapping("8", "PCNF", Area.PRODUCTION, "Partially Confirmed", 8),
        StatusMapping("9", "CNF", Area.PRODUCTION, "Confirmed", 9),
        StatusMapping("10", "DLV", Area.LOGISTICS, "Delivered", 10),
        StatusMapping("12", "CLSD", Area.LOGISTICS, "Closed", 12, is_active=False),
    ]


@pytest.fixture
def make_order():
    def build(order_id="ORD-1", raw_status="", **overrides):
        values = dict(
            order_id=order_id,
            plant="PLANT-A",
            material="MAT-001",
            material_description="Steel Frame Assembly",
            start_date="2024-03-01",
            finish_date="2024-03-10",
            order_quantity=100,
            delivered_quantity=0,
            raw_status=raw_status,
        )
        values.update(overrides)
        return Order(**values)

    return build


@pytest.fixture
def service(mappings):
    service = OrderFlowService()
    service.update_status_mappings(mappings)
    return service


@pytest.fixture
def upload_row():
    def build(order_id="ORD-1", status="GMPS", **overrides):
        row = {
            "Order": order_id,
            "Plant": "PLANT-A",
            "Material": "MAT-001",
            "Material_description": "Steel Frame Assembly",
            "Start_date_sched": "2024-03-01",
            "Scheduled_finish_date": "2024-03-10",
            "Order_quantity": 100,
            "Delivered_quantity": 0,
            "System_Status": status,
            "User_Status": "",
        }
        row.update(overrides)
        return row

    return build
