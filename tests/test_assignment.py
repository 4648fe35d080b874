import copy

from order_flow import Area, OrderSource, StatusMapping, apply_status_mappings
from order_flow.assignment import OrderAreaAssignmentEngine
from order_flow.repository import InMemoryRepository


def test_system_orders_follow_the_mapping(mappings, make_order):
    orders = [make_order("A", "REL GMPS"), make_order("B", "CRTD"), make_order("C", "")]
    placed = {o.order_id: o for o in apply_status_mappings(orders, mappings)}

    assert placed["A"].current_area is Area.WAREHOUSE
    assert placed["A"].sap_area is Area.WAREHOUSE
    assert placed["A"].discrepancy is False
    assert placed["B"].current_area is Area.ORDERS
    assert placed["C"].current_area is Area.ORDERS


def test_manual_orders_keep_their_area(mappings, make_order):
    order = make_order(
        "A", "GMPS", current_area=Area.PRODUCTION, source=OrderSource.MANUAL
    )
    [placed] = apply_status_mappings([order], mappings)

    assert placed.current_area is Area.PRODUCTION
    assert placed.sap_area is Area.WAREHOUSE
    assert placed.discrepancy is True
    assert placed.source is OrderSource.MANUAL


def test_manual_order_matching_sap_has_no_discrepancy(mappings, make_order):
    order = make_order("A", "PRC", current_area=Area.PRODUCTION, source="manual")
    [placed] = apply_status_mappings([order], mappings)
    assert placed.discrepancy is False


def test_inputs_are_not_modified(mappings, make_order):
    orders = [make_order("A", "DLV"), make_order("B", "PRC", source="manual")]
    before = copy.deepcopy(orders)
    apply_status_mappings(orders, mappings)
    assert orders == before


def test_engine_pass_is_idempotent(mappings, make_order):
    repo = InMemoryRepository()
    for order in [make_order("A", "REL PCNF"), make_order("B", "MSTC", source="manual")]:
        repo.add(order.order_id, order)
    engine = OrderAreaAssignmentEngine(repo)

    engine.apply(mappings)
    first = copy.deepcopy(repo.list())
    summary = engine.apply(mappings)

    assert repo.list() == first
    assert summary.processed == 2
    assert summary.area_changed == 0


def test_mapping_change_moves_system_orders_only(mappings, make_order):
    repo = InMemoryRepository()
    repo.add("A", make_order("A", "GMPS"))
    repo.add("B", make_order("B", "GMPS", current_area=Area.WAREHOUSE, source="manual"))
    engine = OrderAreaAssignmentEngine(repo)
    engine.apply(mappings)

    remapped = [
        StatusMapping(m.id, m.status_value, Area.PRODUCTION if m.status_value == "GMPS" else m.area,
                      m.label, m.sort_order, m.is_active)
        for m in mappings
    ]
    summary = engine.apply(remapped)

    assert repo.get("A").current_area is Area.PRODUCTION
    assert repo.get("B").current_area is Area.WAREHOUSE
    assert repo.get("B").sap_area is Area.PRODUCTION
    assert repo.get("B").discrepancy is True
    assert summary.area_changed == 1
    assert summary.discrepancies == 1
