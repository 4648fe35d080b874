import pytest

from order_flow import Area, ValidationFailure


def test_system_order_must_sit_in_its_sap_area(make_order):
    with pytest.raises(ValidationFailure):
        make_order("A", "GMPS", current_area=Area.PRODUCTION, sap_area=Area.WAREHOUSE, discrepancy=True)


@pytest.mark.parametrize(
    "current, sap, discrepancy",
    [
        (Area.PRODUCTION, Area.WAREHOUSE, False),
        (Area.PRODUCTION, Area.PRODUCTION, True),
    ],
)
def test_discrepancy_flag_must_match_the_areas(make_order, current, sap, discrepancy):
    with pytest.raises(ValidationFailure):
        make_order(
            "A", "GMPS", source="manual", current_area=current, sap_area=sap, discrepancy=discrepancy
        )


def test_consistent_orders_are_accepted(make_order):
    manual = make_order(
        "A", "GMPS", source="manual", current_area=Area.PRODUCTION, sap_area=Area.WAREHOUSE, discrepancy=True
    )
    assert manual.is_manual
    system = make_order("B", "GMPS", current_area=Area.WAREHOUSE)
    assert system.sap_area is Area.WAREHOUSE
    assert system.discrepancy is False
    assert system.priority is None


def test_order_id_is_required(make_order):
    with pytest.raises(ValidationFailure):
        make_order("  ")
