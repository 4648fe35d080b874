import pytest

from order_flow import Area, AreaMode, AreaModeRegistry, ValidationFailure
from order_flow.repository import InMemoryRepository


def test_defaults_to_auto_for_every_area():
    registry = AreaModeRegistry()
    assert registry.get() == {
        Area.WAREHOUSE: AreaMode.AUTO,
        Area.PRODUCTION: AreaMode.AUTO,
        Area.LOGISTICS: AreaMode.AUTO,
    }


def test_set_accepts_strings_and_persists():
    store = InMemoryRepository()
    AreaModeRegistry(store).set(
        {"Warehouse": "MANUAL", "Production": "AUTO", "Logistics": AreaMode.MANUAL}
    )
    reloaded = AreaModeRegistry(store).get()
    assert reloaded[Area.WAREHOUSE] is AreaMode.MANUAL
    assert reloaded[Area.PRODUCTION] is AreaMode.AUTO
    assert reloaded[Area.LOGISTICS] is AreaMode.MANUAL


def test_missing_keys_in_stored_document_default_to_auto():
    store = InMemoryRepository()
    store.upsert("area_modes", {"Warehouse": "MANUAL"})
    modes = AreaModeRegistry(store).get()
    assert modes[Area.WAREHOUSE] is AreaMode.MANUAL
    assert modes[Area.LOGISTICS] is AreaMode.AUTO


@pytest.mark.parametrize(
    "modes",
    [
        {"Warehouse": "AUTO", "Production": "AUTO"},
        {"Warehouse": "AUTO", "Production": "AUTO", "Logistics": "AUTO", "Orders": "AUTO"},
        {"Warehouse": "AUTO", "Production": "AUTO", "Shipping": "AUTO"},
    ],
)
def test_set_rejects_wrong_key_sets(modes):
    registry = AreaModeRegistry()
    with pytest.raises(ValidationFailure):
        registry.set(modes)
    assert registry.get()[Area.WAREHOUSE] is AreaMode.AUTO


def test_set_rejects_unknown_mode_value():
    with pytest.raises(ValidationFailure):
        AreaModeRegistry().set({"Warehouse": "SEMI", "Production": "AUTO", "Logistics": "AUTO"})


def test_orders_area_is_always_auto():
    registry = AreaModeRegistry()
    registry.set({"Warehouse": "MANUAL", "Production": "MANUAL", "Logistics": "MANUAL"})
    assert registry.mode_for(Area.ORDERS) is AreaMode.AUTO
    assert registry.mode_for("Production") is AreaMode.MANUAL
