"""Per-area AUTO/MANUAL placement modes."""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Union

from .domain import MODE_AREAS, Area, AreaMode, coerce_enum
from .exceptions import ValidationFailure
from .repository import InMemoryRepository, RecordNotFoundError

AREA_MODES_DOCUMENT = "area_modes"


class AreaModeRegistry:
    """Stores the mode of Warehouse, Production and Logistics.

    The Orders area has no entry and is always AUTO. Switching a mode never
    touches orders; manually placed orders stay where the operator put them.
    """

    def __init__(self, store: Optional[InMemoryRepository[dict]] = None) -> None:
        self._store = store if store is not None else InMemoryRepository()

    def get(self) -> Dict[Area, AreaMode]:
        try:
            raw = self._store.get(AREA_MODES_DOCUMENT)
        except RecordNotFoundError:
            raw = {}
        modes: Dict[Area, AreaMode] = {}
        for area in MODE_AREAS:
            try:
                modes[area] = AreaMode(raw.get(area.value, AreaMode.AUTO.value))
            except ValueError:
                modes[area] = AreaMode.AUTO
        return modes

    def set(self, modes: Mapping[Union[Area, str], Union[AreaMode, str]]) -> Dict[Area, AreaMode]:
        expected = {area.value for area in MODE_AREAS}
        keys = {key.value if isinstance(key, Area) else str(key) for key in modes}
        if keys != expected or len(modes) != len(expected):
            raise ValidationFailure(
                "Area modes must define exactly: " + ", ".join(sorted(expected))
            )
        document = {}
        for key, value in modes.items():
            area = key.value if isinstance(key, Area) else str(key)
            document[area] = coerce_enum(AreaMode, value, f"mode for {area}").value
        self._store.upsert(AREA_MODES_DOCUMENT, document)
        return self.get()

    def mode_for(self, area: Union[Area, str]) -> AreaMode:
        area = coerce_enum(Area, area, "area")
        if area is Area.ORDERS:
            return AreaMode.AUTO
        return self.get()[area]


__all__ = ["AreaModeRegistry", "AREA_MODES_DOCUMENT"]
