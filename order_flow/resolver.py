"""Resolution of raw SAP status strings into an effective status and area.

A raw status is a whitespace separated list of tokens such as
``"REL PRT PCNF"``. Every token is matched exactly (case-sensitive) against the
active rows of the status mapping table; the token whose mapping carries the
highest ``sort_order`` wins. Ties go to the token that appears first.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .domain import Area, StatusMapping


class StatusMappingTable:
    """Ordered status mapping rows with an index of the active tokens."""

    def __init__(self, mappings: Iterable[StatusMapping]) -> None:
        self._mappings: List[StatusMapping] = list(mappings)
        self._active: Dict[str, StatusMapping] = {}
        for mapping in self._mappings:
            if mapping.is_active:
                # first active row for a value wins
                self._active.setdefault(mapping.status_value, mapping)

    def __iter__(self):
        return iter(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    @property
    def mappings(self) -> List[StatusMapping]:
        return list(self._mappings)

    def effective_status(self, status: Optional[str]) -> Optional[StatusMapping]:
        best: Optional[StatusMapping] = None
        for token in (status or "").split():
            mapping = self._active.get(token)
            if mapping is None:
                continue
            if best is None or mapping.sort_order > best.sort_order:
                best = mapping
        return best

    def derive_area(self, status: Optional[str]) -> Area:
        mapping = self.effective_status(status)
        return mapping.area if mapping is not None else Area.ORDERS

    def label_for(self, status: Optional[str]) -> str:
        """Display label of the effective status, falling back to the raw text."""

        mapping = self.effective_status(status)
        return mapping.label if mapping is not None else (status or "").strip()

    def duplicate_active_values(self) -> List[str]:
        counts = Counter(m.status_value for m in self._mappings if m.is_active)
        return sorted(value for value, count in counts.items() if count > 1)


MappingSource = Union[StatusMappingTable, Sequence[StatusMapping]]


def as_table(mappings: MappingSource) -> StatusMappingTable:
    if isinstance(mappings, StatusMappingTable):
        return mappings
    return StatusMappingTable(mappings)


def get_effective_status(
    status: Optional[str], mappings: MappingSource
) -> Optional[StatusMapping]:
    """Return the winning mapping for ``status`` or ``None`` if no token matched."""

    return as_table(mappings).effective_status(status)


def derive_area(status: Optional[str], mappings: MappingSource) -> Area:
    """Area of the effective status; ``Area.ORDERS`` when nothing matched."""

    return as_table(mappings).derive_area(status)


__all__ = [
    "StatusMappingTable",
    "MappingSource",
    "as_table",
    "get_effective_status",
    "derive_area",
]
