"""Finished / semi-finished classification of materials.

Rules match a material number either by PREFIX or EXACT value. Among the
active rules that match, the lowest ``priority`` number wins; equal
priorities go to the rule listed first.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence
from uuid import uuid4

from .domain import coerce_enum, utc_now
from .exceptions import ValidationFailure
from .repository import InMemoryRepository, RecordNotFoundError

PRODUCT_TYPE_RULES_DOCUMENT = "product_type_rules"
DEFAULT_RULE_PRIORITY = 100


class RuleType(str, Enum):
    PREFIX = "PREFIX"
    EXACT = "EXACT"


class ProductType(str, Enum):
    FG = "FG"
    SFG = "SFG"


@dataclass(slots=True)
class ProductTypeRule:
    rule_type: RuleType
    rule_value: str
    product_type: ProductType
    priority: int = DEFAULT_RULE_PRIORITY
    is_active: bool = True
    note: Optional[str] = None
    id: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.rule_type = coerce_enum(RuleType, self.rule_type, "rule_type")
        self.product_type = coerce_enum(ProductType, self.product_type, "product_type")
        self.rule_value = (self.rule_value or "").strip()
        if self.priority is None:
            self.priority = DEFAULT_RULE_PRIORITY

    def matches(self, material: str) -> bool:
        if self.rule_type is RuleType.EXACT:
            return material == self.rule_value
        return material.startswith(self.rule_value)


def validate_product_type_rules(rules: Sequence[ProductTypeRule]) -> None:
    active_seen = set()
    for index, rule in enumerate(rules, start=1):
        if not rule.rule_value:
            raise ValidationFailure(f"Rule {index}: Rule value is required")
        if not rule.is_active:
            continue
        key = (rule.rule_type, rule.rule_value)
        if key in active_seen:
            raise ValidationFailure(
                f"Rule {index}: Duplicate active rule: {rule.rule_type.value} {rule.rule_value}"
            )
        active_seen.add(key)


def classify_material(
    material: Optional[str], rules: Iterable[ProductTypeRule]
) -> Optional[ProductType]:
    """Product type of ``material`` or ``None`` when no active rule matches."""

    material = (material or "").strip()
    if not material:
        return None
    best: Optional[ProductTypeRule] = None
    for rule in rules:
        if not rule.is_active or not rule.matches(material):
            continue
        if best is None or rule.priority < best.priority:
            best = rule
    return best.product_type if best is not None else None


class ProductTypeRuleBook:
    """Stores the rule list as one configuration document."""

    def __init__(self, store: Optional[InMemoryRepository[dict]] = None) -> None:
        self._store = store if store is not None else InMemoryRepository()

    def list(self) -> List[ProductTypeRule]:
        try:
            document = self._store.get(PRODUCT_TYPE_RULES_DOCUMENT)
        except RecordNotFoundError:
            return []
        return [replace(rule) for rule in document.get("rules", [])]

    def save(self, rules: Sequence[ProductTypeRule], *, now: Optional[datetime] = None) -> List[ProductTypeRule]:
        """Replace the rule list. New or edited rules get a fresh ``updated_at``."""

        rules = list(rules)
        validate_product_type_rules(rules)
        now = now or utc_now()
        previous = {rule.id: rule for rule in self.list() if rule.id}
        saved = []
        for rule in rules:
            if rule.id is None:
                rule = replace(rule, id=str(uuid4()), updated_at=now)
            else:
                before = previous.get(rule.id)
                if before is None or replace(before, updated_at=None) != replace(rule, updated_at=None):
                    rule = replace(rule, updated_at=now)
            saved.append(rule)
        self._store.upsert(PRODUCT_TYPE_RULES_DOCUMENT, {"rules": [replace(rule) for rule in saved]})
        return saved

    def classify(self, material: Optional[str]) -> Optional[ProductType]:
        return classify_material(material, self.list())


__all__ = [
    "RuleType",
    "ProductType",
    "ProductTypeRule",
    "ProductTypeRuleBook",
    "validate_product_type_rules",
    "classify_material",
    "PRODUCT_TYPE_RULES_DOCUMENT",
]
