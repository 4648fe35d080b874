"""Simple in-memory repositories used by the order flow service layer."""

from __future__ import annotations

from typing import (
    Callable,
    Generic,
    Iterable,
    Iterator,
    List,
    MutableMapping,
    Tuple,
    TypeVar,
)

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


class InMemoryRepository(Generic[T]):
    """Generic repository backed by a simple dictionary."""

    def __init__(self) -> None:
        self._items: MutableMapping[str, T] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item_id: str, item: T) -> None:
        if item_id in self._items:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._items[item_id] = item

    def upsert(self, item_id: str, item: T) -> None:
        self._items[item_id] = item

    def upsert_many(self, items: Iterable[Tuple[str, T]]) -> None:
        """Write a batch of records; the batch is staged before it is applied."""

        staged = dict(items)
        self._items.update(staged)

    def replace_all(self, items: Iterable[Tuple[str, T]]) -> None:
        staged = dict(items)
        self._items.clear()
        self._items.update(staged)

    def get(self, item_id: str) -> T:
        try:
            return self._items[item_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found") from exc

    def remove(self, item_id: str) -> None:
        if item_id not in self._items:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        del self._items[item_id]

    def list(self) -> List[T]:
        return list(self._items.values())

    def __iter__(self) -> Iterator[T]:
        return iter(self._items.values())


class AppendOnlyLog(Generic[T]):
    """Insert-only record log; entries keep their insertion order."""

    def __init__(self, key: Callable[[T], str]) -> None:
        self._key = key
        self._entries: List[T] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._entries))

    def append(self, entry: T) -> None:
        self._entries.append(entry)

    def list(self) -> List[T]:
        return list(self._entries)

    def for_key(self, key: str) -> List[T]:
        return [entry for entry in self._entries if self._key(entry) == key]


__all__ = [
    "InMemoryRepository",
    "AppendOnlyLog",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
