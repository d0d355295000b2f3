# src/inmoflow/domain/ports.py
from __future__ import annotations

from typing import Iterable, Protocol, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


# ----------------------------
# Record storage
# ----------------------------

class Repository(Protocol[T]):
    """
    Keyed storage for one record type. Records are pydantic models with an
    `id` attribute; the services never touch the storage medium directly.
    """

    def list(self) -> list[T]:
        ...

    def get(self, item_id: str) -> T | None:
        ...

    def add(self, item: T) -> T:
        ...

    def replace(self, item: T) -> T:
        ...

    def delete(self, item_id: str) -> bool:
        ...

    def delete_many(self, item_ids: Iterable[str]) -> int:
        ...

    def __len__(self) -> int:
        ...


# ----------------------------
# Append-only trails
# ----------------------------

class EventLog(Protocol[T]):
    def append(self, event: T) -> T:
        ...

    def list(self) -> list[T]:
        ...


class KeyValueStore(Protocol[T]):
    def get(self, key: str) -> T | None:
        ...

    def put(self, key: str, value: T) -> T:
        ...
