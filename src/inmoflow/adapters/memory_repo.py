# src/inmoflow/adapters/memory_repo.py
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel

from inmoflow.adapters.config import config
from inmoflow.domain.esign import Envelope
from inmoflow.domain.forecast import ForecastCategory, ForecastItem, ForecastPeriod, ForecastScenario
from inmoflow.domain.ports import EventLog, KeyValueStore, Repository
from inmoflow.domain.portals import AuditEvent, LogEntry, PortalConfig, PortalInfo, SyncJob
from inmoflow.domain.pricing import PricePlan, PricingAuditEvent, Scenario
from inmoflow.domain.property import Property

T = TypeVar("T", bound=BaseModel)


def new_id(prefix: str = "") -> str:
    token = uuid.uuid4().hex[:9]
    return f"{prefix}-{token}" if prefix else token


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _simulate_latency(latency_ms: int) -> None:
    if latency_ms > 0:
        time.sleep(latency_ms / 1000)


class InMemoryRepository(Generic[T]):
    """Insertion-ordered record store keyed by the record's `id`."""

    def __init__(self, items: Iterable[T] = (), latency_ms: int | None = None) -> None:
        self._items: dict[str, T] = {}
        self._latency_ms = config.MOCK_LATENCY_MS if latency_ms is None else latency_ms
        for item in items:
            self._items[getattr(item, "id")] = item

    def list(self) -> list[T]:
        _simulate_latency(self._latency_ms)
        return list(self._items.values())

    def get(self, item_id: str) -> T | None:
        _simulate_latency(self._latency_ms)
        return self._items.get(item_id)

    def add(self, item: T) -> T:
        _simulate_latency(self._latency_ms)
        self._items[getattr(item, "id")] = item
        return item

    def replace(self, item: T) -> T:
        # last write wins
        return self.add(item)

    def delete(self, item_id: str) -> bool:
        _simulate_latency(self._latency_ms)
        return self._items.pop(item_id, None) is not None

    def delete_many(self, item_ids: Iterable[str]) -> int:
        _simulate_latency(self._latency_ms)
        return sum(1 for i in item_ids if self._items.pop(i, None) is not None)

    def __len__(self) -> int:
        return len(self._items)


class InMemoryEventLog(Generic[T]):
    def __init__(self, events: Iterable[T] = ()) -> None:
        self._events: list[T] = list(events)

    def append(self, event: T) -> T:
        self._events.append(event)
        return event

    def list(self) -> list[T]:
        return list(self._events)


class InMemoryKeyValue(Generic[T]):
    """Per-key config documents (e.g. one PortalConfig per portal id)."""

    def __init__(self, items: dict[str, T] | None = None) -> None:
        self._items: dict[str, T] = dict(items or {})

    def get(self, key: str) -> T | None:
        return self._items.get(key)

    def put(self, key: str, value: T) -> T:
        self._items[key] = value
        return value


@dataclass
class Repositories:
    """
    Every store the back-office needs, bundled so the HTTP app, the CLI and
    the tests can each build an isolated set.
    """
    properties: Repository[Property] = field(default_factory=InMemoryRepository)
    forecasts: Repository[ForecastItem] = field(default_factory=InMemoryRepository)
    periods: Repository[ForecastPeriod] = field(default_factory=InMemoryRepository)
    categories: Repository[ForecastCategory] = field(default_factory=InMemoryRepository)
    forecast_scenarios: Repository[ForecastScenario] = field(default_factory=InMemoryRepository)
    pricing_scenarios: Repository[Scenario] = field(default_factory=InMemoryRepository)
    price_plans: Repository[PricePlan] = field(default_factory=InMemoryRepository)
    pricing_audit: EventLog[PricingAuditEvent] = field(default_factory=InMemoryEventLog)
    portals: Repository[PortalInfo] = field(default_factory=InMemoryRepository)
    portal_configs: KeyValueStore[PortalConfig] = field(default_factory=InMemoryKeyValue)
    sync_jobs: Repository[SyncJob] = field(default_factory=InMemoryRepository)
    portal_audit: EventLog[AuditEvent] = field(default_factory=InMemoryEventLog)
    portal_logs: EventLog[LogEntry] = field(default_factory=InMemoryEventLog)
    envelopes: Repository[Envelope] = field(default_factory=InMemoryRepository)

    @classmethod
    def seeded(cls, property_count: int | None = None, seed: int | None = None) -> "Repositories":
        from inmoflow.adapters import seed as seed_data

        count = config.SEED_PROPERTIES if property_count is None else property_count
        rnd = config.SEED_RANDOM if seed is None else seed
        return cls(
            properties=InMemoryRepository(seed_data.generate_properties(count, seed=rnd)),
            forecasts=InMemoryRepository(seed_data.forecast_items()),
            periods=InMemoryRepository(seed_data.forecast_periods()),
            categories=InMemoryRepository(seed_data.forecast_categories()),
            forecast_scenarios=InMemoryRepository(seed_data.forecast_scenarios()),
            portals=InMemoryRepository(seed_data.portals()),
            portal_configs=InMemoryKeyValue(seed_data.portal_configs()),
            sync_jobs=InMemoryRepository(seed_data.sync_jobs()),
            portal_audit=InMemoryEventLog(seed_data.portal_audit()),
            portal_logs=InMemoryEventLog(seed_data.portal_logs()),
            envelopes=InMemoryRepository(seed_data.envelopes()),
        )
