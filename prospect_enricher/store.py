"""Prospect persistence contract and an in-memory implementation with per-prospect locking."""
from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol

from .models import ProspectRecord, TriggeredBy

LOGGER = logging.getLogger(__name__)


class ProspectNotFoundError(KeyError):
    """Raised when a prospect id is unknown to the store."""


class MergeConflictError(RuntimeError):
    """Raised when a record changed between read and write. The caller may retry."""


@dataclass(frozen=True)
class EnrichmentHistoryEntry:
    """Audit entry for one enrichment run of a prospect."""

    prospect_id: int
    started_at: datetime
    triggered_by: TriggeredBy = TriggeredBy.USER
    status: str = "started"
    user_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    contacts_found: int = 0
    services_used: tuple = ()
    execution_time_ms: float = 0.0
    error_message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None

    def finished(self, status: str, completed_at: datetime, **changes: Any) -> "EnrichmentHistoryEntry":
        return replace(self, status=status, completed_at=completed_at, **changes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "prospect_id": self.prospect_id,
            "status": self.status,
            "triggered_by": self.triggered_by.value,
            "user_id": self.user_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "contacts_found": self.contacts_found,
            "services_used": list(self.services_used),
            "execution_time_ms": self.execution_time_ms,
            "error_message": self.error_message,
        }


class ProspectStore(Protocol):
    """Storage used by the enrichment workflow."""

    def get(self, prospect_id: int) -> ProspectRecord:  # pragma: no cover - protocol
        ...

    def save(self, record: ProspectRecord, expected_version: int) -> ProspectRecord:  # pragma: no cover - protocol
        ...

    def lock(self, prospect_id: int):  # pragma: no cover - protocol
        ...

    def all(self) -> List[ProspectRecord]:  # pragma: no cover - protocol
        ...

    def add_history(self, entry: EnrichmentHistoryEntry) -> EnrichmentHistoryEntry:  # pragma: no cover - protocol
        ...

    def update_history(self, entry: EnrichmentHistoryEntry) -> None:  # pragma: no cover - protocol
        ...

    def history(self, prospect_id: int, limit: int = 10) -> List[EnrichmentHistoryEntry]:  # pragma: no cover
        ...


class InMemoryProspectStore:
    """Thread-safe dictionary backed store.

    Every write goes through :meth:`save`, which compares ``expected_version``
    with the stored version and bumps the version on success.
    """

    def __init__(self, records: Iterable[ProspectRecord] = ()) -> None:
        self._records: Dict[int, ProspectRecord] = {}
        self._locks: Dict[int, threading.RLock] = {}
        self._guard = threading.Lock()
        self._history: List[EnrichmentHistoryEntry] = []
        self._history_ids = itertools.count(1)
        for record in records:
            self.add(record)

    def add(self, record: ProspectRecord) -> ProspectRecord:
        with self._guard:
            if record.id in self._records:
                raise ValueError(f"Prospect {record.id} already exists")
            self._records[record.id] = record
            self._locks[record.id] = threading.RLock()
        return record

    def get(self, prospect_id: int) -> ProspectRecord:
        with self._guard:
            try:
                return self._records[prospect_id]
            except KeyError:
                raise ProspectNotFoundError(prospect_id) from None

    def all(self) -> List[ProspectRecord]:
        with self._guard:
            return list(self._records.values())

    def save(self, record: ProspectRecord, expected_version: int) -> ProspectRecord:
        with self._guard:
            current = self._records.get(record.id)
            if current is None:
                raise ProspectNotFoundError(record.id)
            if current.version != expected_version:
                raise MergeConflictError(
                    f"Prospect {record.id} changed concurrently "
                    f"(expected version {expected_version}, found {current.version})"
                )
            stored = replace(record, version=current.version + 1)
            self._records[record.id] = stored
        LOGGER.debug("Saved prospect %s at version %s", stored.id, stored.version)
        return stored

    @contextmanager
    def lock(self, prospect_id: int) -> Iterator[None]:
        with self._guard:
            if prospect_id not in self._locks:
                raise ProspectNotFoundError(prospect_id)
            prospect_lock = self._locks[prospect_id]
        with prospect_lock:
            yield

    def add_history(self, entry: EnrichmentHistoryEntry) -> EnrichmentHistoryEntry:
        with self._guard:
            stored = replace(entry, id=next(self._history_ids))
            self._history.append(stored)
        return stored

    def update_history(self, entry: EnrichmentHistoryEntry) -> None:
        with self._guard:
            for index, existing in enumerate(self._history):
                if existing.id == entry.id:
                    self._history[index] = entry
                    return
        raise KeyError(f"Unknown history entry {entry.id}")

    def history(self, prospect_id: int, limit: int = 10) -> List[EnrichmentHistoryEntry]:
        with self._guard:
            entries = [entry for entry in self._history if entry.prospect_id == prospect_id]
        entries.sort(key=lambda entry: (entry.started_at, entry.id or 0), reverse=True)
        return entries[:limit]


__all__ = [
    "EnrichmentHistoryEntry",
    "InMemoryProspectStore",
    "MergeConflictError",
    "ProspectNotFoundError",
    "ProspectStore",
]
