"""
In-Memory Storage Implementation

Holds records on the store instance. The composition root decides the
lifetime: one store per process, or one per request scope in tests.

DESIGN DECISION: There is no module-level record list. Two stores never
share state, so tests and concurrent app instances stay isolated.
"""

import asyncio
from datetime import datetime
from typing import Callable, Iterable, Optional
from uuid import uuid4

import structlog
from pydantic import ValidationError as PydanticValidationError

from crm_finance.models.audit import AuditEvent
from crm_finance.models.record import FinancialRecord, RecordDraft, RecordPatch
from crm_finance.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
)
from crm_finance.validation import RecordValidationError


logger = structlog.get_logger(__name__)


def new_record_id() -> str:
    """Default identifier factory."""
    return uuid4().hex


class InMemoryRecordStore(RecordStoreInterface):
    """
    Record store backed by a list on the instance.

    Mutations are serialized with an asyncio.Lock and always replace the
    list, so a snapshot handed out by list_records() never changes.
    """

    def __init__(
        self,
        records: Optional[Iterable[FinancialRecord]] = None,
        id_factory: Callable[[], str] = new_record_id,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._records: list[FinancialRecord] = []
        self._id_factory = id_factory
        self._clock = clock
        self._lock = asyncio.Lock()

        for record in records or []:
            if self._index_of(record.id) is not None:
                raise DuplicateError(f"Duplicate record id: {record.id}")
            self._records.append(record)

    def _index_of(self, record_id: str) -> Optional[int]:
        for idx, record in enumerate(self._records):
            if record.id == record_id:
                return idx
        return None

    async def list_records(self) -> list[FinancialRecord]:
        return list(self._records)

    async def get_record(self, record_id: str) -> Optional[FinancialRecord]:
        idx = self._index_of(record_id)
        return self._records[idx] if idx is not None else None

    async def create_record(self, draft: RecordDraft) -> FinancialRecord:
        async with self._lock:
            record = draft.to_record(self._id_factory(), self._clock())
            if self._index_of(record.id) is not None:
                raise DuplicateError(f"Duplicate record id: {record.id}")

            self._records = [*self._records, record]
            logger.info("record_created", record_id=record.id, member=record.member)
            return record

    async def update_record(
        self,
        record_id: str,
        patch: RecordPatch,
    ) -> FinancialRecord:
        async with self._lock:
            idx = self._index_of(record_id)
            if idx is None:
                raise NotFoundError(f"Record not found: {record_id}")

            try:
                updated = self._records[idx].apply_patch(patch, self._clock())
            except PydanticValidationError as e:
                raise RecordValidationError.from_pydantic(e) from e

            self._records = [
                *self._records[:idx],
                updated,
                *self._records[idx + 1:],
            ]
            logger.info("record_updated", record_id=record_id)
            return updated

    async def delete_record(self, record_id: str) -> None:
        async with self._lock:
            if self._index_of(record_id) is None:
                raise NotFoundError(f"Record not found: {record_id}")

            self._records = [r for r in self._records if r.id != record_id]
            logger.info("record_deleted", record_id=record_id)

    async def replace_all(self, records: list[FinancialRecord]) -> None:
        ids = [r.id for r in records]
        if len(ids) != len(set(ids)):
            raise DuplicateError("Duplicate record ids in import")
        async with self._lock:
            self._records = list(records)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
