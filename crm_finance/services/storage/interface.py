"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for record storage.
This allows us to:
1. Keep the records in memory for one request scope or one process
2. Persist them to the JSON file the legacy pages kept in localStorage
3. Swap in a real database later without touching the aggregation engine

The interface is intentionally simple - just the CRUD the pages need.
Aggregation lives in the engine, never in a store.

CONCURRENCY: Each store owns its mutable state and serializes its own
mutations. `list_records()` must return a consistent snapshot.
Between callers it is last-writer-wins.
"""

from abc import ABC, abstractmethod
from typing import Optional

from crm_finance.models.audit import AuditEvent
from crm_finance.models.record import FinancialRecord, RecordDraft, RecordPatch


class RecordStoreInterface(ABC):
    """
    Abstract interface for financial record storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def list_records(self) -> list[FinancialRecord]:
        """
        Return a snapshot of all records.

        Order is insertion order; callers must not give it meaning
        beyond stable grouping.
        """
        pass

    @abstractmethod
    async def get_record(self, record_id: str) -> Optional[FinancialRecord]:
        """
        Retrieve a record by its identifier.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_record(self, draft: RecordDraft) -> FinancialRecord:
        """
        Persist a new record.

        The store assigns the identifier and the current timestamp.
        The draft has already derived its total amount.

        Raises:
            DuplicateError: If the assigned identifier is already taken
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_record(
        self,
        record_id: str,
        patch: RecordPatch,
    ) -> FinancialRecord:
        """
        Apply a partial update.

        The modification time replaces the record's timestamp.

        Raises:
            NotFoundError: If the record doesn't exist
            RecordValidationError: If the merged record breaks an invariant
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(self, record_id: str) -> None:
        """
        Delete a record. Callers confirm intent before calling.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass

    async def is_empty(self) -> bool:
        """
        True when the store holds nothing at all.

        Stores that keep rows they cannot parse override this so those rows
        still count.
        """
        return not await self.list_records()

    @abstractmethod
    async def replace_all(self, records: list[FinancialRecord]) -> None:
        """
        Overwrite every record (seeding and imports).

        Raises:
            DuplicateError: If two records share an identifier
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
