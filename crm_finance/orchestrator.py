"""
Main Orchestrator for CRM Finance

This module ties together all the components and defines the flows the
presentation layer calls:
1. Records (add form → validate → store → audit; edit; confirmed delete)
2. Reports (store snapshot → filters → summary)

DESIGN DECISION: The record store is created here, by the composition
root, and handed to the flows. Nothing in the package keeps records in a
module-level variable.

The orchestrator enforces the boundaries:
- Nothing reaches a store without passing validation
- Nothing is deleted without explicit confirmation
- Every mutation is audited
"""

from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from crm_finance.audit import AuditLogger, configure_logging, create_correlation_id
from crm_finance.config import AppSettings, StorageSettings, get_settings
from crm_finance.models.record import (
    FinancialRecord,
    FinancialSummary,
    MemberStat,
    RecordDraft,
    RecordPatch,
    SummaryRequest,
)
from crm_finance.aggregation import engine
from crm_finance.reports import ReportComposer
from crm_finance.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    JsonFileRecordStore,
    RecordStoreInterface,
    StorageError,
    demo_records,
)
from crm_finance.validation import RecordValidationError, RecordValidator


logger = structlog.get_logger(__name__)


class RecordFlow:
    """
    Orchestrates record submission, editing and deletion.

    Flow for a new record:
    1. Validate → RecordDraft (raises RecordValidationError)
    2. Create → the store assigns id and timestamp
    3. Audit → record_created

    Deletion requires `confirmed=True`. The pages asked
    "確定要刪除這筆記錄嗎？" before deleting; callers must do the same.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger

    async def submit(
        self,
        data: Union[dict[str, Any], RecordDraft],
        correlation_id: Optional[UUID] = None,
    ) -> FinancialRecord:
        """
        Validate and save a new record.

        Raises:
            RecordValidationError: If the submission breaks an invariant
            StorageError: If the store fails
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            draft = self._validator.ensure_draft(data)
        except RecordValidationError as e:
            await self._audit_validation_failure(e, correlation_id)
            raise

        try:
            record = await self._store.create_record(draft)
        except StorageError as e:
            await self._audit_storage_failure("create", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_record_created(
                record_id=record.id,
                member=record.member,
                amount=str(record.total_amount),
                kind=record.kind.value,
                correlation_id=correlation_id,
            )
        return record

    async def edit(
        self,
        record_id: str,
        changes: Union[dict[str, Any], RecordPatch],
        correlation_id: Optional[UUID] = None,
    ) -> FinancialRecord:
        """
        Apply a partial update. The record's timestamp becomes the edit time.

        Raises:
            RecordValidationError: If the patch or merged record is invalid
            NotFoundError: If the record doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            patch = self._validator.ensure_patch(changes)
            record = await self._store.update_record(record_id, patch)
        except RecordValidationError as e:
            await self._audit_validation_failure(e, correlation_id, record_id)
            raise
        except StorageError as e:
            await self._audit_storage_failure("update", e, correlation_id, record_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_record_updated(
                record_id=record_id,
                changed_fields=sorted(patch.model_fields_set),
                correlation_id=correlation_id,
            )
        return record

    async def remove(
        self,
        record_id: str,
        confirmed: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a record after the user confirmed.

        Returns:
            True if deleted, False if the delete was not confirmed

        Raises:
            NotFoundError: If the record doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        if not confirmed:
            if self._audit_logger:
                await self._audit_logger.log_delete_cancelled(
                    record_id=record_id,
                    correlation_id=correlation_id,
                )
            return False

        try:
            await self._store.delete_record(record_id)
        except StorageError as e:
            await self._audit_storage_failure("delete", e, correlation_id, record_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_record_deleted(
                record_id=record_id,
                correlation_id=correlation_id,
            )
        return True

    async def get(self, record_id: str) -> Optional[FinancialRecord]:
        return await self._store.get_record(record_id)

    async def list_records(
        self,
        search_term: str = "",
        member: Optional[str] = None,
    ) -> list[FinancialRecord]:
        """
        Records for the list page, newest first.

        Aware timestamps are compared in local time, so rows imported with
        a `Z` suffix sort alongside rows entered from the add form.
        """
        records = await self._store.list_records()
        records = engine.filter_by_member(records, member)
        records = engine.filter_by_search_term(records, search_term)
        return sorted(records, key=lambda r: engine.in_zone(r.timestamp), reverse=True)

    async def _audit_validation_failure(
        self,
        error: RecordValidationError,
        correlation_id: UUID,
        record_id: Optional[str] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                issues=[issue.model_dump() for issue in error.issues],
                correlation_id=correlation_id,
                record_id=record_id,
            )

    async def _audit_storage_failure(
        self,
        operation: str,
        error: StorageError,
        correlation_id: UUID,
        record_id: Optional[str] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
                record_id=record_id,
            )


class ReportFlow:
    """
    Orchestrates report generation.

    Takes one snapshot from the store per request and hands it to the
    composer. The composer never sees the store.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        composer: Optional[ReportComposer] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._composer = composer or ReportComposer()
        self._audit_logger = audit_logger

    async def summary(
        self,
        request: Optional[SummaryRequest] = None,
        reference_now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSummary:
        correlation_id = correlation_id or create_correlation_id()
        request = request or SummaryRequest()

        records = await self._store.list_records()
        summary = self._composer.compose(records, request, reference_now)

        if self._audit_logger:
            await self._audit_logger.log_report_generated(
                time_range=request.time_range.value,
                record_count=summary.record_count,
                correlation_id=correlation_id,
            )
        return summary

    async def member_summary(self, member_name: Optional[str] = None) -> MemberStat:
        """Income/expense/net cards for the by-name page."""
        records = await self._store.list_records()
        return self._composer.member_summary(records, member_name)

    async def members(self) -> list[str]:
        """Member dropdown of the by-name page."""
        return engine.distinct_members(await self._store.list_records())


def build_record_store(
    storage_settings: StorageSettings,
) -> RecordStoreInterface:
    """Create the record store selected by configuration."""
    if storage_settings.backend == "json":
        return JsonFileRecordStore(storage_settings.json_path)
    return InMemoryRecordStore()


async def seed_if_empty(store: RecordStoreInterface) -> int:
    """
    Load the demo records into an empty store.

    Returns the number of records added.
    """
    if not await store.is_empty():
        return 0

    records = demo_records()
    await store.replace_all(records)

    logger.info("demo_records_seeded", count=len(records))
    return len(records)


def create_app_components(
    app_settings: Optional[AppSettings] = None,
    storage_settings: Optional[StorageSettings] = None,
    store: Optional[RecordStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[RecordFlow, ReportFlow, RecordStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        app_settings: Application settings (loaded from env when None)
        storage_settings: Storage settings (loaded from env when None)
        store: An existing store to use instead of building one
        audit_storage: Where audit events go (in-memory log when None)

    Returns:
        (record_flow, report_flow, store)
    """
    app_settings = app_settings or get_settings().app
    configure_logging(app_settings.log_level)

    if store is None:
        store = build_record_store(storage_settings or get_settings().storage)

    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())
    validator = RecordValidator(app_settings)
    composer = ReportComposer(default_top_n=app_settings.report_top_n)

    record_flow = RecordFlow(
        store=store,
        validator=validator,
        audit_logger=audit_logger,
    )
    report_flow = ReportFlow(
        store=store,
        composer=composer,
        audit_logger=audit_logger,
    )

    return record_flow, report_flow, store


async def bootstrap(
    app_settings: Optional[AppSettings] = None,
    storage_settings: Optional[StorageSettings] = None,
) -> tuple[RecordFlow, ReportFlow, RecordStoreInterface]:
    """
    Build the components and seed demo records when configured to.

    This is the entry point a web handler or script calls once at startup.
    """
    app_settings = app_settings or get_settings().app
    record_flow, report_flow, store = create_app_components(
        app_settings=app_settings,
        storage_settings=storage_settings,
    )
    if app_settings.seed_demo_records:
        await seed_if_empty(store)
    return record_flow, report_flow, store
