"""
Audit Logger

DESIGN DECISION: Every change to the ledger leaves an audit event.
Record pages only ever see the current state of a record; the audit
trail is where a member's history (created, edited, deleted, a delete
that was not confirmed) can be reconstructed.

Events are written to the structlog stream first and then, if an audit
store is configured, appended there. A failing audit store is reported
in the log and never fails the save that triggered it.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from crm_finance.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from crm_finance.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger("crm_finance").setLevel(log_level.upper())


class AuditLogger:
    """
    Writes ledger audit events.

    One instance is shared by the record and report flows of an app.
    Without an audit store the events only reach the structlog stream.
    """

    _LEVELS = {
        AuditSeverity.DEBUG: "debug",
        AuditSeverity.INFO: "info",
        AuditSeverity.WARNING: "warning",
        AuditSeverity.ERROR: "error",
        AuditSeverity.CRITICAL: "error",
    }

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("crm_finance.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event at the level matching its severity, then store it.

        Returns False only when the audit store rejected or failed the write.
        """
        emit = getattr(self._logger, self._LEVELS.get(event.severity, "info"))
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True

        try:
            return await self._storage.append_event(event)
        except Exception as e:
            # never propagates into the record flow
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
                event_type=event.event_type.value,
            )
            return False

    async def log_record_created(
        self,
        record_id: str,
        member: str,
        amount: str,
        kind: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.record_created(
            record_id=record_id,
            member=member,
            amount=amount,
            kind=kind,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_updated(
        self,
        record_id: str,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.record_updated(
            record_id=record_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_deleted(
        self,
        record_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.record_deleted(
            record_id=record_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_delete_cancelled(
        self,
        record_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.delete_cancelled(
            record_id=record_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
        record_id: Optional[str] = None,
    ) -> None:
        """Log a rejected submission or edit."""
        event = AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
            record_id=record_id,
        )
        await self.log(event)

    async def log_report_generated(
        self,
        time_range: str,
        record_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.report_generated(
            time_range=time_range,
            record_count=record_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
        record_id: Optional[str] = None,
    ) -> None:
        """Log a failed store operation."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
            record_id=record_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """One id per user action; validation, store and audit events of that action share it."""
    return uuid4()
