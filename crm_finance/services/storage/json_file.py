"""
JSON File Storage Implementation

DESIGN DECISION: The legacy pages kept every record in one localStorage key,
`financialRecords`, holding a JSON array. This store keeps the same array in
a file so existing exports can be loaded as-is:

    [{"_id": "1", "time": "2024-01-15 10:30", "member": "張三", ...}]

TRADEOFFS:
- The whole file is read for every operation (fine for one CRM's ledger)
- No cross-process locking; within a process mutations are serialized
- Writes go to a temp file first and replace the original atomically

Malformed rows are skipped on read (and logged) rather than failing the
whole ledger, matching how the pages tolerated partial data. They stay in
the file: every save writes them back exactly as they were read.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from crm_finance.models.record import FinancialRecord, RecordDraft, RecordPatch
from crm_finance.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)
from crm_finance.services.storage.memory import new_record_id
from crm_finance.validation import RecordValidationError


logger = structlog.get_logger(__name__)


class JsonFileRecordStore(RecordStoreInterface):
    """
    Record store persisted as a JSON array in the localStorage shape.

    File I/O is retried on OSError (3 attempts, exponential wait);
    anything still failing surfaces as StorageError.
    """

    def __init__(
        self,
        path: Union[str, Path],
        id_factory: Callable[[], str] = new_record_id,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._path = Path(path).expanduser()
        self._id_factory = id_factory
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _read_rows(self) -> list:
        if not self._path.exists():
            return []
        text = self._path.read_text(encoding="utf-8")
        if not text.strip():
            return []
        rows = json.loads(text)
        if not isinstance(rows, list):
            raise StorageError(f"Expected a JSON array in {self._path}")
        return rows

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_rows(self, rows: list) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(rows, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _load(self) -> list[Union[FinancialRecord, Any]]:
        """
        Read the file into one entry per row, in file order.

        Rows that parse become FinancialRecord; rows that do not are kept
        as the raw JSON value so a later save writes them back untouched.
        """
        try:
            rows = self._read_rows()
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read records from {self._path}: {e}") from e

        entries: list[Union[FinancialRecord, Any]] = []
        for position, row in enumerate(rows):
            try:
                entries.append(FinancialRecord.model_validate(row))
            except PydanticValidationError as e:
                logger.warning(
                    "malformed_record_skipped",
                    path=str(self._path),
                    position=position,
                    error_count=e.error_count(),
                )
                entries.append(row)
        return entries

    def _save(self, entries: list[Union[FinancialRecord, Any]]) -> None:
        rows = [
            e.to_storage_dict() if isinstance(e, FinancialRecord) else e
            for e in entries
        ]
        try:
            self._write_rows(rows)
        except OSError as e:
            raise StorageError(f"Failed to write records to {self._path}: {e}") from e

    @staticmethod
    def _entry_id(entry: Union[FinancialRecord, Any]) -> Optional[str]:
        if isinstance(entry, FinancialRecord):
            return entry.id
        if isinstance(entry, dict) and entry.get("_id") is not None:
            return str(entry["_id"])
        return None

    @staticmethod
    def _records(entries: list[Union[FinancialRecord, Any]]) -> list[FinancialRecord]:
        return [e for e in entries if isinstance(e, FinancialRecord)]

    async def list_records(self) -> list[FinancialRecord]:
        return self._records(self._load())

    async def get_record(self, record_id: str) -> Optional[FinancialRecord]:
        for record in self._records(self._load()):
            if record.id == record_id:
                return record
        return None

    async def is_empty(self) -> bool:
        """True only when the file holds no rows at all, readable or not."""
        return not self._load()

    async def create_record(self, draft: RecordDraft) -> FinancialRecord:
        async with self._lock:
            entries = self._load()
            record = draft.to_record(self._id_factory(), self._clock())
            if any(self._entry_id(e) == record.id for e in entries):
                raise DuplicateError(f"Duplicate record id: {record.id}")

            entries.append(record)
            self._save(entries)
            logger.info("record_created", record_id=record.id, path=str(self._path))
            return record

    async def update_record(
        self,
        record_id: str,
        patch: RecordPatch,
    ) -> FinancialRecord:
        async with self._lock:
            entries = self._load()
            for idx, entry in enumerate(entries):
                if isinstance(entry, FinancialRecord) and entry.id == record_id:
                    try:
                        updated = entry.apply_patch(patch, self._clock())
                    except PydanticValidationError as e:
                        raise RecordValidationError.from_pydantic(e) from e

                    entries[idx] = updated
                    self._save(entries)
                    logger.info("record_updated", record_id=record_id, path=str(self._path))
                    return updated

            raise NotFoundError(f"Record not found: {record_id}")

    async def delete_record(self, record_id: str) -> None:
        async with self._lock:
            entries = self._load()
            remaining = [
                e for e in entries
                if not (isinstance(e, FinancialRecord) and e.id == record_id)
            ]
            if len(remaining) == len(entries):
                raise NotFoundError(f"Record not found: {record_id}")

            self._save(remaining)
            logger.info("record_deleted", record_id=record_id, path=str(self._path))

    async def replace_all(self, records: list[FinancialRecord]) -> None:
        """Overwrite the file with the given records (used for seeding and imports)."""
        ids = [r.id for r in records]
        if len(ids) != len(set(ids)):
            raise DuplicateError("Duplicate record ids in import")
        async with self._lock:
            self._save(list(records))
