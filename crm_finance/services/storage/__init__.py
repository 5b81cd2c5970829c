"""
Storage Services Package

Provides the abstract record store interface and its implementations:
in-memory (per process or per request) and a JSON file in the legacy
localStorage shape.
"""

from crm_finance.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)
from crm_finance.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    new_record_id,
)
from crm_finance.services.storage.json_file import JsonFileRecordStore
from crm_finance.services.storage.seed import demo_records

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStoreInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "demo_records",
    "new_record_id",
]
