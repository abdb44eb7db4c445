"""
Storage Services Package

Provides the audit storage interface and an in-memory implementation.
The invoice store itself belongs to the host application.
"""

from invoice_engine.services.storage.interface import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "StorageError",
]
