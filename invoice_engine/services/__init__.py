"""
Services Package

External collaborators of the engine, behind swappable interfaces.
"""

from invoice_engine.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "StorageError",
]
