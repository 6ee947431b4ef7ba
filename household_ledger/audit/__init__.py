"""Audit logging package."""

from household_ledger.audit.logger import (
    AuditLogger,
    AuditStorageInterface,
    DocumentAuditStorage,
    create_correlation_id,
)

__all__ = [
    "AuditLogger",
    "AuditStorageInterface",
    "DocumentAuditStorage",
    "create_correlation_id",
]
