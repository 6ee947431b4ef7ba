"""
Audit Logger

DESIGN DECISION: Every change to the shared ledger is logged.
This provides:
1. Complete traceability (several people write to the same household)
2. Debugging capability for partially failed bulk operations
3. Household members can see the history of their changes

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from household_ledger.models.ledger import BulkResult
from household_ledger.services.storage.interface import DocumentStore, collection_path


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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditStorageInterface(ABC):
    """Where audit events are persisted. Append-only."""

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True on success."""
        pass


class DocumentAuditStorage(AuditStorageInterface):
    """Writes audit events to the household's `audit` collection."""

    def __init__(self, store: DocumentStore, household_id: str):
        self._store = store
        self._collection = collection_path(household_id, "audit")

    async def append_event(self, event: AuditEvent) -> bool:
        await self._store.create(
            self._collection,
            event.to_document(),
            doc_id=str(event.event_id),
        )
        return True


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The household's audit collection (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    def with_storage(self, storage: Optional[AuditStorageInterface]) -> "AuditLogger":
        """Same logger, persisting somewhere else (used when the household changes)."""
        return AuditLogger(storage)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_debt_saved(
        self,
        group_id: str,
        person_id: str,
        total_amount: str,
        installments_count: int,
        correlation_id: UUID,
        amended: bool = False,
    ) -> None:
        """Log a debt creation or amendment."""
        event = AuditEventBuilder.debt_created(
            group_id=group_id,
            person_id=person_id,
            total_amount=total_amount,
            installments_count=installments_count,
            correlation_id=correlation_id,
            amended=amended,
        )
        await self.log(event)

    async def log_debt_deleted(
        self,
        entity_type: str,
        entity_id: str,
        deleted_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.debt_deleted(
            entity_type=entity_type,
            entity_id=entity_id,
            deleted_count=deleted_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_installment_toggled(
        self,
        installment_id: str,
        status: str,
        paid_amount: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.installment_toggled(
            installment_id=installment_id,
            status=status,
            paid_amount=paid_amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_partial_payment(
        self,
        installment_id: str,
        value: str,
        paid_amount: str,
        status: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.partial_payment_recorded(
            installment_id=installment_id,
            value=value,
            paid_amount=paid_amount,
            status=status,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_bulk_result(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        result: BulkResult,
        correlation_id: UUID,
    ) -> None:
        """Log the outcome of a fan-out operation (mark all paid, stop recurrence)."""
        event = AuditEventBuilder.bulk_operation(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            succeeded=len(result.succeeded),
            failed=len(result.failed),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_bill_event(
        self,
        event_type: AuditEventType,
        bill_id: str,
        title: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        """Log a bill creation, update, deletion, toggle or roll-forward."""
        event = AuditEventBuilder.bill_changed(
            event_type=event_type,
            bill_id=bill_id,
            title=title,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_household_event(
        self,
        event_type: AuditEventType,
        household_id: Optional[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.household_event(
            event_type=event_type,
            household_id=household_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_action_failed(
        self,
        action: str,
        error_message: str,
        correlation_id: UUID,
        validation: bool = False,
        details: Optional[dict] = None,
    ) -> None:
        """Log a user action that was rejected or failed in the store."""
        event = AuditEventBuilder.action_failed(
            action=action,
            error_message=error_message,
            validation=validation,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., marking a bill paid).
    Pass it through all subsequent operations.
    """
    return uuid4()
