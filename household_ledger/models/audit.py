"""
Audit Models for Household Ledger

Every user action on the ledger is logged for audit purposes.
This provides:
1. Traceability of who changed what, in a store shared by several people
2. Debugging information when a bulk operation partially fails
3. The ability to reconstruct how a balance came to be

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger operation has its own event type.
    """
    # Debts
    DEBT_CREATED = "debt_created"
    DEBT_AMENDED = "debt_amended"
    DEBT_DELETED = "debt_deleted"
    INSTALLMENT_DELETED = "installment_deleted"

    # Payments
    INSTALLMENT_TOGGLED = "installment_toggled"
    PARTIAL_PAYMENT_RECORDED = "partial_payment_recorded"
    BULK_MARKED_PAID = "bulk_marked_paid"
    BILL_TOGGLED = "bill_toggled"

    # Bills and recurrence
    BILL_CREATED = "bill_created"
    BILL_UPDATED = "bill_updated"
    BILL_DELETED = "bill_deleted"
    BILL_ROLLED_FORWARD = "bill_rolled_forward"
    RECURRENCE_STOPPED = "recurrence_stopped"

    # Household
    HOUSEHOLD_CREATED = "household_created"
    HOUSEHOLD_SELECTED = "household_selected"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    ACTION_FAILED = "action_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'debt_group', 'installment', 'bill', 'series')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Document id (or group/series id) the event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a payment and its roll-forward)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_document(self) -> dict:
        """Flat field mapping for the household's audit collection."""
        document = self.to_log_dict()
        document.pop("event_id")
        return document


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.debt_created(group_id, person_id, total, count, correlation_id)
        event = AuditEventBuilder.bill_rolled_forward(bill_id, successor_id, series_id, due, correlation_id)
    """

    @staticmethod
    def debt_created(
        group_id: str,
        person_id: str,
        total_amount: str,
        installments_count: int,
        correlation_id: Optional[UUID] = None,
        amended: bool = False,
    ) -> AuditEvent:
        verb = "amended" if amended else "created"
        return AuditEvent(
            event_type=AuditEventType.DEBT_AMENDED if amended else AuditEventType.DEBT_CREATED,
            entity_type="debt_group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Debt {verb}: {total_amount} in {installments_count} installment(s)",
            details={
                "person_id": person_id,
                "total_amount": total_amount,
                "installments_count": installments_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def debt_deleted(
        entity_type: str,
        entity_id: str,
        deleted_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.DEBT_DELETED
                if entity_type == "debt_group"
                else AuditEventType.INSTALLMENT_DELETED
            ),
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Deleted {deleted_count} installment(s)",
            details={"deleted_count": deleted_count},
            is_user_action=True,
        )

    @staticmethod
    def installment_toggled(
        installment_id: str,
        status: str,
        paid_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTALLMENT_TOGGLED,
            entity_type="installment",
            entity_id=installment_id,
            correlation_id=correlation_id,
            description=f"Installment marked {status}",
            details={"status": status, "paid_amount": paid_amount},
            is_user_action=True,
        )

    @staticmethod
    def partial_payment_recorded(
        installment_id: str,
        value: str,
        paid_amount: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_PAYMENT_RECORDED,
            entity_type="installment",
            entity_id=installment_id,
            correlation_id=correlation_id,
            description=f"Partial payment of {value} recorded",
            details={"value": value, "paid_amount": paid_amount, "status": status},
            is_user_action=True,
        )

    @staticmethod
    def bulk_operation(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        succeeded: int,
        failed: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{event_type.value}: {succeeded} updated, {failed} failed",
            details={"succeeded": succeeded, "failed": failed},
            is_user_action=True,
        )

    @staticmethod
    def bill_changed(
        event_type: AuditEventType,
        bill_id: str,
        title: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()}: {title}",
            details=details or {},
            is_user_action=event_type != AuditEventType.BILL_ROLLED_FORWARD,
        )

    @staticmethod
    def household_event(
        event_type: AuditEventType,
        household_id: Optional[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="household",
            entity_id=household_id,
            correlation_id=correlation_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()} by {user_id}",
            details={"user_id": user_id},
            is_user_action=True,
        )

    @staticmethod
    def action_failed(
        action: str,
        error_message: str,
        validation: bool = False,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.VALIDATION_FAILED if validation else AuditEventType.ACTION_FAILED
            ),
            severity=AuditSeverity.WARNING if validation else AuditSeverity.ERROR,
            description=f"Action failed: {action}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
