"""
Main Orchestrator for Household Ledger

This module ties together all the components and exposes one method per
UI event (save a debt, toggle a bill, mark everything paid...).

DESIGN DECISION: The session enforces the boundaries:
- Input is validated before any write
- The local snapshot is updated optimistically, then the write is awaited;
  the next store snapshot always supersedes the local guess
- No action raises: every outcome is an ActionResult with a user message
- Every action is audited under its own correlation id

This is the "glue" that keeps the UI simple even when a write fails
halfway through a bulk operation.
"""

from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from household_ledger.audit import AuditLogger, DocumentAuditStorage, create_correlation_id
from household_ledger.config import AppSettings, Settings, get_settings
from household_ledger.errors import (
    LedgerValidationError,
    describe_bulk_result,
    describe_error,
)
from household_ledger.ledger import (
    BillService,
    InstallmentService,
    PaymentStateMachine,
    RecurringBillRoller,
    apply_partial_payment,
    debt_input_from,
    mark_installment_paid,
    toggle_bill_state,
    toggle_installment_state,
)
from household_ledger.models.audit import AuditEventType
from household_ledger.models.ledger import (
    Bill,
    BillInput,
    Category,
    DebtInput,
    DebtInstallment,
    LedgerSnapshot,
    Person,
)
from household_ledger.models.reports import DashboardSummary, PeriodFilter
from household_ledger.periods import today_utc
from household_ledger.reports import dashboard_summary, filter_debts
from household_ledger.services import (
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    HouseholdDirectory,
    HouseholdLedgerStore,
    InMemoryDocumentStore,
    LedgerSubscription,
)
from household_ledger.validation import LedgerValidator

logger = structlog.get_logger(__name__)

SnapshotListener = Callable[[LedgerSnapshot, DashboardSummary], None]


class ActionResult(BaseModel):
    """What the UI gets back from every session action."""

    success: bool
    message: str = ""
    payload: Any = None
    warnings: list[str] = Field(default_factory=list)


class LedgerSession:
    """
    One user's working session on one household.

    Holds the latest LedgerSnapshot and the DashboardSummary derived from
    it; both are replaced wholesale on every store snapshot.
    """

    def __init__(
        self,
        store: HouseholdLedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], Any] = today_utc,
    ):
        self._store = store
        self._settings = settings or get_settings().app
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock

        self._validator = LedgerValidator(self._settings)
        self._installments = InstallmentService(store, self._validator)
        self._roller = RecurringBillRoller(store)
        self._bills = BillService(store, self._validator)
        self._payments = PaymentStateMachine(store, self._roller, self._validator)

        self._subscription: Optional[LedgerSubscription] = None
        self._listeners: list[SnapshotListener] = []
        self._snapshot = LedgerSnapshot()
        self._summary = self._summarize(self._snapshot)

    # -------------------------------------------------------------------------
    # Snapshot handling
    # -------------------------------------------------------------------------

    @property
    def household_id(self) -> str:
        return self._store.household_id

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def summary(self) -> DashboardSummary:
        return self._summary

    @property
    def running(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def add_listener(self, listener: SnapshotListener) -> None:
        """Called with (snapshot, summary) after every change."""
        self._listeners.append(listener)

    def _summarize(self, snapshot: LedgerSnapshot) -> DashboardSummary:
        return dashboard_summary(snapshot, self._clock(), self._settings.projection_months)

    def _apply(self, snapshot: LedgerSnapshot) -> None:
        self._snapshot = snapshot
        self._summary = self._summarize(snapshot)
        for listener in self._listeners:
            try:
                listener(snapshot, self._summary)
            except Exception as e:
                logger.error("snapshot_listener_failed", error=str(e))

    async def start(self) -> None:
        """Subscribe to the household; the first snapshot arrives before this returns."""
        if self.running:
            return
        self._subscription = await self._store.subscribe(self._apply)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def refresh(self) -> None:
        """One-off reload, for callers that do not keep a subscription."""
        self._apply(await self._store.snapshot())

    # -------------------------------------------------------------------------
    # Error translation
    # -------------------------------------------------------------------------

    async def _attempt(
        self,
        action: str,
        subject: str,
        correlation_id: UUID,
        operation: Callable[[], Awaitable[ActionResult]],
        verb: str = "update",
        rollback: Optional[LedgerSnapshot] = None,
    ) -> ActionResult:
        """
        Run one action; any exception becomes a failed ActionResult.

        `rollback` is the snapshot from before an optimistic update. It is
        restored on failure unless a store snapshot arrived meanwhile.
        """
        optimistic = self._snapshot
        try:
            return await operation()
        except LedgerValidationError as e:
            await self._audit_logger.log_action_failed(
                action=action,
                error_message=e.message,
                correlation_id=correlation_id,
                validation=True,
                details={"issues": [issue.model_dump() for issue in e.issues]},
            )
            return ActionResult(success=False, message=describe_error(e, subject, verb))
        except Exception as e:
            if rollback is not None and self._snapshot is optimistic:
                self._apply(rollback)
            await self._audit_logger.log_action_failed(
                action=action,
                error_message=f"{type(e).__name__}: {e}",
                correlation_id=correlation_id,
            )
            return ActionResult(success=False, message=describe_error(e, subject, verb))

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    async def create_debt(self, data: DebtInput) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            warnings = self._validator.validate_debt_input(data).warnings
            created = await self._installments.create_debt(data)
            await self._audit_logger.log_debt_saved(
                group_id=created[0].group_id,
                person_id=data.person_id,
                total_amount=str(created[0].total_amount),
                installments_count=len(created),
                correlation_id=correlation_id,
            )
            return ActionResult(
                success=True,
                message=f"Debt saved in {len(created)} installment(s).",
                payload=created,
                warnings=warnings,
            )

        return await self._attempt("create_debt", "this debt", correlation_id, operation, verb="save")

    async def amend_debt(self, group_id: str, data: DebtInput) -> ActionResult:
        """Replace a purchase; its payment progress starts over."""
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            warnings = self._validator.validate_debt_input(data).warnings
            created = await self._installments.amend_debt(group_id, data)
            await self._audit_logger.log_debt_saved(
                group_id=group_id,
                person_id=data.person_id,
                total_amount=str(created[0].total_amount),
                installments_count=len(created),
                correlation_id=correlation_id,
                amended=True,
            )
            return ActionResult(
                success=True,
                message="Debt updated.",
                payload=created,
                warnings=warnings,
            )

        return await self._attempt("amend_debt", "this debt", correlation_id, operation)

    def edit_form_for(self, installment: DebtInstallment) -> DebtInput:
        """Values for the edit form, starting from the group's first due date."""
        return debt_input_from(installment)

    async def delete_installment(self, installment_id: str) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            deleted = await self._installments.delete_installment(installment_id)
            await self._audit_logger.log_debt_deleted(
                entity_type="installment",
                entity_id=installment_id,
                deleted_count=int(deleted),
                correlation_id=correlation_id,
            )
            return ActionResult(
                success=True,
                message="Installment deleted." if deleted else "Installment was already deleted.",
            )

        return await self._attempt(
            "delete_installment", "this installment", correlation_id, operation, verb="delete"
        )

    async def delete_debt(self, group_id: str) -> ActionResult:
        """Delete every installment of a purchase."""
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            result = await self._installments.delete_group(group_id)
            await self._audit_logger.log_debt_deleted(
                entity_type="debt_group",
                entity_id=group_id,
                deleted_count=len(result.succeeded),
                correlation_id=correlation_id,
            )
            return ActionResult(
                success=result.all_succeeded,
                message=describe_bulk_result(result, "installments", "delete"),
                payload=result,
            )

        return await self._attempt("delete_debt", "this debt", correlation_id, operation, verb="delete")

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    async def toggle_installment(self, installment: DebtInstallment) -> ActionResult:
        correlation_id = create_correlation_id()
        previous = self._snapshot
        self._apply(previous.with_debt(toggle_installment_state(installment)))

        async def operation() -> ActionResult:
            updated = await self._payments.toggle_installment(installment)
            await self._audit_logger.log_installment_toggled(
                installment_id=updated.id,
                status=updated.status.value,
                paid_amount=str(updated.paid_amount),
                correlation_id=correlation_id,
            )
            label = "paid" if updated.is_paid else "open"
            return ActionResult(
                success=True,
                message=f"Installment {updated.label} marked {label}.",
                payload=updated,
            )

        return await self._attempt(
            "toggle_installment", "this installment", correlation_id, operation, rollback=previous
        )

    async def record_partial_payment(self, installment: DebtInstallment, value: Any) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            # Raises before the optimistic update if the value is not acceptable
            expected = apply_partial_payment(installment, value)
            previous = self._snapshot
            optimistic = previous.with_debt(expected)
            self._apply(optimistic)
            try:
                updated = await self._payments.record_partial_payment(installment, value)
            except Exception:
                if self._snapshot is optimistic:
                    self._apply(previous)
                raise
            await self._audit_logger.log_partial_payment(
                installment_id=updated.id,
                value=str(value),
                paid_amount=str(updated.paid_amount),
                status=updated.status.value,
                correlation_id=correlation_id,
            )
            return ActionResult(
                success=True,
                message=f"Payment recorded. Remaining: {updated.remaining}.",
                payload=updated,
            )

        return await self._attempt(
            "record_partial_payment", "this installment", correlation_id, operation
        )

    async def mark_all_paid(self, period: Optional[PeriodFilter] = None) -> ActionResult:
        """Pay every open or partial installment visible under `period`."""
        correlation_id = create_correlation_id()
        targets = [debt for debt in filter_debts(self._snapshot.debts, period) if not debt.is_paid]
        previous = self._snapshot
        optimistic = previous
        for debt in targets:
            optimistic = optimistic.with_debt(mark_installment_paid(debt))
        self._apply(optimistic)

        async def operation() -> ActionResult:
            result = await self._payments.mark_all_paid(targets)
            if result.failed and self._snapshot is optimistic:
                # Keep the successes, put the failures back
                current = self._snapshot
                for debt in targets:
                    if debt.id in result.failed:
                        current = current.with_debt(debt)
                self._apply(current)
            await self._audit_logger.log_bulk_result(
                event_type=AuditEventType.BULK_MARKED_PAID,
                entity_type="installment",
                entity_id=None,
                result=result,
                correlation_id=correlation_id,
            )
            return ActionResult(
                success=result.all_succeeded,
                message=describe_bulk_result(result, "installments"),
                payload=result,
            )

        return await self._attempt(
            "mark_all_paid", "the installments", correlation_id, operation, rollback=previous
        )

    # -------------------------------------------------------------------------
    # Bills
    # -------------------------------------------------------------------------

    async def create_bill(self, data: BillInput) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            warnings = self._validator.validate_bill_input(data).warnings
            bill = await self._bills.create_bill(data)
            await self._audit_logger.log_bill_event(
                event_type=AuditEventType.BILL_CREATED,
                bill_id=bill.id,
                title=bill.title,
                correlation_id=correlation_id,
                details={"amount": str(bill.amount), "series_id": bill.series_id},
            )
            return ActionResult(success=True, message="Bill saved.", payload=bill, warnings=warnings)

        return await self._attempt("create_bill", "this bill", correlation_id, operation, verb="save")

    async def update_bill(self, bill: Bill, data: BillInput) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            warnings = self._validator.validate_bill_input(data).warnings
            updated = await self._bills.update_bill(bill, data)
            await self._audit_logger.log_bill_event(
                event_type=AuditEventType.BILL_UPDATED,
                bill_id=updated.id,
                title=updated.title,
                correlation_id=correlation_id,
            )
            return ActionResult(success=True, message="Bill updated.", payload=updated, warnings=warnings)

        return await self._attempt("update_bill", "this bill", correlation_id, operation)

    async def delete_bill(self, bill: Bill) -> ActionResult:
        """Delete one occurrence; the rest of its series stays."""
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            await self._bills.delete_bill(bill.id)
            await self._audit_logger.log_bill_event(
                event_type=AuditEventType.BILL_DELETED,
                bill_id=bill.id,
                title=bill.title,
                correlation_id=correlation_id,
            )
            return ActionResult(success=True, message="Bill deleted.")

        return await self._attempt("delete_bill", "this bill", correlation_id, operation, verb="delete")

    async def toggle_bill(self, bill: Bill) -> ActionResult:
        """Flip paid/open; paying a recurring bill creates the next occurrence."""
        correlation_id = create_correlation_id()
        previous = self._snapshot
        self._apply(previous.with_bill(toggle_bill_state(bill)))

        async def operation() -> ActionResult:
            outcome = await self._payments.toggle_bill(bill)
            await self._audit_logger.log_bill_event(
                event_type=AuditEventType.BILL_TOGGLED,
                bill_id=bill.id,
                title=bill.title,
                correlation_id=correlation_id,
                details={"status": outcome.bill.status.value},
            )
            message = f"Bill marked {outcome.bill.status.value}."
            if outcome.successor is not None:
                await self._audit_logger.log_bill_event(
                    event_type=AuditEventType.BILL_ROLLED_FORWARD,
                    bill_id=outcome.successor.id,
                    title=outcome.successor.title,
                    correlation_id=correlation_id,
                    details={
                        "series_id": outcome.successor.series_id,
                        "due_date": outcome.successor.due_date.isoformat(),
                        "previous_bill_id": bill.id,
                    },
                )
                message += f" Next occurrence due {outcome.successor.due_date.isoformat()}."
            warnings = []
            if outcome.roll_forward_error:
                await self._audit_logger.log_action_failed(
                    action="roll_forward",
                    error_message=outcome.roll_forward_error,
                    correlation_id=correlation_id,
                )
                warnings.append("The next occurrence could not be created.")
            return ActionResult(success=True, message=message, payload=outcome, warnings=warnings)

        return await self._attempt(
            "toggle_bill", "this bill", correlation_id, operation, rollback=previous
        )

    async def stop_recurrence(self, bill: Bill) -> ActionResult:
        """Stop a series: no further occurrences are created."""
        correlation_id = create_correlation_id()
        previous = self._snapshot
        stopped = previous
        for occurrence in previous.bills:
            if bill.series_id and occurrence.series_id == bill.series_id:
                stopped = stopped.with_bill(
                    occurrence.model_copy(update={"recurring_active": False})
                )
        self._apply(stopped)

        async def operation() -> ActionResult:
            result = await self._roller.stop_recurrence(bill.series_id)
            await self._audit_logger.log_bulk_result(
                event_type=AuditEventType.RECURRENCE_STOPPED,
                entity_type="series",
                entity_id=bill.series_id or None,
                result=result,
                correlation_id=correlation_id,
            )
            if result.attempted == 0:
                return ActionResult(success=True, message="This bill is not recurring.", payload=result)
            return ActionResult(
                success=result.all_succeeded,
                message=describe_bulk_result(result, "occurrences"),
                payload=result,
            )

        return await self._attempt(
            "stop_recurrence", "this series", correlation_id, operation, rollback=previous
        )

    # -------------------------------------------------------------------------
    # People and categories
    # -------------------------------------------------------------------------

    async def save_person(self, person: Person) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            if not person.name:
                raise LedgerValidationError("Name is required.")
            saved = await self._store.save_person(person)
            return ActionResult(success=True, message="Person saved.", payload=saved)

        return await self._attempt("save_person", "this person", correlation_id, operation, verb="save")

    async def delete_person(self, person_id: str) -> ActionResult:
        """Their debts stay and show as an unknown person."""
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            await self._store.delete_person(person_id)
            return ActionResult(success=True, message="Person deleted.")

        return await self._attempt("delete_person", "this person", correlation_id, operation, verb="delete")

    async def save_category(self, category: Category) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            if not category.name:
                raise LedgerValidationError("Name is required.")
            saved = await self._store.save_category(category)
            return ActionResult(success=True, message="Category saved.", payload=saved)

        return await self._attempt("save_category", "this category", correlation_id, operation, verb="save")

    async def delete_category(self, category_id: str) -> ActionResult:
        correlation_id = create_correlation_id()

        async def operation() -> ActionResult:
            await self._store.delete_category(category_id)
            return ActionResult(success=True, message="Category deleted.")

        return await self._attempt(
            "delete_category", "this category", correlation_id, operation, verb="delete"
        )


def create_document_store(settings: Optional[Settings] = None) -> DocumentStore:
    """
    Build the configured document store.

    Falls back to the in-memory store when Google Sheets is selected but
    cannot be configured, so the app still starts.
    """
    settings = settings or get_settings()
    if settings.app.storage_backend == "google_sheets":
        try:
            return GoogleSheetsDocumentStore(GoogleSheetsClient())
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", backend="google_sheets", error=str(e))
    return InMemoryDocumentStore()


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[DocumentStore, HouseholdDirectory, AuditLogger]:
    """
    Factory function to create all application components.

    Returns:
        (document_store, household_directory, audit_logger)
        The audit logger only logs locally until open_session() binds it
        to a household.
    """
    store = create_document_store(settings)
    return store, HouseholdDirectory(store), AuditLogger()


def open_session(
    store: DocumentStore,
    household_id: str,
    audit_logger: Optional[AuditLogger] = None,
    settings: Optional[AppSettings] = None,
) -> LedgerSession:
    """Session on one household, auditing into that household's audit collection."""
    audit_logger = (audit_logger or AuditLogger()).with_storage(
        DocumentAuditStorage(store, household_id)
    )
    return LedgerSession(
        HouseholdLedgerStore(store, household_id),
        audit_logger=audit_logger,
        settings=settings,
    )
