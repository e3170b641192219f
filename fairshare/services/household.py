"""
Household Ledger

This module ties the core together for one household:
1. Holds the current records (expenses, incomes, reference entities)
2. Derives the expense and income views from them and the preferences
3. Routes every change through validation, an optimistic local apply and
   the persistence collaborator

DESIGN DECISION: The ledger enforces the boundaries:
- Nothing invalid reaches a collaborator (ValidationError is raised first)
- A failed write never rolls back what the user did; it becomes a Notice
- A reference entity still in use is never deleted implicitly
- Every write is audited
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from fairshare.audit import AuditLogger
from fairshare.config import Settings, get_settings
from fairshare.core.grouping import (
    ExpenseView,
    IncomeView,
    LookupContext,
    derive_expense_view,
    derive_income_view,
)
from fairshare.errors import (
    PersistenceError,
    ReferentialConflict,
    ValidationError,
)
from fairshare.grid.columns import EXPENSE_COLUMNS, INCOME_COLUMNS
from fairshare.grid.controller import GridController
from fairshare.grid.state import GridCoordinate, GridEvent, GridSnapshot, GridState
from fairshare.grid.updates import translate_edit
from fairshare.models.audit import AuditEventBuilder
from fairshare.models.records import (
    Budget,
    Category,
    Expense,
    FrequencyType,
    Household,
    Income,
    LinkedAccount,
    PartnerLabel,
    ReferenceKind,
)
from fairshare.models.view import Notice
from fairshare.preferences import GridPreferences
from fairshare.services.retry import call_with_retry
from fairshare.services.storage import (
    Clipboard,
    InMemoryPreferenceStore,
    JsonFilePreferenceStore,
    PreferenceStore,
    RecordStore,
    ReferenceStore,
)
from fairshare.validation import RecordValidator

logger = structlog.get_logger(__name__)

PENDING_ID = "pending"


@dataclass
class _Collection:
    """The local copy of one kind of record and the store behind it."""
    entity_type: str
    model: type
    store: RecordStore
    records: dict[str, Any] = field(default_factory=dict)

    def load(self, records) -> None:
        self.records = {r.id: r for r in records}


def _diff(before, after) -> dict[str, Any]:
    """Fields that changed, in wire form (JSON-friendly values)."""
    old = before.model_dump()
    new = after.model_dump()
    changed = {key for key, value in new.items() if key != "id" and old.get(key) != value}
    return after.model_dump(mode="json", include=changed) if changed else {}


def new_household(household_id: str, settings: Optional[Settings] = None, **fields: Any) -> Household:
    """A household whose partners have not been named yet."""
    app = (settings or get_settings()).app
    return Household(
        household_id=household_id,
        partner_x=app.default_partner_x_name,
        partner_y=app.default_partner_y_name,
        **fields,
    )


def default_preference_store(settings: Settings) -> PreferenceStore:
    path = settings.persistence.preferences_path
    return JsonFilePreferenceStore(path) if path else InMemoryPreferenceStore()


class HouseholdLedger:
    """
    Records, derived views and edits for one household.

    Args:
        household: Partner names and invite code
        expense_store / income_store: Record collaborators
        category_store / budget_store / account_store: Reference collaborators
        household_store: Receives partner name changes (keyed by household_id)
        preferences: Grid preferences; built from settings when omitted
        clipboard: Used by copy_invite_code
        audit_logger: Audit trail; a local-only logger when omitted
        on_notice: Called with every notice as it is raised
    """

    def __init__(
        self,
        household: Household,
        expense_store: RecordStore,
        income_store: RecordStore,
        category_store: ReferenceStore,
        budget_store: ReferenceStore,
        account_store: ReferenceStore,
        household_store: Optional[RecordStore] = None,
        preferences: Optional[GridPreferences] = None,
        clipboard: Optional[Clipboard] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ):
        self._settings = settings or get_settings()
        self._audit = audit_logger or AuditLogger()
        self._household = household
        self._household_store = household_store
        self._clipboard = clipboard
        self._on_notice = on_notice
        self.notices: list[Notice] = []

        self._expenses = _Collection("expense", Expense, expense_store)
        self._incomes = _Collection("income", Income, income_store)
        self._references: dict[ReferenceKind, _Collection] = {
            ReferenceKind.CATEGORY: _Collection("category", Category, category_store),
            ReferenceKind.BUDGET: _Collection("budget", Budget, budget_store),
            ReferenceKind.LINKED_ACCOUNT: _Collection("linked_account", LinkedAccount, account_store),
        }

        self.preferences = preferences or GridPreferences(
            default_preference_store(self._settings),
            audit=self._audit,
        )

        self.expense_grid = GridController(
            GridSnapshot.empty(EXPENSE_COLUMNS),
            translate=self._prepare_expense_edit,
            write=expense_store.update_record,
            apply_local=self._apply_expense_edit,
            entity_type="expense",
            audit=self._audit,
            settings=self._settings.persistence,
            on_notice=self._notify,
        )
        self.income_grid = GridController(
            GridSnapshot.empty(INCOME_COLUMNS),
            translate=self._prepare_income_edit,
            write=income_store.update_record,
            apply_local=self._apply_income_edit,
            entity_type="income",
            audit=self._audit,
            settings=self._settings.persistence,
            on_notice=self._notify,
        )
        # Coordinates only mean something against the rows currently shown
        self.preferences.add_listener(self._refresh_grids)

    def load(
        self,
        expenses=(),
        incomes=(),
        categories=(),
        budgets=(),
        linked_accounts=(),
    ) -> None:
        """Replace the local records with what the collaborator holds."""
        self._expenses.load(expenses)
        self._incomes.load(incomes)
        self._references[ReferenceKind.CATEGORY].load(categories)
        self._references[ReferenceKind.BUDGET].load(budgets)
        self._references[ReferenceKind.LINKED_ACCOUNT].load(linked_accounts)
        context = self.context
        self.expense_grid.reset(GridSnapshot.build(self.expense_view().rows, EXPENSE_COLUMNS, context))
        self.income_grid.reset(GridSnapshot.build(self.income_view().rows, INCOME_COLUMNS, context))

    # =========================================================================
    # READ SIDE
    # =========================================================================

    @property
    def household(self) -> Household:
        return self._household

    @property
    def expenses(self) -> list[Expense]:
        return list(self._expenses.records.values())

    @property
    def incomes(self) -> list[Income]:
        return list(self._incomes.records.values())

    def references(self, kind: ReferenceKind) -> list:
        return list(self._references[kind].records.values())

    @property
    def context(self) -> LookupContext:
        return LookupContext.build(
            categories=self.references(ReferenceKind.CATEGORY),
            linked_accounts=self.references(ReferenceKind.LINKED_ACCOUNT),
            household=self._household,
        )

    def expense_view(self) -> ExpenseView:
        """Filtered, sorted, grouped expenses with live totals."""
        return derive_expense_view(
            self.expenses,
            self.incomes,
            context=self.context,
            payer_filter=self.preferences.payer_filter,
            sort=self.preferences.expense_sort,
            group_by=self.preferences.group_by,
        )

    def income_view(self) -> IncomeView:
        return derive_income_view(self.incomes, context=self.context, sort=self.preferences.income_sort)

    def usage_count(self, kind: ReferenceKind, entity_id: str) -> int:
        """Number of expenses pointing at a reference entity."""
        return sum(1 for e in self._expenses.records.values() if e.reference(kind) == entity_id)

    # =========================================================================
    # GRIDS
    # =========================================================================

    def _refresh_grids(self) -> None:
        context = self.context
        self.expense_grid.refresh(GridSnapshot.build(self.expense_view().rows, EXPENSE_COLUMNS, context))
        self.income_grid.refresh(GridSnapshot.build(self.income_view().rows, INCOME_COLUMNS, context))

    def dispatch_expense_event(self, event: GridEvent) -> GridState:
        self.expense_grid.dispatch(event)
        self._refresh_grids()
        return self.expense_grid.state

    def dispatch_income_event(self, event: GridEvent) -> GridState:
        self.income_grid.dispatch(event)
        self._refresh_grids()
        return self.income_grid.state

    def choose_expense_value(self, cell: GridCoordinate, value: str) -> bool:
        issued = self.expense_grid.choose(cell, value)
        self._refresh_grids()
        return issued

    def choose_income_value(self, cell: GridCoordinate, value: str) -> bool:
        issued = self.income_grid.choose(cell, value)
        self._refresh_grids()
        return issued

    def _prepare_edit(self, collection: _Collection, row_id: str, field_name: str, text: str) -> dict[str, Any]:
        record = collection.records.get(row_id)
        if record is None:
            raise ValidationError(f"This {collection.entity_type} no longer exists", field=field_name)
        updates = translate_edit(field_name, text, self.context)
        # The grid controller audits refused edits itself
        updated = self._validated_update(collection, record, updates, audit=False)
        return _diff(record, updated)

    def _prepare_expense_edit(self, row_id: str, field_name: str, text: str) -> dict[str, Any]:
        return self._prepare_edit(self._expenses, row_id, field_name, text)

    def _prepare_income_edit(self, row_id: str, field_name: str, text: str) -> dict[str, Any]:
        return self._prepare_edit(self._incomes, row_id, field_name, text)

    def _apply_expense_edit(self, row_id: str, updates: dict[str, Any]) -> None:
        self._apply_local(self._expenses, row_id, updates)

    def _apply_income_edit(self, row_id: str, updates: dict[str, Any]) -> None:
        self._apply_local(self._incomes, row_id, updates)

    @staticmethod
    def _apply_local(collection: _Collection, row_id: str, updates: dict[str, Any]) -> None:
        record = collection.records.get(row_id)
        if record is not None:
            collection.records[row_id] = record.apply_update(updates)

    # =========================================================================
    # SHARED WRITE PATH
    # =========================================================================

    def _notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    def _validator(self) -> RecordValidator:
        return RecordValidator(self.context)

    def _validated_update(self, collection: _Collection, record, updates: dict[str, Any], audit: bool = True):
        """Updated record, or ValidationError before anything is written."""
        if not isinstance(record, (Expense, Income)):
            if "name" in updates:
                updates = {**updates, "name": RecordValidator.validate_name(updates["name"])}
            try:
                return record.apply_update(updates)
            except ValueError as e:
                raise ValidationError(f"Invalid {collection.entity_type}: {e}")

        validator = self._validator()
        updated, result = validator.validate_update(record, updates)
        if result.has_errors:
            if audit:
                self._audit.log_nowait(
                    AuditEventBuilder.validation_failed(collection.entity_type, record.id, result.issue_dicts())
                )
            validator.raise_for_errors(result)
        return updated

    async def _persist(self, operation: Callable, *args: Any) -> Any:
        return await call_with_retry(operation, *args, settings=self._settings.persistence)

    async def _failed(self, entity_type: str, entity_id: Optional[str], operation: str, error: PersistenceError) -> None:
        logger.warning("write_failed", entity_type=entity_type, entity_id=entity_id, operation=operation, error=error.message)
        await self._audit.log_write_failed(entity_type, entity_id, operation, error.message)
        self._notify(Notice.error("Error saving", error.message))

    async def _add(self, collection: _Collection, fields: dict[str, Any]) -> Optional[str]:
        try:
            draft = collection.model(id=PENDING_ID, **fields)
        except ValueError as e:
            raise ValidationError(f"Invalid {collection.entity_type}: {e}")

        wire = draft.model_dump(mode="json", exclude={"id"})
        try:
            new_id = await self._persist(collection.store.add_record, wire)
        except PersistenceError as e:
            await self._failed(collection.entity_type, None, "add", e)
            return None

        collection.records[new_id] = draft.model_copy(update={"id": new_id})
        await self._audit.log_record_added(collection.entity_type, new_id, wire)
        self._refresh_grids()
        return new_id

    async def _update(self, collection: _Collection, entity_id: str, updates: dict[str, Any]) -> bool:
        record = collection.records.get(entity_id)
        if record is None:
            raise ValidationError(f"Unknown {collection.entity_type}: {entity_id}")

        updated = self._validated_update(collection, record, updates)
        changes = _diff(record, updated)
        if not changes:
            for name in updates:
                await self._audit.log_write_skipped(collection.entity_type, entity_id, name)
            return True

        # Optimistic: the local record changes now and stays changed on failure
        collection.records[entity_id] = updated
        self._refresh_grids()
        try:
            await self._persist(collection.store.update_record, entity_id, changes)
        except PersistenceError as e:
            await self._failed(collection.entity_type, entity_id, "update", e)
            return False
        await self._audit.log_record_updated(collection.entity_type, entity_id, changes)
        return True

    async def _remove(self, collection: _Collection, entity_id: str) -> bool:
        if entity_id not in collection.records:
            raise ValidationError(f"Unknown {collection.entity_type}: {entity_id}")

        del collection.records[entity_id]
        self._refresh_grids()
        try:
            await self._persist(collection.store.remove_record, entity_id)
        except PersistenceError as e:
            await self._failed(collection.entity_type, entity_id, "remove", e)
            return False
        await self._audit.log_record_removed(collection.entity_type, entity_id)
        return True

    # =========================================================================
    # EXPENSES & INCOMES
    # =========================================================================

    async def add_expense(self, **fields: Any) -> Optional[str]:
        """
        Add an expense; unnamed, zero, monthly and evenly shared by default.

        The new row becomes the grid's editing target. Returns the assigned
        id, or None if the collaborator refused (a notice is raised).
        """
        defaults = {
            "name": "",
            "amount": 0,
            "frequency_type": FrequencyType.MONTHLY,
            "benefit_x": self._settings.app.default_benefit_x,
        }
        return await self._add(self._expenses, {**defaults, **fields})

    async def update_expense(self, expense_id: str, updates: dict[str, Any]) -> bool:
        return await self._update(self._expenses, expense_id, updates)

    async def remove_expense(self, expense_id: str) -> bool:
        removed = await self._remove(self._expenses, expense_id)
        self.expense_grid.forget_row(expense_id)
        return removed

    async def add_income(self, **fields: Any) -> Optional[str]:
        defaults = {
            "name": self._settings.app.default_income_name,
            "amount": 0,
            "partner_label": PartnerLabel.X,
            "frequency_type": FrequencyType.MONTHLY,
        }
        return await self._add(self._incomes, {**defaults, **fields})

    async def update_income(self, income_id: str, updates: dict[str, Any]) -> bool:
        return await self._update(self._incomes, income_id, updates)

    async def remove_income(self, income_id: str) -> bool:
        removed = await self._remove(self._incomes, income_id)
        self.income_grid.forget_row(income_id)
        return removed

    # =========================================================================
    # REFERENCE ENTITIES
    # =========================================================================

    async def add_reference(self, kind: ReferenceKind, name: str, **fields: Any) -> Optional[str]:
        """Add a category, budget or payment method (blank names refused)."""
        name = RecordValidator.validate_name(name)
        return await self._add(self._references[kind], {"name": name, **fields})

    async def add_category(self, name: str, color: Optional[str] = None) -> Optional[str]:
        return await self.add_reference(ReferenceKind.CATEGORY, name, color=color)

    async def add_budget(self, name: str, color: Optional[str] = None) -> Optional[str]:
        return await self.add_reference(ReferenceKind.BUDGET, name, color=color)

    async def add_linked_account(
        self,
        name: str,
        owner_partner: Optional[PartnerLabel] = None,
        color: Optional[str] = None,
    ) -> Optional[str]:
        return await self.add_reference(
            ReferenceKind.LINKED_ACCOUNT, name, owner_partner=owner_partner, color=color
        )

    async def rename_reference(self, kind: ReferenceKind, entity_id: str, name: str) -> bool:
        return await self._update(self._references[kind], entity_id, {"name": name})

    async def remove_reference(self, kind: ReferenceKind, entity_id: str) -> bool:
        """
        Delete an unused reference entity.

        Raises:
            ReferentialConflict: If any expense still points at it
        """
        usage = self.usage_count(kind, entity_id)
        if usage:
            await self._audit.log_referential_conflict(kind.value, entity_id, usage)
            raise ReferentialConflict(kind.value, entity_id, usage)
        return await self._remove(self._references[kind], entity_id)

    async def reassign_and_remove(
        self,
        kind: ReferenceKind,
        old_id: str,
        new_id: Optional[str],
    ) -> bool:
        """
        Repoint every expense from old_id to new_id (None = unassigned),
        then delete old_id.
        """
        collection = self._references[kind]
        if old_id not in collection.records:
            raise ValidationError(f"Unknown {collection.entity_type}: {old_id}")
        if new_id is not None and (new_id == old_id or new_id not in collection.records):
            raise ValidationError(f"Cannot move expenses to {collection.entity_type} {new_id}")

        store: ReferenceStore = collection.store
        try:
            await self._persist(store.reassign_references, old_id, new_id)
        except PersistenceError as e:
            await self._failed(collection.entity_type, old_id, "reassign", e)
            return False

        moved = 0
        for expense in self.expenses:
            if expense.reference(kind) == old_id:
                self._expenses.records[expense.id] = expense.apply_update({kind.expense_field: new_id})
                moved += 1
        await self._audit.log_references_reassigned(kind.value, old_id, new_id, moved)
        return await self._remove(collection, old_id)

    # =========================================================================
    # HOUSEHOLD
    # =========================================================================

    async def update_partner_names(self, partner_x: str, partner_y: str) -> bool:
        partner_x = RecordValidator.validate_name(partner_x, "partner_x")
        partner_y = RecordValidator.validate_name(partner_y, "partner_y")

        self._household = self._household.model_copy(
            update={"partner_x": partner_x, "partner_y": partner_y}
        )
        self._refresh_grids()
        if self._household_store is not None:
            try:
                await self._persist(
                    self._household_store.update_record,
                    self._household.household_id,
                    {"partner_x": partner_x, "partner_y": partner_y},
                )
            except PersistenceError as e:
                await self._failed("household", self._household.household_id, "update", e)
                return False
        await self._audit.log_partner_names_updated(partner_x, partner_y)
        return True

    async def copy_invite_code(self) -> bool:
        """Put the household's invite code on the clipboard."""
        code = self._household.invite_code
        if not code or self._clipboard is None:
            self._notify(Notice(title="No invite code yet"))
            return False
        try:
            await self._clipboard.write_text(code)
        except Exception as e:
            logger.warning("clipboard_failed", error=str(e))
            self._notify(Notice.error("Could not copy invite code", str(e)))
            return False
        await self._audit.log_invite_code_copied()
        self._notify(Notice(title="Invite code copied"))
        return True

    async def drain(self) -> None:
        """Wait for grid writes and background audit events."""
        await self.expense_grid.drain()
        await self.income_grid.drain()
        await self._audit.flush()

