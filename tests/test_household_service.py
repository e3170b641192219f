"""
Flow tests for the household ledger with in-memory collaborators.

Each scenario runs in one event loop: grid commits are background tasks,
so scenarios end with ledger.drain().
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal

import pytest

from fairshare.audit import AuditLogger
from fairshare.config import get_settings
from fairshare.errors import (
    PersistenceError,
    ReferentialConflict,
    StorageConnectionError,
    ValidationError,
)
from fairshare.grid import (
    EXPENSE_COLUMNS,
    INCOME_COLUMNS,
    Blur,
    Editing,
    GridCoordinate,
    Idle,
    Input,
    Key,
    KeyPress,
    PointerDown,
    column_index,
)
from fairshare.models.audit import AuditEventType
from fairshare.models.records import (
    Category,
    Expense,
    Household,
    Income,
    LinkedAccount,
    PartnerLabel,
    ReferenceKind,
)
from fairshare.models.view import GroupByOption, PayerFilter
from fairshare.preferences import GridPreferences
from fairshare.services.household import HouseholdLedger, new_household
from fairshare.services.storage import (
    InMemoryClipboard,
    InMemoryPreferenceStore,
    InMemoryRecordStore,
    InMemoryReferenceStore,
)

NAME = column_index(EXPENSE_COLUMNS, "name")
PAYMENT = column_index(EXPENSE_COLUMNS, "payment_method")
PARTNER = column_index(INCOME_COLUMNS, "partner")

HOUSEHOLD = Household(household_id="h1", partner_x="Alex", partner_y="Sam", invite_code="ABC123")

EXPENSES = (
    Expense(id="e1", name="Rent", amount=Decimal("1500"), category_id="c1", payer=PartnerLabel.X),
    Expense(id="e2", name="Groceries", amount=Decimal("400"), category_id="c1", payer=PartnerLabel.Y),
)
INCOMES = (
    Income(id="i1", name="Salary", amount=Decimal("3000"), partner_label=PartnerLabel.X),
    Income(id="i2", name="Salary", amount=Decimal("1000"), partner_label=PartnerLabel.Y),
)
CATEGORIES = (Category(id="c1", name="Housing"), Category(id="c2", name="Food"))
ACCOUNTS = (LinkedAccount(id="a1", name="Sam's card", owner_partner=PartnerLabel.Y),)


@dataclass
class Backend:
    expenses: InMemoryRecordStore
    incomes: InMemoryRecordStore
    categories: InMemoryReferenceStore
    budgets: InMemoryReferenceStore
    accounts: InMemoryReferenceStore
    household: InMemoryRecordStore
    clipboard: InMemoryClipboard
    audit: AuditLogger

    def event_types(self):
        return [e.event_type for e in self.audit.events]


def _seed(store: InMemoryRecordStore, records) -> None:
    for record in records:
        store.records[record.id] = record.model_dump(mode="json", exclude={"id"})


def make_ledger(household: Household = HOUSEHOLD, clipboard=None):
    expenses = InMemoryRecordStore("exp")
    backend = Backend(
        expenses=expenses,
        incomes=InMemoryRecordStore("inc"),
        categories=InMemoryReferenceStore(expenses, "category_id", "cat"),
        budgets=InMemoryReferenceStore(expenses, "budget_id", "bud"),
        accounts=InMemoryReferenceStore(expenses, "linked_account_id", "acc"),
        household=InMemoryRecordStore("hh"),
        clipboard=clipboard or InMemoryClipboard(),
        audit=AuditLogger(),
    )
    _seed(backend.expenses, EXPENSES)
    _seed(backend.incomes, INCOMES)
    _seed(backend.categories, CATEGORIES)
    _seed(backend.accounts, ACCOUNTS)
    backend.household.records["h1"] = {}

    ledger = HouseholdLedger(
        household,
        expense_store=backend.expenses,
        income_store=backend.incomes,
        category_store=backend.categories,
        budget_store=backend.budgets,
        account_store=backend.accounts,
        household_store=backend.household,
        preferences=GridPreferences(InMemoryPreferenceStore()),
        clipboard=backend.clipboard,
        audit_logger=backend.audit,
    )
    ledger.load(EXPENSES, INCOMES, CATEGORIES, (), ACCOUNTS)
    return ledger, backend


def expense(ledger: HouseholdLedger, expense_id: str) -> Expense:
    return next(e for e in ledger.expenses if e.id == expense_id)


def row_of(ledger: HouseholdLedger, expense_id: str) -> int:
    return ledger.expense_view().row_ids.index(expense_id)


class TestAddAndEdit:
    """New rows and grid edits."""

    def test_add_expense_defaults_and_opens_editor(self):
        async def scenario():
            ledger, backend = make_ledger()
            new_id = await ledger.add_expense()
            state = ledger.expense_grid.state
            assert isinstance(state, Editing)
            assert (state.row_id, state.column_id) == (new_id, "name")

            ledger.dispatch_expense_event(Input("Water"))
            ledger.dispatch_expense_event(KeyPress(Key.ENTER))
            await ledger.drain()
            return ledger, backend, new_id

        ledger, backend, new_id = asyncio.run(scenario())
        assert new_id == "exp-1"
        added = backend.expenses.calls[0]
        assert added[0] == "add"
        assert added[2]["name"] == ""
        assert added[2]["benefit_x"] == 50
        assert added[2]["frequency_type"] == "monthly"
        assert backend.expenses.records[new_id]["name"] == "Water"
        assert expense(ledger, new_id).name == "Water"
        assert AuditEventType.RECORD_ADDED in backend.event_types()

    def test_add_is_retried_on_connection_error(self):
        async def scenario():
            ledger, backend = make_ledger()
            backend.expenses.script(error=StorageConnectionError("offline"))
            return await ledger.add_expense(name="Water"), backend

        new_id, backend = asyncio.run(scenario())
        assert new_id == "exp-1"
        assert [c[0] for c in backend.expenses.calls] == ["add", "add"]

    def test_refused_add_raises_notice(self):
        async def scenario():
            ledger, backend = make_ledger()
            backend.expenses.script(error=PersistenceError("Quota exceeded"))
            return await ledger.add_expense(name="Water"), ledger

        new_id, ledger = asyncio.run(scenario())
        assert new_id is None
        assert len(ledger.expenses) == 2
        assert [n.title for n in ledger.notices] == ["Error saving"]

    def test_add_income_defaults(self):
        async def scenario():
            ledger, _ = make_ledger()
            new_id = await ledger.add_income()
            return next(i for i in ledger.incomes if i.id == new_id)

        income = asyncio.run(scenario())
        assert income.name == "New income"
        assert income.partner_label is PartnerLabel.X

    def test_grid_edit_writes_through(self):
        async def scenario():
            ledger, backend = make_ledger()
            ledger.dispatch_expense_event(PointerDown(GridCoordinate(row_of(ledger, "e1"), NAME)))
            ledger.dispatch_expense_event(Input("Mortgage"))
            ledger.dispatch_expense_event(Blur())
            await ledger.drain()
            return ledger, backend

        ledger, backend = asyncio.run(scenario())
        assert backend.expenses.calls == [("update", "e1", {"name": "Mortgage"})]
        assert expense(ledger, "e1").name == "Mortgage"

    def test_grid_refuses_blank_name(self):
        async def scenario():
            ledger, backend = make_ledger()
            ledger.dispatch_expense_event(PointerDown(GridCoordinate(row_of(ledger, "e1"), NAME)))
            ledger.dispatch_expense_event(Input("  "))
            ledger.dispatch_expense_event(Blur())
            await ledger.drain()
            return ledger, backend

        ledger, backend = asyncio.run(scenario())
        assert backend.expenses.calls == []
        assert expense(ledger, "e1").name == "Rent"
        assert [(n.title, n.description) for n in ledger.notices] == [("Invalid value", "Name cannot be blank")]
        assert backend.event_types() == [AuditEventType.VALIDATION_FAILED]

    def test_choosing_payment_method_sets_payer(self):
        async def scenario():
            ledger, backend = make_ledger()
            issued = ledger.choose_expense_value(GridCoordinate(row_of(ledger, "e1"), PAYMENT), "a1")
            await ledger.drain()
            return ledger, backend, issued

        ledger, backend, issued = asyncio.run(scenario())
        assert issued
        assert backend.expenses.calls == [("update", "e1", {"linked_account_id": "a1", "payer": "Y"})]
        assert expense(ledger, "e1").payer is PartnerLabel.Y


class TestUpdateAndRemove:
    """Direct record changes."""

    def test_unchanged_update_writes_nothing(self):
        async def scenario():
            ledger, backend = make_ledger()
            return await ledger.update_expense("e1", {"name": "Rent"}), backend

        ok, backend = asyncio.run(scenario())
        assert ok
        assert backend.expenses.calls == []
        assert backend.event_types() == [AuditEventType.WRITE_SKIPPED]

    def test_failed_update_is_not_rolled_back(self):
        async def scenario():
            ledger, backend = make_ledger()
            backend.expenses.script(error=PersistenceError("Quota exceeded"))
            return await ledger.update_expense("e1", {"amount": "1600"}), ledger, backend

        ok, ledger, backend = asyncio.run(scenario())
        assert ok is False
        assert expense(ledger, "e1").amount == Decimal("1600")
        assert ledger.notices[0].title == "Error saving"
        assert ledger.notices[0].description == "Quota exceeded"
        assert AuditEventType.WRITE_FAILED in backend.event_types()

    def test_invalid_update_is_refused_before_writing(self):
        async def scenario():
            ledger, backend = make_ledger()
            with pytest.raises(ValidationError):
                await ledger.update_expense("e1", {"benefit_x": 150})
            await ledger.drain()
            return ledger, backend

        ledger, backend = asyncio.run(scenario())
        assert backend.expenses.calls == []
        assert expense(ledger, "e1").benefit_x == 50
        assert backend.event_types() == [AuditEventType.VALIDATION_FAILED]

    def test_unknown_record(self):
        ledger, _ = make_ledger()
        with pytest.raises(ValidationError):
            asyncio.run(ledger.remove_expense("nope"))

    def test_remove_expense(self):
        async def scenario():
            ledger, backend = make_ledger()
            return await ledger.remove_expense("e2"), ledger, backend

        ok, ledger, backend = asyncio.run(scenario())
        assert ok
        assert [e.id for e in ledger.expenses] == ["e1"]
        assert "e2" not in backend.expenses.records
        assert ledger.expense_view().totals.monthly == Decimal("1500")

    def test_income_change_moves_the_split(self):
        async def scenario():
            ledger, _ = make_ledger()
            before = ledger.expense_view().ratio_x
            await ledger.update_income("i2", {"amount": Decimal("3000")})
            return before, ledger.expense_view().ratio_x

        before, after = asyncio.run(scenario())
        assert before == Decimal("0.75")
        assert after == Decimal("0.5")


class TestReferences:
    """Categories, budgets and payment methods."""

    def test_add_and_rename(self):
        async def scenario():
            ledger, backend = make_ledger()
            account_id = await ledger.add_linked_account("Joint", PartnerLabel.X)
            category_id = await ledger.add_category("Utilities", color="#00f")
            await ledger.rename_reference(ReferenceKind.CATEGORY, category_id, "Bills")
            return ledger, backend, account_id, category_id

        ledger, backend, account_id, category_id = asyncio.run(scenario())
        assert backend.accounts.records[account_id]["owner_partner"] == "X"
        assert backend.categories.records[category_id] == {"name": "Bills", "color": "#00f"}
        assert ledger.context.category_name(category_id) == "Bills"

    def test_blank_names_refused(self):
        ledger, backend = make_ledger()
        with pytest.raises(ValidationError):
            asyncio.run(ledger.add_budget("  "))
        with pytest.raises(ValidationError):
            asyncio.run(ledger.rename_reference(ReferenceKind.CATEGORY, "c1", ""))
        assert backend.budgets.calls == []
        assert backend.categories.calls == []

    def test_in_use_reference_is_not_deleted(self):
        ledger, backend = make_ledger()
        with pytest.raises(ReferentialConflict) as exc:
            asyncio.run(ledger.remove_reference(ReferenceKind.CATEGORY, "c1"))
        assert exc.value.usage_count == 2
        assert len(ledger.references(ReferenceKind.CATEGORY)) == 2
        assert backend.event_types() == [AuditEventType.REFERENTIAL_CONFLICT]

    def test_unused_reference_is_deleted(self):
        ledger, backend = make_ledger()
        assert asyncio.run(ledger.remove_reference(ReferenceKind.CATEGORY, "c2"))
        assert "c2" not in backend.categories.records

    def test_reassign_then_remove(self):
        async def scenario():
            ledger, backend = make_ledger()
            return await ledger.reassign_and_remove(ReferenceKind.CATEGORY, "c1", "c2"), ledger, backend

        ok, ledger, backend = asyncio.run(scenario())
        assert ok
        assert {e.category_id for e in ledger.expenses} == {"c2"}
        assert backend.expenses.records["e1"]["category_id"] == "c2"
        assert "c1" not in backend.categories.records
        assert AuditEventType.REFERENCES_REASSIGNED in backend.event_types()

    def test_reassign_to_nothing(self):
        async def scenario():
            ledger, _ = make_ledger()
            await ledger.reassign_and_remove(ReferenceKind.CATEGORY, "c1", None)
            ledger.preferences.set_group_by(GroupByOption.CATEGORY)
            return ledger

        ledger = asyncio.run(scenario())
        assert {e.category_id for e in ledger.expenses} == {None}
        assert [g.label for g in ledger.expense_view().groups] == ["Uncategorized"]

    def test_reassign_to_unknown_target_refused(self):
        ledger, backend = make_ledger()
        with pytest.raises(ValidationError):
            asyncio.run(ledger.reassign_and_remove(ReferenceKind.CATEGORY, "c1", "c9"))
        with pytest.raises(ValidationError):
            asyncio.run(ledger.reassign_and_remove(ReferenceKind.CATEGORY, "c1", "c1"))
        assert backend.categories.calls == []


class TestHousehold:
    """Partner names, invite code and view preferences."""

    def test_partner_names(self):
        async def scenario():
            ledger, backend = make_ledger()
            ok = await ledger.update_partner_names(" Jo ", "Sam")
            return ok, ledger, backend

        ok, ledger, backend = asyncio.run(scenario())
        assert ok
        assert ledger.household.partner_x == "Jo"
        assert ledger.context.partner_x == "Jo"
        assert backend.household.records["h1"] == {"partner_x": "Jo", "partner_y": "Sam"}
        assert AuditEventType.PARTNER_NAMES_UPDATED in backend.event_types()

    def test_blank_partner_name_refused(self):
        ledger, backend = make_ledger()
        with pytest.raises(ValidationError):
            asyncio.run(ledger.update_partner_names("Alex", " "))
        assert ledger.household.partner_y == "Sam"
        assert backend.household.calls == []

    def test_copy_invite_code(self):
        ledger, backend = make_ledger()
        assert asyncio.run(ledger.copy_invite_code())
        assert backend.clipboard.text == "ABC123"
        assert ledger.notices[-1].title == "Invite code copied"

    def test_new_household_uses_configured_names(self, monkeypatch):
        monkeypatch.setenv("FAIRSHARE_DEFAULT_PARTNER_X_NAME", "You")
        get_settings.cache_clear()
        household = new_household("h2", invite_code="XYZ")
        assert (household.partner_x, household.partner_y) == ("You", "Partner Y")
        assert household.invite_code == "XYZ"

    def test_no_invite_code(self):
        ledger, backend = make_ledger(household=new_household("h1"))
        assert asyncio.run(ledger.copy_invite_code()) is False
        assert ledger.notices[-1].title == "No invite code yet"
        assert backend.clipboard.text is None

    def test_clipboard_failure(self):
        ledger, _ = make_ledger(clipboard=InMemoryClipboard(error=RuntimeError("denied")))
        assert asyncio.run(ledger.copy_invite_code()) is False
        assert ledger.notices[-1].title == "Could not copy invite code"

    def test_view_follows_preferences(self):
        ledger, _ = make_ledger()
        ledger.preferences.set_payer_filter(PayerFilter.Y)
        assert ledger.expense_view().row_ids == ("e2",)
        ledger.preferences.toggle_expense_sort("monthly")
        ledger.preferences.set_payer_filter(PayerFilter.ALL)
        assert ledger.expense_view().row_ids == ("e2", "e1")


class TestGridsFollowPreferences:
    """A preference change re-derives the grid rows before the next edit."""

    def test_sort_change_reorders_grid_before_a_choice(self):
        async def scenario():
            ledger, backend = make_ledger()
            assert ledger.expense_grid.snapshot.row_ids == ("e2", "e1")
            ledger.preferences.toggle_expense_sort("name")
            assert ledger.expense_grid.snapshot.row_ids == ("e1", "e2")
            ledger.choose_expense_value(GridCoordinate(0, PAYMENT), "a1")
            await ledger.drain()
            return ledger, backend

        ledger, backend = asyncio.run(scenario())
        assert [call[1] for call in backend.expenses.calls] == ["e1"]
        assert expense(ledger, "e1").linked_account_id == "a1"
        assert expense(ledger, "e2").linked_account_id is None

    def test_filter_change_drops_focus(self):
        ledger, _ = make_ledger()
        ledger.dispatch_expense_event(PointerDown(GridCoordinate(1, PAYMENT)))
        ledger.preferences.set_payer_filter(PayerFilter.Y)
        assert ledger.expense_grid.snapshot.row_ids == ("e2",)
        assert ledger.expense_grid.state == Idle()

    def test_grouping_change(self):
        ledger, _ = make_ledger()
        ledger.preferences.set_group_by(GroupByOption.PAYER)
        # Alex's group comes before Sam's
        assert ledger.expense_grid.snapshot.row_ids == ("e1", "e2")

    def test_income_sort_change(self):
        ledger, _ = make_ledger()
        assert ledger.income_grid.snapshot.row_ids == ("i1", "i2")
        ledger.preferences.toggle_income_sort("monthly")
        assert ledger.income_grid.snapshot.row_ids == ("i2", "i1")

    def test_choose_income_partner(self):
        async def scenario():
            ledger, backend = make_ledger()
            issued = ledger.choose_income_value(GridCoordinate(1, PARTNER), "X")
            await ledger.drain()
            return ledger, backend, issued

        ledger, backend, issued = asyncio.run(scenario())
        assert issued
        assert backend.incomes.calls == [("update", "i2", {"partner_label": "X"})]
        assert ledger.expense_view().ratio_x == Decimal("1")
