"""Tests for persisted grid preferences and the preference stores."""

import pytest

from fairshare.audit import AuditLogger
from fairshare.errors import PersistenceError
from fairshare.models.audit import AuditEventType
from fairshare.models.view import GroupByOption, PayerFilter, SortDirection, SortState
from fairshare.preferences import (
    EXPENSES_FILTER_PAYER,
    EXPENSES_GROUP_BY,
    EXPENSES_SORT_COL,
    EXPENSES_SORT_DIR,
    INCOMES_SORT_COL,
    GridPreferences,
)
from fairshare.services.storage import InMemoryPreferenceStore, JsonFilePreferenceStore


class ReadOnlyPreferenceStore(InMemoryPreferenceStore):

    def set(self, key, value):
        raise PersistenceError("Storage is read-only")


class TestLoading:
    """Stored preferences are read back on construction."""

    def test_defaults(self):
        prefs = GridPreferences(InMemoryPreferenceStore())
        assert prefs.payer_filter == PayerFilter.ALL
        assert prefs.group_by == GroupByOption.NONE
        assert prefs.expense_sort == SortState(column="name", direction=SortDirection.ASC)
        assert prefs.income_sort == SortState(column="name", direction=SortDirection.ASC)

    def test_reads_stored_values(self):
        store = InMemoryPreferenceStore({
            EXPENSES_FILTER_PAYER: "Y",
            EXPENSES_GROUP_BY: "payment_method",
            EXPENSES_SORT_COL: "monthly",
            EXPENSES_SORT_DIR: "desc",
            INCOMES_SORT_COL: "partner",
        })
        prefs = GridPreferences(store)
        assert prefs.payer_filter == PayerFilter.Y
        assert prefs.group_by == GroupByOption.PAYMENT_METHOD
        assert prefs.expense_sort == SortState(column="monthly", direction=SortDirection.DESC)
        assert prefs.income_sort.column == "partner"

    def test_unusable_values_fall_back(self):
        store = InMemoryPreferenceStore({
            EXPENSES_FILTER_PAYER: "Z",
            EXPENSES_GROUP_BY: "vendor",
            EXPENSES_SORT_COL: "actions",
            EXPENSES_SORT_DIR: "sideways",
        })
        prefs = GridPreferences(store)
        assert prefs.payer_filter == PayerFilter.ALL
        assert prefs.group_by == GroupByOption.NONE
        assert prefs.expense_sort == SortState()


class TestChanges:
    """Every change is written through."""

    def test_filter_and_group_are_saved(self):
        store = InMemoryPreferenceStore()
        prefs = GridPreferences(store)
        prefs.set_payer_filter(PayerFilter.X)
        prefs.set_group_by("category")
        assert store.values == {EXPENSES_FILTER_PAYER: "X", EXPENSES_GROUP_BY: "category"}
        assert GridPreferences(store).group_by == GroupByOption.CATEGORY

    def test_header_click_toggles_direction(self):
        store = InMemoryPreferenceStore()
        prefs = GridPreferences(store)
        assert prefs.toggle_expense_sort("name") == SortState(column="name", direction=SortDirection.DESC)
        assert prefs.toggle_expense_sort("name") == SortState(column="name", direction=SortDirection.ASC)
        assert prefs.toggle_expense_sort("amount") == SortState(column="amount", direction=SortDirection.ASC)
        assert store.values[EXPENSES_SORT_COL] == "amount"

    def test_unsortable_column_is_ignored(self):
        store = InMemoryPreferenceStore()
        prefs = GridPreferences(store)
        assert prefs.toggle_expense_sort("frequency_param") == SortState()
        prefs.set_income_sort(SortState(column="actions"))
        assert prefs.income_sort == SortState()
        assert store.values == {}

    def test_income_sort(self):
        prefs = GridPreferences(InMemoryPreferenceStore())
        assert prefs.toggle_income_sort("monthly").column == "monthly"

    def test_failed_save_keeps_choice(self):
        prefs = GridPreferences(ReadOnlyPreferenceStore())
        prefs.set_payer_filter(PayerFilter.Y)
        assert prefs.payer_filter == PayerFilter.Y

    def test_listeners_hear_every_change(self):
        prefs = GridPreferences(InMemoryPreferenceStore())
        heard = []
        prefs.add_listener(lambda: heard.append(prefs.expense_sort))
        prefs.set_payer_filter(PayerFilter.X)
        prefs.set_group_by(GroupByOption.CATEGORY)
        prefs.toggle_expense_sort("name")
        prefs.toggle_income_sort("monthly")
        assert len(heard) == 4
        assert heard[2].direction == SortDirection.DESC

    def test_ignored_sort_is_not_announced(self):
        prefs = GridPreferences(InMemoryPreferenceStore())
        heard = []
        prefs.add_listener(lambda: heard.append(True))
        prefs.toggle_expense_sort("actions")
        assert heard == []

    def test_changes_are_audited(self):
        audit = AuditLogger()
        prefs = GridPreferences(InMemoryPreferenceStore(), audit=audit)
        prefs.set_group_by(GroupByOption.PAYER)
        assert [e.event_type for e in audit.events] == [AuditEventType.PREFERENCE_CHANGED]
        assert audit.events[0].entity_id == EXPENSES_GROUP_BY


class TestJsonFilePreferenceStore:
    """Preferences on disk."""

    def test_round_trip(self, tmp_path):
        path = tmp_path / "prefs" / "grid.json"
        JsonFilePreferenceStore(path).set(EXPENSES_GROUP_BY, "payer")
        assert JsonFilePreferenceStore(path).get(EXPENSES_GROUP_BY) == "payer"

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFilePreferenceStore(tmp_path / "none.json").get(EXPENSES_GROUP_BY) is None

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_unreadable_file_is_empty(self, tmp_path, content):
        path = tmp_path / "grid.json"
        path.write_text(content, encoding="utf-8")
        store = JsonFilePreferenceStore(path)
        assert store.get(EXPENSES_GROUP_BY) is None
        # and it can be overwritten
        store.set(EXPENSES_GROUP_BY, "category")
        assert JsonFilePreferenceStore(path).get(EXPENSES_GROUP_BY) == "category"

    def test_write_failure_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonFilePreferenceStore(blocker / "grid.json")
        with pytest.raises(PersistenceError):
            store.set(EXPENSES_GROUP_BY, "payer")
