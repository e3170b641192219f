"""Tests for turning committed cell text into record updates."""

from decimal import Decimal

import pytest

from fairshare.core.grouping import LookupContext
from fairshare.errors import ValidationError
from fairshare.grid.updates import clamp_percent, translate_edit
from fairshare.models.records import FrequencyType, LinkedAccount, PartnerLabel


CONTEXT = LookupContext.build(
    linked_accounts=[
        LinkedAccount(id="a1", name="Sam's card", owner_partner=PartnerLabel.Y),
        LinkedAccount(id="a2", name="Shared cash"),
    ],
)


class TestLenientFields:
    """Stray keystrokes never lose the edit."""

    def test_name_is_stripped(self):
        assert translate_edit("name", "  Rent ") == {"name": "Rent"}

    def test_amount(self):
        assert translate_edit("amount", "12.50") == {"amount": Decimal("12.50")}

    def test_unparsable_amount_is_zero(self):
        assert translate_edit("amount", "twelve") == {"amount": Decimal("0")}

    @pytest.mark.parametrize("text, expected", [
        ("40", 40),
        ("40.5", 41),
        ("40.49", 40),
        ("150", 100),
        ("-5", 0),
        ("", 0),
        ("abc", 0),
    ])
    def test_percent_is_rounded_and_clamped(self, text, expected):
        assert clamp_percent(text) == expected

    def test_benefit_y_writes_complement(self):
        assert translate_edit("benefit_y", "30") == {"benefit_x": 70}
        assert translate_edit("benefit_x", "30") == {"benefit_x": 30}

    @pytest.mark.parametrize("text, expected", [
        ("true", True), ("on", True), ("1", True), ("false", False), ("", False),
    ])
    def test_estimate_toggle(self, text, expected):
        assert translate_edit("is_estimate", text) == {"is_estimate": expected}


class TestStrictFields:
    """Input that can't be interpreted is refused."""

    def test_frequency(self):
        assert translate_edit("frequency_type", "weekly") == {"frequency_type": FrequencyType.WEEKLY}

    def test_unknown_frequency_refused(self):
        with pytest.raises(ValidationError) as exc:
            translate_edit("frequency_type", "fortnightly")
        assert exc.value.field == "frequency_type"

    def test_param(self):
        assert translate_edit("frequency_param", "3") == {"frequency_param": 3}
        assert translate_edit("frequency_param", "4.0") == {"frequency_param": 4}

    def test_blank_param_clears_it(self):
        assert translate_edit("frequency_param", " ") == {"frequency_param": None}

    @pytest.mark.parametrize("text, message", [
        ("2.5", "Enter a whole number"),
        ("two", "Enter a whole number"),
        ("0", "Enter a number greater than zero"),
        ("-1", "Enter a number greater than zero"),
    ])
    def test_bad_param_refused(self, text, message):
        with pytest.raises(ValidationError, match=message):
            translate_edit("frequency_param", text)

    def test_partner(self):
        assert translate_edit("partner_label", "Y") == {"partner_label": PartnerLabel.Y}
        with pytest.raises(ValidationError):
            translate_edit("partner_label", "Z")

    def test_unknown_field_refused(self):
        with pytest.raises(ValidationError, match="not editable"):
            translate_edit("monthly", "100")


class TestReferences:
    """Select cells holding ids."""

    def test_none_choice_clears(self):
        assert translate_edit("category_id", "_none") == {"category_id": None}
        assert translate_edit("budget_id", "") == {"budget_id": None}
        assert translate_edit("category_id", "c1") == {"category_id": "c1"}

    def test_payment_method_sets_payer_to_owner(self):
        assert translate_edit("linked_account_id", "a1", CONTEXT) == {
            "linked_account_id": "a1",
            "payer": PartnerLabel.Y,
        }

    def test_unowned_account_clears_payer(self):
        assert translate_edit("linked_account_id", "a2", CONTEXT)["payer"] is None

    def test_clearing_payment_method_clears_payer(self):
        assert translate_edit("linked_account_id", "_none", CONTEXT) == {
            "linked_account_id": None,
            "payer": None,
        }
