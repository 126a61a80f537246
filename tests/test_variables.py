from datetime import date
from decimal import Decimal

from clausewright.services.variables import (
    ValueKind,
    build_variable_map,
    derive_flags,
    extract_variables,
    format_cents_as_currency,
    format_date_short,
    format_percent,
    format_value,
    to_variable_name,
    value_kind,
)


def test_bool_is_not_treated_as_number():
    assert value_kind(True) is ValueKind.BOOL
    assert value_kind(3) is ValueKind.NUMBER
    assert value_kind(None) is ValueKind.MISSING


def test_format_value_dispatches_on_kind():
    assert format_value(True) == "Yes"
    assert format_value(False) == "No"
    assert format_value(1234567) == "1,234,567"
    assert format_value(1234.5) == "1,234.5"
    assert format_value(Decimal("2500.00")) == "2,500"
    assert format_value(date(2025, 1, 15)) == "January 15, 2025"
    assert format_value(["Unit A", "Unit B"]) == "Unit A, Unit B"
    assert format_value("as is") == "as is"
    assert format_value(None) is None


def test_format_value_rows_as_key_value_pairs():
    rows = [{"milestone": "Deposit", "amount": 1000}, {"milestone": "Delivery", "amount": 4000}]
    assert format_value(rows) == "milestone: Deposit, amount: 1,000; milestone: Delivery, amount: 4,000"


def test_auxiliary_formatters():
    assert format_cents_as_currency(123456) == "$1,234.56"
    assert format_cents_as_currency(None) == ""
    assert format_percent(12.5) == "12.5%"
    assert format_date_short(date(2025, 1, 15)) == "01/15/2025"


def test_extract_variables_distinct_in_first_occurrence_order():
    text = "{{B_2}} then {{A}} then {{B_2}} and {{lower}} and {{ SPACED }}"
    assert extract_variables(text) == ["B_2", "A"]
    assert extract_variables("") == []


def test_to_variable_name():
    assert to_variable_name("projectName") == "PROJECT_NAME"
    assert to_variable_name("site-address") == "SITE_ADDRESS"
    assert to_variable_name("PROJECT_NAME") == "PROJECT_NAME"


def test_build_variable_map_flattens_nested_data():
    bag = {
        "projectName": "From camel case",
        "PROJECT_NAME": "Explicit",
        "client": {"legalName": "Harbor View LLC"},
        "units": [{"model": "D1"}, {"model": "D2"}],
        "tags": ["a", "b"],
    }
    variables = build_variable_map(bag)

    assert variables["PROJECT_NAME"] == "Explicit"
    assert variables["CLIENT_LEGAL_NAME"] == "Harbor View LLC"
    assert variables["UNITS_1_MODEL"] == "D1"
    assert variables["UNITS_2_MODEL"] == "D2"
    assert variables["TAGS"] == ["a", "b"]


def test_build_variable_map_keeps_top_level_row_lists():
    schedule = [{"milestone": "Deposit"}]
    variables = build_variable_map({"PAYMENT_SCHEDULE": schedule})
    assert variables["PAYMENT_SCHEDULE"] == schedule
    assert variables["PAYMENT_SCHEDULE_1_MILESTONE"] == "Deposit"


def test_derive_flags():
    enriched = derive_flags({"SERVICE_MODEL": "CRC"}, today=date(2025, 3, 1))
    assert enriched["IS_CRC"] is True
    assert enriched["IS_CMOS"] is False
    assert enriched["CONTRACT_DATE"] == "2025-03-01"


def test_derive_flags_keeps_given_contract_date_and_input():
    bag = {"SERVICE_MODEL": "CMOS", "CONTRACT_DATE": "2024-12-01"}
    enriched = derive_flags(bag, today=date(2025, 3, 1))
    assert enriched["IS_CMOS"] is True
    assert enriched["CONTRACT_DATE"] == "2024-12-01"
    assert "IS_CRC" not in bag
