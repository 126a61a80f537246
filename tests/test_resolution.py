import logging
from datetime import date
from decimal import Decimal

import pytest

from clausewright.exceptions import ClausesNotFoundError, TemplateNotFoundError
from clausewright.services.resolution_service import (
    ClauseResolver,
    collect_clause_ids,
    evaluate_conditions,
    resolve,
    rule_key,
)
from clausewright.services.variables import derive_flags
from tests.fakes import FakeClauseRepository, FakeTemplateRepository, make_clause, make_template

SORT_KEYS = {1: 100, 2: 110, 5: 300, 6: 200}
RULES = {"SERVICE_MODEL": {"CRC": [5], "CMOS": [6]}}


def test_conditional_inclusion():
    template = make_template(base_clause_ids=[1, 2], conditional_rules=RULES)

    assert resolve(template, {"SERVICE_MODEL": "CRC"}, SORT_KEYS) == [1, 2, 5]
    assert resolve(template, {"SERVICE_MODEL": "OTHER"}, SORT_KEYS) == [1, 2]
    assert resolve(template, {}, SORT_KEYS) == [1, 2]


def test_matching_is_exact():
    template = make_template(base_clause_ids=[1, 2], conditional_rules=RULES)

    assert resolve(template, {"SERVICE_MODEL": "crc"}, SORT_KEYS) == [1, 2]
    assert resolve(template, {"SERVICE_MODEL": "CRC "}, SORT_KEYS) == [1, 2]


def test_order_follows_ordering_key_not_source():
    template = make_template(base_clause_ids=[1, 2], conditional_rules=RULES)
    sort_keys = {1: 300, 2: 200, 5: 100}

    assert resolve(template, {"SERVICE_MODEL": "CRC"}, sort_keys) == [5, 2, 1]


def test_resolution_is_deterministic():
    template = make_template(
        base_clause_ids=[6, 2, 1],
        conditional_rules={"SERVICE_MODEL": {"CRC": [5, 1]}, "HAS_WARRANTY": {"true": [6]}},
    )
    bag = {"SERVICE_MODEL": "CRC", "HAS_WARRANTY": True}

    first = resolve(template, bag, SORT_KEYS)
    assert first == resolve(template, bag, SORT_KEYS)
    assert first == [1, 2, 6, 5]


def test_conditional_ids_exclude_base_ids():
    template = make_template(base_clause_ids=[1, 2], conditional_rules={"SERVICE_MODEL": {"CRC": [1, 5]}})

    selection = collect_clause_ids(template, {"SERVICE_MODEL": "CRC"})

    assert selection.conditional_ids == frozenset({5})
    assert selection.source_of(1) == "base"
    assert selection.source_of(5) == "conditional"
    assert selection.matched_rules == (("SERVICE_MODEL", "CRC"),)


def test_missing_rule_table_is_fine():
    template = make_template(base_clause_ids=[1])
    template.conditional_rules = None
    assert collect_clause_ids(template, {"SERVICE_MODEL": "CRC"}).all_ids == frozenset({1})


@pytest.mark.parametrize(
    "value, key",
    [
        ("CRC", "CRC"),
        (True, "true"),
        (False, "false"),
        (5, "5"),
        (5.0, "5"),
        (Decimal("5.50"), "5.5"),
        (date(2025, 1, 15), "2025-01-15"),
        (["CRC"], None),
        (None, None),
    ],
)
def test_rule_key(value, key):
    assert rule_key(value) == key


def test_evaluate_conditions():
    assert evaluate_conditions(None, {}) is True
    assert evaluate_conditions({"IS_CRC": True}, {"IS_CRC": True}) is True
    assert evaluate_conditions({"IS_CRC": True}, {"IS_CRC": 1}) is False
    assert evaluate_conditions({"STATE": ["ME", "NH"]}, {"STATE": "ME"}) is True
    assert evaluate_conditions({"STATE": ["ME", "NH"]}, {"STATE": "VT"}) is False
    assert evaluate_conditions({"SERVICE_MODEL": "CRC"}, {}) is False


async def test_resolver_fetches_and_orders(clause_repo, template_repo):
    resolver = ClauseResolver(clause_repo, template_repo)

    crc = await resolver.resolve("ONE", derive_flags({"SERVICE_MODEL": "CRC"}))
    cmos = await resolver.resolve("ONE", derive_flags({"SERVICE_MODEL": "CMOS"}))

    assert crc.clause_ids == [1, 2, 3, 5]
    assert cmos.clause_ids == [1, 2, 3, 6]
    assert crc.template.contract_type == "ONE"


async def test_resolver_missing_template(clause_repo, template_repo):
    resolver = ClauseResolver(clause_repo, template_repo)

    with pytest.raises(TemplateNotFoundError) as exc_info:
        await resolver.resolve("NOPE", {})

    assert exc_info.value.to_dict() == {
        "stage": "resolve",
        "error": "No active template found for contract type: NOPE",
        "contract_type": "NOPE",
    }


async def test_resolver_ignores_inactive_templates(clause_repo):
    templates = FakeTemplateRepository([make_template(1, "ONE", [1], status="draft")])
    with pytest.raises(TemplateNotFoundError):
        await ClauseResolver(clause_repo, templates).resolve("ONE", {})


async def test_resolver_no_existing_clauses():
    resolver = ClauseResolver(FakeClauseRepository(), FakeTemplateRepository([make_template(1, "ONE", [98, 99])]))

    with pytest.raises(ClausesNotFoundError) as exc_info:
        await resolver.resolve("ONE", {})

    payload = exc_info.value.to_dict()
    assert payload["stage"] == "fetch"
    assert payload["clause_ids"] == [98, 99]


async def test_resolver_skips_dangling_ids(caplog):
    resolver = ClauseResolver(
        FakeClauseRepository([make_clause(1, 100)]),
        FakeTemplateRepository([make_template(1, "ONE", [1, 99])]),
    )

    with caplog.at_level(logging.WARNING):
        resolution = await resolver.resolve("ONE", {})

    assert resolution.clause_ids == [1]
    assert "missing clause ids: [99]" in caplog.text
