"""Template resolution: which clauses belong in a document, and in what order.

Everything except ClauseResolver is pure. The ordering key, never set or
insertion order, decides document position, so the same (template, data)
pair always yields the same list.
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from clausewright.exceptions import ClausesNotFoundError, TemplateNotFoundError
from clausewright.models.clause import Clause
from clausewright.models.contract_template import ContractTemplate
from clausewright.repositories.clause_repo import ClauseRepository
from clausewright.repositories.template_repo import TemplateRepository
from clausewright.services.variables import ValueKind, value_kind

logger = logging.getLogger(__name__)

BASE = "base"
CONDITIONAL = "conditional"


@dataclass(frozen=True)
class ResolvedClauseSet:
    base_ids: frozenset[int]
    conditional_ids: frozenset[int]
    matched_rules: tuple[tuple[str, str], ...] = ()

    @property
    def all_ids(self) -> frozenset[int]:
        return self.base_ids | self.conditional_ids

    def source_of(self, clause_id: int) -> str:
        return BASE if clause_id in self.base_ids else CONDITIONAL


def rule_key(value: Any) -> str | None:
    """The rule-table key a project value selects, or None if it can select nothing.

    Matching is exact on this canonical string; no case folding or partial match.
    """
    kind = value_kind(value)
    if kind is ValueKind.STRING:
        return value
    if kind is ValueKind.BOOL:
        return "true" if value else "false"
    if kind is ValueKind.NUMBER:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, Decimal):
            return format(value.normalize(), "f")
        return str(value)
    if kind is ValueKind.DATE:
        return value.isoformat()
    return None


def collect_clause_ids(template: ContractTemplate, data_bag: Mapping[str, Any]) -> ResolvedClauseSet:
    base = frozenset(int(clause_id) for clause_id in (template.base_clause_ids or []))
    added: set[int] = set()
    matched: list[tuple[str, str]] = []

    for field_name, rule_set in (template.conditional_rules or {}).items():
        key = rule_key(data_bag.get(field_name))
        if key is None or not isinstance(rule_set, Mapping) or key not in rule_set:
            continue
        matched.append((field_name, key))
        added.update(int(clause_id) for clause_id in rule_set[key] or [])

    return ResolvedClauseSet(
        base_ids=base,
        conditional_ids=frozenset(added - base),
        matched_rules=tuple(sorted(matched)),
    )


def order_clause_ids(clause_ids: Iterable[int], sort_keys: Mapping[int, int]) -> list[int]:
    """Sort ids by ordering key (id breaks ties). Ids without a known key are dropped."""
    return sorted((cid for cid in set(clause_ids) if cid in sort_keys), key=lambda cid: (sort_keys[cid], cid))


def resolve(template: ContractTemplate, data_bag: Mapping[str, Any], sort_keys: Mapping[int, int]) -> list[int]:
    return order_clause_ids(collect_clause_ids(template, data_bag).all_ids, sort_keys)


def evaluate_conditions(conditions: Mapping[str, Any] | None, data_bag: Mapping[str, Any]) -> bool:
    """Whether a clause's own condition expression holds for the project data.

    Only used to annotate previews; it never changes what resolution includes.
    """
    if not conditions:
        return True
    for field_name, expected in conditions.items():
        actual = data_bag.get(field_name)
        if isinstance(expected, bool):
            if not isinstance(actual, bool) or actual is not expected:
                return False
        elif isinstance(expected, list):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


@dataclass
class Resolution:
    template: ContractTemplate
    selection: ResolvedClauseSet
    clauses: list[Clause] = field(default_factory=list)

    @property
    def clause_ids(self) -> list[int]:
        return [clause.id for clause in self.clauses]


class ClauseResolver:
    def __init__(self, clause_repo: ClauseRepository, template_repo: TemplateRepository):
        self.clause_repo = clause_repo
        self.template_repo = template_repo

    async def load_template(self, contract_type: str) -> ContractTemplate:
        template = await self.template_repo.get_active(contract_type)
        if template is None:
            raise TemplateNotFoundError(contract_type)
        return template

    async def resolve(self, contract_type: str, data_bag: Mapping[str, Any]) -> Resolution:
        template = await self.load_template(contract_type)
        selection = collect_clause_ids(template, data_bag)
        requested = sorted(selection.all_ids)

        fetched = await self.clause_repo.get_by_ids(requested)
        by_id = {clause.id: clause for clause in fetched}
        ordered = resolve(template, data_bag, {clause.id: clause.sort_order for clause in fetched})

        dangling = sorted(set(requested) - set(by_id))
        if dangling:
            logger.warning(f"{contract_type} template references missing clause ids: {dangling}")
        if not ordered:
            raise ClausesNotFoundError(contract_type, requested)

        logger.info(
            f"Resolved {contract_type}: {len(ordered)} clauses "
            f"({len(selection.conditional_ids)} conditional, rules={list(selection.matched_rules)})"
        )
        return Resolution(template=template, selection=selection, clauses=[by_id[cid] for cid in ordered])
