import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from markupsafe import Markup, escape

from clausewright.models.clause import Clause
from clausewright.services.rendering.fragments import table_from_records
from clausewright.services.variables import PLACEHOLDER_PATTERN, format_value

logger = logging.getLogger(__name__)


def is_record_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and bool(value) and all(isinstance(item, Mapping) for item in value)


@dataclass
class SubstitutionResult:
    text: str
    # One entry per occurrence, in document order
    unresolved: list[str] = field(default_factory=list)


@dataclass
class SubstitutedClause:
    clause_id: int
    hierarchy_level: int
    clause_code: str | None
    name: str
    body: Markup
    unresolved: list[str] = field(default_factory=list)


def substitute(text: str, variables: Mapping[str, Any]) -> SubstitutionResult:
    """Replace {{NAME}} placeholders in a single left-to-right pass.

    A missing value becomes the visible marker "[NAME]" and is reported. When
    `text` is Markup, inserted values are escaped, a list of row mappings becomes
    a styled table, and the result stays Markup. Replacement text is never
    re-scanned.
    """
    is_markup = isinstance(text, Markup)
    unresolved: list[str] = []

    def replace(match) -> str:
        name = match.group(1)
        value = variables.get(name)
        if is_markup and is_record_list(value):
            return str(table_from_records(value))
        rendered = format_value(value)
        if rendered is None:
            unresolved.append(name)
            return f"[{name}]"
        return str(escape(rendered)) if is_markup else rendered

    output = PLACEHOLDER_PATTERN.sub(replace, str(text))
    return SubstitutionResult(text=Markup(output) if is_markup else output, unresolved=unresolved)


def substitute_clauses(
    clauses: Sequence[Clause], variables: Mapping[str, Any]
) -> tuple[list[SubstitutedClause], list[str]]:
    """Substitute names and bodies of resolved clauses.

    Clause bodies are library markup and are treated as a pre-sanitized
    fragment; names are plain text. Returns the clauses and every unresolved
    occurrence across the document.
    """
    substituted: list[SubstitutedClause] = []
    unresolved: list[str] = []

    for clause in clauses:
        name = substitute(clause.name or "", variables)
        body = substitute(Markup(clause.body_html or ""), variables)
        missing = name.unresolved + body.unresolved
        substituted.append(SubstitutedClause(
            clause_id=clause.id,
            hierarchy_level=clause.hierarchy_level,
            clause_code=clause.clause_code,
            name=name.text,
            body=body.text,
            unresolved=missing,
        ))
        unresolved.extend(missing)

    for variable in dict.fromkeys(unresolved):
        logger.warning(f"Variable {variable} not found in project data ({unresolved.count(variable)} occurrences)")
    return substituted, unresolved
