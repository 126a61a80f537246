from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from markupsafe import Markup

from clausewright.services.substitution_service import SubstitutedClause


class NodeKind(str, Enum):
    MAJOR_HEADING = "major_heading"
    MINOR_HEADING = "minor_heading"
    PARAGRAPH = "paragraph"


SPACING = {
    NodeKind.MAJOR_HEADING: "large",
    NodeKind.MINOR_HEADING: "medium",
    NodeKind.PARAGRAPH: "small",
}


def node_kind_for_level(level: int | None) -> NodeKind:
    """Levels 1 and 2 get headings; level 3 and anything deeper is a plain paragraph."""
    if level is None or level <= 1:
        return NodeKind.MAJOR_HEADING
    if level == 2:
        return NodeKind.MINOR_HEADING
    return NodeKind.PARAGRAPH


def heading_label(code: str | None, level: int) -> str | None:
    if not code:
        return None
    if level <= 1 and code.isdigit():
        return f"{code}."
    return code


@dataclass
class DocumentNode:
    kind: NodeKind
    level: int
    clause_id: int
    heading: str | None
    label: str | None
    body: Markup
    spacing: str

    @property
    def is_heading(self) -> bool:
        return self.kind is not NodeKind.PARAGRAPH


@dataclass
class LogicalDocument:
    nodes: list[DocumentNode] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    def count(self, kind: NodeKind) -> int:
        return sum(1 for node in self.nodes if node.kind is kind)

    @property
    def clause_count(self) -> int:
        return len(self.nodes)


def assemble(clauses: Sequence[SubstitutedClause]) -> LogicalDocument:
    """Turn the ordered, substituted clauses into hierarchy-tagged nodes.

    Order is taken as given; the resolver already sorted by ordering key.
    """
    document = LogicalDocument()
    for clause in clauses:
        level = clause.hierarchy_level or 1
        kind = node_kind_for_level(level)
        label = heading_label(clause.clause_code, level)

        if kind is NodeKind.PARAGRAPH:
            heading = None
        else:
            heading = " ".join(part for part in (label, clause.name) if part)
            if kind is NodeKind.MAJOR_HEADING:
                heading = heading.upper()

        document.nodes.append(DocumentNode(
            kind=kind,
            level=level,
            clause_id=clause.clause_id,
            heading=heading,
            label=label if kind is NodeKind.PARAGRAPH else None,
            body=clause.body,
            spacing=SPACING[kind],
        ))
        document.unresolved.extend(clause.unresolved)
    return document
