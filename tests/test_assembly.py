from markupsafe import Markup

from clausewright.services.assembly_service import NodeKind, assemble, heading_label, node_kind_for_level
from clausewright.services.substitution_service import SubstitutedClause


def clause(clause_id, level, code=None, name="Clause", body="<p>text</p>", unresolved=None):
    return SubstitutedClause(
        clause_id=clause_id,
        hierarchy_level=level,
        clause_code=code,
        name=name,
        body=Markup(body),
        unresolved=unresolved or [],
    )


def test_levels_map_to_heading_kinds():
    document = assemble([clause(1, 1), clause(2, 2), clause(3, 3)])

    assert [node.kind for node in document.nodes] == [
        NodeKind.MAJOR_HEADING,
        NodeKind.MINOR_HEADING,
        NodeKind.PARAGRAPH,
    ]
    assert document.count(NodeKind.MAJOR_HEADING) == 1
    assert document.count(NodeKind.MINOR_HEADING) == 1
    assert document.count(NodeKind.PARAGRAPH) == 1


def test_level_mapping_is_total():
    assert node_kind_for_level(None) is NodeKind.MAJOR_HEADING
    assert node_kind_for_level(0) is NodeKind.MAJOR_HEADING
    assert node_kind_for_level(4) is NodeKind.PARAGRAPH
    assert node_kind_for_level(12) is NodeKind.PARAGRAPH


def test_heading_text_and_labels():
    document = assemble([
        clause(1, 1, code="1", name="Definitions"),
        clause(2, 2, code="1.1", name="Site"),
        clause(3, 3, code="1.1.1"),
        clause(4, 1, name="Recitals"),
    ])
    major, minor, paragraph, uncoded = document.nodes

    assert major.heading == "1. DEFINITIONS"
    assert minor.heading == "1.1 Site"
    assert paragraph.heading is None
    assert paragraph.label == "1.1.1"
    assert uncoded.heading == "RECITALS"
    assert [node.spacing for node in document.nodes] == ["large", "medium", "small", "large"]


def test_heading_label():
    assert heading_label("3", 1) == "3."
    assert heading_label("IV", 1) == "IV"
    assert heading_label("3.2", 2) == "3.2"
    assert heading_label(None, 1) is None


def test_order_is_taken_as_given():
    document = assemble([clause(9, 1), clause(2, 1), clause(5, 3)])
    assert [node.clause_id for node in document.nodes] == [9, 2, 5]


def test_unresolved_are_collected():
    document = assemble([clause(1, 1, unresolved=["A"]), clause(2, 2, unresolved=["B", "A"])])
    assert document.unresolved == ["A", "B", "A"]
    assert document.clause_count == 2
