from clausewright.services.ingestion.blocks import content, heading
from clausewright.services.ingestion.ingestion_service import IngestionService
from tests.fakes import FakeClauseRepository, FakeTemplateRepository


async def test_ingest_links_parents_and_builds_template():
    clause_repo = FakeClauseRepository()
    template_repo = FakeTemplateRepository()
    service = IngestionService(clause_repo, template_repo)

    report = await service.ingest(
        [
            heading(1, "Scope"),
            content("<p>Work at {{SITE_ADDRESS}}</p>"),
            heading(2, "Sub"),
            content("<p>For {{PROJECT_NAME}}</p>"),
        ],
        "ONE",
    )

    scope, sub = await clause_repo.get_by_contract_type("ONE")
    assert report.clause_count == 2
    assert sub.parent_clause_id == scope.id
    assert scope.parent_clause_id is None
    assert report.variables == ["PROJECT_NAME", "SITE_ADDRESS"]

    template = await template_repo.get_active("ONE")
    assert template.display_name == "Master ONE Agreement"
    assert template.base_clause_ids == [scope.id, sub.id]
    assert report.template_id == template.id


async def test_reingest_replaces_library_and_keeps_rules(clause_repo, template_repo):
    service = IngestionService(clause_repo, template_repo)

    report = await service.ingest([heading(1, "Definitions"), content("<p>new text</p>")], "ONE")

    one_clauses = await clause_repo.get_by_contract_type("ONE")
    assert [c.name for c in one_clauses] == ["Definitions"]
    assert one_clauses[0].id not in {1, 2, 3, 5, 6}
    assert await clause_repo.get_by_contract_type("MANUFACTURING")

    template = await template_repo.get_active("ONE")
    assert template.base_clause_ids == [one_clauses[0].id]
    assert template.conditional_rules == {"SERVICE_MODEL": {"CRC": [5], "CMOS": [6]}}
    assert report.clause_count == 1


async def test_ingest_without_headings_creates_nothing():
    template_repo = FakeTemplateRepository()
    service = IngestionService(FakeClauseRepository(), template_repo)

    report = await service.ingest([content("<p>orphan text</p>")], "ONE")

    assert report.clause_count == 0
    assert report.dropped_blocks == 1
    assert report.template_id is None
    assert await template_repo.get_active("ONE") is None
