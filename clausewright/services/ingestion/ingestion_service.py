import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from clausewright.repositories.clause_repo import ClauseRepository
from clausewright.repositories.template_repo import TemplateRepository
from clausewright.services.ingestion.blocks import Block
from clausewright.services.ingestion.clause_parser import ClauseTreeParser

logger = logging.getLogger(__name__)


@dataclass
class IngestionReport:
    contract_type: str
    clause_count: int
    template_id: int | None
    variables: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped_toc_blocks: int = 0
    dropped_blocks: int = 0


class IngestionService:
    def __init__(
        self,
        clause_repo: ClauseRepository,
        template_repo: TemplateRepository,
        toc_scan_blocks: int = 40,
    ):
        self.clause_repo = clause_repo
        self.template_repo = template_repo
        self.toc_scan_blocks = toc_scan_blocks

    async def ingest(
        self, blocks: Iterable[Block], contract_type: str, replace: bool = True
    ) -> IngestionReport:
        """Parse a block stream into the clause library and rebuild the contract type's template.

        With `replace`, the contract type's existing clauses are removed first so a
        re-ingest does not leave stale duplicates behind.
        """
        parsed = ClauseTreeParser(contract_type, self.toc_scan_blocks).parse(blocks)

        if replace:
            removed = await self.clause_repo.delete_by_contract_type(contract_type)
            if removed:
                logger.info(f"Removed {removed} existing {contract_type} clauses before re-ingest")

        created = await self.clause_repo.bulk_create([c.to_record() for c in parsed.clauses])
        slug_to_id = {clause.slug: clause.id for clause in created}

        parents = {
            slug_to_id[clause.slug]: slug_to_id[clause.parent_slug]
            for clause in parsed.clauses
            if clause.parent_slug is not None
        }
        if parents:
            await self.clause_repo.set_parents(parents)

        template = None
        if created:
            template = await self.template_repo.upsert_base_clauses(
                contract_type, [clause.id for clause in created]
            )

        variables = sorted({name for clause in parsed.clauses for name in clause.variables_used})
        logger.info(
            f"Ingested {len(created)} {contract_type} clauses "
            f"({len(variables)} distinct variables, template={template.id if template else None})"
        )
        return IngestionReport(
            contract_type=contract_type,
            clause_count=len(created),
            template_id=template.id if template else None,
            variables=variables,
            warnings=parsed.warnings,
            skipped_toc_blocks=parsed.skipped_toc_blocks,
            dropped_blocks=parsed.dropped_blocks,
        )
