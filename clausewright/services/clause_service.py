from pathlib import Path

from clausewright.exceptions import SourceDecodeError, SourceNotFoundError
from clausewright.models.clause import Clause
from clausewright.repositories.clause_repo import ClauseRepository
from clausewright.services.ingestion.blocks import DOCX_SUFFIXES, HTML_SUFFIXES
from clausewright.workers.ingestion_tasks import ingest_source_document


class ClauseLibraryService:
    """Read access to the clause library and the entry point for re-ingestion."""

    def __init__(self, repo: ClauseRepository, source_dir: str | Path):
        self.repo = repo
        self.source_dir = Path(source_dir).resolve()

    async def list_clauses(self, contract_type: str) -> list[Clause]:
        return await self.repo.get_by_contract_type(contract_type)

    async def clauses_using_variable(self, variable_name: str) -> list[Clause]:
        return await self.repo.get_containing_variable(variable_name)

    def resolve_source(self, source_path: str) -> Path:
        """Resolve a source path against the source directory.

        Relative paths are taken from the source directory. Anything that
        resolves outside it, through `..` or symlinks included, is reported
        as not found.
        """
        path = (self.source_dir / source_path).resolve()
        try:
            path.relative_to(self.source_dir)
        except ValueError:
            raise SourceNotFoundError(source_path) from None
        if not path.is_file():
            raise SourceNotFoundError(source_path)
        return path

    def queue_ingestion(self, source_path: str, contract_type: str) -> str:
        """Validate the source file and hand it to the ingestion worker. Returns the task id."""
        path = self.resolve_source(source_path)
        if path.suffix.lower() not in DOCX_SUFFIXES | HTML_SUFFIXES:
            raise SourceDecodeError(source_path, f"unsupported source type {path.suffix or '(none)'}")

        result = ingest_source_document.delay(str(path), contract_type)
        return result.id
