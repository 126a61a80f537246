import asyncio
import logging
from dataclasses import asdict

from clausewright.exceptions import SourceDecodeError
from clausewright.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=10, acks_late=True)
def ingest_source_document(self, source_path: str, contract_type: str) -> dict:
    """Decode a DOCX or HTML source and rebuild the contract type's clause library."""
    logger.info(f"[ingest] Starting {contract_type} from {source_path}")
    return asyncio.run(_ingest_async(self, source_path, contract_type))


async def _ingest_async(task, source_path: str, contract_type: str) -> dict:
    from clausewright.config import Settings
    from clausewright.database import create_engine, create_session_factory
    from clausewright.repositories.clause_repo import ClauseRepository
    from clausewright.repositories.template_repo import TemplateRepository
    from clausewright.services.ingestion.blocks import load_source_blocks
    from clausewright.services.ingestion.ingestion_service import IngestionService

    # Undecodable sources are reported, never retried.
    try:
        blocks = load_source_blocks(source_path)
    except SourceDecodeError as exc:
        logger.error(f"[ingest] {exc}")
        return {"contract_type": contract_type, "status": "failed", "error": str(exc)}

    settings = Settings()
    engine = create_engine(settings, pooled=False)
    factory = create_session_factory(engine)

    try:
        async with factory() as session:
            service = IngestionService(
                ClauseRepository(session),
                TemplateRepository(session),
                toc_scan_blocks=settings.TOC_SCAN_BLOCKS,
            )
            report = await service.ingest(blocks, contract_type)
            await session.commit()

        logger.info(
            f"[ingest] Done for {contract_type}: {report.clause_count} clauses, "
            f"{len(report.warnings)} warnings, template {report.template_id}"
        )
        return {"status": "completed", **asdict(report)}

    except Exception as exc:
        logger.exception(f"[ingest] Failed for {contract_type} from {source_path}: {exc}")
        raise task.retry(exc=exc)

    finally:
        await engine.dispose()
