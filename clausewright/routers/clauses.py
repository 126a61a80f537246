import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from clausewright.exceptions import SourceDecodeError, SourceNotFoundError
from clausewright.schemas.clause import (
    ClauseResponse,
    ClauseSummaryResponse,
    IngestQueuedResponse,
    IngestRequest,
)
from clausewright.services.clause_service import ClauseLibraryService
from clausewright.services.variables import VARIABLE_NAME

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clauses", tags=["Clause Library"])


def get_clause_service() -> ClauseLibraryService:
    # Placeholder, overridden in main.py with real DB session injection
    raise NotImplementedError("Dependency override not configured")


@router.post("/ingest", response_model=IngestQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def ingest_source(
    request: IngestRequest,
    service: ClauseLibraryService = Depends(get_clause_service),
):
    """Queue a server-side DOCX or HTML source for ingestion into the clause library."""
    logger.info(f"Ingest request: contract_type={request.contract_type} source={request.source_path!r}")
    try:
        task_id = service.queue_ingestion(request.source_path, request.contract_type)
    except SourceNotFoundError as e:
        logger.warning(f"Ingest rejected: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except SourceDecodeError as e:
        logger.warning(f"Ingest rejected: {e}")
        raise HTTPException(status_code=422, detail={"stage": e.stage, "error": str(e)})

    logger.info(f"Ingest queued: task_id={task_id} contract_type={request.contract_type}")
    return IngestQueuedResponse(
        task_id=task_id, contract_type=request.contract_type, source_path=request.source_path
    )


@router.get("", response_model=list[ClauseSummaryResponse])
async def list_clauses(
    contract_type: str = Query(..., min_length=1, max_length=50),
    service: ClauseLibraryService = Depends(get_clause_service),
):
    """The clause library for a contract type, in document order."""
    clauses = await service.list_clauses(contract_type)
    return [ClauseSummaryResponse.model_validate(c) for c in clauses]


@router.get("/by-variable/{variable_name}", response_model=list[ClauseResponse])
async def clauses_using_variable(
    variable_name: str = Path(..., pattern=f"^{VARIABLE_NAME.pattern}$"),
    service: ClauseLibraryService = Depends(get_clause_service),
):
    """Every clause whose body references {{VARIABLE_NAME}}."""
    clauses = await service.clauses_using_variable(variable_name)
    return [ClauseResponse.model_validate(c) for c in clauses]
