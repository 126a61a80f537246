import base64
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from clausewright.exceptions import (
    ClausesNotFoundError,
    GenerationError,
    RenderingError,
    TemplateNotFoundError,
    UnsupportedFormatError,
)
from clausewright.schemas.contract import (
    CompareServiceModelsRequest,
    ContractDataRequest,
    GeneratedDocument,
    GeneratePackageRequest,
    GenerateRequest,
    PackageDocument,
    PackageResponse,
    PreviewResponse,
    RequiredVariableResponse,
    RequiredVariablesResponse,
    ServiceModelComparisonResponse,
)
from clausewright.services.generation_service import ContractGenerationService, GeneratedContract

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["Contract Generation"])


def get_generation_service() -> ContractGenerationService:
    # Placeholder, overridden in main.py with real DB session injection
    raise NotImplementedError("Dependency override not configured")


def _http_error(exc: Exception) -> HTTPException:
    """Map a fatal pipeline error to a status code with a structured detail payload."""
    if isinstance(exc, UnsupportedFormatError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"stage": "request", "error": str(exc)},
        )
    if isinstance(exc, (TemplateNotFoundError, ClausesNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.to_dict())
    if isinstance(exc, RenderingError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.to_dict())
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict())


def _document_payload(contract: GeneratedContract) -> GeneratedDocument:
    return GeneratedDocument(
        contract_type=contract.contract_type,
        filename=contract.filename,
        media_type=contract.media_type,
        output_format=contract.output_format,
        clause_count=contract.clause_count,
        unresolved_variables=contract.unresolved_variables,
        content_base64=base64.b64encode(contract.content).decode("ascii"),
    )


@router.post("/generate")
async def generate_contract(
    request: GenerateRequest,
    service: ContractGenerationService = Depends(get_generation_service),
):
    """Generate one contract and return the rendered file."""
    logger.info(f"Generate request: contract_type={request.contract_type} format={request.output_format}")
    try:
        result = await service.generate(request.contract_type, request.project_data, request.output_format)
    except (GenerationError, UnsupportedFormatError) as e:
        logger.warning(f"Generate failed: contract_type={request.contract_type} error={e}")
        raise _http_error(e)

    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Clause-Count": str(result.clause_count),
            "X-Unresolved-Variables": ",".join(result.unresolved_variables),
        },
    )


@router.post("/generate-package", response_model=PackageResponse)
async def generate_package(
    request: GeneratePackageRequest,
    service: ContractGenerationService = Depends(get_generation_service),
):
    """Generate several contracts for one project. Each document succeeds or fails on its own."""
    logger.info(f"Package request: contract_types={request.contract_types} format={request.output_format}")
    try:
        package = await service.generate_package(
            request.project_data, request.contract_types, request.output_format
        )
    except UnsupportedFormatError as e:
        raise _http_error(e)

    return PackageResponse(
        succeeded=package.succeeded,
        failed=package.failed,
        documents=[
            PackageDocument(
                contract_type=doc.contract_type,
                status=doc.status,
                document=_document_payload(doc.contract) if doc.contract else None,
                error=doc.error,
            )
            for doc in package.documents
        ],
    )


@router.post("/preview-clauses", response_model=PreviewResponse)
async def preview_clauses(
    request: ContractDataRequest,
    service: ContractGenerationService = Depends(get_generation_service),
):
    """Resolved clauses, base vs conditional, for review before generating."""
    try:
        preview = await service.preview(request.contract_type, request.project_data)
    except GenerationError as e:
        logger.warning(f"Preview failed: contract_type={request.contract_type} error={e}")
        raise _http_error(e)
    logger.info(
        f"Preview: contract_type={request.contract_type} clauses={preview.summary['total']} "
        f"missing_variables={len(preview.missing_variables)}"
    )
    return PreviewResponse.model_validate(preview)


@router.post("/required-variables", response_model=RequiredVariablesResponse)
async def required_variables(
    request: ContractDataRequest,
    service: ContractGenerationService = Depends(get_generation_service),
):
    """Variables the resolved clauses need, and whether the project data provides them."""
    try:
        variables = await service.required_variables(request.contract_type, request.project_data)
    except GenerationError as e:
        raise _http_error(e)
    return RequiredVariablesResponse(
        contract_type=request.contract_type,
        variables=[RequiredVariableResponse.model_validate(v) for v in variables],
    )


@router.post("/compare-service-models", response_model=ServiceModelComparisonResponse)
async def compare_service_models(
    request: CompareServiceModelsRequest,
    service: ContractGenerationService = Depends(get_generation_service),
):
    """Which clauses each service model pulls in that the others do not."""
    try:
        comparison = await service.compare_service_models(
            request.contract_type, request.project_data, request.models
        )
    except GenerationError as e:
        raise _http_error(e)
    return ServiceModelComparisonResponse.model_validate(comparison)
