import asyncio
import logging
import re
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from markupsafe import Markup

from clausewright.exceptions import (
    GenerationError,
    RenderingError,
    RenderTimeoutError,
    UnsupportedFormatError,
)
from clausewright.repositories.clause_repo import ClauseRepository
from clausewright.repositories.template_repo import TemplateRepository
from clausewright.services.assembly_service import LogicalDocument, NodeKind, assemble
from clausewright.services.rendering.base import PageGeometry, RenderingDelegate
from clausewright.services.rendering.fragments import build_signature_block
from clausewright.services.rendering.html_renderer import ContractMetadata, render_html, render_text
from clausewright.services.resolution_service import (
    CONDITIONAL,
    ClauseResolver,
    Resolution,
    evaluate_conditions,
)
from clausewright.services.substitution_service import substitute_clauses
from clausewright.services.variables import build_variable_map, derive_flags, extract_variables, format_value

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "html": "text/html; charset=utf-8",
    "txt": "text/plain; charset=utf-8",
}

SUCCEEDED = "succeeded"
FAILED = "failed"


def sanitize_project_name(project_name: Any) -> str:
    text = format_value(project_name) or "Unnamed"
    return re.sub(r"[^A-Za-z0-9]", "_", text)


def build_filename(project_name: Any, contract_type: str, extension: str, timestamp_ms: int | None = None) -> str:
    """`{sanitized project name}_{contract type}_{epoch millis}.{ext}`."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{sanitize_project_name(project_name)}_{contract_type}_{timestamp_ms}.{extension}"


def prepare_variables(data_bag: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten the raw project data and merge the derived flags, once per request."""
    return derive_flags(build_variable_map(data_bag))


@dataclass
class GeneratedContract:
    contract_type: str
    output_format: str
    filename: str
    media_type: str
    content: bytes
    clause_count: int
    unresolved_variables: list[str] = field(default_factory=list)


@dataclass
class PackageDocumentResult:
    contract_type: str
    status: str
    contract: GeneratedContract | None = None
    error: dict | None = None


@dataclass
class PackageResult:
    documents: list[PackageDocumentResult]

    @property
    def succeeded(self) -> int:
        return sum(1 for doc in self.documents if doc.status == SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for doc in self.documents if doc.status == FAILED)


@dataclass
class PreviewClause:
    clause_id: int
    clause_code: str | None
    name: str
    hierarchy_level: int
    sort_order: int
    source: str
    variables_used: list[str]
    conditions: dict | None
    conditions_met: bool


@dataclass
class ContractPreview:
    contract_type: str
    template_id: int
    template_version: str
    clauses: list[PreviewClause]
    summary: dict[str, int]
    missing_variables: list[str]


@dataclass
class RequiredVariable:
    name: str
    provided: bool
    clause_ids: list[int]


@dataclass
class ServiceModelComparison:
    contract_type: str
    clause_ids: dict[str, list[int]]
    unique: dict[str, list[int]]
    shared: list[int]


@dataclass
class _PreparedDocument:
    contract_type: str
    variables: dict[str, Any]
    document: LogicalDocument
    metadata: ContractMetadata


class ContractGenerationService:
    """Turn (contract type, project data) into rendered documents.

    Per document: resolve -> fetch -> substitute -> assemble -> render. The only
    suspension points are the repository fetch and the rendering delegate.
    """

    def __init__(
        self,
        clause_repo: ClauseRepository,
        template_repo: TemplateRepository,
        renderer: RenderingDelegate,
        settings,
    ):
        self.resolver = ClauseResolver(clause_repo, template_repo)
        self.renderer = renderer
        self.geometry = PageGeometry.from_settings(settings)
        self.render_timeout = settings.RENDER_TIMEOUT_SECONDS
        self.default_format = settings.DEFAULT_OUTPUT_FORMAT
        self.package_contract_types = list(settings.PACKAGE_CONTRACT_TYPES)
        self.company_name = settings.COMPANY_NAME

    async def generate(
        self, contract_type: str, data_bag: Mapping[str, Any], output_format: str | None = None
    ) -> GeneratedContract:
        output_format = self._check_format(output_format)
        prepared = await self._prepare(contract_type, prepare_variables(data_bag))
        return await self._render(prepared, output_format)

    async def generate_package(
        self,
        data_bag: Mapping[str, Any],
        contract_types: Sequence[str] | None = None,
        output_format: str | None = None,
    ) -> PackageResult:
        """Generate several contracts for one project, reporting each document on its own.

        Fetches share the request's session and run one after another; renders
        have no shared state and run concurrently.
        """
        output_format = self._check_format(output_format)
        contract_types = list(contract_types or self.package_contract_types)
        variables = prepare_variables(data_bag)

        results: dict[str, PackageDocumentResult] = {}
        prepared: list[_PreparedDocument] = []
        for contract_type in contract_types:
            try:
                prepared.append(await self._prepare(contract_type, variables))
            except GenerationError as e:
                logger.warning(f"Package document {contract_type} failed at {e.stage}: {e}")
                results[contract_type] = PackageDocumentResult(contract_type, FAILED, error=e.to_dict())

        rendered = await asyncio.gather(
            *(self._render(doc, output_format) for doc in prepared), return_exceptions=True
        )
        for doc, outcome in zip(prepared, rendered):
            if isinstance(outcome, GenerationError):
                logger.warning(f"Package document {doc.contract_type} failed at {outcome.stage}: {outcome}")
                results[doc.contract_type] = PackageDocumentResult(doc.contract_type, FAILED, error=outcome.to_dict())
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                logger.info(f"Package document {doc.contract_type} succeeded: {outcome.filename}")
                results[doc.contract_type] = PackageDocumentResult(doc.contract_type, SUCCEEDED, contract=outcome)

        package = PackageResult(documents=[results[contract_type] for contract_type in contract_types])
        logger.info(f"Package generated: {package.succeeded} succeeded, {package.failed} failed")
        return package

    async def preview(self, contract_type: str, data_bag: Mapping[str, Any]) -> ContractPreview:
        """Resolved clauses annotated base vs conditional, without substitution or rendering."""
        variables = prepare_variables(data_bag)
        resolution = await self.resolver.resolve(contract_type, variables)

        clauses = [
            PreviewClause(
                clause_id=clause.id,
                clause_code=clause.clause_code,
                name=clause.name,
                hierarchy_level=clause.hierarchy_level,
                sort_order=clause.sort_order,
                source=resolution.selection.source_of(clause.id),
                variables_used=list(clause.variables_used or []),
                conditions=clause.conditions,
                conditions_met=evaluate_conditions(clause.conditions, variables),
            )
            for clause in resolution.clauses
        ]
        levels = [clause.hierarchy_level or 1 for clause in resolution.clauses]
        summary = {
            "total": len(clauses),
            "sections": sum(1 for level in levels if level <= 1),
            "subsections": sum(1 for level in levels if level == 2),
            "paragraphs": sum(1 for level in levels if level >= 3),
            "conditional": sum(1 for clause in clauses if clause.source == CONDITIONAL),
        }
        missing = [
            name for name, _ in self._variable_usage(resolution)
            if format_value(variables.get(name)) is None
        ]
        return ContractPreview(
            contract_type=contract_type,
            template_id=resolution.template.id,
            template_version=resolution.template.version,
            clauses=clauses,
            summary=summary,
            missing_variables=missing,
        )

    async def required_variables(self, contract_type: str, data_bag: Mapping[str, Any]) -> list[RequiredVariable]:
        variables = prepare_variables(data_bag)
        resolution = await self.resolver.resolve(contract_type, variables)
        return [
            RequiredVariable(name=name, provided=format_value(variables.get(name)) is not None, clause_ids=clause_ids)
            for name, clause_ids in self._variable_usage(resolution)
        ]

    async def compare_service_models(
        self,
        contract_type: str,
        data_bag: Mapping[str, Any],
        models: Iterable[str] = ("CRC", "CMOS"),
    ) -> ServiceModelComparison:
        """Resolve the same project under each service model and diff the clause sets."""
        base_variables = build_variable_map(data_bag)
        clause_ids: dict[str, list[int]] = {}
        for model in models:
            variables = derive_flags({**base_variables, "SERVICE_MODEL": model})
            resolution = await self.resolver.resolve(contract_type, variables)
            clause_ids[model] = resolution.clause_ids

        shared = set.intersection(*(set(ids) for ids in clause_ids.values())) if clause_ids else set()
        unique = {model: [cid for cid in ids if cid not in shared] for model, ids in clause_ids.items()}
        first = next(iter(clause_ids.values()), [])
        return ServiceModelComparison(
            contract_type=contract_type,
            clause_ids=clause_ids,
            unique=unique,
            shared=[cid for cid in first if cid in shared],
        )

    def _check_format(self, output_format: str | None) -> str:
        output_format = (output_format or self.default_format).lower()
        if output_format not in MEDIA_TYPES:
            raise UnsupportedFormatError(output_format)
        return output_format

    @staticmethod
    def _variable_usage(resolution: Resolution) -> list[tuple[str, list[int]]]:
        """Each placeholder in the resolved clauses, in document order, with the clauses using it."""
        usage: dict[str, list[int]] = {}
        for clause in resolution.clauses:
            names = extract_variables(clause.name or "") + list(clause.variables_used or [])
            for name in dict.fromkeys(names):
                usage.setdefault(name, []).append(clause.id)
        return list(usage.items())

    async def _prepare(self, contract_type: str, variables: dict[str, Any]) -> _PreparedDocument:
        resolution = await self.resolver.resolve(contract_type, variables)
        substituted, _ = substitute_clauses(resolution.clauses, variables)
        return _PreparedDocument(
            contract_type=contract_type,
            variables=variables,
            document=assemble(substituted),
            metadata=ContractMetadata.from_variables(contract_type, variables),
        )

    async def _render(self, prepared: _PreparedDocument, output_format: str) -> GeneratedContract:
        document = prepared.document
        if output_format == "txt":
            content = render_text(document, prepared.metadata).encode("utf-8")
        else:
            html = render_html(
                document,
                prepared.metadata,
                geometry=self.geometry,
                signature=self._signature_block(prepared.variables),
            )
            if output_format == "html":
                content = html.encode("utf-8")
            else:
                content = await self._render_fixed_page(html, prepared.contract_type)

        filename = build_filename(
            prepared.variables.get("PROJECT_NAME"), prepared.contract_type, output_format
        )
        logger.info(
            f"Generated {prepared.contract_type} {output_format}: {filename} "
            f"({document.clause_count} clauses, {document.count(NodeKind.MAJOR_HEADING)} sections, "
            f"{len(document.unresolved)} unresolved placeholders)"
        )
        return GeneratedContract(
            contract_type=prepared.contract_type,
            output_format=output_format,
            filename=filename,
            media_type=MEDIA_TYPES[output_format],
            content=content,
            clause_count=document.clause_count,
            unresolved_variables=list(dict.fromkeys(document.unresolved)),
        )

    async def _render_fixed_page(self, html: str, contract_type: str) -> bytes:
        # A timeout is a hard failure for this document; never retried here.
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.renderer.render, html, self.geometry),
                timeout=self.render_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Rendering {contract_type} timed out after {self.render_timeout}s")
            raise RenderTimeoutError(contract_type, self.render_timeout)
        except Exception as e:
            logger.exception(f"Rendering delegate failed for {contract_type}")
            raise RenderingError(contract_type, str(e)) from e

    def _signature_block(self, variables: Mapping[str, Any]) -> Markup | None:
        client_name = format_value(variables.get("CLIENT_LEGAL_NAME") or variables.get("CLIENT_NAME"))
        if not client_name:
            return None
        return build_signature_block(
            company_name=self.company_name or format_value(variables.get("COMPANY_NAME")) or "",
            client_name=client_name,
            client_signer_name=format_value(variables.get("CLIENT_SIGNER_NAME")),
            client_title=format_value(variables.get("CLIENT_SIGNER_TITLE")),
        )
