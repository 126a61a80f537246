from typing import Any, Literal

from pydantic import BaseModel, Field

OutputFormat = Literal["pdf", "html", "txt"]


class GenerateRequest(BaseModel):
    """One contract for one project."""
    contract_type: str = Field(..., min_length=1, max_length=50)
    project_data: dict[str, Any] = Field(default_factory=dict)
    output_format: OutputFormat | None = None


class GeneratePackageRequest(BaseModel):
    """Several contracts for one project; defaults to the configured package types."""
    project_data: dict[str, Any] = Field(default_factory=dict)
    contract_types: list[str] | None = None
    output_format: OutputFormat | None = None


class ContractDataRequest(BaseModel):
    contract_type: str = Field(..., min_length=1, max_length=50)
    project_data: dict[str, Any] = Field(default_factory=dict)


class CompareServiceModelsRequest(ContractDataRequest):
    models: list[str] = Field(default_factory=lambda: ["CRC", "CMOS"], min_length=2)


class GeneratedDocument(BaseModel):
    contract_type: str
    filename: str
    media_type: str
    output_format: OutputFormat
    clause_count: int
    unresolved_variables: list[str]
    content_base64: str


class PackageDocument(BaseModel):
    contract_type: str
    status: Literal["succeeded", "failed"]
    document: GeneratedDocument | None = None
    error: dict[str, Any] | None = None


class PackageResponse(BaseModel):
    succeeded: int
    failed: int
    documents: list[PackageDocument]


class PreviewClauseResponse(BaseModel):
    clause_id: int
    clause_code: str | None
    name: str
    hierarchy_level: int
    sort_order: int
    source: Literal["base", "conditional"]
    variables_used: list[str]
    conditions: dict[str, Any] | None
    conditions_met: bool

    model_config = {"from_attributes": True}


class PreviewResponse(BaseModel):
    """Resolved clause set for human review; nothing is substituted or rendered."""
    contract_type: str
    template_id: int
    template_version: str
    clauses: list[PreviewClauseResponse]
    summary: dict[str, int]
    missing_variables: list[str]

    model_config = {"from_attributes": True}


class RequiredVariableResponse(BaseModel):
    name: str
    provided: bool
    clause_ids: list[int]

    model_config = {"from_attributes": True}


class RequiredVariablesResponse(BaseModel):
    contract_type: str
    variables: list[RequiredVariableResponse]


class ServiceModelComparisonResponse(BaseModel):
    contract_type: str
    clause_ids: dict[str, list[int]]
    unique: dict[str, list[int]]
    shared: list[int]

    model_config = {"from_attributes": True}
