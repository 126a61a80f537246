from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class IngestRequest(BaseModel):
    """A DOCX or HTML source document already present on the server."""
    source_path: str = Field(..., min_length=1)
    contract_type: str = Field(..., min_length=1, max_length=50)


class IngestQueuedResponse(BaseModel):
    task_id: str
    contract_type: str
    source_path: str
    message: str = "Ingestion queued. The clause library will be rebuilt shortly."


class ClauseResponse(BaseModel):
    id: int
    slug: str
    clause_code: str | None
    name: str
    contract_type: str
    hierarchy_level: int
    sort_order: int
    parent_clause_id: int | None
    body_html: str
    variables_used: list[str]
    conditions: dict[str, Any] | None = None
    category: str | None = None
    risk_level: str | None = None
    negotiable: bool = False
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ClauseSummaryResponse(BaseModel):
    id: int
    clause_code: str | None
    name: str
    contract_type: str
    hierarchy_level: int
    sort_order: int

    model_config = {"from_attributes": True}
