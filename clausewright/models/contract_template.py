from __future__ import annotations

from datetime import date

from sqlalchemy import Date, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from clausewright.models.base import Base, IntegerPrimaryKey, TimestampMixin


class ContractTemplate(Base, IntegerPrimaryKey, TimestampMixin):
    __tablename__ = "contract_templates"

    contract_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    base_clause_ids: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    # {field_name: {field_value: [clause_id, ...]}}
    conditional_rules: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
