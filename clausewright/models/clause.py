from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from clausewright.models.base import Base, IntegerPrimaryKey, TimestampMixin


class Clause(Base, IntegerPrimaryKey, TimestampMixin):
    __tablename__ = "clauses"
    __table_args__ = (
        Index("ix_clauses_contract_type_sort_order", "contract_type", "sort_order"),
    )

    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    clause_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    contract_type: Mapped[str] = mapped_column(String(50), nullable=False)
    hierarchy_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    # Weak back-reference: deleting a parent orphans its children instead of cascading.
    parent_clause_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("clauses.id", ondelete="SET NULL"), nullable=True
    )
    body_html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    variables_used: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    conditions: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    risk_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    negotiable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
