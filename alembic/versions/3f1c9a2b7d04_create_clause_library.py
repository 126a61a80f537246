"""create_clause_library

Revision ID: 3f1c9a2b7d04
Revises:
Create Date: 2026-10-19 09:12:31.508217

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'clauses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('slug', sa.String(length=200), nullable=False),
        sa.Column('clause_code', sa.String(length=50), nullable=True),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('contract_type', sa.String(length=50), nullable=False),
        sa.Column('hierarchy_level', sa.Integer(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('parent_clause_id', sa.Integer(), nullable=True),
        sa.Column('body_html', sa.Text(), nullable=False),
        sa.Column('variables_used', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('conditions', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('risk_level', sa.String(length=20), nullable=True),
        sa.Column('negotiable', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['parent_clause_id'], ['clauses.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_index('ix_clauses_contract_type_sort_order', 'clauses', ['contract_type', 'sort_order'], unique=False)

    op.create_table(
        'contract_templates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('contract_type', sa.String(length=50), nullable=False),
        sa.Column('version', sa.String(length=20), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=True),
        sa.Column('base_clause_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('conditional_rules', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_contract_templates_contract_type'), 'contract_templates', ['contract_type'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_contract_templates_contract_type'), table_name='contract_templates')
    op.drop_table('contract_templates')
    op.drop_index('ix_clauses_contract_type_sort_order', table_name='clauses')
    op.drop_table('clauses')
