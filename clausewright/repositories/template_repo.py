from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clausewright.models.contract_template import ContractTemplate


class TemplateRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active(self, contract_type: str) -> ContractTemplate | None:
        """Return the active template for a contract type, newest effective date first."""
        result = await self.session.execute(
            select(ContractTemplate)
            .where(ContractTemplate.contract_type == contract_type)
            .where(ContractTemplate.status == "active")
            .order_by(ContractTemplate.effective_date.desc().nulls_last(), ContractTemplate.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def upsert_base_clauses(self, contract_type: str, clause_ids: list[int]) -> ContractTemplate:
        """Point the contract type's template at a rebuilt clause library.

        Conditional rules are kept as they are; an administrator re-points them
        after a re-ingest if clause ids changed.
        """
        template = await self.get_active(contract_type)
        if template is None:
            template = ContractTemplate(
                contract_type=contract_type,
                display_name=f"Master {contract_type} Agreement",
                status="active",
                base_clause_ids=clause_ids,
                conditional_rules={},
            )
            self.session.add(template)
        else:
            template.base_clause_ids = clause_ids
        await self.session.flush()
        return template
