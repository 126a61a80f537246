from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from clausewright.models.clause import Clause


class ClauseRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_ids(self, clause_ids: list[int]) -> list[Clause]:
        """Fetch clauses by id, ordered by document position (sort_order, then id)."""
        if not clause_ids:
            return []
        result = await self.session.execute(
            select(Clause)
            .where(Clause.id.in_(clause_ids))
            .order_by(Clause.sort_order, Clause.id)
        )
        return list(result.scalars().all())

    async def get_by_contract_type(self, contract_type: str) -> list[Clause]:
        result = await self.session.execute(
            select(Clause)
            .where(Clause.contract_type == contract_type)
            .order_by(Clause.sort_order, Clause.id)
        )
        return list(result.scalars().all())

    async def get_containing_variable(self, variable_name: str) -> list[Clause]:
        """Clauses whose extracted variable list contains `variable_name` (JSONB @>)."""
        result = await self.session.execute(
            select(Clause)
            .where(Clause.variables_used.contains([variable_name]))
            .order_by(Clause.contract_type, Clause.sort_order)
        )
        return list(result.scalars().all())

    async def bulk_create(self, clauses: list[dict]) -> list[Clause]:
        """Insert multiple clauses in one flush, preserving input order."""
        objects = [Clause(**clause) for clause in clauses]
        self.session.add_all(objects)
        await self.session.flush()
        return objects

    async def set_parents(self, parent_by_clause_id: dict[int, int]) -> None:
        clauses = await self.get_by_ids(list(parent_by_clause_id))
        for clause in clauses:
            clause.parent_clause_id = parent_by_clause_id[clause.id]
        await self.session.flush()

    async def delete_by_contract_type(self, contract_type: str) -> int:
        result = await self.session.execute(
            delete(Clause).where(Clause.contract_type == contract_type)
        )
        await self.session.flush()
        return result.rowcount or 0
