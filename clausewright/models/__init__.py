from clausewright.models.base import Base
from clausewright.models.clause import Clause
from clausewright.models.contract_template import ContractTemplate

__all__ = ["Base", "Clause", "ContractTemplate"]
