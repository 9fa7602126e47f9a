from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExpenseIn(BaseModel):
    """
    An expense as the storage layer hands it over. Fields stay loosely typed so
    that malformed amounts, categories and dates reach the analyzer, which
    degrades them instead of the request failing.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    amount: Any = None
    category: Optional[Any] = None
    description: Optional[Any] = ""
    date: Any = None


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    transactions: List[ExpenseIn] = Field(default_factory=list)
    monthly_budget: Optional[float] = None
    months: Optional[int] = Field(default=None, ge=0)

    def expenses(self) -> List[dict]:
        return [expense.model_dump() for expense in self.transactions]
