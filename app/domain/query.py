from datetime import datetime

from pydantic import BaseModel, Field


class RangeFilter(BaseModel):
    """Closed or half-open bound. A missing side means that side is unbounded."""
    gte: float | datetime | None = None
    lte: float | datetime | None = None


class TransactionFilter(BaseModel):
    """Store-neutral filter specification.

    Every populated clause is ANDed together. `search` is the only disjunction:
    it matches customer name OR phone number OR product name.

    Attributes:
        search (str | None): Case-insensitive substring.
        one_of (dict[str, list[str]]): Column name -> accepted values. For the
            `tags` entry the record's tag set must intersect the list.
        total_amount (RangeFilter | None): Bounds on the gross amount.
        date (RangeFilter | None): Bounds on the sale date.
    """
    search: str | None = None
    one_of: dict[str, list[str]] = Field(default_factory=dict)
    total_amount: RangeFilter | None = None
    date: RangeFilter | None = None

    def is_empty(self) -> bool:
        return (
            not self.search
            and not self.one_of
            and self.total_amount is None
            and self.date is None
        )


class SortSpec(BaseModel):
    field: str = "date"
    descending: bool = True


class QuerySpec(BaseModel):
    """Everything the store needs to run one page of a list query."""
    filter: TransactionFilter = Field(default_factory=TransactionFilter)
    sort: SortSpec = Field(default_factory=SortSpec)
    page: int = 1
    per_page: int = 10

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page
