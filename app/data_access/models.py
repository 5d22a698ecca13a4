from datetime import UTC, datetime
from typing import List, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel


def utc_now() -> datetime:
    return datetime.now(UTC)


class Transaction(SQLModel, table=True):
    """A single retail sale line. Indexed columns back the search and filter API."""
    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)

    # --- Customer ---
    customer_id: str
    customer_name: str = Field(index=True)   # searchable
    phone_number: str = Field(index=True)    # searchable
    gender: Optional[str] = Field(default=None, index=True)
    age: Optional[int] = None
    region: Optional[str] = Field(default=None, index=True)
    customer_type: Optional[str] = None

    # --- Product ---
    product_id: str
    product_name: str = Field(index=True)    # searchable
    brand: Optional[str] = None
    category: Optional[str] = Field(default=None, index=True)

    # --- Sales ---
    quantity: int
    price_per_unit: float = 0.0
    discount_percent: float = 0.0
    total_amount: float = Field(default=0.0, index=True)  # range filter
    currency: str = "INR"
    final_amount: float = 0.0

    # --- Operational ---
    date: datetime = Field(sa_type=DateTime(timezone=True), index=True)  # default sort key
    payment_method: Optional[str] = Field(default=None, index=True)
    order_status: Optional[str] = None
    delivery_type: Optional[str] = None
    store_id: Optional[str] = None
    store_location: Optional[str] = None
    salesperson_id: Optional[str] = None
    employee_name: Optional[str] = None
    image_url: Optional[str] = None

    # --- System ---
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    tag_links: List["TransactionTag"] = Relationship(
        back_populates="transaction",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "selectin"},
    )

    @property
    def tags(self) -> list[str]:
        return [link.tag for link in self.tag_links]


class TransactionTag(SQLModel, table=True):
    """One member of a transaction's tag set."""
    __tablename__ = "transaction_tags"

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_id: int = Field(foreign_key="transactions.id", index=True, ondelete="CASCADE")
    tag: str = Field(index=True)

    transaction: Optional[Transaction] = Relationship(back_populates="tag_links")
