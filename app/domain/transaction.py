from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def normalize_tags(value: Any) -> list[str]:
    """Turns a list (or comma separated string) into a trimmed, de-duplicated tag list."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    elif not isinstance(value, (list, tuple)):
        raise ValueError("tags must be a list of strings or a comma separated string")
    tags: list[str] = []
    for raw in value:
        tag = str(raw).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def normalize_timestamp(value: Any) -> Any:
    """Coerces timestamps to aware UTC. Naive values (and SQLite reads) are taken as UTC."""
    if isinstance(value, str) and value:
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, datetime.min.time())
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    return value


CAMEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    from_attributes=True,
)


class TransactionBase(BaseModel):
    """Business fields shared by every transaction payload.

    Attributes:
        customer_id (str): External customer identifier.
        customer_name (str): Customer full name, searchable.
        phone_number (str): Customer phone, searchable.
        product_id (str): External product identifier.
        product_name (str): Product name, searchable.
        tags (list[str]): Product tags, never null.
        quantity (int): Units sold.
        total_amount (float): Gross amount, range-filterable.
        date (datetime): Sale date, the default sort key.
    """

    # --- Customer ---
    customer_id: str
    customer_name: str
    phone_number: str
    gender: str | None = None
    age: int | None = None
    region: str | None = None
    customer_type: str | None = None

    # --- Product ---
    product_id: str
    product_name: str
    brand: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)

    # --- Sales ---
    quantity: int
    price_per_unit: float = 0.0
    discount_percent: float = 0.0
    total_amount: float = 0.0
    currency: str = "INR"
    final_amount: float = 0.0

    # --- Operational ---
    date: datetime
    payment_method: str | None = None
    order_status: str | None = None
    delivery_type: str | None = None
    store_id: str | None = None
    store_location: str | None = None
    salesperson_id: str | None = None
    employee_name: str | None = None
    image_url: str | None = None

    model_config = CAMEL_CONFIG

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v: Any) -> list[str]:
        return normalize_tags(v)

    @field_validator("date", mode="before")
    @classmethod
    def clean_date(cls, v: Any) -> Any:
        return normalize_timestamp(v)


class TransactionCreate(TransactionBase):
    """Body of POST /api/transactions. Required fields are enforced by the type hints."""

    model_config = ConfigDict(
        **CAMEL_CONFIG,
        json_schema_extra={
            "example": {
                "customerId": "CUST-1001",
                "customerName": "Neha Sharma",
                "phoneNumber": "9876543210",
                "gender": "Female",
                "age": 29,
                "region": "North",
                "productId": "PROD-0042",
                "productName": "Wireless Earbuds",
                "brand": "Boat",
                "category": "Electronics",
                "tags": ["audio", "wireless"],
                "quantity": 2,
                "pricePerUnit": 1499.0,
                "discountPercent": 10,
                "totalAmount": 2998.0,
                "finalAmount": 2698.2,
                "date": "2023-08-14",
                "paymentMethod": "UPI",
            }
        },
    )


class TransactionDomain(TransactionBase):
    """The stored representation of a transaction, as returned by the API."""
    id: int
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def clean_timestamps(cls, v: Any) -> Any:
        return normalize_timestamp(v)


# Fields that may never be cleared by an update because the store requires them
NON_NULLABLE_FIELDS = frozenset({
    "customer_id", "customer_name", "phone_number", "product_id",
    "product_name", "quantity", "date", "price_per_unit", "discount_percent",
    "total_amount", "currency", "final_amount", "tags",
})


class TransactionUpdate(BaseModel):
    """Partial update body. Only fields listed here are writable; anything else is rejected."""

    customer_id: str | None = None
    customer_name: str | None = None
    phone_number: str | None = None
    gender: str | None = None
    age: int | None = None
    region: str | None = None
    customer_type: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    brand: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    quantity: int | None = None
    price_per_unit: float | None = None
    discount_percent: float | None = None
    total_amount: float | None = None
    currency: str | None = None
    final_amount: float | None = None
    date: datetime | None = None
    payment_method: str | None = None
    order_status: str | None = None
    delivery_type: str | None = None
    store_id: str | None = None
    store_location: str | None = None
    salesperson_id: str | None = None
    employee_name: str | None = None
    image_url: str | None = None

    model_config = ConfigDict(**CAMEL_CONFIG, extra="forbid")

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v: Any) -> list[str] | None:
        return None if v is None else normalize_tags(v)

    @field_validator("date", mode="before")
    @classmethod
    def clean_date(cls, v: Any) -> Any:
        return normalize_timestamp(v)

    @model_validator(mode="after")
    def reject_cleared_required_fields(self) -> "TransactionUpdate":
        cleared = sorted(
            name for name in self.model_fields_set
            if name in NON_NULLABLE_FIELDS and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"Fields cannot be set to null: {', '.join(cleared)}")
        return self

    def changes(self) -> dict[str, Any]:
        """Only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


class PageMeta(BaseModel):
    total: int
    page: int
    per_page: int
    total_pages: int

    model_config = CAMEL_CONFIG


class TransactionPage(BaseModel):
    data: list[TransactionDomain]
    meta: PageMeta

    model_config = CAMEL_CONFIG


class TransactionStats(BaseModel):
    total_units: int = 0
    total_amount: float = 0
    total_discount: float = 0

    model_config = CAMEL_CONFIG


class FilterOptions(BaseModel):
    regions: list[str]
    categories: list[str]

    model_config = CAMEL_CONFIG
