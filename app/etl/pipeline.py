from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import polars as pl
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.data_access.models import Transaction, TransactionTag


# Target field -> CSV header. Each header is also tried with underscores
# instead of spaces ("Customer ID" / "Customer_ID").
COLUMN_ALIASES: dict[str, str] = {
    "customer_id": "Customer ID",
    "customer_name": "Customer Name",
    "phone_number": "Phone Number",
    "gender": "Gender",
    "age": "Age",
    "region": "Customer Region",
    "customer_type": "Customer Type",
    "product_id": "Product ID",
    "product_name": "Product Name",
    "brand": "Brand",
    "category": "Product Category",
    "tags": "Tags",
    "quantity": "Quantity",
    "price_per_unit": "Price per Unit",
    "discount_percent": "Discount Percentage",
    "total_amount": "Total Amount",
    "final_amount": "Final Amount",
    "date": "Date",
    "payment_method": "Payment Method",
    "order_status": "Order Status",
    "delivery_type": "Delivery Type",
    "store_id": "Store ID",
    "store_location": "Store Location",
    "salesperson_id": "Salesperson ID",
    "employee_name": "Employee Name",
}

INTEGER_FIELDS = ("age", "quantity")
FLOAT_FIELDS = ("price_per_unit", "discount_percent", "total_amount", "final_amount")
# The store rejects nulls here, so blanks are loaded as empty strings
REQUIRED_TEXT_FIELDS = ("customer_id", "customer_name", "phone_number", "product_id", "product_name")

DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S%.fZ")
DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%m/%d/%Y", "%d/%m/%Y")


def parse_datetime(expr: pl.Expr) -> pl.Expr:
    """First format that parses wins, read as UTC; anything else becomes null."""
    candidates = [expr.str.to_datetime(fmt, time_unit="us", strict=False) for fmt in DATETIME_FORMATS]
    candidates += [expr.str.to_date(fmt, strict=False).cast(pl.Datetime("us")) for fmt in DATE_FORMATS]
    return pl.coalesce(candidates).dt.replace_time_zone("UTC")


class DataExtractor:
    """Reads the raw sales export in the Bronze layer."""

    @staticmethod
    def iter_csv_batches(file_path: Path, batch_size: int) -> Iterator[pl.DataFrame]:
        """Streams a CSV as text columns, yielding batches of exactly `batch_size` rows.

        Only the last batch may be shorter. At most one batch plus one reader
        chunk is held in memory.
        """
        reader = pl.read_csv_batched(file_path, infer_schema_length=0, batch_size=batch_size)
        pending: pl.DataFrame | None = None
        while chunks := reader.next_batches(1):
            for chunk in chunks:
                pending = chunk if pending is None else pl.concat([pending, chunk])
                while pending.height >= batch_size:
                    yield pending.head(batch_size)
                    pending = pending.slice(batch_size)
        if pending is not None and pending.height:
            yield pending


class DataTransformer:
    """Maps raw CSV columns onto the transaction schema.

    Coercion is lenient: numbers that do not parse become 0 and dates that do
    not parse become the current date. A malformed row never stops the import.
    """

    @staticmethod
    def resolve_columns(columns: list[str]) -> dict[str, str]:
        """Picks the header actually present for each field (primary name first)."""
        present = set(columns)
        resolved: dict[str, str] = {}
        for field, header in COLUMN_ALIASES.items():
            for candidate in (header, header.replace(" ", "_")):
                if candidate in present:
                    resolved[field] = candidate
                    break
        return resolved

    @classmethod
    def normalize(cls, df: pl.DataFrame, now: datetime | None = None) -> pl.DataFrame:
        """Renames, casts and fills a raw batch into transaction columns.

        Args:
            df (pl.DataFrame): Raw text columns straight from the CSV.
            now (datetime | None): Fallback for unparsable dates.

        Returns:
            pl.DataFrame: One column per transaction field; missing source
            columns come through as nulls (or 0 for numbers).
        """
        now = now or datetime.now(UTC)
        resolved = cls.resolve_columns(df.columns)

        def source(field: str) -> pl.Expr:
            if field in resolved:
                return pl.col(resolved[field]).str.strip_chars()
            return pl.lit(None, dtype=pl.String)

        expressions: list[pl.Expr] = []
        for field in COLUMN_ALIASES:
            expr = source(field)
            if field in INTEGER_FIELDS:
                expr = expr.cast(pl.Float64, strict=False).fill_nan(None).fill_null(0).cast(pl.Int64)
            elif field in FLOAT_FIELDS:
                expr = expr.cast(pl.Float64, strict=False).fill_nan(None).fill_null(0.0)
            elif field == "date":
                expr = parse_datetime(expr).fill_null(pl.lit(now, dtype=pl.Datetime("us", "UTC")))
            elif field in REQUIRED_TEXT_FIELDS:
                expr = expr.fill_null("")
            elif field == "tags":
                expr = expr.fill_null("").str.split(",").list.eval(
                    pl.element().str.strip_chars()
                ).list.eval(pl.element().filter(pl.element() != "")).list.unique(maintain_order=True)
            expressions.append(expr.alias(field))

        # with_columns broadcasts literals for headers the file does not have
        return df.with_columns(expressions).select(list(COLUMN_ALIASES))

    @staticmethod
    def to_records(df: pl.DataFrame) -> list[Transaction]:
        """Builds ORM objects (with their tag rows) from a normalized batch."""
        records: list[Transaction] = []
        for row in df.to_dicts():
            tags: list[Any] = row.pop("tags") or []
            tx = Transaction(**row)
            tx.tag_links = [TransactionTag(tag=tag) for tag in tags]
            records.append(tx)
        return records


class DataLoader:
    """Handles the 'Load' phase of the ETL process."""

    @staticmethod
    def load_batch(engine: Engine, records: list[Transaction]) -> int:
        """Persists one batch in a single transaction and returns its size."""
        if not records:
            return 0

        with Session(engine) as session:
            # Efficiently add all records in a single transaction
            session.add_all(records)
            session.commit()
        return len(records)
