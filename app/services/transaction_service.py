import logging
from datetime import UTC, datetime

from fastapi import HTTPException, status
from sqlalchemy import func, text
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import Session, col, or_, select

# Layer 4: Data Access
from app.data_access.models import Transaction, TransactionTag

# Layer 3: Domain Entities
from app.domain.query import QuerySpec, TransactionFilter
from app.domain.transaction import (
    FilterOptions,
    PageMeta,
    TransactionCreate,
    TransactionDomain,
    TransactionPage,
    TransactionStats,
    TransactionUpdate,
)

# Layer 2: Services
from app.services.query_translator import total_pages


logger = logging.getLogger(__name__)

# Columns the filter dropdowns may ask distinct values for
DISTINCT_FIELDS = frozenset({"gender", "region", "category", "payment_method"})


class TransactionService:
    """Service layer for the transactions collection.

    Owns the record shape and the translation of a `QuerySpec` into SQL. All
    query execution and indexing is left to the database.
    """

    def __init__(self, session: Session) -> None:
        """Initializes the service with a database session.

        Args:
            session (Session): The active SQLModel/SQLAlchemy session.
        """
        self.session = session

    def _map_to_domain(self, db_tx: Transaction) -> TransactionDomain:
        return TransactionDomain.model_validate(db_tx)

    def _get_or_404(self, id: int) -> Transaction:
        db_tx = self.session.get(Transaction, id)
        if not db_tx:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Transaction not found",
            )
        return db_tx

    # --- 1. create_transaction ---
    def create_transaction(self, tx_in: TransactionCreate) -> TransactionDomain:
        """Persists a new transaction with its tag set.

        Args:
            tx_in (TransactionCreate): Validated input from the API.

        Returns:
            TransactionDomain: The stored record with id and timestamps.
        """
        tx_data = tx_in.model_dump(exclude={"tags"})
        new_tx = Transaction(**tx_data)
        new_tx.tag_links = [TransactionTag(tag=tag) for tag in tx_in.tags]

        now = datetime.now(UTC)
        new_tx.created_at = now
        new_tx.updated_at = now

        try:
            self.session.add(new_tx)
            self.session.commit()
            self.session.refresh(new_tx)
            logger.info(f"Transaction {new_tx.id} created for customer {new_tx.customer_id}.")
            return self._map_to_domain(new_tx)
        except Exception as e:
            self.session.rollback()
            logger.error(f"Failed to create transaction: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal database error during transaction creation.",
            )

    # --- 2. update_transaction ---
    def update_transaction(self, id: int, changes: TransactionUpdate) -> TransactionDomain:
        """Applies a partial update. Only fields present in the body are touched.

        Raises:
            HTTPException: 404 status if the transaction does not exist.
        """
        db_tx = self._get_or_404(id)

        update_data = changes.changes()
        new_tags = update_data.pop("tags", None)
        db_tx.sqlmodel_update(update_data)
        if new_tags is not None:
            db_tx.tag_links = [TransactionTag(tag=tag) for tag in new_tags]
        db_tx.updated_at = datetime.now(UTC)

        try:
            self.session.add(db_tx)
            self.session.commit()
            self.session.refresh(db_tx)
            logger.info(f"Transaction {id} updated ({', '.join(sorted(changes.model_fields_set)) or 'no fields'}).")
            return self._map_to_domain(db_tx)
        except Exception as e:
            self.session.rollback()
            logger.error(f"Failed to update transaction {id}: {e!s}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal database error during transaction update.",
            )

    # --- 3. delete_transaction ---
    def delete_transaction(self, id: int) -> TransactionDomain:
        """Hard-deletes a transaction and returns what was removed.

        Raises:
            HTTPException: 404 status if the transaction does not exist.
        """
        db_tx = self._get_or_404(id)
        deleted = self._map_to_domain(db_tx)

        try:
            self.session.delete(db_tx)
            self.session.commit()
            logger.info(f"Transaction {id} deleted.")
            return deleted
        except Exception as e:
            self.session.rollback()
            logger.error(f"Failed to delete transaction {id}: {e!s}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal database error during transaction deletion.",
            )

    # --- 4. Query execution ---
    def _where_clauses(self, spec: TransactionFilter) -> list[ColumnElement[bool]]:
        """Turns the store-neutral filter into SQL conditions (ANDed by the caller)."""
        clauses: list[ColumnElement[bool]] = []

        if spec.search:
            needle = spec.search.lower()
            clauses.append(or_(
                func.lower(Transaction.customer_name).contains(needle, autoescape=True),
                func.lower(Transaction.phone_number).contains(needle, autoescape=True),
                func.lower(Transaction.product_name).contains(needle, autoescape=True),
            ))

        for field, values in spec.one_of.items():
            if field == "tags":
                # Tag sets intersect when any tag row matches
                clauses.append(col(Transaction.tag_links).any(col(TransactionTag.tag).in_(values)))
            else:
                clauses.append(col(getattr(Transaction, field)).in_(values))

        for column, bounds in (
            (Transaction.total_amount, spec.total_amount),
            (Transaction.date, spec.date),
        ):
            if bounds is None:
                continue
            if bounds.gte is not None:
                clauses.append(col(column) >= bounds.gte)
            if bounds.lte is not None:
                clauses.append(col(column) <= bounds.lte)

        return clauses

    def find(self, spec: QuerySpec) -> list[TransactionDomain]:
        """Returns one materialized page of matching transactions."""
        sort_column = col(getattr(Transaction, spec.sort.field))
        id_column = col(Transaction.id)
        order = (
            (sort_column.desc(), id_column.desc())
            if spec.sort.descending
            else (sort_column.asc(), id_column.asc())
        )
        statement = (
            select(Transaction)
            .where(*self._where_clauses(spec.filter))
            .order_by(*order)
            .offset(spec.skip)
            .limit(spec.limit)
        )
        results = self.session.exec(statement).all()
        return [self._map_to_domain(r) for r in results]

    def count(self, spec: TransactionFilter) -> int:
        statement = select(func.count()).select_from(Transaction).where(*self._where_clauses(spec))
        return int(self.session.exec(statement).one())

    def estimated_count(self) -> int:
        """Fast row estimate for unfiltered listings; may lag behind recent writes.

        PostgreSQL keeps one in pg_class. Other backends, or a table that has
        never been analyzed, fall back to an exact count.
        """
        bind = self.session.get_bind()
        if bind.dialect.name == "postgresql":
            estimate = self.session.execute(
                text("SELECT reltuples::bigint FROM pg_class WHERE relname = :name"),
                {"name": Transaction.__tablename__},
            ).scalar()
            if estimate is not None and estimate >= 0:
                return int(estimate)
        return self.count(TransactionFilter())

    def list_transactions(self, spec: QuerySpec) -> TransactionPage:
        """Runs a list query and attaches pagination metadata."""
        try:
            data = self.find(spec)
            if spec.filter.is_empty():
                total = self.estimated_count()
            else:
                total = self.count(spec.filter)
        except Exception as e:
            logger.error(f"Error listing transactions: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="A database error occurred while reading transactions.",
            )

        return TransactionPage(
            data=data,
            meta=PageMeta(
                total=total,
                page=spec.page,
                per_page=spec.per_page,
                total_pages=total_pages(total, spec.per_page),
            ),
        )

    # --- 5. Filter options & aggregates ---
    def get_unique_values(self, field: str) -> list[str]:
        """Distinct non-empty values of a filterable column, for UI dropdowns."""
        if field not in DISTINCT_FIELDS:
            raise ValueError(f"'{field}' is not a filterable field")
        column = col(getattr(Transaction, field))
        statement = (
            select(column)
            .where(column.is_not(None), column != "")
            .distinct()
            .order_by(column)
        )
        return list(self.session.exec(statement).all())

    def get_stats(self) -> TransactionStats:
        """Totals across every transaction.

        total_discount is reported as 0 until its formula is agreed.
        """
        # TODO: decide whether totalDiscount should sum (price_per_unit * quantity * discount_percent / 100)
        statement = select(
            func.coalesce(func.sum(Transaction.quantity), 0),
            func.coalesce(func.sum(Transaction.total_amount), 0.0),
        )
        total_units, total_amount = self.session.exec(statement).one()
        return TransactionStats(
            total_units=int(total_units),
            total_amount=float(total_amount),
            total_discount=0,
        )

    def get_filter_options(self) -> FilterOptions:
        return FilterOptions(
            regions=self.get_unique_values("region"),
            categories=self.get_unique_values("category"),
        )
