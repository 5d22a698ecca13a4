import logging

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, delete, select

from app.core.config import settings
from app.data_access.database import engine as default_engine
from app.data_access.models import Transaction, TransactionTag


logger = logging.getLogger(__name__)


class RetentionService:
    """Prunes the collection down to its most recent records."""

    def __init__(self, engine: Engine | None = None, keep: int | None = None) -> None:
        self.engine = engine or default_engine
        self.keep = settings.RETENTION_KEEP if keep is None else keep

    def prune(self) -> int:
        """Keeps the `keep` most recent transactions by date and deletes the rest.

        Returns:
            int: How many transactions were deleted (0 when already at or
            under the threshold).
        """
        with Session(self.engine) as session:
            count = session.exec(select(func.count()).select_from(Transaction)).one()
            logger.info(f"Current count: {count}")

            if count <= self.keep:
                logger.info(f"Count is already <= {self.keep}")
                return 0

            logger.info(f"Reducing to {self.keep} records...")
            keep_ids = (
                select(Transaction.id)
                .order_by(col(Transaction.date).desc(), col(Transaction.id).desc())
                .limit(self.keep)
            )
            # Bulk deletes skip ORM cascades, so tag rows go first
            session.execute(delete(TransactionTag).where(col(TransactionTag.transaction_id).not_in(keep_ids)))
            result = session.execute(delete(Transaction).where(col(Transaction.id).not_in(keep_ids)))
            session.commit()

        deleted = result.rowcount
        logger.info(f"Deleted {deleted} records.")
        return deleted
