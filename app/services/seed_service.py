import logging
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import Session, delete

from app.core.config import settings
from app.data_access.database import create_db_and_tables, engine as default_engine
from app.data_access.models import Transaction, TransactionTag
from app.etl.pipeline import DataExtractor, DataLoader, DataTransformer


logger = logging.getLogger(__name__)


class SeedService:
    """Bulk loader for the transactions collection.

    Wipes the collection, then streams the CSV export through the ETL
    pipeline in fixed-size batches, committing each batch as a unit. There is
    no confirmation step and no locking against live writes.
    """

    def __init__(
        self,
        engine: Engine | None = None,
        csv_path: Path | str | None = None,
        batch_size: int | None = None,
    ) -> None:
        self.engine = engine or default_engine
        self.csv_path = Path(csv_path or settings.SEED_CSV_PATH)
        self.batch_size = batch_size or settings.SEED_BATCH_SIZE

    def run_seed_process(self) -> int:
        """Main entry point. Returns the number of rows inserted.

        A failing batch aborts the run; batches committed before it stay.
        """
        create_db_and_tables(self.engine)

        logger.info("🗑️  Clearing old data...")
        self._cleanup_collection()

        logger.info(f"🚀 Streaming import from {self.csv_path}...")

        total_inserted = 0
        for raw_batch in DataExtractor.iter_csv_batches(self.csv_path, self.batch_size):
            records = DataTransformer.to_records(DataTransformer.normalize(raw_batch))
            try:
                total_inserted += DataLoader.load_batch(self.engine, records)
            except Exception as e:
                logger.error(f"❌ Batch insert failed after {total_inserted} rows: {e!s}")
                raise
            logger.info(f"⏳ Inserted {total_inserted} rows...")

        logger.info(f"✅ Finished! Total Records: {total_inserted}")
        return total_inserted

    def _cleanup_collection(self) -> None:
        """Deletes every transaction and tag row."""
        with Session(self.engine) as session:
            session.execute(delete(TransactionTag))
            session.execute(delete(Transaction))
            session.commit()
