import logging
import sys

from dotenv import load_dotenv

# Environment first: the settings below are read at import time
load_dotenv()

from app.core.config import settings  # noqa: E402
from app.services.seed_service import SeedService  # noqa: E402


def seed_database() -> None:
    """Replaces the whole transactions collection with the rows of the CSV export.

    Reads SEED_CSV_PATH (default 'data.csv') and inserts it in batches of
    SEED_BATCH_SIZE rows. Existing data is deleted first without confirmation.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        SeedService().run_seed_process()
    except Exception as e:
        logging.getLogger(__name__).error(f"❌ Error during seeding: {e}")
        sys.exit(1)

if __name__ == "__main__":
    seed_database()
