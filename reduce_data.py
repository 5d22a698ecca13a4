import logging
import sys

from dotenv import load_dotenv

# Environment first: the settings below are read at import time
load_dotenv()

from app.core.config import settings  # noqa: E402
from app.services.retention_service import RetentionService  # noqa: E402


def reduce_data() -> None:
    """Trims the collection to the RETENTION_KEEP (default 5000) most recent transactions."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        RetentionService().prune()
        logging.getLogger(__name__).info("Done")
    except Exception as e:
        logging.getLogger(__name__).error(f"Retention pruning failed: {e}")
        sys.exit(1)

if __name__ == "__main__":
    reduce_data()
