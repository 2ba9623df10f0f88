# procredit/services/processed_event_cleanup.py
import logging
from datetime import datetime, timedelta, timezone

from procredit.core.config import settings
from procredit.crud import processed_event as crud_processed_event
from procredit.dependencies import get_db_context

logger = logging.getLogger(__name__)

def cleanup_processed_events_task():
    """Фоновая задача: удаляет записи об обработанных вебхуках старше срока хранения."""
    logger.info("--- Starting scheduled job: Cleanup of Processed Webhook Events ---")
    cutoff = datetime.now(timezone.utc) - timedelta(days=settings.PROCESSED_EVENT_RETENTION_DAYS)
    with get_db_context() as db:
        try:
            deleted_count = crud_processed_event.delete_processed_before(db, cutoff)
            if deleted_count > 0:
                logger.info(f"Successfully deleted {deleted_count} processed events older than {cutoff:%Y-%m-%d}.")
            else:
                logger.info("No old processed events to delete.")
        except Exception:
            logger.error("An error occurred during processed events cleanup task", exc_info=True)
            db.rollback()
    logger.info("--- Finished scheduled job: Cleanup of Processed Webhook Events ---")
