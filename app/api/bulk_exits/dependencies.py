from datetime import timedelta
from functools import lru_cache

from app.api.bulk_exits.processor import BulkExitStagingStore
from app.core.config import settings


@lru_cache()
def get_bulk_exit_store() -> BulkExitStagingStore:
    return BulkExitStagingStore(
        expiry=timedelta(minutes=settings.BULK_EXIT_STAGING_TTL_MINUTES)
    )
