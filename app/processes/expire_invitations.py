import time

from app.api.invitations.crud import invitation as invitation_crud
from app.core import models  # noqa: F401
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.logger import logger


def main():
    """Persist the expired status that redemption would otherwise find lazily."""
    with SessionLocal() as db:
        count = invitation_crud.expire_overdue(db)
        logger.info('Expiry sweep finished, %s invitations expired', count)


if __name__ == '__main__':
    logger.info('Starting invitation expiry sweep...')
    main()
    logger.info(
        'Invitation expiry sweep completed. Sleeping for %s seconds...',
        settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
    )
    time.sleep(settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
