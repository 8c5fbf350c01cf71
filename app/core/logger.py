import logging
import sys

logger = logging.getLogger('main-logger')
logger.setLevel(logging.DEBUG)

handler = logging.StreamHandler(sys.stdout)
handler.setLevel(logging.DEBUG)
handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
logger.addHandler(handler)


def log_access_attempt(action, code, site_id, actor_id):
    logger.info(
        'Access attempt: %s - Code: %s - Site: %s - Actor: %s',
        action,
        code,
        site_id,
        actor_id,
    )
