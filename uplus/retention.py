"""
Purge expired session rows and stale password reset tokens, then exit.

Meant for a scheduler. Exit status 1 means the sweep failed and nothing was committed:

  */30 * * * * cd /srv/uplus-api && .venv/bin/python -m uplus.retention
"""

import logging
import sys

from uplus.core.config import get_settings
from uplus.core.database import Database
from uplus.services.retention import run_retention

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Open the store from settings, run one sweep and report what was purged."""
    settings = get_settings()
    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    database.open()
    db = database.session()
    try:
        result = run_retention(db, settings)
    except Exception:
        db.rollback()
        logger.exception("Retention sweep failed; nothing was committed")
        return 1
    finally:
        db.close()
        database.close()
    logger.info(
        "Retention sweep done: sessions_deleted=%s reset_tokens_deleted=%s",
        result.sessions_deleted,
        result.reset_tokens_deleted,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
