# scripts/expire_overdue.py
from __future__ import annotations

import logging
import time

from app.enrollments.bulk import expire_overdue
from app.store.factory import get_store
from settings import settings


logger = logging.getLogger("hyprive.expire_daemon")


def run_once() -> int:
    result = expire_overdue(get_store())
    if not result.ok:
        logger.error("Expire sweep failed code=%s error=%s", result.error.code, result.error.message)
        return 0

    summary = result.value
    for failure in summary.failed:
        logger.warning("Expire skipped enrollment_id=%s code=%s", failure.id, failure.code)
    return summary.succeeded_count


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    interval = max(1, int(settings.EXPIRE_INTERVAL_SECONDS))
    logger.info("Expire daemon starting; interval=%ss store=%s", interval, settings.STORE_BACKEND)

    while True:
        try:
            expired = run_once()
        except KeyboardInterrupt:
            logger.info("Expire daemon exiting")
            raise

        logger.info("Expire sweep done expired=%s", expired)
        time.sleep(interval)


if __name__ == "__main__":
    main()
