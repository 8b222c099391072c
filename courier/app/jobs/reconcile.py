"""
Scheduled reconcile job.

Run one tick and exit; the periodic trigger (cron, platform scheduler)
lives outside this service:

    python -m courier.app.jobs.reconcile
"""

import asyncio
import logging
import sys

from courier.app.core.config import settings
from courier.app.core.context import build_context
from courier.app.core.exceptions import StorageUnavailableError
from courier.app.core.observability import configure_logging

logger = logging.getLogger("courier.jobs")


async def run_once() -> int:
    context = build_context(settings)
    try:
        result = await context.reconciler.reconcile_tick()
    except StorageUnavailableError as e:
        logger.error("Fatal error: %s", e.message)
        return 1
    finally:
        await context.aclose()

    logger.info(
        "Tick finished",
        extra={"updated": result.updated_count, "candidates": result.total_candidates},
    )
    return 0


def main() -> None:
    configure_logging(settings.debug)
    sys.exit(asyncio.run(run_once()))


if __name__ == "__main__":
    main()
