"""Celery tasks for the uploads app."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    name="uploads.tasks.sweep_expired_uploads_task",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def sweep_expired_uploads_task(self):
    """Run one expiry sweep pass over tokens and their files.

    Scheduled by celery-beat every VRAC_SWEEP_INTERVAL_SECONDS. Each pass
    handles at most BATCH_SIZE tokens per step; whatever is left over is
    picked up by the next run.

    Returns:
        dict: {"expired": int, "deleted": int, "purged": int, "failed": int}
    """
    from uploads.services.sweeper import sweep

    result = sweep()
    if result["failed"] > 0:
        logger.warning(
            "Sweep left %d token(s) for the next pass after storage failures.",
            result["failed"],
        )
    return result
