from celery import shared_task
import logging
from django.conf import settings
from django.core.cache import cache

from education.schedule_service import generate_lessons_for_all_groups

logger = logging.getLogger(__name__)

GENERATION_LOCK_KEY = 'lessons:generate_all:lock'
GENERATION_LOCK_TIMEOUT = 60 * 30


@shared_task(bind=True, max_retries=3)
def generate_lessons_for_all_groups_task(self, weeks_ahead=None):
    """
    Periodic generation of lessons for every active group.
    
    Args:
        weeks_ahead: Forward window in weeks (defaults to LESSONS_WEEKS_AHEAD)
    
    Returns:
        Batch summary, or a skipped marker when another run holds the lock
    """
    if weeks_ahead is None:
        weeks_ahead = getattr(settings, 'LESSONS_WEEKS_AHEAD', 8)
    
    # cache.add is atomic: only one worker gets the lock
    if not cache.add(GENERATION_LOCK_KEY, self.request.id or 'local', timeout=GENERATION_LOCK_TIMEOUT):
        logger.warning("Lesson generation is already running, skipping this run")
        return {'skipped': True}
    
    try:
        logger.info(f"Starting scheduled lesson generation ({weeks_ahead} weeks ahead)")
        summary = generate_lessons_for_all_groups(weeks_ahead=weeks_ahead)
        logger.info(
            f"Scheduled lesson generation finished: {summary['total_generated']} generated, "
            f"{summary['failed']} failed"
        )
        return summary
    except Exception as exc:
        logger.error(f"Scheduled lesson generation crashed: {str(exc)}")
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))
    finally:
        cache.delete(GENERATION_LOCK_KEY)
