"""
Celery tasks for booking maintenance.
"""

import logging

from .celery_app import celery_app, run_async
from ..database import get_standalone_session
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="complete_finished_bookings_task")
def complete_finished_bookings_task(self):
    """
    Periodic task marking confirmed bookings on arrived flights as completed.

    Completed bookings can no longer be modified or cancelled.
    """

    async def _complete_bookings():
        logger.info("Starting booking completion task")

        async with get_standalone_session() as session:
            completed = await BookingService(session).complete_finished_bookings()

        logger.info(f"Booking completion task finished, {completed} bookings completed")
        return {"completed_count": completed}

    return run_async(_complete_bookings())
