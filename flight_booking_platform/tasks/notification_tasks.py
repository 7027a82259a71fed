"""
Celery tasks for booking notifications.
"""

import logging
from uuid import UUID

from .celery_app import celery_app, run_async
from ..database import get_standalone_session
from ..services.notification_service import NotificationService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="send_booking_confirmation_task")
def send_booking_confirmation_task(self, booking_id: str):
    """
    Task to send the booking confirmation email.

    Args:
        booking_id: ID of the confirmed booking
    """

    async def _send_confirmation():
        logger.info(f"Sending booking confirmation for {booking_id}")

        async with get_standalone_session() as session:
            notification_service = NotificationService(session)
            success = await notification_service.send_booking_confirmation(UUID(booking_id))

        if success:
            return {"booking_id": booking_id, "status": "sent"}

        logger.error(f"Failed to send booking confirmation for {booking_id}")
        return {"booking_id": booking_id, "status": "failed"}

    return run_async(_send_confirmation())
