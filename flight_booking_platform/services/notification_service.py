"""
Notification service for booking confirmation emails.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, parseaddr
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import get_settings
from ..models.base import ensure_utc
from ..models.booking import Booking

logger = logging.getLogger(__name__)


def queue_booking_confirmation(booking_id: UUID) -> None:
    """Hand a booking confirmation to the Celery worker."""
    from ..tasks.notification_tasks import send_booking_confirmation_task
    send_booking_confirmation_task.delay(str(booking_id))


class NotificationService:
    """Service for handling email notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def send_booking_confirmation(self, booking_id: UUID) -> bool:
        """
        Send the booking confirmation email to the booking's contact address.

        Args:
            booking_id: ID of the booking

        Returns:
            bool: True if email was sent successfully
        """
        booking = await self._get_booking_with_details(booking_id)
        if not booking:
            logger.error(f"Booking {booking_id} not found")
            return False

        flight = booking.flight
        template_data = {
            "flight_number": flight.flight_number,
            "airline": flight.airline,
            "from_location": flight.from_location,
            "from_airport": flight.from_airport,
            "to_location": flight.to_location,
            "to_airport": flight.to_airport,
            "departure": ensure_utc(flight.departure_time).strftime("%B %d, %Y at %I:%M %p UTC"),
            "passenger_count": booking.passenger_count,
            "total_price": f"${booking.total_price:.2f}",
            "booking_reference": booking.booking_reference,
        }

        success = self._send_email(
            to_email=booking.contact_email,
            subject="Your Flight Booking Confirmation",
            html_content=self._render_booking_confirmation_template(template_data),
            text_content=self._render_booking_confirmation_text(template_data)
        )

        if success:
            logger.info(f"Booking confirmation sent for booking {booking_id}")
        return success

    def _send_email(self, to_email: str, subject: str, html_content: str, text_content: str) -> bool:
        """
        Send email using SMTP.

        Returns:
            bool: True if email was sent successfully
        """
        if not self.settings.smtp_server:
            logger.warning("Email configuration not available, skipping email send")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr(parseaddr(self.settings.email_from))
        msg["To"] = to_email
        msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            with smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port) as server:
                if self.settings.smtp_use_tls:
                    server.starttls()
                if self.settings.smtp_username:
                    server.login(self.settings.smtp_username, self.settings.smtp_password or "")
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}")
            return False

        logger.info(f"Email sent successfully to {to_email}")
        return True

    async def _get_booking_with_details(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking with its flight."""
        stmt = (
            select(Booking)
            .options(selectinload(Booking.flight))
            .where(Booking.id == booking_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _render_booking_confirmation_template(self, data: Dict) -> str:
        """Render HTML template for booking confirmation."""
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <title>Booking Confirmation</title>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background-color: #1E63B5; color: white; padding: 20px; text-align: center; }}
                .content {{ padding: 20px; background-color: #f9f9f9; }}
                .booking-details {{ background-color: white; padding: 15px; margin: 15px 0; border-radius: 5px; }}
                .footer {{ text-align: center; padding: 20px; color: #666; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1>Booking Confirmed!</h1>
                </div>
                <div class="content">
                    <p>Thank you for booking with us.</p>

                    <div class="booking-details">
                        <h3>Flight Details</h3>
                        <p><strong>Flight:</strong> {data['flight_number']} ({data['airline']})</p>
                        <p><strong>From:</strong> {data['from_location']} ({data['from_airport']})</p>
                        <p><strong>To:</strong> {data['to_location']} ({data['to_airport']})</p>
                        <p><strong>Departure:</strong> {data['departure']}</p>
                        <p><strong>Passengers:</strong> {data['passenger_count']}</p>
                        <p><strong>Total Price:</strong> {data['total_price']}</p>
                        <p><strong>Booking Reference:</strong> <b>{data['booking_reference']}</b></p>
                    </div>

                    <p>We wish you a pleasant journey!</p>
                </div>
                <div class="footer">
                    <p>If you have any questions, please contact our support team.</p>
                </div>
            </div>
        </body>
        </html>
        """

    def _render_booking_confirmation_text(self, data: Dict) -> str:
        """Render plain text template for booking confirmation."""
        return f"""
        BOOKING CONFIRMED!

        Thank you for booking with us.

        FLIGHT DETAILS
        Flight: {data['flight_number']} ({data['airline']})
        From: {data['from_location']} ({data['from_airport']})
        To: {data['to_location']} ({data['to_airport']})
        Departure: {data['departure']}
        Passengers: {data['passenger_count']}
        Total Price: {data['total_price']}
        Booking Reference: {data['booking_reference']}

        We wish you a pleasant journey!
        """
