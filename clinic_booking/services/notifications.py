# Booking confirmation e-mails
import logging
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from clinic_booking.config import Settings
from clinic_booking.models.schemas import BookingRequest

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class BookingEmailDetails:
    client_email: str
    client_name: str
    service_name: str
    staff_name: str
    clinic_name: str
    start_time: str
    notes: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None

    @classmethod
    def from_request(cls, request: BookingRequest) -> "BookingEmailDetails":
        return cls(
            client_email=str(request.clientEmail),
            client_name=request.clientName or "there",
            service_name=request.serviceName or "your treatment",
            staff_name=request.staffName or "our team",
            clinic_name=request.clinicName or "our clinic",
            start_time=request.startTime,
            notes=request.notes,
            duration=request.duration,
            price=request.price,
        )


class EmailNotifier:
    """Sends booking e-mails over SMTP.

    Without SMTP credentials the message is only logged.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str = "",
        password: str = "",
        sender_name: str = "Skin Societe",
        staff_email: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender_name = sender_name
        self.staff_email = staff_email

        if self.user and self.password:
            logger.info("Email service initialized")
        else:
            logger.warning("Email service not configured. Emails will not be sent.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailNotifier":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender_name=settings.smtp_sender_name,
            staff_email=settings.staff_notification_email,
        )

    def send_email(self, to: str, subject: str, body: str) -> bool:
        if not self.user or not self.password:
            logger.info(f"SMTP not configured - would send '{subject}' to {to}")
            return False

        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.sender_name, self.user))
        msg["To"] = to

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            server.starttls()
            server.login(self.user, self.password)
            server.sendmail(self.user, [to], msg.as_string())
        return True

    def send_booking_confirmation(self, details: BookingEmailDetails) -> bool:
        subject = f"Appointment confirmed - {details.clinic_name}"
        lines = [
            f"Hi {details.client_name},",
            "",
            f"Your appointment for {details.service_name} with {details.staff_name} "
            f"at {details.clinic_name} is booked for {details.start_time.replace('T', ' ')}.",
        ]
        if details.duration:
            lines.append(f"Duration: {details.duration} minutes")
        if details.price is not None:
            lines.append(f"Price: ${details.price:.2f}")
        if details.notes:
            lines.append(f"Notes: {details.notes}")
        lines += ["", "See you soon!", self.sender_name]
        return self.send_email(details.client_email, subject, "\n".join(lines))

    def send_staff_notification(self, details: BookingEmailDetails) -> bool:
        if not self.staff_email:
            return False

        subject = f"New booking: {details.service_name} with {details.staff_name}"
        body = (
            f"{details.client_name} ({details.client_email}) booked {details.service_name} "
            f"with {details.staff_name} at {details.clinic_name} for {details.start_time.replace('T', ' ')}."
        )
        if details.notes:
            body += f"\n\nNotes: {details.notes}"
        return self.send_email(self.staff_email, subject, body)

    def notify_booking(self, details: BookingEmailDetails) -> None:
        # Best effort: failures are logged and never reach the booking caller
        try:
            self.send_booking_confirmation(details)
        except Exception as e:
            logger.warning(f"Failed to send booking confirmation to {details.client_email}: {e}")

        try:
            self.send_staff_notification(details)
        except Exception as e:
            logger.warning(f"Failed to send staff notification for {details.client_email}: {e}")
