"""SMTP email sender for delivering OTP codes."""

import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import anyio
import structlog

from smartbudget.core.config import Settings

logger = structlog.get_logger(__name__)


@dataclass
class DeliveryResult:
    sent: bool
    error: str | None = None


class EmailSender:
    """Deliver OTP codes over SMTP without blocking the event loop."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def configured(self) -> bool:
        s = self.settings
        return all([s.SMTP_SERVER, s.SMTP_USERNAME, s.SMTP_PASSWORD, s.FROM_EMAIL])

    def _build_message(self, email: str, otp_code: str) -> MIMEMultipart:
        minutes = self.settings.OTP_EXPIRE_SECONDS // 60

        message = MIMEMultipart("alternative")
        message["From"] = self.settings.FROM_EMAIL
        message["To"] = email
        message["Subject"] = "Your Smart Budget OTP Code"

        text = (
            f"Your Smart Budget OTP code is: {otp_code}\n\n"
            f"This code is valid for {minutes} minutes.\n\n"
            "If you didn't request this code, please ignore this email."
        )
        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #2563eb;">Smart Budget - OTP Verification</h2>
            <p>Your one-time code is:</p>
            <h3 style="color: #2563eb; font-size: 32px; text-align: center; letter-spacing: 4px;">{otp_code}</h3>
            <p>This code is valid for <strong>{minutes} minutes</strong>.</p>
            <p style="color: #6b7280; font-size: 14px;">If you didn't request this code, please ignore this email.</p>
        </div>
        """
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))
        return message

    async def send_otp_email(self, email: str, otp_code: str) -> DeliveryResult:
        """Send the OTP code to the provided email address via SMTP.

        Blocking SMTP calls run in a worker thread so the async request is not
        blocked. Failures are reported in the result, never raised: the code
        is already stored and stays valid whether or not the mail goes out.
        """

        if not self.configured:
            if not self.settings.is_production:
                logger.warning("email.console_delivery", email=email, otp=otp_code)
            return DeliveryResult(sent=False, error="SMTP settings are incomplete.")

        message = self._build_message(email, otp_code)

        def _send() -> None:
            """Inner sync function executed in a thread."""
            with smtplib.SMTP(self.settings.SMTP_SERVER, int(self.settings.SMTP_PORT), timeout=20) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD)
                server.send_message(message)

        try:
            await anyio.to_thread.run_sync(_send)
        except (smtplib.SMTPException, OSError) as exc:  # pragma: no cover - SMTP network path
            logger.error("email.delivery_failed", email=email, error=str(exc))
            return DeliveryResult(sent=False, error=str(exc))

        logger.info("email.sent", email=email)
        return DeliveryResult(sent=True)
