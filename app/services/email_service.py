"""
Transactional email via Resend.
Without RESEND_API_KEY every send is a logged no-op.
"""
import logging
from typing import Optional
import resend
from app.config import settings

logger = logging.getLogger(__name__)


class EmailSender:

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None, app_url: Optional[str] = None):
        self.api_key = (api_key if api_key is not None else settings.RESEND_API_KEY).strip()
        self.from_email = from_email or settings.EMAIL_FROM
        self.app_url = (app_url or settings.APP_URL).rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _send(self, to_email: str, subject: str, html: str) -> bool:
        """
        Returns False when email is not configured. Errors from Resend are
        raised to the caller.
        """
        if not self.enabled or not to_email:
            logger.info(f"Email not configured, skipping '{subject}' to {to_email}")
            return False

        resend.api_key = self.api_key
        resend.Emails.send({
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html.strip(),
        })
        logger.info(f"Email sent: '{subject}' to {to_email}")
        return True

    def send_credits_low(self, user_name: str, user_email: str, credits_remaining: int) -> bool:
        subject = f"{user_name}, you have {credits_remaining} credits left"
        html = f"""
        <p>Hi {user_name},</p>
        <p>You have <strong>{credits_remaining}</strong> credits left on Pixelift.</p>
        <p><a href="{self.app_url}/pricing">Top up your credits</a> to keep processing images.</p>
        """
        return self._send(user_email, subject, html)

    def send_credits_depleted(self, user_name: str, user_email: str, total_images_processed: int) -> bool:
        subject = "Your Pixelift credits are empty - Top up to continue"
        html = f"""
        <p>Hi {user_name},</p>
        <p>You have used all your credits after processing {total_images_processed} images.</p>
        <p><a href="{self.app_url}/pricing">Buy more credits</a> to continue.</p>
        """
        return self._send(user_email, subject, html)

    def send_first_upload(self, user_name: str, user_email: str, credits_remaining: int) -> bool:
        subject = "Congratulations on your first upscaled image!"
        html = f"""
        <p>Hi {user_name},</p>
        <p>Your first image has been processed. You have {credits_remaining} credits remaining.</p>
        <p><a href="{self.app_url}/dashboard">Open your dashboard</a></p>
        """
        return self._send(user_email, subject, html)
