"""
Transactional email over SendGrid.

The only message the marketplace sends today is the Arabic reminder that a
provider's subscription is about to run out. Without SENDGRID_API_KEY the
service stays disabled and every send reports False.
"""

from datetime import datetime, timezone
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

from khidma.services.structured_logging import get_logger

logger = get_logger(__name__)

ACCEPTED = (200, 201, 202)

REMINDER_HTML = """<!DOCTYPE html>
<html dir="rtl" lang="ar">
<head><meta charset="utf-8"></head>
<body style="margin:0;background:#f6f9fc;font-family:Tahoma,Arial,sans-serif;">
  <div style="max-width:600px;margin:32px auto;background:#fff;border-radius:16px;overflow:hidden;">
    <div style="background:#f59e0b;padding:32px;text-align:center;color:#fff;">
      <h1 style="margin:0;font-size:28px;">⏰ تذكير هام</h1>
    </div>
    <div style="padding:40px;text-align:center;color:#1f2937;">
      <h2 style="font-size:22px;">اشتراكك ينتهي خلال {days_left} {unit}!</h2>
      <p style="color:#4b5563;font-size:16px;line-height:28px;">
        لن تتمكن من استقبال طلبات جديدة بعد انتهاء الاشتراك.
        جدد الآن لتجنب أي انقطاع في خدماتك.
      </p>
      <a href="{renew_url}" style="display:inline-block;margin-top:24px;background:#16a34a;color:#fff;border-radius:8px;padding:16px 48px;text-decoration:none;font-size:18px;">
        تجديد الاشتراك
      </a>
    </div>
    <p style="margin:0;padding:20px;background:#f9fafb;color:#9ca3af;font-size:13px;text-align:center;">
      © {year} خدمة سريعة - جميع الحقوق محفوظة
    </p>
  </div>
</body>
</html>
"""


class EmailService:

    def __init__(self, api_key: Optional[str], from_email: str, from_name: str,
                 site_url: str = ""):
        self.sender = Email(from_email, from_name)
        self.site_url = site_url.rstrip('/')
        self.client = SendGridAPIClient(api_key) if api_key else None
        if self.client is None:
            logger.warning("SENDGRID_API_KEY not set, reminder emails are disabled")

    @classmethod
    def from_config(cls, config) -> 'EmailService':
        return cls(
            api_key=config.get('SENDGRID_API_KEY'),
            from_email=config.get('SENDGRID_FROM_EMAIL'),
            from_name=config.get('SENDGRID_FROM_NAME'),
            site_url=config.get('PUBLIC_SITE_URL', ''),
        )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def send_email(self, to_email: str, subject: str, html_content: str, retries: int = 3) -> bool:
        """
        Deliver one HTML email.

        Transport errors and 5xx answers are retried up to `retries` attempts;
        a 4xx answer gives up at once.
        """
        if self.client is None:
            logger.error("Email dropped: SendGrid is not configured", to_email=to_email)
            return False

        message = Mail(from_email=self.sender, to_emails=To(to_email), subject=subject,
                       html_content=Content("text/html", html_content))

        for attempt in range(1, retries + 1):
            try:
                response = self.client.send(message)
            except Exception as e:
                logger.warning("SendGrid send failed", attempt=attempt, retries=retries,
                               error_message=str(e))
                continue

            status = response.status_code
            if status in ACCEPTED:
                logger.info("Email sent", to_email=to_email, subject=subject)
                return True
            if status < 500:
                logger.error("SendGrid rejected email", to_email=to_email, status_code=status,
                             error_message=response.body)
                return False
            logger.warning("SendGrid server error", status_code=status, attempt=attempt,
                           retries=retries)

        logger.error("Email not delivered after retries", to_email=to_email, retries=retries)
        return False

    def send_subscription_reminder(self, to_email: str, subject: str, days_left: int, link: str) -> bool:
        return self.send_email(to_email, subject, self.render_reminder(days_left, link))

    def render_reminder(self, days_left: int, link: str) -> str:
        """Right-to-left Arabic reminder body linking to the provider dashboard."""
        return REMINDER_HTML.format(
            days_left=days_left,
            unit="يوم" if days_left == 1 else "أيام",
            renew_url=f"{self.site_url}{link}",
            year=datetime.now(timezone.utc).year,
        )
