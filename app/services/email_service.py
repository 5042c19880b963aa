import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from ..core.config import Settings
from ..core.exceptions import MailDeliveryError

logger = logging.getLogger(__name__)


def build_otp_html(otp: str, ttl_minutes: int) -> str:
    return (
        f"<p>Your OTP code is <strong>{otp}</strong>. "
        f"It will expire in {ttl_minutes} minutes.</p>"
    )


class Mailer:
    """Delivers email. Raises MailDeliveryError when a message cannot be handed off."""

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        raise NotImplementedError

    def send_otp(self, to_email: str, otp: str, ttl_minutes: int) -> None:
        self.send(to_email, "Your OTP Code", build_otp_html(otp, ttl_minutes))

    def close(self) -> None:
        pass


class SMTPMailer(Mailer):
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        if not self.settings.email_enabled:
            logger.warning(f"SMTP not configured, email to {to_email} not sent")
            return
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.MAIL_FROM_NAME} <{self.settings.MAIL_FROM}>"
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        try:
            with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as server:
                server.starttls()
                server.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
                server.sendmail(self.settings.MAIL_FROM, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise MailDeliveryError() from e
        logger.info(f"Email sent to {to_email}")


def create_mailer(settings: Settings) -> Mailer:
    return SMTPMailer(settings)
