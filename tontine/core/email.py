import smtplib
import logging
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from tontine.core.config import settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_USER, settings.SMTP_PASSWORD, settings.FROM_EMAIL])


def _send_email(to_email: str, subject: str, plain_text: str, html_text: str) -> None:
    """Low-level helper to send one email via SMTP."""
    if not smtp_configured():
        logger.warning("SMTP not fully configured; skipping email to %s.", to_email)
        return

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.FROM_EMAIL
    msg["To"] = to_email
    if settings.REPLY_TO_EMAIL:
        msg["Reply-To"] = settings.REPLY_TO_EMAIL

    msg.attach(MIMEText(plain_text, "plain"))
    msg.attach(MIMEText(html_text, "html"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT or 587) as server:
        server.ehlo()
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())


def send_payment_reminder_email(
    to_email: str,
    member_name: str,
    group_name: str,
    cycle_number: int,
    amount: Decimal,
) -> None:
    """Email a member about a pending contribution.

    Delivery failures are logged and swallowed: the in-app notification has
    already been recorded and is the source of truth.
    """
    if not to_email or not smtp_configured():
        return

    subject = f"Payment reminder: {group_name} cycle {cycle_number}"

    plain_text = (
        f"Hello {member_name},\n\n"
        f"This is a reminder that your contribution of {amount:,.2f} for cycle {cycle_number} "
        f"of {group_name} is still pending.\n\n"
        f"Please pay before the cycle closes so the payout can go ahead.\n\n"
        f"Tontine"
    )

    html_text = f"""
    <html>
    <body style="font-family: Arial, sans-serif; color: #1e3a5f; background: #f0f4ff; padding: 24px;">
      <div style="max-width: 480px; margin: 0 auto; background: #ffffff; border-radius: 12px;
                  border: 2px solid #bfdbfe; padding: 32px;">
        <h2 style="color: #1d4ed8; margin-bottom: 8px;">Payment Due</h2>
        <p>Hello {member_name},</p>
        <p>Your contribution of <strong>{amount:,.2f}</strong> for cycle {cycle_number}
           of <strong>{group_name}</strong> is still pending.</p>
        <p style="font-size: 13px; color: #64748b;">
          Please pay before the cycle closes so the payout can go ahead.
        </p>
      </div>
    </body>
    </html>
    """

    try:
        _send_email(to_email, subject, plain_text, html_text)
        logger.info("Payment reminder email sent to %s", to_email)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send payment reminder to %s", to_email)
