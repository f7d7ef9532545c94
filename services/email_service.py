import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from core.config import settings
from utils.logger import get_logger

logger = get_logger(__name__)


def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Deliver one HTML e-mail over SMTP.

    Runs as a background task after the response is sent, so failures are
    logged and reported through the return value only; callers never see
    an exception and nothing retries.
    """
    if settings.is_testing:
        logger.info(
            "[TEST MODE] Email skipped",
            extra={"recipient": to_email, "subject": subject}
        )
        return False

    logger.debug(
        "Attempting to send email",
        extra={"recipient": to_email, "subject": subject}
    )

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.MAIL_FROM
    message["To"] = to_email
    message.attach(MIMEText(body, "html"))

    try:
        with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT, timeout=10) as server:
            server.starttls()
            if settings.MAIL_USERNAME:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, message.as_string())

    except (smtplib.SMTPException, OSError) as e:
        logger.error(
            f"Failed to send email: {str(e)}",
            extra={
                "recipient": to_email,
                "subject": subject,
                "error_type": type(e).__name__
            },
            exc_info=True
        )
        return False

    logger.info(
        "Email sent successfully",
        extra={"recipient": to_email, "subject": subject}
    )
    return True


def send_password_reset_email(to_email: str, reset_token: str, expires_minutes: int) -> bool:
    reset_url = f"{settings.FRONTEND_URL}/reset-password?token={reset_token}"

    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">Password Reset Request</h2>
            <p>We received a request to reset your Safe Haven EHR password.</p>
            <p>
                <a href="{reset_url}"
                style="display: inline-block; padding: 14px 28px; background-color: #667eea;
                        color: white; text-decoration: none; border-radius: 4px; font-weight: bold;">
                    Reset Password
                </a>
            </p>
            <p style="color: #666; font-size: 14px;">This link expires in {expires_minutes} minutes and can be used once.</p>
            <p style="color: #666; font-size: 14px;">
                If you didn't request this, ignore this email. Your password will remain unchanged.
            </p>
            <p style="color: #999; font-size: 12px;">{reset_url}</p>
        </div>
    </body>
    </html>
    """
    return send_email(to_email=to_email, subject="Reset Your Password", body=body)


def send_welcome_email(to_email: str, first_name: str, username: str) -> bool:
    login_url = f"{settings.FRONTEND_URL}/login"

    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">Welcome to Safe Haven EHR{', ' + first_name if first_name else ''}!</h2>
            <p>Your patient account has been created.</p>
            <p><strong>Username:</strong> {username}</p>
            <p>Use the temporary password provided by your care team. You will be asked to
            choose a new password the first time you sign in.</p>
            <p><a href="{login_url}">{login_url}</a></p>
        </div>
    </body>
    </html>
    """
    return send_email(to_email=to_email, subject="Welcome to Safe Haven EHR", body=body)
