import logging
from datetime import datetime
from html import escape

from django.core.mail import send_mail

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The mail backend refused or failed to deliver a message."""


def _display_name(user):
    return escape((user.username or "there").strip())


def _format_lifetime(seconds):
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    minutes = max(seconds // 60, 1)
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


def _otp_email_html(title, username, otp, message, lifetime):
    safe_otp = escape(str(otp))
    year = datetime.now().year
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
</head>
<body style="margin:0;padding:0;background:#F3F4F6;color:#111827;font-family:Segoe UI,Arial,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="padding:24px 12px;">
    <tr>
      <td align="center">
        <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="max-width:560px;background:#FFFFFF;border:1px solid #E5E7EB;border-radius:14px;">
          <tr>
            <td style="padding:28px 24px 12px;text-align:center;">
              <div style="font-size:24px;font-weight:800;letter-spacing:.3px;">Photo<span style="color:#DB2777;">Flow</span></div>
            </td>
          </tr>
          <tr>
            <td style="padding:0 24px 10px;text-align:center;">
              <div style="font-size:16px;color:#374151;">Hi {escape(username)}, {escape(message)}</div>
            </td>
          </tr>
          <tr>
            <td style="padding:12px 24px;text-align:center;">
              <div style="display:inline-block;font-size:34px;line-height:1;font-weight:800;letter-spacing:8px;padding:16px 22px;background:#FDF2F8;color:#BE185D;border:1px dashed #F9A8D4;border-radius:10px;">
                {safe_otp}
              </div>
            </td>
          </tr>
          <tr>
            <td style="padding:8px 24px 26px;text-align:center;color:#6B7280;font-size:14px;">
              This code expires in {lifetime}. If you did not request it, ignore this email.
            </td>
          </tr>
          <tr>
            <td style="padding:14px 24px;border-top:1px solid #E5E7EB;text-align:center;color:#9CA3AF;font-size:12px;">
              &copy; {year} PhotoFlow
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _welcome_email_html(user):
    name = _display_name(user)
    year = datetime.now().year
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Welcome to PhotoFlow</title>
</head>
<body style="margin:0;padding:0;background:#F3F4F6;color:#111827;font-family:Segoe UI,Arial,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="padding:24px 12px;">
    <tr>
      <td align="center">
        <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="max-width:560px;background:#FFFFFF;border:1px solid #E5E7EB;border-radius:14px;">
          <tr>
            <td style="padding:28px 24px 16px;text-align:center;">
              <div style="font-size:24px;font-weight:800;">Photo<span style="color:#DB2777;">Flow</span></div>
            </td>
          </tr>
          <tr>
            <td style="padding:16px 24px 8px;text-align:center;">
              <div style="font-size:22px;font-weight:700;">Welcome, <span style="color:#DB2777;">{name}</span></div>
            </td>
          </tr>
          <tr>
            <td style="padding:0 24px 22px;text-align:center;color:#374151;font-size:15px;line-height:1.6;">
              Your email is verified. Share your first photo and follow people you like.
            </td>
          </tr>
          <tr>
            <td style="padding:14px 24px;border-top:1px solid #E5E7EB;text-align:center;color:#9CA3AF;font-size:12px;">
              &copy; {year} PhotoFlow
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def send_otp_email(user, otp, *, subject, title, message, lifetime_seconds):
    """
    Send a templated OTP email.

    Raises EmailDeliveryError when the backend fails so callers can roll back
    the OTP they just stored.
    """
    lifetime = _format_lifetime(lifetime_seconds)
    html_message = _otp_email_html(title, user.username, otp, message, lifetime)
    plain_message = (
        f"Hi {user.username},\n\n"
        f"{message} {otp}\n\n"
        f"This code expires in {lifetime}.\n"
        "If you didn't request this, ignore this email."
    )

    try:
        send_mail(
            subject=subject,
            message=plain_message,
            from_email=None,  # Uses DEFAULT_FROM_EMAIL from settings
            recipient_list=[user.email],
            html_message=html_message,
            fail_silently=False,
        )
    except Exception as exc:
        logger.exception("Failed to send '%s' email to %s", subject, user.email)
        raise EmailDeliveryError(str(exc)) from exc

    logger.info("'%s' email sent to %s", subject, user.email)


def send_verification_email(user, otp, lifetime_seconds, resend=False):
    send_otp_email(
        user,
        otp,
        subject=(
            "Resend OTP for Email Verification"
            if resend
            else "OTP for Email Verification"
        ),
        title="OTP Verification",
        message="your one-time password (OTP) for account verification is:",
        lifetime_seconds=lifetime_seconds,
    )


def send_password_reset_email(user, otp, lifetime_seconds):
    send_otp_email(
        user,
        otp,
        subject=f"Your Password Reset OTP (Valid for {_format_lifetime(lifetime_seconds)})",
        title="Reset Password OTP",
        message="your password reset OTP is:",
        lifetime_seconds=lifetime_seconds,
    )


def send_welcome_email(user):
    """
    Send a minimal welcome email to a newly verified user.
    """
    subject = "Welcome to PhotoFlow"

    try:
        html_message = _welcome_email_html(user)

        plain_message = (
            f"Welcome to PhotoFlow.\n\n"
            f"Hi {user.username},\n\n"
            "Your email is verified.\n"
            "Share your first photo.\n\n"
            "- PhotoFlow"
        )

        send_mail(
            subject=subject,
            message=plain_message,
            from_email=None,  # Uses DEFAULT_FROM_EMAIL from settings
            recipient_list=[user.email],
            html_message=html_message,
            fail_silently=False,
        )

        logger.info("Welcome email sent to %s", user.email)

    except Exception:
        # Welcome mail is best effort; verification already succeeded
        logger.exception("Failed to send welcome email to %s", user.email)
